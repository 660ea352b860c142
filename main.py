"""robocopy-parser — convert Robocopy run logs into structured JSON."""

import codecs
import logging
import os
import sys
from argparse import ArgumentParser, ArgumentTypeError

import yaml

from robocopy_parser.config import load_config, load_yaml_config
from robocopy_parser.errors import RobocopyParserError
from robocopy_parser.formatter import FORMATS, format_warning, get_formatter
from robocopy_parser.parser import parse_bytes
from robocopy_parser.reader import read_input, write_output

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"

logger = logging.getLogger(__name__)


def _encoding(value: str) -> str:
    """argparse type: accept only codec names Python knows."""
    try:
        return codecs.lookup(value).name
    except LookupError:
        raise ArgumentTypeError(f"unknown encoding: {value}") from None


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="robocopy-parser",
        description="Convert Robocopy run logs into structured documents.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    parse = commands.add_parser("parse", help="Parse one Robocopy log file")
    parse.add_argument(
        "input",
        help="Robocopy log file to process ('-' reads stdin)",
    )
    parse.add_argument(
        "--encoding",
        type=_encoding,
        help="Decode with this codec instead of guessing (e.g. cp850, utf-16)",
    )
    parse.add_argument(
        "--output",
        default="-",
        help="Output file, or '-' for stdout (default: stdout)",
    )
    parse.add_argument(
        "--format",
        choices=FORMATS,
        default="json",
        help="Output format (default: json)",
    )
    parse.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace the output file if it already exists",
    )
    parse.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (codepages, timestamp formats, keyword tables)",
    )
    parse.add_argument(
        "--log-file",
        default=None,
        help="Write this program's diagnostics to a file instead of stderr",
    )
    return parser


def setup_logging(log_file: str | None = None) -> None:
    """Configure process logging once; LOG_LEVEL picks the verbosity."""
    level_name = os.environ.get("LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    if log_file:
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=log_file)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def run_parse(args) -> int:
    """Execute the parse command and return the process exit code."""
    try:
        config = load_config(load_yaml_config(args.config))
    except (ValueError, yaml.YAMLError) as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        data = read_input(args.input)
        document = parse_bytes(data, encoding=args.encoding, config=config)
    except RobocopyParserError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except OSError as exc:
        print(f"Error: cannot read {args.input}: {exc}", file=sys.stderr)
        return EXIT_FATAL

    logger.info("Parsed %s as %s: %d entries, %d warnings",
                args.input, document.encoding, len(document.entries), len(document.warnings))
    for warning in document.warnings:
        print(format_warning(warning), file=sys.stderr)

    formatter = get_formatter(args.format)
    try:
        write_output(formatter(document), args.output, overwrite=args.overwrite)
    except FileExistsError:
        print(f"Error: {args.output} already exists (use --overwrite)", file=sys.stderr)
        return EXIT_FATAL
    except OSError as exc:
        print(f"Error: cannot write {args.output}: {exc}", file=sys.stderr)
        return EXIT_FATAL
    return EXIT_OK


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_file)
    return run_parse(args)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
