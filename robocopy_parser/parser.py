"""Section state machine and document assembly.

A Robocopy log reads as:

    ---------------------------------------------
       ROBOCOPY  ::  Robust File Copy for Windows     <- banner (header state)
    ---------------------------------------------
      Started : ...                                   <- header fields
       Source : ...
    ---------------------------------------------     <- header → body
      New File   1024  a.txt                          <- entries
    ---------------------------------------------
          Total  Copied  Skipped  Mismatch  FAILED  Extras   <- body → summary
       Dirs :  ...
      Ended : ...                                     <- summary → done

States only move forward. Each line goes to the sub-parser of the current
state; lines it cannot use are recorded as warnings, never raised.
"""

import logging
import re
from enum import Enum
from typing import Iterable, Iterator

from robocopy_parser.config import ParserConfig
from robocopy_parser.decoder import decode_bytes
from robocopy_parser.entries import EntryParser
from robocopy_parser.errors import LogParseError
from robocopy_parser.header import HeaderParser
from robocopy_parser.models import (
    LogDocument,
    RunHeader,
    StructuralWarning,
    SummaryTable,
    UnparsedLine,
)
from robocopy_parser.summary import SummaryParser
from robocopy_parser.vocabulary import build_vocabulary

logger = logging.getLogger(__name__)

SEPARATOR_PATTERN = re.compile(r"^\s*([-=])\1{9,}\s*$")


class State(Enum):
    START = "start"
    IN_HEADER = "in_header"
    IN_BODY = "in_body"
    IN_SUMMARY = "in_summary"
    DONE = "done"


def is_separator(line: str) -> bool:
    return SEPARATOR_PATTERN.match(line) is not None


def clean_line(line: str) -> str:
    """Drop the line terminator and any in-place ``\\r`` progress updates."""
    line = line.rstrip("\r\n").lstrip("\ufeff")
    if "\r" in line:
        line = line.split("\r", 1)[0]
    return line


def split_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (line_number, line) pairs, 1-based, split on newlines only."""
    for number, line in enumerate(text.split("\n"), start=1):
        yield number, clean_line(line)


def assemble(header: RunHeader, entries: Iterable, summary: SummaryTable,
             warnings: Iterable, encoding: str = "") -> LogDocument:
    """Combine partial results into the immutable document."""
    return LogDocument(
        header=header,
        entries=tuple(entries),
        summary=summary,
        warnings=tuple(warnings),
        encoding=encoding,
    )


class LogParser:
    """Incremental parser: ``feed`` lines in order, then ``finish``."""

    def __init__(self, config: ParserConfig | None = None):
        self.config = config or ParserConfig()
        vocabulary = build_vocabulary(self.config.keyword_tables)
        self.vocabulary = vocabulary
        self.state = State.START
        self.header = HeaderParser(vocabulary, self.config.timestamp_formats)
        self.entries = EntryParser(vocabulary)
        self.summary = SummaryParser(vocabulary, self.config.timestamp_formats)
        self.warnings = []
        self.entry_count = 0
        self.unparsed_count = 0
        self.trailing_lines = 0

    def feed(self, line_number: int, line: str) -> list:
        """Consume one line; return the entries it completed, in order."""
        if not line.strip():
            if self.state is State.IN_HEADER:
                self.header.feed(line)
            return []

        if self.state is State.START:
            self._enter(State.IN_HEADER, line_number)

        if self.state is State.IN_HEADER:
            return self._feed_header(line_number, line)
        if self.state is State.IN_BODY:
            return self._feed_body(line_number, line)
        if self.state is State.IN_SUMMARY:
            return self._feed_summary(line_number, line)

        self.trailing_lines += 1
        return []

    def _enter(self, state: State, line_number: int) -> None:
        logger.debug("Line %d: %s -> %s", line_number, self.state.value, state.value)
        self.state = state

    def _feed_header(self, line_number: int, line: str) -> list:
        if is_separator(line):
            if self.header.recognized:
                self._enter(State.IN_BODY, line_number)
            return []
        if self.vocabulary.is_heading(line):
            self.warnings.append(StructuralWarning("body section missing"))
            self._enter(State.IN_SUMMARY, line_number)
            return []
        # Lines the header cannot use are banner decoration.
        self.header.feed(line)
        return []

    def _feed_body(self, line_number: int, line: str) -> list:
        if is_separator(line):
            return []
        if self.vocabulary.is_heading(line):
            completed = self._flush_entries()
            self._enter(State.IN_SUMMARY, line_number)
            return completed

        completed = self.entries.feed(line_number, line)
        self._collect_entry_warnings()
        if completed is None:
            self.unparsed_count += 1
            self.warnings.append(UnparsedLine(line_number=line_number, raw_text=line))
            return []
        self.entry_count += len(completed)
        return completed

    def _feed_summary(self, line_number: int, line: str) -> list:
        if is_separator(line):
            return []
        self.summary.feed(line_number, line)
        if self.summary.done:
            self._enter(State.DONE, line_number)
        return []

    def _collect_entry_warnings(self) -> None:
        if self.entries.warnings:
            self.warnings.extend(self.entries.warnings)
            self.entries.warnings.clear()

    def _flush_entries(self) -> list:
        completed = self.entries.flush()
        self._collect_entry_warnings()
        self.entry_count += len(completed)
        return completed

    def close(self) -> list:
        """Signal end of input; returns entries still held back."""
        return self._flush_entries()

    def finish(self, entries: Iterable = (), encoding: str = "") -> LogDocument:
        """Build the document from everything fed so far.

        *entries* are the ones returned by ``feed``/``close``; the parser does
        not keep its own copy so a streaming caller holds no extra memory.
        """
        entries = list(entries)
        self._collect_entry_warnings()

        if self.trailing_lines:
            self.warnings.append(StructuralWarning(
                f"{self.trailing_lines} line(s) after the summary were ignored"
            ))

        header, header_warnings = self.header.build()
        summary, summary_warnings = self.summary.build()
        if not (self.header.recognized or self.entry_count or summary.rows):
            raise LogParseError("No Robocopy header, entries or summary found in input")

        logger.info("Parsed %d entries, %d unparsed lines, state %s",
                    self.entry_count, self.unparsed_count, self.state.value)
        warnings = [*header_warnings, *self.warnings, *summary_warnings]
        return assemble(header, entries, summary, warnings, encoding)


def iter_entries(lines: Iterable[str], config: ParserConfig | None = None) -> Iterator:
    """Lazily yield entries from an iterable of text lines.

    Forward-only and not restartable; stop iterating to stop parsing.
    """
    parser = LogParser(config)
    for number, line in enumerate(lines, start=1):
        yield from parser.feed(number, clean_line(line))
    yield from parser.close()


def parse_text(text: str, config: ParserConfig | None = None, encoding: str = "") -> LogDocument:
    """Parse decoded log text into a LogDocument."""
    parser = LogParser(config)
    entries = []
    for number, line in split_lines(text):
        entries.extend(parser.feed(number, line))
    entries.extend(parser.close())
    return parser.finish(entries, encoding)


def parse_bytes(data: bytes, encoding: str | None = None,
                config: ParserConfig | None = None) -> LogDocument:
    """Decode raw log bytes and parse them.

    Raises EncodingError for undecodable input and LogParseError when the
    text holds no Robocopy structure.
    """
    config = config or ParserConfig()
    decoded = decode_bytes(
        data,
        encoding=encoding,
        codepages=config.codepages,
        max_replacement_ratio=config.max_replacement_ratio,
    )
    document = parse_text(decoded.text, config, decoded.encoding)
    if not decoded.warnings:
        return document
    return assemble(
        document.header,
        document.entries,
        document.summary,
        (*decoded.warnings, *document.warnings),
        document.encoding,
    )
