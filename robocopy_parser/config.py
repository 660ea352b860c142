"""Configuration loading from an optional YAML file and environment variables."""

import logging
import os
from dataclasses import dataclass, field

import yaml

from robocopy_parser.decoder import DEFAULT_CODEPAGES
from robocopy_parser.header import DEFAULT_TIMESTAMP_FORMATS
from robocopy_parser.vocabulary import KeywordTable, table_from_dict

logger = logging.getLogger(__name__)

CONFIG_ENV = "ROBOCOPY_PARSER_CONFIG"


@dataclass(frozen=True)
class ParserConfig:
    codepages: tuple[str, ...] = DEFAULT_CODEPAGES
    max_replacement_ratio: float = 0.0
    timestamp_formats: tuple[str, ...] = DEFAULT_TIMESTAMP_FORMATS
    keyword_tables: tuple[KeywordTable, ...] = field(default_factory=tuple)


def load_yaml_config(path: str | None) -> dict:
    """Load parser settings from a YAML file. Returns empty dict if no path."""
    path = path or os.environ.get(CONFIG_ENV)
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def _split_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_config(yaml_data: dict | None = None) -> ParserConfig:
    """Build ParserConfig from parsed YAML data, then env var overrides.

    Raises ValueError on malformed keyword tables or ratios.
    """
    yaml_data = yaml_data or {}
    decoding = yaml_data.get("decoding") or {}

    codepages = tuple(decoding.get("codepages") or ParserConfig.codepages)
    ratio = float(decoding.get("max_replacement_ratio", ParserConfig.max_replacement_ratio))
    timestamp_formats = tuple(yaml_data.get("timestamp_formats") or ParserConfig.timestamp_formats)
    keyword_tables = tuple(table_from_dict(t) for t in yaml_data.get("keyword_tables") or [])

    if os.environ.get("ROBOCOPY_CODEPAGES"):
        codepages = _split_list(os.environ["ROBOCOPY_CODEPAGES"])
    if os.environ.get("ROBOCOPY_MAX_REPLACEMENT"):
        ratio = float(os.environ["ROBOCOPY_MAX_REPLACEMENT"])

    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"max_replacement_ratio must be between 0 and 1, got {ratio}")

    return ParserConfig(
        codepages=codepages,
        max_replacement_ratio=ratio,
        timestamp_formats=timestamp_formats,
        keyword_tables=keyword_tables,
    )
