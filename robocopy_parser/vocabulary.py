"""Locale keyword tables — every label and action word the parsers recognize.

A table is plain data so additional locales can be loaded from YAML without
touching the parsers. Lookups are case-insensitive and merged across tables.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from robocopy_parser.models import Action, Category, EntryKind

HEADER_FIELDS = (
    "started_at",
    "source_path",
    "destination_path",
    "file_filter",
    "options_string",
    "log_path",
)

SUMMARY_FIELDS = ("speed", "ended_at")

_KINDS = {"dir": EntryKind.DIR, "file": EntryKind.FILE, None: None}


@dataclass(frozen=True)
class KeywordTable:
    name: str
    header_labels: Mapping[str, str] = field(default_factory=dict)
    action_tokens: Mapping[str, tuple] = field(default_factory=dict)
    summary_heading: tuple[str, ...] = ()
    summary_labels: Mapping[str, Category] = field(default_factory=dict)
    summary_fields: Mapping[str, str] = field(default_factory=dict)
    speed_units: Mapping[str, str] = field(default_factory=dict)


ENGLISH = KeywordTable(
    name="en",
    header_labels={
        "Started": "started_at",
        "Source": "source_path",
        "Dest": "destination_path",
        "Destination": "destination_path",
        "Files": "file_filter",
        "Options": "options_string",
        "Log File": "log_path",
    },
    action_tokens={
        "New Dir": (EntryKind.DIR, Action.NEW),
        "New File": (EntryKind.FILE, Action.NEW),
        "Same": (None, Action.SAME),
        "Changed": (EntryKind.FILE, Action.CHANGED),
        "Modified": (EntryKind.FILE, Action.CHANGED),
        "Tweak": (EntryKind.FILE, Action.TWEAKED),
        "Tweaked": (EntryKind.FILE, Action.TWEAKED),
        "Older": (EntryKind.FILE, Action.OLDER),
        "Newer": (EntryKind.FILE, Action.NEWER),
        "EXTRA Dir": (EntryKind.DIR, Action.EXTRA),
        "*EXTRA Dir": (EntryKind.DIR, Action.EXTRA),
        "EXTRA File": (EntryKind.FILE, Action.EXTRA),
        "*EXTRA File": (EntryKind.FILE, Action.EXTRA),
        "*MISMATCH": (None, Action.MISMATCH),
        "MISMATCH": (None, Action.MISMATCH),
        "FAILED": (None, Action.FAILED),
        "Lonely": (None, Action.LONELY),
    },
    summary_heading=("Total", "Copied", "Skipped", "Mismatch", "FAILED", "Extras"),
    summary_labels={
        "Dirs": Category.DIRS,
        "Files": Category.FILES,
        "Bytes": Category.BYTES,
        "Times": Category.TIMES,
    },
    summary_fields={
        "Speed": "speed",
        "Ended": "ended_at",
    },
    speed_units={
        "Bytes/sec.": "bytes_per_sec",
        "Bytes/sec": "bytes_per_sec",
        "MegaBytes/min.": "mb_per_min",
        "MegaBytes/min": "mb_per_min",
    },
)


def table_from_dict(data: dict) -> KeywordTable:
    """Build a KeywordTable from its YAML representation.

    Raises ValueError on unknown header fields, actions, kinds or categories.
    """
    header_labels = {}
    for label, name in (data.get("header_labels") or {}).items():
        if name not in HEADER_FIELDS:
            raise ValueError(f"Unknown header field {name!r} for label {label!r}")
        header_labels[label] = name

    action_tokens = {}
    for token, value in (data.get("action_tokens") or {}).items():
        if isinstance(value, str):
            value = {"action": value}
        kind = value.get("kind")
        if kind not in _KINDS:
            raise ValueError(f"Unknown entry kind {kind!r} for token {token!r}")
        action_tokens[token] = (_KINDS[kind], Action(value["action"]))

    summary_labels = {
        label: Category(name) for label, name in (data.get("summary_labels") or {}).items()
    }

    summary_fields = {}
    for label, name in (data.get("summary_fields") or {}).items():
        if name not in SUMMARY_FIELDS:
            raise ValueError(f"Unknown summary field {name!r} for label {label!r}")
        summary_fields[label] = name

    return KeywordTable(
        name=str(data.get("name", "custom")),
        header_labels=header_labels,
        action_tokens=action_tokens,
        summary_heading=tuple(data.get("summary_heading") or ()),
        summary_labels=summary_labels,
        summary_fields=summary_fields,
        speed_units=dict(data.get("speed_units") or {}),
    )


class Vocabulary:
    """Case-insensitive union of several keyword tables."""

    def __init__(self, tables: Iterable[KeywordTable] = (ENGLISH,)):
        self.tables = tuple(tables)
        self.header_labels = {}
        self.summary_labels = {}
        self.summary_fields = {}
        self.speed_units = {}
        tokens = {}
        for table in self.tables:
            self.header_labels.update(_fold(table.header_labels))
            self.summary_labels.update(_fold(table.summary_labels))
            self.summary_fields.update(_fold(table.summary_fields))
            self.speed_units.update(_fold(table.speed_units))
            tokens.update(_fold(table.action_tokens))
        # Longest token first so "New File" wins over a shorter prefix.
        self.action_tokens = [
            (_token_pattern(token), value)
            for token, value in sorted(tokens.items(), key=lambda kv: len(kv[0]), reverse=True)
        ]
        self.headings = [
            tuple(word.casefold() for word in table.summary_heading)
            for table in self.tables
            if table.summary_heading
        ]

    def match_action(self, line: str) -> tuple[str, tuple] | None:
        """Return (matched_token_text, (kind, action)) for the line's leading token."""
        for pattern, value in self.action_tokens:
            m = pattern.match(line)
            if m:
                return m.group(0), value
        return None

    def is_heading(self, line: str) -> bool:
        folded = line.casefold()
        for words in self.headings:
            position = 0
            for word in words:
                position = folded.find(word, position)
                if position < 0:
                    break
                position += len(word)
            else:
                return True
        return False


def _token_pattern(token: str) -> re.Pattern:
    words = r"\s+".join(re.escape(word) for word in token.split())
    return re.compile(rf"^{words}(?=\s|$)", re.IGNORECASE)


def _fold(mapping: Mapping) -> dict:
    return {" ".join(key.split()).casefold(): value for key, value in mapping.items()}


def build_vocabulary(extra_tables: Iterable[KeywordTable] = ()) -> Vocabulary:
    return Vocabulary((ENGLISH, *extra_tables))
