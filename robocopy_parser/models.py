"""Parsed Robocopy log document — frozen dataclasses, enums and warnings."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Union


def _frozen_map(data: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


class Action(str, Enum):
    NEW = "New"
    SAME = "Same"
    CHANGED = "Changed"
    TWEAKED = "Tweaked"
    OLDER = "Older"
    NEWER = "Newer"
    EXTRA = "Extra"
    MISMATCH = "Mismatch"
    FAILED = "Failed"
    LONELY = "Lonely"
    UNKNOWN = "Unknown"


class EntryKind(str, Enum):
    DIR = "dir"
    FILE = "file"


class Category(str, Enum):
    DIRS = "dirs"
    FILES = "files"
    BYTES = "bytes"
    TIMES = "times"


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunHeader:
    started_at: datetime | None = None
    source_path: str | None = None
    destination_path: str | None = None
    file_filter: str | None = None
    options_string: str | None = None
    log_path: str | None = None
    extra: Mapping[str, str] = field(default_factory=_frozen_map)

    def __post_init__(self):
        object.__setattr__(self, "extra", _frozen_map(self.extra))


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectoryEntry:
    action: Action
    path: str
    file_count: int | None = None
    error_code: int | None = None
    error_message: str | None = None
    line_number: int | None = None

    kind = EntryKind.DIR


@dataclass(frozen=True)
class FileEntry:
    action: Action
    path: str
    size_bytes: int | None = None
    error_code: int | None = None
    error_message: str | None = None
    line_number: int | None = None

    kind = EntryKind.FILE

    def __post_init__(self):
        if self.size_bytes is not None and self.size_bytes < 0:
            raise ValueError(f"size_bytes must be non-negative, got {self.size_bytes}")


Entry = Union[DirectoryEntry, FileEntry]


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SummaryRow:
    category: Category
    total: int = 0
    copied: int = 0
    skipped: int = 0
    mismatch: int = 0
    failed: int = 0
    extras: int = 0

    def is_balanced(self) -> bool:
        """True if Total equals the sum of the other five columns."""
        return self.total == (
            self.copied + self.skipped + self.mismatch + self.failed + self.extras
        )


@dataclass(frozen=True)
class SummaryTable:
    rows: Mapping[Category, SummaryRow] = field(default_factory=_frozen_map)
    ended_at: datetime | None = None
    speed_bytes_per_sec: int | None = None
    speed_mb_per_min: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "rows", _frozen_map(self.rows))

    @property
    def dirs(self) -> SummaryRow | None:
        return self.rows.get(Category.DIRS)

    @property
    def files(self) -> SummaryRow | None:
        return self.rows.get(Category.FILES)

    @property
    def bytes(self) -> SummaryRow | None:
        return self.rows.get(Category.BYTES)

    @property
    def times(self) -> SummaryRow | None:
        return self.rows.get(Category.TIMES)


# ---------------------------------------------------------------------------
# Warnings: never fatal, always attached to the document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodeWarning:
    encoding: str
    replaced: int

    kind = "decode"

    @property
    def detail(self) -> str:
        return f"{self.replaced} character(s) replaced while decoding as {self.encoding}"


@dataclass(frozen=True)
class UnparsedLine:
    line_number: int
    raw_text: str

    kind = "unparsed_line"

    @property
    def detail(self) -> str:
        return f"line {self.line_number}: {self.raw_text!r}"


@dataclass(frozen=True)
class MissingField:
    name: str

    kind = "missing_field"

    @property
    def detail(self) -> str:
        return self.name


@dataclass(frozen=True)
class StructuralWarning:
    detail: str

    kind = "structural"


ParseWarning = Union[DecodeWarning, UnparsedLine, MissingField, StructuralWarning]


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LogDocument:
    header: RunHeader
    entries: tuple[Entry, ...] = ()
    summary: SummaryTable = field(default_factory=SummaryTable)
    warnings: tuple[ParseWarning, ...] = ()
    encoding: str = ""

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def warnings_of(self, kind: str) -> list[ParseWarning]:
        """Return the warnings whose ``kind`` equals *kind*, in order."""
        return [w for w in self.warnings if w.kind == kind]
