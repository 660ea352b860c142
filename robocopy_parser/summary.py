"""Summary table parser — the Dirs/Files/Bytes/Times block, Speed and Ended.

Bytes columns may carry a scale suffix ("1.5 m"); they are stored as exact
byte counts using base-1024 multipliers. Times columns are H:MM:SS durations
stored as seconds.
"""

import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from robocopy_parser.header import DEFAULT_TIMESTAMP_FORMATS, parse_timestamp, split_label
from robocopy_parser.models import (
    Category,
    MissingField,
    StructuralWarning,
    SummaryRow,
    SummaryTable,
)
from robocopy_parser.vocabulary import Vocabulary, build_vocabulary

logger = logging.getLogger(__name__)

SCALES = {
    "": 1,
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
}

COLUMNS = ("total", "copied", "skipped", "mismatch", "failed", "extras")

# Robocopy leaves Skipped and Mismatch blank on the Times row.
_SHORT_TIMES_COLUMNS = ("total", "copied", "failed", "extras")

REQUIRED_ROWS = (Category.DIRS, Category.FILES, Category.BYTES)

SCALED_PATTERN = re.compile(r"^(?P<number>\d+(?:[.,]\d+)?)\s*(?P<unit>[kmgt]?)$", re.IGNORECASE)
_SCALED_TOKEN = re.compile(r"\d+(?:[.,]\d+)?(?:\s*[kmgt](?![\w]))?", re.IGNORECASE)
DURATION_PATTERN = re.compile(r"^(?P<h>\d+):(?P<m>[0-5]?\d):(?P<s>[0-5]?\d)$")
_DURATION_TOKEN = re.compile(r"\d+:\d{1,2}:\d{1,2}")
_SPEED_PATTERN = re.compile(r"^(?P<number>\d+(?:[.,]\d+)?)\s+(?P<unit>\S.*)$")


def parse_scaled(text: str) -> int:
    """Convert '1.5 m' → 1572864. Raises ValueError on malformed input."""
    m = SCALED_PATTERN.match(text.strip())
    if not m:
        raise ValueError(f"Not a scaled number: {text!r}")
    try:
        number = Decimal(m.group("number").replace(",", "."))
    except InvalidOperation as exc:
        raise ValueError(f"Not a scaled number: {text!r}") from exc
    value = number * SCALES[m.group("unit").lower()]
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def parse_duration(text: str) -> int:
    """Convert 'H:MM:SS' → seconds. Raises ValueError on malformed input."""
    m = DURATION_PATTERN.match(text.strip())
    if not m:
        raise ValueError(f"Not a duration: {text!r}")
    return int(m.group("h")) * 3600 + int(m.group("m")) * 60 + int(m.group("s"))


def parse_row(category: Category, value: str) -> SummaryRow:
    """Parse the six columns of one summary row. Raises ValueError if malformed."""
    if category is Category.TIMES:
        tokens = _DURATION_TOKEN.findall(value)
        numbers = [parse_duration(t) for t in tokens]
    else:
        tokens = _SCALED_TOKEN.findall(value)
        if _SCALED_TOKEN.sub("", value).strip():
            raise ValueError(f"Unexpected text in {category.value} row: {value!r}")
        numbers = [parse_scaled(t) for t in tokens]

    if len(numbers) == len(COLUMNS):
        columns = COLUMNS
    elif category is Category.TIMES and len(numbers) == len(_SHORT_TIMES_COLUMNS):
        columns = _SHORT_TIMES_COLUMNS
    else:
        raise ValueError(
            f"Unexpected number of fields in {category.value} row: {len(numbers)} instead of 6"
        )
    return SummaryRow(category=category, **dict(zip(columns, numbers)))


class SummaryParser:
    """Consumes lines after the column heading until the Ended line."""

    def __init__(self, vocabulary: Vocabulary | None = None,
                 timestamp_formats=DEFAULT_TIMESTAMP_FORMATS):
        self.vocabulary = vocabulary or build_vocabulary()
        self.timestamp_formats = tuple(timestamp_formats)
        self.rows: dict[Category, SummaryRow] = {}
        self.warnings = []
        self.speed_bytes_per_sec = None
        self.speed_mb_per_min = None
        self.raw_ended = None
        self.done = False

    def feed(self, line_number: int, line: str) -> bool:
        """Consume one summary line. Returns False if it could not be used."""
        pair = split_label(line)
        if pair is None:
            self._warn(f"unexpected line {line_number} in summary: {line.strip()!r}")
            return False

        label, value = pair
        key = label.casefold()
        category = self.vocabulary.summary_labels.get(key)
        if category is not None:
            return self._feed_row(line_number, category, value)

        name = self.vocabulary.summary_fields.get(key)
        if name == "speed":
            return self._feed_speed(line_number, value)
        if name == "ended_at":
            self.raw_ended = value
            self.done = True
            return True

        self._warn(f"unexpected summary label {label!r} on line {line_number}")
        return False

    def _feed_row(self, line_number: int, category: Category, value: str) -> bool:
        if category in self.rows:
            self._warn(f"duplicate {category.value} row on line {line_number}")
            return False
        try:
            self.rows[category] = parse_row(category, value)
        except ValueError as exc:
            self._warn(f"malformed {category.value} row on line {line_number}: {exc}")
            return False
        return True

    def _feed_speed(self, line_number: int, value: str) -> bool:
        m = _SPEED_PATTERN.match(value)
        unit = None
        if m:
            unit = self.vocabulary.speed_units.get(" ".join(m.group("unit").split()).casefold())
        if unit is None:
            self._warn(f"unrecognized speed value on line {line_number}: {value!r}")
            return False

        number = Decimal(m.group("number").replace(",", "."))
        if unit == "bytes_per_sec":
            self.speed_bytes_per_sec = int(number.to_integral_value(rounding=ROUND_HALF_UP))
        else:
            self.speed_mb_per_min = float(number)
        return True

    def _warn(self, detail: str) -> None:
        logger.debug("Summary: %s", detail)
        self.warnings.append(StructuralWarning(detail))

    def build(self) -> tuple[SummaryTable, list]:
        warnings = list(self.warnings)

        missing = [c.value for c in REQUIRED_ROWS if c not in self.rows]
        if missing:
            warnings.append(StructuralWarning(f"summary incomplete: missing {', '.join(missing)}"))

        ended_at = None
        if self.raw_ended is not None:
            ended_at = parse_timestamp(self.raw_ended, self.timestamp_formats)
        if ended_at is None:
            warnings.append(MissingField("ended_at"))

        table = SummaryTable(
            rows=self.rows,
            ended_at=ended_at,
            speed_bytes_per_sec=self.speed_bytes_per_sec,
            speed_mb_per_min=self.speed_mb_per_min,
        )
        return table, warnings
