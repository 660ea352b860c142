"""Header section parser — ``Label : value`` lines describing the run."""

import logging
import re
from datetime import datetime

from robocopy_parser.models import MissingField, RunHeader
from robocopy_parser.vocabulary import Vocabulary, build_vocabulary

logger = logging.getLogger(__name__)

DEFAULT_TIMESTAMP_FORMATS = (
    "%A, %B %d, %Y %I:%M:%S %p",  # Monday, January 9, 2023 10:15:32 AM
    "%a %b %d %H:%M:%S %Y",       # Mon Jan 09 10:15:32 2023
    "%d/%m/%Y %H:%M:%S",          # 09/01/2023 10:15:32
    "%Y/%m/%d %H:%M:%S",          # 2023/01/09 10:15:32
)

# Labels start with a letter and are two characters or more, so the drive
# letter of "C:\path" is never taken for a label.
LABEL_PATTERN = re.compile(r"^\s*(?P<label>[^\W\d_][\w .()/-]*?[\w.)])\s*:(?!:)\s*(?P<value>.*?)\s*$")

REQUIRED_FIELDS = ("started_at", "source_path", "destination_path")


def split_label(line: str) -> tuple[str, str] | None:
    """Split 'Label : value' into a trimmed pair. Returns None for other shapes."""
    m = LABEL_PATTERN.match(line)
    if not m:
        return None
    value = m.group("value")
    if value.startswith(":"):
        return None
    return " ".join(m.group("label").split()), value


def parse_timestamp(value: str, formats=DEFAULT_TIMESTAMP_FORMATS) -> datetime | None:
    """Parse a Robocopy timestamp with the first matching format, else None."""
    value = " ".join(value.split())
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


class HeaderParser:
    """Accumulates header fields line by line; ``build`` freezes the result."""

    def __init__(self, vocabulary: Vocabulary | None = None,
                 timestamp_formats=DEFAULT_TIMESTAMP_FORMATS):
        self.vocabulary = vocabulary or build_vocabulary()
        self.timestamp_formats = tuple(timestamp_formats)
        self.fields: dict[str, str] = {}
        self.extra: dict[str, str] = {}
        self.recognized = 0
        self._last = None

    def feed(self, line: str) -> bool:
        """Consume one header line. Returns True if it carried a field."""
        if not line.strip():
            self._last = None
            return False

        pair = split_label(line)
        if pair is None:
            return self._continue(line)

        label, value = pair
        name = self.vocabulary.header_labels.get(label.casefold())
        if name is not None:
            self.fields[name] = value
            self._last = (self.fields, name)
            self.recognized += 1
            logger.debug("Header field %s = %r", name, value)
        else:
            self.extra[label] = value
            self._last = (self.extra, label)
        return True

    def _continue(self, line: str) -> bool:
        """Append a wrapped value line to the previous label, if there is one."""
        if self._last is None:
            return False
        target, key = self._last
        target[key] = f"{target[key]} {line.strip()}".strip()
        return True

    def build(self) -> tuple[RunHeader, list]:
        warnings = []
        started_at = None
        raw_started = self.fields.get("started_at")
        if raw_started is not None:
            started_at = parse_timestamp(raw_started, self.timestamp_formats)
            if started_at is None:
                logger.debug("Unparsable start timestamp %r", raw_started)

        for name in REQUIRED_FIELDS:
            if name == "started_at":
                if started_at is None:
                    warnings.append(MissingField(name))
            elif not self.fields.get(name):
                warnings.append(MissingField(name))

        header = RunHeader(
            started_at=started_at,
            source_path=self.fields.get("source_path"),
            destination_path=self.fields.get("destination_path"),
            file_filter=self.fields.get("file_filter"),
            options_string=self.fields.get("options_string"),
            log_path=self.fields.get("log_path"),
            extra=self.extra,
        )
        return header, warnings
