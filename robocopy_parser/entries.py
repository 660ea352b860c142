"""Body section parser — one Entry per directory/file line.

Classification order for a stripped line:
  1. Retry noise ("Waiting 30 seconds... Retrying...") → dropped
  2. Timestamped "ERROR <code> (0x..) <operation> <path>" → Failed entry,
     completed by the free-text description on the next line
  3. Known action token ("New File", "*EXTRA Dir", ...) → tagged entry
  4. "<count>\\t<dir path\\>" without a token → existing directory (Same)
  5. Tab-structured "<word>\\t<number>\\t<path>" → Unknown entry
  6. Anything else → not classified (caller records an UnparsedLine)
"""

import logging
import re

from robocopy_parser.models import (
    Action,
    DirectoryEntry,
    EntryKind,
    FileEntry,
    StructuralWarning,
)
from robocopy_parser.summary import parse_scaled
from robocopy_parser.vocabulary import Vocabulary, build_vocabulary

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Compiled regex patterns
# ---------------------------------------------------------------------------

_NUMBER = r"-?\d+(?:[.,]\d+)?(?:\s*[kmgt](?=\s))?"

_NUMBER_PATH_RE = re.compile(rf"^(?P<number>{_NUMBER})\s+(?P<path>\S.*)$", re.IGNORECASE)

_NUMBER_ONLY_RE = re.compile(rf"^{_NUMBER}$|^-?\d+(?:[.,]\d+)?\s*[kmgt]$", re.IGNORECASE)

_UNTAGGED_DIR_RE = re.compile(r"^(?P<count>-?\d+)\s+(?P<path>\S.*[\\/])$")

_UNKNOWN_RE = re.compile(r"^(?P<tag>\*?[^\W\d_][^\t]*)\t")

_ERROR_FRAGMENT_RE = re.compile(
    r"^ERROR\s+(?P<code>\d+)\s*(?:\((?P<hex>0x[0-9A-Fa-f]+)\))?\s*(?P<message>.*)$"
)

_TIMESTAMPED_ERROR_RE = re.compile(
    r"^(?P<ts>\d{4}/\d{2}/\d{2}\s+\d{2}:\d{2}:\d{2})\s+ERROR\s+(?P<code>\d+)\s+"
    r"(?:\((?P<hex>0x[0-9A-Fa-f]+)\)\s*)?(?P<operation>.*?)\s*"
    r"(?P<path>(?:[A-Za-z]:[\\/]|\\\\).*)?$"
)

_ERROR_MARKER_RE = re.compile(r"\bERROR\b")

_RETRY_NOISE_RE = re.compile(
    r"^(?:Waiting\s+\d+\s+seconds\.*\s*Retrying\.*|ERROR:\s*RETRY LIMIT EXCEEDED\.?)$",
    re.IGNORECASE,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_dir_path(path: str) -> bool:
    return path.endswith(("\\", "/"))


def _split_columns(rest: str) -> tuple[str | None, str | None]:
    """Split the text after the action token into (number, path).

    Robocopy separates columns with tabs; a whitespace regex is the fallback
    for logs that were re-flowed with spaces.
    """
    fields = [f.strip() for f in rest.split("\t") if f.strip()]
    if len(fields) >= 2:
        number = fields[0] if _NUMBER_ONLY_RE.match(fields[0]) else None
        return number, fields[-1]
    if len(fields) == 1:
        m = _NUMBER_PATH_RE.match(fields[0])
        if m:
            return m.group("number"), m.group("path").strip()
        if _NUMBER_ONLY_RE.match(fields[0]):
            return fields[0], None
        return None, fields[0]
    return None, None


def _to_count(number: str | None) -> int | None:
    if number is None:
        return None
    try:
        return int(number)
    except ValueError:
        return None


def _to_size(number: str | None) -> int | None:
    if number is None or number.startswith("-"):
        return None
    try:
        return parse_scaled(number)
    except ValueError:
        return None


def make_entry(kind: EntryKind | None, action: Action, number: str | None, path: str,
               line_number: int, error_code: int | None = None,
               error_message: str | None = None):
    """Build a DirectoryEntry or FileEntry; an unknown kind is taken from the path."""
    if kind is None:
        kind = EntryKind.DIR if _is_dir_path(path) else EntryKind.FILE
    if kind is EntryKind.DIR:
        return DirectoryEntry(
            action=action,
            path=path,
            file_count=_to_count(number),
            error_code=error_code,
            error_message=error_message,
            line_number=line_number,
        )
    return FileEntry(
        action=action,
        path=path,
        size_bytes=_to_size(number),
        error_code=error_code,
        error_message=error_message,
        line_number=line_number,
    )


def _failed_from(pending: tuple, message: str | None):
    kind, path, line_number, code, operation = pending
    return make_entry(kind, Action.FAILED, None, path, line_number,
                      error_code=code, error_message=message or operation)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class EntryParser:
    """Classifies body lines. Keeps at most one Failed entry pending."""

    def __init__(self, vocabulary: Vocabulary | None = None):
        self.vocabulary = vocabulary or build_vocabulary()
        self.warnings = []
        self._pending = None

    def feed(self, line_number: int, line: str) -> list | None:
        """Classify one body line.

        Returns the entries completed by this line (possibly none), or None
        when the line has no recognizable shape.
        """
        stripped = line.strip()
        if not stripped:
            return []

        pending, self._pending = self._pending, None
        result = self._classify(line_number, stripped)
        if pending is None:
            return result
        if result is None:
            # Free-text line right after an error: the error description.
            return [_failed_from(pending, stripped)]
        return [_failed_from(pending, None), *result]

    def flush(self) -> list:
        """Emit the pending Failed entry, if any. Called at section end."""
        pending, self._pending = self._pending, None
        if pending is None:
            return []
        return [_failed_from(pending, None)]

    def _classify(self, line_number: int, stripped: str) -> list | None:
        if _RETRY_NOISE_RE.match(stripped):
            logger.debug("Retry noise on line %d", line_number)
            return []

        m = _TIMESTAMPED_ERROR_RE.match(stripped)
        if m:
            return self._timestamped_error(line_number, m)

        matched = self.vocabulary.match_action(stripped)
        if matched:
            token, (kind, action) = matched
            rest = stripped[len(token):]
            if action is Action.FAILED:
                return [self._failed(line_number, kind, rest)]
            number, path = _split_columns(rest)
            # A token without its numeric column is prose, not an entry.
            if number is None or path is None:
                return None
            return [make_entry(kind, action, number, path, line_number)]

        m = _UNTAGGED_DIR_RE.match(stripped)
        if m:
            return [make_entry(EntryKind.DIR, Action.SAME, m.group("count"),
                               m.group("path").strip(), line_number)]

        m = _UNKNOWN_RE.match(stripped)
        if m:
            number, path = _split_columns(stripped[m.end():])
            if number is not None and path is not None:
                logger.debug("Unknown action %r on line %d", m.group("tag").strip(), line_number)
                return [make_entry(None, Action.UNKNOWN, number, path, line_number)]

        return None

    def _timestamped_error(self, line_number: int, m: re.Match) -> list:
        path = (m.group("path") or "").strip()
        operation = m.group("operation").strip()
        if not path:
            self.warnings.append(StructuralWarning(
                f"error without a path on line {line_number}: {operation!r}"
            ))
            path = operation
        if "directory" in operation.casefold():
            kind = EntryKind.DIR
        elif "file" in operation.casefold():
            kind = EntryKind.FILE
        else:
            kind = None
        self._pending = (kind, path, line_number, int(m.group("code")), operation or None)
        return []

    def _failed(self, line_number: int, kind: EntryKind | None, rest: str):
        """Parse 'FAILED <size> <path> ERROR <code> (0x..) <message>'."""
        code = message = None
        marker = _ERROR_MARKER_RE.search(rest)
        position = marker.start() if marker else -1
        if position < 0:
            self.warnings.append(StructuralWarning(
                f"failed entry without error detail on line {line_number}"
            ))
            columns = rest
        else:
            columns = rest[:position]
            fragment = _ERROR_FRAGMENT_RE.match(rest[position:].strip())
            if fragment:
                code = int(fragment.group("code"))
                message = fragment.group("message").strip() or None
            else:
                self.warnings.append(StructuralWarning(
                    f"malformed error fragment on line {line_number}: {rest[position:].strip()!r}"
                ))
        number, path = _split_columns(columns)
        return make_entry(kind, Action.FAILED, number, path or "", line_number,
                          error_code=code, error_message=message)
