"""Byte → text decoding for Robocopy logs.

Order of decisions:
  1. Explicit encoding override → decode with it, no search
  2. Byte-order mark → matching UTF codec
  3. NUL-byte pattern → BOM-less UTF-16 (``/UNILOG`` output)
  4. Candidate codepages, in priority order, accepted on replacement ratio
  5. Fallback → least-damaged candidate, with a DecodeWarning
"""

import codecs
import logging
from dataclasses import dataclass, field

from robocopy_parser.errors import EncodingError
from robocopy_parser.models import DecodeWarning

logger = logging.getLogger(__name__)

# utf-8 first, then the Western European OEM page Robocopy writes with.
# cp850 maps every byte, so with a zero threshold the replacement count only
# separates utf-8 from cp850; the pages after it are reached only when
# ROBOCOPY_CODEPAGES or the config reorders or shortens the list.
DEFAULT_CODEPAGES = ("utf-8", "cp850", "cp437", "cp1252", "cp1250", "latin-1")

REPLACEMENT_CHAR = "\ufffd"

# Longest marks first: the UTF-32 LE BOM starts with the UTF-16 LE one.
_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
)

_TEXT_CONTROLS = frozenset("\t\r\n\f")
_MAX_CONTROL_RATIO = 0.1
_UTF16_SAMPLE = 4096


@dataclass(frozen=True)
class DecodeResult:
    text: str
    encoding: str
    replaced: int = 0
    warnings: tuple[DecodeWarning, ...] = field(default_factory=tuple)


def _decode(data: bytes, encoding: str) -> tuple[str, int]:
    """Decode with replacement markers and count how many were inserted."""
    text = data.decode(encoding, errors="replace")
    return text, text.count(REPLACEMENT_CHAR)


def _ratio(replaced: int, text: str) -> float:
    return replaced / len(text) if text else 0.0


def detect_bom(data: bytes) -> tuple[str, int] | None:
    """Return (codec, bom_length) if *data* starts with a known byte-order mark."""
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return encoding, len(bom)
    return None


def detect_utf16(data: bytes) -> str | None:
    """Guess BOM-less UTF-16 from the position of NUL bytes in ASCII-heavy text."""
    sample = data[:_UTF16_SAMPLE]
    if len(sample) < 4 or len(sample) % 2:
        return None
    even_nuls = sample[0::2].count(0)
    odd_nuls = sample[1::2].count(0)
    half = len(sample) // 2
    if odd_nuls > half * 0.4 and even_nuls < half * 0.05:
        return "utf-16-le"
    if even_nuls > half * 0.4 and odd_nuls < half * 0.05:
        return "utf-16-be"
    return None


def _check_text_like(text: str, encoding: str) -> None:
    controls = sum(1 for ch in text if ch < " " and ch not in _TEXT_CONTROLS)
    if text and controls / len(text) > _MAX_CONTROL_RATIO:
        raise EncodingError(
            f"Input does not look like text when decoded as {encoding} "
            f"({controls} control characters in {len(text)})"
        )


def _result(text: str, encoding: str, replaced: int) -> DecodeResult:
    _check_text_like(text, encoding)
    warnings = (DecodeWarning(encoding=encoding, replaced=replaced),) if replaced else ()
    return DecodeResult(text=text, encoding=encoding, replaced=replaced, warnings=warnings)


def decode_bytes(
    data: bytes,
    encoding: str | None = None,
    codepages=DEFAULT_CODEPAGES,
    max_replacement_ratio: float = 0.0,
) -> DecodeResult:
    """Decode raw log bytes into text.

    Raises EncodingError for empty or binary input, for an unknown explicit
    *encoding*, and when no candidate codec is usable at all.
    """
    if not data:
        raise EncodingError("Input is empty")

    if encoding:
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise EncodingError(f"Unknown encoding: {encoding}") from None
        text, replaced = _decode(data, encoding)
        logger.debug("Decoded with explicit encoding %s (%d replaced)", encoding, replaced)
        return _result(text, encoding, replaced)

    bom = detect_bom(data)
    if bom:
        bom_encoding, bom_length = bom
        text, replaced = _decode(data[bom_length:], bom_encoding)
        logger.debug("Byte-order mark found: %s", bom_encoding)
        return _result(text, bom_encoding, replaced)

    utf16 = detect_utf16(data)
    if utf16:
        text, replaced = _decode(data, utf16)
        logger.debug("BOM-less UTF-16 detected: %s", utf16)
        return _result(text, utf16, replaced)

    best = None
    for candidate in codepages:
        try:
            codecs.lookup(candidate)
        except LookupError:
            logger.warning("Skipping unknown codepage %s", candidate)
            continue
        text, replaced = _decode(data, candidate)
        ratio = _ratio(replaced, text)
        logger.debug("Candidate %s: %d replaced (ratio %.4f)", candidate, replaced, ratio)
        if ratio <= max_replacement_ratio:
            return _result(text, candidate, replaced)
        if best is None or ratio < best[0]:
            best = (ratio, candidate, text, replaced)

    if best is None:
        raise EncodingError("No usable codepage candidates")

    _, candidate, text, replaced = best
    logger.info("No candidate under threshold, falling back to %s", candidate)
    return _result(text, candidate, replaced)
