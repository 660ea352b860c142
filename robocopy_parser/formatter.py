"""Output formatting — LogDocument → plain dict → JSON."""

import json
from datetime import datetime
from typing import Any, Callable

from robocopy_parser.models import LogDocument, SummaryRow, UnparsedLine

FORMATS = ("json",)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def row_to_dict(row: SummaryRow | None) -> dict[str, int] | None:
    if row is None:
        return None
    return {
        "total": row.total,
        "copied": row.copied,
        "skipped": row.skipped,
        "mismatch": row.mismatch,
        "failed": row.failed,
        "extras": row.extras,
    }


def entry_to_dict(entry) -> dict[str, Any]:
    return _drop_none({
        "kind": entry.kind.value,
        "action": entry.action.value,
        "path": entry.path,
        "size_bytes": getattr(entry, "size_bytes", None),
        "file_count": getattr(entry, "file_count", None),
        "error_code": entry.error_code,
        "error_message": entry.error_message,
        "line_number": entry.line_number,
    })


def warning_to_dict(warning) -> dict[str, Any]:
    data = {"kind": warning.kind, "detail": warning.detail}
    if isinstance(warning, UnparsedLine):
        data["line_number"] = warning.line_number
        data["raw_text"] = warning.raw_text
    return data


def document_to_dict(doc: LogDocument) -> dict[str, Any]:
    """Convert a LogDocument to the output schema, dropping None values."""
    header = doc.header
    summary = doc.summary
    return {
        "header": {
            **_drop_none({
                "started_at": _iso(header.started_at),
                "source_path": header.source_path,
                "destination_path": header.destination_path,
                "file_filter": header.file_filter,
                "options_string": header.options_string,
                "log_path": header.log_path,
            }),
            "extra": dict(header.extra),
        },
        "entries": [entry_to_dict(e) for e in doc.entries],
        "summary": _drop_none({
            "dirs": row_to_dict(summary.dirs),
            "files": row_to_dict(summary.files),
            "bytes": row_to_dict(summary.bytes),
            "times": row_to_dict(summary.times),
            "ended_at": _iso(summary.ended_at),
            "speed_bytes_per_sec": summary.speed_bytes_per_sec,
            "speed_mb_per_min": summary.speed_mb_per_min,
        }),
        "warnings": [warning_to_dict(w) for w in doc.warnings],
        "encoding": doc.encoding,
    }


def format_json(doc: LogDocument, indent: int | None = 2) -> str:
    """Serialize the document as JSON; non-ASCII paths are kept as-is."""
    return json.dumps(document_to_dict(doc), indent=indent, ensure_ascii=False)


def format_warning(warning) -> str:
    """One-line stderr rendering of a warning."""
    return f"warning: {warning.kind}: {warning.detail}"


def get_formatter(output_format: str = "json") -> Callable[[LogDocument], str]:
    """Factory that returns the formatter for *output_format*."""
    if output_format == "json":
        return format_json
    raise ValueError(f"Unsupported output format: {output_format}")
