"""Formatting helpers shared by the CLI listings."""

from __future__ import annotations

from datetime import UTC, datetime


def format_revision_short(revision: str | None) -> str:
    if revision is None:
        return "?"
    trimmed = revision.strip()
    if not trimmed:
        return "?"
    normalized = trimmed.lower()
    if len(normalized) >= 8 and all(ch in "0123456789abcdef" for ch in normalized):
        return trimmed[:7]
    return trimmed


def format_timestamp_display(timestamp_ms: int | None) -> str:
    if not timestamp_ms:
        return "never"
    try:
        parsed = datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return str(timestamp_ms)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_source_display(source_type: str, source_ref: str, subpath: str | None, branch: str | None) -> str:
    ref_label = f"@{branch}" if branch else ""
    location = f"{source_ref}{ref_label}"
    if subpath and subpath != ".":
        location = f"{location} ({subpath})"
    return f"{source_type}: {location}"
