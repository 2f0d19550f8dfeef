"""Helpers for reading provider-native torrent records."""

from __future__ import annotations

from typing import Any

TITLE_FIELDS: tuple[str, ...] = (
    "name",
    "filename",
    "title",
    "original_filename",
    "originalName",
    "displayName",
)


def torrent_title(record: dict[str, Any]) -> str:
    """Best-effort display title of a torrent record ("" if none)."""
    for key in TITLE_FIELDS:
        value = record.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def progress_complete(record: dict[str, Any]) -> bool:
    """True when the record reports progress >= 100."""
    progress = record.get("progress")
    return (
        isinstance(progress, (int, float))
        and not isinstance(progress, bool)
        and progress >= 100
    )
