"""Lenient conversions for loosely typed provider payloads."""

from __future__ import annotations

import re
from typing import Any

_SIZE_RE = re.compile(r"^\s*([\d.,]+)\s*([KMGTP]?I?B)?\s*$", re.IGNORECASE)
_UNITS = {
    "": 1,
    "B": 1,
    "KB": 1024,
    "KIB": 1024,
    "MB": 1024**2,
    "MIB": 1024**2,
    "GB": 1024**3,
    "GIB": 1024**3,
    "TB": 1024**4,
    "TIB": 1024**4,
    "PB": 1024**5,
    "PIB": 1024**5,
}


def to_int(raw: Any, default: int = 0) -> int:
    """Convert a numeric-looking value to int, or return *default*.

    Handles:
        - None → default
        - bool → default (JSON booleans are never counts)
        - int → int
        - float → truncated int
        - "123" / "1,234" / "1 234" → 1234
        - anything else → default
    """
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw)
    if isinstance(raw, str):
        txt = raw.strip()
        try:
            return int(float(txt))
        except ValueError:
            pass
        digits = "".join(ch for ch in txt if ch.isdigit())
        if not digits:
            return default
        return int(digits)
    return default


def to_size_bytes(raw: Any) -> int:
    """Convert a size field to bytes.

    Accepts plain byte counts (int or numeric string) and human-readable
    strings such as ``"1.5 GB"`` or ``"700MiB"``.  Unparseable values are 0.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, (int, float)):
        return max(0, int(raw))
    if not isinstance(raw, str):
        return 0

    match = _SIZE_RE.match(raw)
    if not match:
        return 0
    number, unit = match.groups()
    try:
        value = float(number.replace(",", ""))
    except ValueError:
        return 0
    return int(value * _UNITS.get((unit or "").upper(), 1))


def to_str(raw: Any) -> str | None:
    """Return a stripped non-empty string, or None."""
    if raw is None:
        return None
    txt = str(raw).strip()
    return txt or None
