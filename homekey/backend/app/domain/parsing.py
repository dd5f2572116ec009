# app/domain/parsing.py
from __future__ import annotations

import math
from typing import Any, Mapping


def clean_text(x: Any) -> str | None:
    """
    Trimmed string form of a scalar, or None for blanks/containers.
    Numbers are accepted (house numbers and postal codes often arrive as ints).
    """
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, (int, float)):
        x = str(x)
    if not isinstance(x, str):
        return None
    s = x.strip()
    return s or None


def to_float(x: Any) -> float | None:
    """Finite float or None. Strings like "2.17" are accepted, bools are not."""
    if x is None or isinstance(x, bool) or x == "":
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v):
        return None
    return v


def get_first(payload: Mapping[str, Any], *keys: str) -> Any:
    """Return first non-empty key from payload."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def get_first_text(payload: Mapping[str, Any], *keys: str) -> str | None:
    """Like get_first, but only counts values that clean to a non-empty string."""
    for k in keys:
        v = clean_text(payload.get(k))
        if v is not None:
            return v
    return None
