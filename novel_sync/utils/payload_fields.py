# =============================================================================
# File: novel_sync/utils/payload_fields.py
# Description: Tolerant field accessors for ledger event payloads
# =============================================================================

"""
Ledger payloads arrive as JSON decoded into plain dicts. Numeric fields may
come through as int, float or a numeric string depending on which client
produced them, and optional fields may be missing altogether. These helpers
are the single place that absorbs that skew: a missing or unusable value
becomes "" or 0, never an exception.
"""

import math
from typing import Any, Mapping


def coerce_int(value: Any) -> int:
    """int / float / numeric string -> int, anything else (including inf / nan) -> 0"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                value = float(text)
            except ValueError:
                return 0
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    return 0


def coerce_str(value: Any) -> str:
    """str -> str, int / float -> decimal text, anything else (including None) -> ''"""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    return ""


def get_str(data: Mapping[str, Any], key: str) -> str:
    return coerce_str(data.get(key))


def get_int(data: Mapping[str, Any], key: str) -> int:
    return coerce_int(data.get(key))
