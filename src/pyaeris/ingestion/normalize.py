"""Normalization helpers.

Centralizes defensive parsing of upstream payloads so nothing downstream
ever sees NaN, infinities, booleans posing as numbers or blank strings.
"""

from __future__ import annotations

import math
import re
from typing import Any

ICAO24_PATTERN = re.compile(r"^[0-9a-f]{6}$")


def finite_number(value: Any) -> float | None:
    """Return *value* as float only when it already is a finite JSON number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    result = float(value)
    if not math.isfinite(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    """Strip a string field; blank strings and non-strings become ``None``."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text if text else None


def normalize_icao24(value: Any) -> str | None:
    """Lower-case and validate a 24-bit hex address."""
    if not isinstance(value, str):
        return None
    text = value.strip().lower()
    return text if ICAO24_PATTERN.match(text) else None


def parse_int_header(value: str | None) -> int | None:
    """Parse the leading integer of an HTTP header value."""
    if value is None:
        return None
    match = re.match(r"\s*([+-]?\d+)", value)
    if match is None:
        return None
    return int(match.group(1))
