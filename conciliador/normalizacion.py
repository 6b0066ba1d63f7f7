from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping

_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d+)?|\.\d+)")
_TRUE_STRINGS = {"1", "true", "on", "si", "sí", "yes", "y"}


def to_number(value: Any) -> float:
    """Best-effort numeric coercion for spreadsheet cells. Never raises.

    "5,5 kg" -> 5.5, "$ 1.200" -> 1.2, "sin datos" -> 0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else 0.0

    s = str(value).strip()
    if not s:
        return 0.0

    s = s.replace(",", ".")
    s = "".join(ch for ch in s if ch.isdigit() or ch in (".", "-"))
    m = _LEADING_NUMBER_RE.search(s)
    if not m:
        return 0.0
    try:
        v = float(m.group(0))
    except ValueError:
        return 0.0
    return v if math.isfinite(v) else 0.0


def to_bool(value: Any) -> bool:
    # Checkbox values arrive as real booleans; strings only show up at the HTTP boundary.
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().casefold() in _TRUE_STRINGS


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        # openpyxl may hand back 12345.0 for a numeric SKU cell
        return str(int(value))
    return str(value).strip()


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def first_value(row: Mapping[str, Any], candidates: Iterable[str], default: Any = "") -> Any:
    """Value of the first candidate column that is present and non-empty."""
    for key in candidates:
        v = row.get(key)
        if not is_blank(v):
            return v
    return default


def format_number(n: float) -> str:
    # 3.0 -> "3", 2.5 -> "2.5"
    if math.isfinite(n) and float(n).is_integer():
        return str(int(n))
    return repr(float(n))
