"""
Extractores de reglas escritas como texto libre en celdas de planilla.

Gramática aceptada para el cargo por venta de Mercado Libre:

    expr    := term ('+' term)*
    term    := <numero>% | <monto fijo>

El orden de los términos no importa ("9.5% + 180" == "180 + 9.5%").
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from conciliador.normalizacion import is_blank

_PERCENT_RE = re.compile(r"(\d+(?:[.,]\d+)?)%")
_FIXED_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")


@dataclass(frozen=True)
class FeeComponents:
    percent: float = 0.0
    fixed: float = 0.0


def extract_percentage(value: Any) -> float:
    """First "<n>%" in the text as a fraction. "IVA 10,5%" -> 0.105.

    Numeric cells are returned unchanged: Excel stores percent-formatted cells as fractions.
    """
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if is_blank(value) or not isinstance(value, str):
        return 0.0
    m = _PERCENT_RE.search(value)
    if not m:
        return 0.0
    return float(m.group(1).replace(",", ".")) / 100


def _parse_fixed(segment: str) -> float | None:
    digits = "".join(ch for ch in segment if ch.isdigit() or ch == ".")
    m = _FIXED_RE.match(digits)
    if not m:
        return None
    return float(m.group(0))


def parse_marketplace_fee(value: Any) -> FeeComponents:
    """Split a fee expression such as "9.5% + 180" into percent and fixed amount.

    When several fixed segments are present the last one wins; they are not summed.
    """
    if value is None or value == "" or value is False:
        return FeeComponents()

    text = str(value)
    m = _PERCENT_RE.search(text)
    percent = float(m.group(1).replace(",", ".")) / 100 if m else 0.0

    fixed = 0.0
    for segment in text.split("+"):
        if "%" in segment:
            continue
        parsed = _parse_fixed(segment)
        if parsed is not None:
            fixed = parsed

    return FeeComponents(percent=percent, fixed=fixed)
