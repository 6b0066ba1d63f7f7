from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from conciliador.excel_import import find_column_by_keywords, find_sheet_by_name
from conciliador.models import utcnow
from conciliador.normalizacion import to_number, to_text
from conciliador.reference_store import ReferenceStore
from conciliador.tipos import ShippingRateTier, TabularDataset, WeightEntry

logger = logging.getLogger(__name__)

SKU_KEYWORDS = ("sku", "referencia", "item", "codigo", "código")
WEIGHT_KEYWORDS = ("peso", "weight", "kg", "kilogramos")
PRODUCT_KEYWORDS = ("producto", "product", "nombre", "name", "descripcion", "descripción")

BACKUP_WEIGHTS_SHEET_KEYS = ("pesos",)
BACKUP_RATES_SHEET_KEYS = ("tarifarias", "escalas")


class LogisticsError(RuntimeError):
    """Invalid weight/rate import or payload."""


@dataclass(frozen=True)
class ImportResult:
    added: int
    updated: int

    @property
    def total(self) -> int:
        return self.added + self.updated


@dataclass(frozen=True)
class RestoreResult:
    weights: int | None
    rates: int | None


def _parse_weight(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        v = float(value)
        return v if math.isfinite(v) else None
    s = str(value or "0").replace(",", ".")
    s = "".join(ch for ch in s if ch.isdigit() or ch == ".")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(float(value))


class LogisticsService:
    """Alta, baja y modificación de pesos por SKU y escalas tarifarias."""

    def __init__(self, store: ReferenceStore):
        self.store = store

    # --- Pesos ---
    def list_weights(self) -> list[WeightEntry]:
        return self.store.list_weights()

    def save_weight(self, sku: str, product: str, weight: Any, *, editing_sku: str | None = None) -> WeightEntry:
        k = (sku or "").strip()
        w = _parse_weight(weight)
        if not k or w is None:
            raise LogisticsError("SKU y peso son obligatorios")

        entry = WeightEntry(sku=k, product_name=(product or "").strip(), weight_kg=w, updated_at=utcnow())
        if editing_sku and editing_sku != k:
            # Renaming a SKU replaces the edited row in place.
            current = self.store.list_weights()
            replaced = [entry if e.sku == editing_sku else e for e in current if e.sku != k]
            if not any(e.sku == editing_sku for e in current):
                replaced.append(entry)
            self.store.replace_all_weights(replaced)
        else:
            self.store.upsert_weights([entry])
        return entry

    def delete_weight(self, sku: str) -> bool:
        return self.store.delete_weight(sku)

    def replace_weights(self, payload: Any) -> int:
        """Full replace from the JSON API; entries without SKU or numeric weight are dropped."""
        if not isinstance(payload, list):
            raise LogisticsError('El payload debe incluir un array "weights"')

        now = utcnow()
        sanitized: list[WeightEntry] = []
        for w in payload:
            if not isinstance(w, dict) or not w.get("sku") or not _is_number(w.get("weight")):
                continue
            updated_at = now
            raw_ts = w.get("updatedAt")
            if isinstance(raw_ts, str) and raw_ts:
                try:
                    updated_at = datetime.fromisoformat(raw_ts.replace("Z", "+00:00")).replace(tzinfo=None)
                except ValueError:
                    updated_at = now
            sanitized.append(
                WeightEntry(
                    sku=str(w["sku"]),
                    product_name=str(w.get("product") or ""),
                    weight_kg=float(w["weight"]),
                    updated_at=updated_at,
                )
            )
        return self.store.replace_all_weights(sanitized)

    def import_weights(self, sheet: TabularDataset) -> ImportResult:
        """Merge weights from any spreadsheet whose headers mention SKU and weight."""
        sku_col = find_column_by_keywords(sheet.columns, SKU_KEYWORDS)
        weight_col = find_column_by_keywords(sheet.columns, WEIGHT_KEYWORDS)
        product_col = find_column_by_keywords(sheet.columns, PRODUCT_KEYWORDS)
        if not sku_col or not weight_col:
            raise LogisticsError("El archivo debe contener columnas de SKU y PESO.")

        known = {e.sku for e in self.store.list_weights()}
        now = utcnow()
        incoming: dict[str, WeightEntry] = {}
        added = updated = 0
        for row in sheet.rows:
            sku = to_text(row.get(sku_col))
            weight = _parse_weight(row.get(weight_col))
            if not sku or weight is None:
                continue
            product = to_text(row.get(product_col)) if product_col else ""
            if sku in known or sku in incoming:
                updated += 1
            else:
                added += 1
            incoming[sku] = WeightEntry(sku=sku, product_name=product, weight_kg=weight, updated_at=now)

        self.store.upsert_weights(list(incoming.values()))
        logger.info("Importación de pesos: %s nuevos, %s actualizados", added, updated)
        return ImportResult(added=added, updated=updated)

    # --- Escalas ---
    def list_rates(self) -> list[ShippingRateTier]:
        return self.store.list_rates()

    def add_rate(self, max_weight: Any, cost: Any) -> list[ShippingRateTier]:
        mw = to_number(max_weight)
        c = to_number(cost)
        if mw <= 0 or c < 0:
            raise LogisticsError("La escala necesita un peso máximo mayor a 0 y un costo válido")
        rates = sorted(
            [*self.store.list_rates(), ShippingRateTier(max_weight_kg=mw, cost=c)],
            key=lambda t: t.max_weight_kg,
        )
        self.store.replace_all_rates(rates)
        return rates

    def remove_rate(self, index: int) -> list[ShippingRateTier]:
        rates = self.store.list_rates()
        if not (0 <= index < len(rates)):
            raise LogisticsError(f"Escala inexistente: {index}")
        rates = [r for i, r in enumerate(rates) if i != index]
        self.store.replace_all_rates(rates)
        return rates

    def replace_rates(self, payload: Any) -> int:
        if not isinstance(payload, list):
            raise LogisticsError('El payload debe incluir un array "rates"')
        sanitized = sorted(
            (
                ShippingRateTier(max_weight_kg=float(r["maxWeight"]), cost=float(r["cost"]))
                for r in payload
                if isinstance(r, dict) and _is_number(r.get("maxWeight")) and _is_number(r.get("cost"))
            ),
            key=lambda t: t.max_weight_kg,
        )
        return self.store.replace_all_rates(sanitized)

    # --- Backup ---
    def restore_backup(self, sheets: Iterable[TabularDataset]) -> RestoreResult:
        """Replace both tables with the contents of a backup workbook.

        Each table is only touched when its sheet is present in the workbook.
        """
        sheets = list(sheets)
        weights_sheet = find_sheet_by_name(sheets, *BACKUP_WEIGHTS_SHEET_KEYS)
        rates_sheet = find_sheet_by_name(sheets, *BACKUP_RATES_SHEET_KEYS)
        if weights_sheet is None and rates_sheet is None:
            raise LogisticsError("El backup no contiene hojas de pesos ni de escalas tarifarias")

        n_weights: int | None = None
        if weights_sheet is not None:
            now = utcnow()
            entries = [
                WeightEntry(
                    sku=to_text(row.get("SKU")),
                    product_name=to_text(row.get("PRODUCTO")),
                    weight_kg=to_number(row.get("PESO")),
                    updated_at=now,
                )
                for row in weights_sheet.rows
            ]
            n_weights = self.store.replace_all_weights([e for e in entries if e.sku])

        n_rates: int | None = None
        if rates_sheet is not None:
            tiers = [
                ShippingRateTier(max_weight_kg=to_number(row.get("Hasta Kg")), cost=to_number(row.get("Costo")))
                for row in rates_sheet.rows
            ]
            n_rates = self.store.replace_all_rates([t for t in tiers if t.max_weight_kg > 0])

        logger.info("Backup restaurado: pesos=%s escalas=%s", n_weights, n_rates)
        return RestoreResult(weights=n_weights, rates=n_rates)
