from __future__ import annotations

import io
from datetime import date
from typing import Any, Callable, Iterable, Sequence

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from conciliador.reconciliation import round2
from conciliador.tipos import ReconciledRow, ShippingRateTier, WeightEntry

REPORT_SHEET = "Reporte Sincronizacion"
WEIGHTS_SHEET = "Base de Pesos"
RATES_SHEET = "Escalas Tarifarias"

# Restore depends on these headers; do not rename.
WEIGHT_HEADERS = ["SKU", "PRODUCTO", "PESO"]
RATE_HEADERS = ["Hasta Kg", "Costo"]

DESCRIPTION_HEADER = "Descripción del producto"
DESCRIPTION_WIDTH = 50
MAX_COLUMN_WIDTH = 80


def _pct_label(pct: float) -> str:
    return f"{round2(pct):.2f}%"


# Report header -> value taken from a reconciled row.
REPORT_COLUMNS: list[tuple[str, Callable[[ReconciledRow], Any]]] = [
    ("Numero de publicación", lambda r: r.listing_id),
    ("SKU", lambda r: r.sku),
    (DESCRIPTION_HEADER, lambda r: r.description),
    ("Stock", lambda r: r.erp_stock),
    ("% Stock", lambda r: r.published_stock),
    ("Precio de Tarifa", lambda r: r.base_cost),
    ("Precio final", lambda r: r.sale_price),
    ("IVA", lambda r: r.estimated_tax),
    ("Recargo % ML (importe)", lambda r: round2(r.sale_price * (r.fee_percent_applied / 100))),
    ("Recargo fijo ML ($)", lambda r: r.fee_fixed_applied),
    ("Cargo por vender ($)", lambda r: r.selling_fee),
    ("Recargo financiación (importe)", lambda r: r.financing_cost),
    ("Retenciones ML ($)", lambda r: r.retention_cost),
    ("Recibis ($)", lambda r: r.net_receipt),
    ("Recargo envío ($)", lambda r: r.shipping_surcharge),
    ("% ML aplicado", lambda r: _pct_label(r.fee_percent_applied)),
    ("% financiación aplicado", lambda r: _pct_label(r.financing_percent_applied)),
    ("Tipo de publicación", lambda r: r.listing_type),
    ("Precio actual en ML", lambda r: r.previous_price),
    ("Peso", lambda r: r.weight_kg),
    ("Moneda", lambda r: r.currency),
    ("Notas-Flags", lambda r: r.notes),
]


def report_records(rows: Iterable[ReconciledRow]) -> list[dict[str, Any]]:
    return [{h: get(r) for h, get in REPORT_COLUMNS} for r in rows]


def column_width(header: str, values: Iterable[Any]) -> int:
    if header == DESCRIPTION_HEADER:
        return DESCRIPTION_WIDTH
    longest = max((len(str(v)) for v in values if v not in (None, "")), default=0)
    return min(max(len(header), longest) + 2, MAX_COLUMN_WIDTH)


def _write_sheet(ws, headers: Sequence[str], records: list[dict[str, Any]], *, autosize: bool) -> None:
    ws.append(list(headers))
    for rec in records:
        ws.append([rec.get(h) for h in headers])

    if autosize:
        for c, h in enumerate(headers, start=1):
            ws.column_dimensions[get_column_letter(c)].width = column_width(h, (rec.get(h) for rec in records))


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_report(rows: Iterable[ReconciledRow]) -> bytes:
    """Render the reconciliation result as an .xlsx file (values only, no styles)."""
    wb = Workbook()
    ws = wb.active
    ws.title = REPORT_SHEET
    _write_sheet(ws, [h for h, _get in REPORT_COLUMNS], report_records(rows), autosize=True)
    return _to_bytes(wb)


def export_logistics_backup(weights: Iterable[WeightEntry], rates: Iterable[ShippingRateTier]) -> bytes:
    wb = Workbook()
    ws_w = wb.active
    ws_w.title = WEIGHTS_SHEET
    _write_sheet(
        ws_w,
        WEIGHT_HEADERS,
        [{"SKU": w.sku, "PRODUCTO": w.product_name or "", "PESO": w.weight_kg} for w in weights],
        autosize=False,
    )

    ws_r = wb.create_sheet(title=RATES_SHEET)
    _write_sheet(
        ws_r,
        RATE_HEADERS,
        [{"Hasta Kg": r.max_weight_kg, "Costo": r.cost} for r in rates],
        autosize=False,
    )
    return _to_bytes(wb)


def backup_filename(today: date | None = None) -> str:
    d = today or date.today()
    return f"BACKUP_LOGISTICA_{d.isoformat()}.xlsx"


def report_filename(today: date | None = None) -> str:
    d = today or date.today()
    return f"SINCRONIZACION_ML_{d.isoformat()}.xlsx"
