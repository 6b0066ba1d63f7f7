from __future__ import annotations

import io
import logging
import unicodedata
import zipfile
from pathlib import Path
from typing import IO, Any, Iterable, Sequence, Union

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from conciliador.tipos import TabularDataset

logger = logging.getLogger(__name__)

WorkbookSource = Union[str, Path, bytes, IO[bytes]]

# Columns that identify each export.
MARKETPLACE_SHEET_COLUMNS = ("ITEM_ID", "SKU")
ERP_SHEET_COLUMNS = ("Código Neored", "Referencia interna")


class SpreadsheetError(RuntimeError):
    """Workbook cannot be read or does not contain the expected sheet."""


def norm(x: Any) -> str:
    s = str(x or "").strip()
    s = " ".join(s.split())
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return s.casefold()


def _open(source: WorkbookSource):
    if isinstance(source, (str, Path)):
        p = Path(source).expanduser().resolve()
        if not p.exists():
            raise SpreadsheetError(f"El archivo Excel no existe: {p}")
        target: Any = p
    elif isinstance(source, (bytes, bytearray)):
        target = io.BytesIO(bytes(source))
    else:
        target = source

    try:
        # read_only avoids building cell objects; data_only returns cached formula values.
        return load_workbook(filename=target, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise SpreadsheetError(f"No se pudieron leer los datos del archivo: {e}") from e


def _sheet_to_dataset(name: str, ws) -> TabularDataset | None:
    it = ws.iter_rows(values_only=True)
    header_vals = next(it, None)
    if header_vals is None:
        return None

    columns: list[tuple[int, str]] = []
    seen: set[str] = set()
    for idx, h in enumerate(header_vals):
        title = str(h).strip() if h is not None else ""
        if not title or title in seen:
            continue
        seen.add(title)
        columns.append((idx, title))

    if not columns:
        return None

    rows: list[dict[str, Any]] = []
    for row_vals in it:
        if row_vals is None or all(v in (None, "") for v in row_vals):
            continue
        record: dict[str, Any] = {}
        for idx, title in columns:
            v = row_vals[idx] if idx < len(row_vals) else None
            record[title] = "" if v is None else v
        rows.append(record)

    if not rows:
        return None

    return TabularDataset(name=str(name), columns=tuple(t for _i, t in columns), rows=tuple(rows))


def read_workbook(source: WorkbookSource) -> list[TabularDataset]:
    """Every non-empty worksheet as a dataset; the first row holds the headers.

    Missing cells become "" and duplicated rows are kept in file order.
    """
    wb = _open(source)
    try:
        out: list[TabularDataset] = []
        for name in wb.sheetnames:
            ds = _sheet_to_dataset(name, wb[name])
            if ds is not None:
                out.append(ds)
        logger.debug("Leídas %s hojas con datos: %s", len(out), [d.name for d in out])
        return out
    finally:
        wb.close()


def find_sheet(sheets: Iterable[TabularDataset], columns: Sequence[str]) -> TabularDataset | None:
    for s in sheets:
        if s.has_any_column(*columns):
            return s
    return None


def find_marketplace_sheet(sheets: Iterable[TabularDataset]) -> TabularDataset:
    sheet = find_sheet(sheets, MARKETPLACE_SHEET_COLUMNS)
    if sheet is None:
        raise SpreadsheetError("El archivo no parece ser de Mercado Libre.")
    return sheet


def find_erp_sheet(sheets: Iterable[TabularDataset]) -> TabularDataset:
    sheet = find_sheet(sheets, ERP_SHEET_COLUMNS)
    if sheet is None:
        raise SpreadsheetError("El archivo no parece ser de Odoo.")
    return sheet


def find_sheet_by_name(sheets: Iterable[TabularDataset], *fragments: str) -> TabularDataset | None:
    """First sheet whose name contains any fragment (case/accent-insensitive)."""
    keys = [norm(f) for f in fragments]
    for s in sheets:
        n = norm(s.name)
        if any(k in n for k in keys):
            return s
    return None


def find_column_by_keywords(columns: Iterable[str], keywords: Iterable[str]) -> str | None:
    keys = [k.casefold() for k in keywords]
    for col in columns:
        lower = str(col).casefold()
        if any(k in lower for k in keys):
            return col
    return None
