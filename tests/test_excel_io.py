"""Tests de lectura de planillas y generación de reportes .xlsx."""

from __future__ import annotations

import io
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

from openpyxl import Workbook, load_workbook

from conciliador.excel_export import (
    DESCRIPTION_WIDTH,
    RATES_SHEET,
    REPORT_COLUMNS,
    REPORT_SHEET,
    WEIGHTS_SHEET,
    backup_filename,
    column_width,
    export_logistics_backup,
    export_report,
    report_filename,
    report_records,
)
from conciliador.excel_import import (
    SpreadsheetError,
    find_column_by_keywords,
    find_erp_sheet,
    find_marketplace_sheet,
    find_sheet_by_name,
    read_workbook,
)
from conciliador.reconciliation import reconcile
from conciliador.tipos import ReconciliationConfig, ShippingRateTier, TabularDataset, WeightEntry


def xlsx_bytes(sheets: dict[str, list[list]]) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for r in rows:
            ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class ReadWorkbookTests(unittest.TestCase):
    """Valida la decodificación de hojas a filas con encabezado."""

    def test_lee_desde_ruta_y_desde_bytes(self) -> None:
        data = xlsx_bytes({"Hoja1": [["SKU", "PESO"], ["A1", 1.5], ["A2", 3]]})
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "pesos.xlsx"
            path.write_bytes(data)
            from_path = read_workbook(path)
        from_bytes = read_workbook(data)

        for sheets in (from_path, from_bytes):
            self.assertEqual(len(sheets), 1)
            self.assertEqual(sheets[0].name, "Hoja1")
            self.assertEqual(sheets[0].columns, ("SKU", "PESO"))
            self.assertEqual(sheets[0].rows[0], {"SKU": "A1", "PESO": 1.5})

    def test_celdas_vacias_y_filas_en_blanco(self) -> None:
        data = xlsx_bytes(
            {
                "Datos": [
                    ["SKU", None, "Nombre", "SKU"],
                    ["A1", "x", None, "dup"],
                    [None, None, None, None],
                    ["A2", None, "Tornillo", None],
                ]
            }
        )
        ds = read_workbook(data)[0]
        # Encabezados vacíos o repetidos se ignoran.
        self.assertEqual(ds.columns, ("SKU", "Nombre"))
        self.assertEqual(list(ds.rows), [{"SKU": "A1", "Nombre": ""}, {"SKU": "A2", "Nombre": "Tornillo"}])

    def test_hojas_vacias_se_omiten(self) -> None:
        data = xlsx_bytes({"Vacia": [], "Solo encabezado": [["SKU"]], "Datos": [["SKU"], ["A1"]]})
        self.assertEqual([s.name for s in read_workbook(data)], ["Datos"])

    def test_archivo_inexistente_o_corrupto(self) -> None:
        with self.assertRaises(SpreadsheetError):
            read_workbook(Path(tempfile.gettempdir()) / "no-existe-conciliador.xlsx")
        with self.assertRaises(SpreadsheetError):
            read_workbook(b"esto no es un excel")


class SheetDetectionTests(unittest.TestCase):
    """Valida la detección de la hoja de Mercado Libre y de Odoo."""

    def setUp(self) -> None:
        self.sheets = [
            TabularDataset(name="Ayuda", columns=("Campo", "Descripcion"), rows=({"Campo": "a", "Descripcion": "b"},)),
            TabularDataset(name="Publicaciones", columns=("ITEM_ID", "TITLE"), rows=({"ITEM_ID": "MLA1", "TITLE": "t"},)),
            TabularDataset(name="Odoo", columns=("Referencia interna",), rows=({"Referencia interna": "X"},)),
        ]

    def test_encuentra_cada_hoja(self) -> None:
        self.assertEqual(find_marketplace_sheet(self.sheets).name, "Publicaciones")
        self.assertEqual(find_erp_sheet(self.sheets).name, "Odoo")

    def test_archivo_equivocado(self) -> None:
        with self.assertRaisesRegex(SpreadsheetError, "Mercado Libre"):
            find_marketplace_sheet(self.sheets[:1])
        with self.assertRaisesRegex(SpreadsheetError, "Odoo"):
            find_erp_sheet(self.sheets[:2])

    def test_busqueda_por_nombre_y_columnas(self) -> None:
        sheets = [TabularDataset(name="Base de Pesos", columns=(), rows=())]
        self.assertIsNotNone(find_sheet_by_name(sheets, "PESOS"))
        self.assertIsNone(find_sheet_by_name(sheets, "escalas"))
        self.assertEqual(find_column_by_keywords(["Código", "Peso (kg)"], ["peso"]), "Peso (kg)")
        self.assertIsNone(find_column_by_keywords(["Código"], ["peso"]))


class ExportReportTests(unittest.TestCase):
    """Valida la planilla de resultados."""

    def _rows(self):
        ml = TabularDataset(
            name="ml",
            columns=("ITEM_ID", "SKU", "TITLE", "PRICE", "FEE_PER_SALE_MARKETPLACE_V2"),
            rows=({"ITEM_ID": "MLA100", "SKU": "X1", "TITLE": "Taladro", "PRICE": 900, "FEE_PER_SALE_MARKETPLACE_V2": "10% + 100"},),
        )
        erp = TabularDataset(
            name="odoo",
            columns=("Referencia interna", "Precio Tarifa", "Cantidad a mano"),
            rows=({"Referencia interna": "X1", "Precio Tarifa": 1000, "Cantidad a mano": 8},),
        )
        return reconcile(ml, erp, ReconciliationConfig(retention_percent=0, include_taxes_in_base_cost=False))

    def test_encabezados_y_valores(self) -> None:
        rows = self._rows()
        wb = load_workbook(io.BytesIO(export_report(rows)))
        self.assertEqual(wb.sheetnames, [REPORT_SHEET])
        ws = wb[REPORT_SHEET]

        header = [c.value for c in ws[1]]
        self.assertEqual(header, [h for h, _get in REPORT_COLUMNS])
        values = dict(zip(header, [c.value for c in ws[2]]))
        self.assertEqual(values["Numero de publicación"], "MLA100")
        self.assertEqual(values["Precio final"], 1222.22)
        self.assertEqual(values["Recargo % ML (importe)"], 122.22)
        self.assertEqual(values["% ML aplicado"], "10.00%")
        self.assertEqual(values["Notas-Flags"], "OK")

    def test_ancho_de_columnas(self) -> None:
        ws = load_workbook(io.BytesIO(export_report(self._rows())))[REPORT_SHEET]
        self.assertEqual(ws.column_dimensions["C"].width, DESCRIPTION_WIDTH)
        # "Numero de publicación" (21) es más largo que "MLA100"
        self.assertEqual(ws.column_dimensions["A"].width, 23)

    def test_column_width(self) -> None:
        self.assertEqual(column_width("SKU", ["A", "ABCDEFGH"]), 10)
        self.assertEqual(column_width("SKU", ["x" * 200]), 80)
        self.assertEqual(column_width("SKU", [None, ""]), 5)

    def test_reporte_vacio_solo_encabezados(self) -> None:
        ws = load_workbook(io.BytesIO(export_report([])))[REPORT_SHEET]
        self.assertEqual(ws.max_row, 1)
        self.assertEqual(report_records([]), [])


class ExportBackupTests(unittest.TestCase):
    """Valida el backup de la base logística."""

    def test_hojas_y_encabezados(self) -> None:
        weights = [WeightEntry(sku="A1", product_name="Tornillo", weight_kg=0.25, updated_at=datetime(2024, 5, 1))]
        rates = [ShippingRateTier(max_weight_kg=1.0, cost=6800)]
        sheets = read_workbook(export_logistics_backup(weights, rates))

        self.assertEqual([s.name for s in sheets], [WEIGHTS_SHEET, RATES_SHEET])
        self.assertEqual(sheets[0].columns, ("SKU", "PRODUCTO", "PESO"))
        self.assertEqual(sheets[0].rows[0], {"SKU": "A1", "PRODUCTO": "Tornillo", "PESO": 0.25})
        self.assertEqual(sheets[1].columns, ("Hasta Kg", "Costo"))
        self.assertEqual(sheets[1].rows[0]["Costo"], 6800)

    def test_nombres_de_archivo(self) -> None:
        self.assertEqual(backup_filename(date(2024, 3, 9)), "BACKUP_LOGISTICA_2024-03-09.xlsx")
        self.assertEqual(report_filename(date(2024, 3, 9)), "SINCRONIZACION_ML_2024-03-09.xlsx")


if __name__ == "__main__":
    unittest.main()
