"""Tests de los contadores del resumen de conciliación."""

from __future__ import annotations

import unittest
from dataclasses import replace

from conciliador.summary import ReconciliationSummary, summarize
from conciliador.tipos import ReconciledRow

BASE = ReconciledRow(
    sku="X1",
    listing_id="MLA1",
    description="Producto",
    erp_stock=10,
    published_stock=10,
    previous_stock=10,
    currency="ARS",
    base_cost=1000,
    target_tariff=1000,
    sale_price=1200,
    previous_price=1200,
    selling_fee=0,
    fee_percent_applied=0,
    fee_fixed_applied=0,
    financing_percent_applied=0,
    financing_cost=0,
    retention_cost=0,
    estimated_tax=0,
    net_receipt=1000,
    listing_type="gold_special",
    shipping_method="",
    weight_kg=0,
    shipping_surcharge=0,
    notes="OK",
)


class SummarizeTests(unittest.TestCase):
    """Valida cada contador del resumen."""

    def test_lote_vacio(self) -> None:
        self.assertEqual(summarize([]), ReconciliationSummary())

    def test_contadores(self) -> None:
        rows = [
            BASE,
            replace(BASE, sale_price=1200.5),  # diferencia menor a 1: no cuenta
            replace(BASE, sale_price=1300),
            replace(BASE, published_stock=5),
            replace(BASE, notes="SKU no encontrado en Odoo", published_stock=0),
            replace(BASE, notes="Tarifa 0 o faltante"),
        ]
        s = summarize(rows)

        self.assertEqual(s.total, 6)
        self.assertEqual(s.unsynced, 1)
        self.assertEqual(s.synced, 5)
        self.assertEqual(s.price_changed, 1)
        self.assertEqual(s.stock_changed, 2)
        self.assertEqual(s.with_warnings, 2)

    def test_fila_ok(self) -> None:
        self.assertTrue(BASE.is_ok)
        self.assertFalse(replace(BASE, notes="Tarifa 0 o faltante").is_ok)
        self.assertEqual(summarize([replace(BASE, notes="ok")]).with_warnings, 1)

    def test_as_dict(self) -> None:
        d = summarize([BASE]).as_dict()
        self.assertEqual(
            d,
            {"total": 1, "synced": 1, "unsynced": 0, "price_changed": 0, "stock_changed": 0, "with_warnings": 0},
        )


if __name__ == "__main__":
    unittest.main()
