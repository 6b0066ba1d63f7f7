"""Tests de los extractores de porcentajes y comisiones."""

from __future__ import annotations

import unittest

from conciliador.reglas import FeeComponents, extract_percentage, parse_marketplace_fee


class ExtractPercentageTests(unittest.TestCase):
    """Valida la lectura de "<n>%" en texto libre."""

    def test_porcentaje_simple(self) -> None:
        self.assertAlmostEqual(extract_percentage("21%"), 0.21)

    def test_coma_decimal_dentro_de_texto(self) -> None:
        self.assertAlmostEqual(extract_percentage("IVA 10,5%"), 0.105)

    def test_sin_patron_devuelve_cero(self) -> None:
        self.assertEqual(extract_percentage("sin datos"), 0.0)
        self.assertEqual(extract_percentage(""), 0.0)
        self.assertEqual(extract_percentage(None), 0.0)

    def test_celda_numerica_se_respeta(self) -> None:
        """Excel guarda las celdas con formato porcentaje como fracción."""
        self.assertEqual(extract_percentage(0.05), 0.05)


class ParseMarketplaceFeeTests(unittest.TestCase):
    """Valida la separación de comisión porcentual y cargo fijo."""

    def test_porcentaje_mas_fijo(self) -> None:
        fee = parse_marketplace_fee("9.5% + 180")
        self.assertAlmostEqual(fee.percent, 0.095)
        self.assertEqual(fee.fixed, 180.0)

    def test_orden_invertido(self) -> None:
        fee = parse_marketplace_fee("180 + 9.5%")
        self.assertAlmostEqual(fee.percent, 0.095)
        self.assertEqual(fee.fixed, 180.0)

    def test_vacio(self) -> None:
        self.assertEqual(parse_marketplace_fee(""), FeeComponents(percent=0.0, fixed=0.0))
        self.assertEqual(parse_marketplace_fee(None), FeeComponents())

    def test_solo_porcentaje(self) -> None:
        fee = parse_marketplace_fee("13%")
        self.assertAlmostEqual(fee.percent, 0.13)
        self.assertEqual(fee.fixed, 0.0)

    def test_con_simbolo_de_moneda(self) -> None:
        fee = parse_marketplace_fee("11,5% + $ 250")
        self.assertAlmostEqual(fee.percent, 0.115)
        self.assertEqual(fee.fixed, 250.0)

    def test_varios_fijos_gana_el_ultimo(self) -> None:
        """Los cargos fijos no se suman: queda el último segmento."""
        fee = parse_marketplace_fee("10% + 100 + 50")
        self.assertEqual(fee.fixed, 50.0)

    def test_texto_malformado_no_falla(self) -> None:
        self.assertEqual(parse_marketplace_fee("a convenir + ?"), FeeComponents())


if __name__ == "__main__":
    unittest.main()
