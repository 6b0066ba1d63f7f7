"""Tests del cálculo de recargo de envío por escalas de peso."""

from __future__ import annotations

import unittest

from conciliador.envios import (
    EMPTY_TIERS_WARNING,
    applies_shipping_surcharge,
    resolve_shipping,
)
from conciliador.tipos import ShippingRateTier

TIERS = [
    ShippingRateTier(max_weight_kg=0.5, cost=5500),
    ShippingRateTier(max_weight_kg=1.0, cost=6800),
    ShippingRateTier(max_weight_kg=2.0, cost=8200),
]


class ResolveShippingTests(unittest.TestCase):
    """Valida la búsqueda de la primera escala que cubre el peso."""

    def test_primera_escala_que_cubre(self) -> None:
        self.assertEqual(resolve_shipping(0.3, TIERS).surcharge, 5500)
        self.assertEqual(resolve_shipping(1.0, TIERS).surcharge, 6800)
        self.assertEqual(resolve_shipping(1.5, TIERS).surcharge, 8200)
        self.assertIsNone(resolve_shipping(1.5, TIERS).warning)

    def test_peso_excedido_usa_escala_mayor_con_alerta(self) -> None:
        res = resolve_shipping(3.0, TIERS)
        self.assertEqual(res.surcharge, 8200)
        self.assertEqual(res.warning, "Peso (3kg) excede escalas")

    def test_sin_escalas(self) -> None:
        res = resolve_shipping(1.5, [])
        self.assertEqual(res.surcharge, 0)
        self.assertEqual(res.warning, EMPTY_TIERS_WARNING)
        self.assertIn("sin escalas", res.warning)

    def test_peso_cero_no_aplica(self) -> None:
        res = resolve_shipping(0, TIERS)
        self.assertEqual(res.surcharge, 0)
        self.assertIsNone(res.warning)

    def test_escalas_desordenadas_no_se_modifican(self) -> None:
        """Debe ordenar una copia y dejar intacta la lista recibida."""
        unsorted = [TIERS[2], TIERS[0], TIERS[1]]
        self.assertEqual(resolve_shipping(0.7, unsorted).surcharge, 6800)
        self.assertEqual(unsorted, [TIERS[2], TIERS[0], TIERS[1]])


class AppliesShippingSurchargeTests(unittest.TestCase):
    """Valida qué métodos de envío llevan recargo."""

    def test_metodos_con_recargo(self) -> None:
        for method in ("Envío gratis", "Mercado Envíos - Mi Cuenta", "SELF_SERVICE"):
            with self.subTest(method=method):
                self.assertTrue(applies_shipping_surcharge(method))

    def test_metodos_sin_recargo(self) -> None:
        for method in ("fulfillment", "", "Acordar con el vendedor"):
            with self.subTest(method=method):
                self.assertFalse(applies_shipping_surcharge(method))


if __name__ == "__main__":
    unittest.main()
