from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from conciliador.normalizacion import format_number
from conciliador.tipos import ShippingRateTier

EMPTY_TIERS_WARNING = "Base de pesos activa sin escalas"

# Shipping methods (lowercased) where the seller pays the shipping.
SURCHARGE_SHIPPING_KEYWORDS = ("gratis", "mi cuenta", "self_service")


@dataclass(frozen=True)
class ShippingResolution:
    surcharge: float
    warning: str | None = None


def applies_shipping_surcharge(shipping_method: str) -> bool:
    method = (shipping_method or "").lower()
    return any(k in method for k in SURCHARGE_SHIPPING_KEYWORDS)


def resolve_shipping(weight_kg: float, tiers: Iterable[ShippingRateTier]) -> ShippingResolution:
    """Cost of the first tier whose max weight covers the product.

    Overweight products get the heaviest tier plus a warning; never raises.
    """
    if weight_kg <= 0:
        return ShippingResolution(surcharge=0.0)

    ordered = sorted(tiers, key=lambda t: t.max_weight_kg)
    if not ordered:
        return ShippingResolution(surcharge=0.0, warning=EMPTY_TIERS_WARNING)

    for tier in ordered:
        if weight_kg <= tier.max_weight_kg:
            return ShippingResolution(surcharge=float(tier.cost))

    return ShippingResolution(
        surcharge=float(ordered[-1].cost),
        warning=f"Peso ({format_number(weight_kg)}kg) excede escalas",
    )
