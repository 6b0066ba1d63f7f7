from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

SurchargeKind = Literal["fixed", "percent"]


@dataclass(frozen=True)
class TabularDataset:
    """Hoja de cálculo ya decodificada: columnas en orden y una fila por registro.

    Las celdas pueden ser texto, número, booleano o vacías; la misma columna puede
    mezclar tipos entre filas (origen planilla).
    """

    name: str
    columns: tuple[str, ...]
    rows: tuple[dict[str, Any], ...]

    def has_any_column(self, *names: str) -> bool:
        return any(n in self.columns for n in names)


@dataclass(frozen=True)
class ShippingSurcharge:
    amount: float = 0.0
    # "fixed": monto fijo; "percent": porcentaje del costo base
    kind: SurchargeKind = "fixed"


@dataclass(frozen=True)
class ReconciliationConfig:
    stock_publish_percent: float = 100.0
    retention_percent: float = 1.0
    include_taxes_in_base_cost: bool = True
    manual_shipping_surcharge: ShippingSurcharge = field(default_factory=ShippingSurcharge)
    use_weight_table: bool = False


@dataclass(frozen=True)
class WeightEntry:
    sku: str
    product_name: str
    weight_kg: float
    updated_at: datetime

    def as_dict(self) -> dict:
        return {
            "sku": self.sku,
            "product": self.product_name,
            "weight": self.weight_kg,
            "updatedAt": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class ShippingRateTier:
    max_weight_kg: float
    cost: float

    def as_dict(self) -> dict:
        return {"maxWeight": self.max_weight_kg, "cost": self.cost}


@dataclass(frozen=True)
class ReconciledRow:
    sku: str
    listing_id: str
    description: str
    erp_stock: float
    published_stock: int
    previous_stock: float
    currency: str
    base_cost: float
    target_tariff: float
    sale_price: float
    previous_price: float
    selling_fee: float
    fee_percent_applied: float
    fee_fixed_applied: float
    financing_percent_applied: float
    financing_cost: float
    retention_cost: float
    estimated_tax: float
    net_receipt: float
    listing_type: str
    shipping_method: str
    weight_kg: float
    shipping_surcharge: float
    notes: str

    @property
    def is_ok(self) -> bool:
        return self.notes == "OK"

    def to_record(self) -> dict[str, Any]:
        """Fila con los encabezados que muestra la grilla de resultados."""
        return {
            "SKU": self.sku,
            "Publicación": self.listing_id,
            "Descripción": self.description,
            "Stock Real": self.erp_stock,
            "Stock Publicado": self.published_stock,
            "Stock Anterior ML": self.previous_stock,
            "Moneda": self.currency,
            "Costo Base (Odoo)": self.base_cost,
            "Tarifa Objetivo": self.target_tariff,
            "Precio Publicación": self.sale_price,
            "Precio Anterior ML": self.previous_price,
            "Cargo por Vender": self.selling_fee,
            "Fee Pct Aplicado": self.fee_percent_applied,
            "Fee Fijo Aplicado": self.fee_fixed_applied,
            "Financing Pct Aplicado": self.financing_percent_applied,
            "Costo Financiación": self.financing_cost,
            "Retenciones": self.retention_cost,
            "IVA Estimado": self.estimated_tax,
            "Recibís (Neto)": self.net_receipt,
            "Peso (kg)": self.weight_kg,
            "Recargo Envío": self.shipping_surcharge,
            "Tipo Publicación": self.listing_type,
            "Envío": self.shipping_method,
            "Notas": self.notes,
        }
