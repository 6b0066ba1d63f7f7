"""
Motor de conciliación Mercado Libre <-> Odoo.

Recorre las publicaciones de Mercado Libre, las cruza por SKU con el reporte de
Odoo y calcula el precio de publicación que, luego de descontar comisión, costo
de financiación y retenciones, deja exactamente la tarifa objetivo.

Los problemas de cada fila nunca cortan el lote: se acumulan en la columna de
notas y la fila se emite igual, con ceros donde no se pudo calcular.
"""

from __future__ import annotations

import logging
import math
import sys
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from conciliador.envios import applies_shipping_surcharge, resolve_shipping
from conciliador.normalizacion import first_value, to_bool, to_number, to_text
from conciliador.reglas import extract_percentage, parse_marketplace_fee
from conciliador.tipos import (
    ReconciledRow,
    ReconciliationConfig,
    ShippingRateTier,
    ShippingSurcharge,
    TabularDataset,
    WeightEntry,
)

logger = logging.getLogger(__name__)

# Mercado Libre listing export
ML_ITEM_ID = ("ITEM_ID",)
ML_SKU = ("SKU", "seller_sku")
ML_TITLE = ("TITLE",)
ML_PRICE = ("PRICE",)
ML_QUANTITY = ("QUANTITY", "available_quantity")
ML_FEE = ("FEE_PER_SALE_MARKETPLACE_V2",)
ML_FINANCING = ("COST_OF_FINANCING_MARKETPLACE",)
ML_LISTING_TYPE = ("LISTING_TYPE_V3",)
ML_SHIPPING_METHOD = ("SHIPPING_METHOD",)
ML_CURRENCY = ("CURRENCY_ID",)
ML_LISTING_PREFIX = "ML"

# Odoo inventory/price report
ERP_SKU = ("Código Neored", "Referencia interna")
ERP_NAME = ("Nombre", "Name")
ERP_BASE_COST = ("Precio Tarifa", "Price")
ERP_STOCK = ("Cantidad a mano", "Quantity")
ERP_TAXES = ("Impuestos del cliente",)

DEFAULT_CURRENCY = "ARS"

NOTE_OK = "OK"
NOTE_SEPARATOR = " | "
WARN_SKU_NOT_FOUND = "SKU no encontrado en Odoo"
WARN_MISSING_TARIFF = "Tarifa 0 o faltante"
ERR_DEDUCTIONS_OVER_100 = "ERROR: Porcentajes superan 100%"

_EPSILON = sys.float_info.epsilon
_CENT = Decimal("0.01")


class ReconciliationError(RuntimeError):
    """The whole batch cannot run (missing dataset, malformed configuration)."""


def round2(value: float) -> float:
    """Round to cents, half away from zero, nudged by epsilon. 1234.565 -> 1234.57"""
    if not math.isfinite(value):
        return 0.0
    nudged = value + math.copysign(_EPSILON, value)
    return float(Decimal(repr(nudged)).quantize(_CENT, rounding=ROUND_HALF_UP))


def _parse_config_number(data: Mapping[str, Any], keys: tuple[str, ...], default: float) -> float:
    for key in keys:
        if key not in data:
            continue
        raw = data[key]
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return float(default)
        if isinstance(raw, bool):
            raise ReconciliationError(f"Valor inválido para '{key}': {raw!r}")
        try:
            return float(str(raw).strip().replace(",", "."))
        except ValueError:
            raise ReconciliationError(f"Valor inválido para '{key}': {raw!r}") from None
    return float(default)


def config_from_mapping(
    data: Mapping[str, Any],
    *,
    defaults: ReconciliationConfig | None = None,
) -> ReconciliationConfig:
    """Build a config from form or JSON input (camelCase or snake_case keys)."""
    base = defaults or ReconciliationConfig()

    kind_raw = first_value(data, ("shippingSurchargeType", "surcharge_kind"), base.manual_shipping_surcharge.kind)
    kind = str(kind_raw).strip().lower()
    if kind in ("percentofbase", "percent_of_base"):
        kind = "percent"

    def flag(keys: tuple[str, ...], default: bool) -> bool:
        for key in keys:
            if key in data:
                return to_bool(data[key])
        return default

    config = ReconciliationConfig(
        stock_publish_percent=_parse_config_number(
            data, ("stockPercentage", "stock_publish_percent"), base.stock_publish_percent
        ),
        retention_percent=_parse_config_number(data, ("retentionsPct", "retention_percent"), base.retention_percent),
        include_taxes_in_base_cost=flag(("includeTaxes", "include_taxes_in_base_cost"), base.include_taxes_in_base_cost),
        manual_shipping_surcharge=ShippingSurcharge(
            amount=_parse_config_number(
                data, ("shippingSurchargeAmount", "surcharge_amount"), base.manual_shipping_surcharge.amount
            ),
            kind=kind,  # type: ignore[arg-type]
        ),
        use_weight_table=flag(("useWeightTable", "use_weight_table"), base.use_weight_table),
    )
    validate_config(config)
    return config


def validate_config(config: ReconciliationConfig) -> None:
    if not isinstance(config, ReconciliationConfig):
        raise ReconciliationError("Configuración de cálculo ausente o inválida")

    stock = config.stock_publish_percent
    if not isinstance(stock, (int, float)) or not math.isfinite(stock) or stock < 0:
        raise ReconciliationError(f"% de stock a publicar inválido: {stock!r}")

    retention = config.retention_percent
    if not isinstance(retention, (int, float)) or not math.isfinite(retention) or not (0 <= retention <= 100):
        raise ReconciliationError(f"% de retenciones inválido (0 a 100): {retention!r}")

    surcharge = config.manual_shipping_surcharge
    if surcharge.kind not in ("fixed", "percent"):
        raise ReconciliationError(f"Tipo de recargo de envío inválido: {surcharge.kind!r}")
    if not isinstance(surcharge.amount, (int, float)) or not math.isfinite(surcharge.amount) or surcharge.amount < 0:
        raise ReconciliationError(f"Recargo de envío inválido: {surcharge.amount!r}")

    if not isinstance(config.include_taxes_in_base_cost, bool) or not isinstance(config.use_weight_table, bool):
        raise ReconciliationError("Las opciones de impuestos y base de pesos deben ser verdadero/falso")


def _is_reconcilable(row: Mapping[str, Any]) -> tuple[str, str] | None:
    item_id = to_text(first_value(row, ML_ITEM_ID))
    sku = to_text(first_value(row, ML_SKU))
    if not item_id.startswith(ML_LISTING_PREFIX) or not sku:
        return None
    return item_id, sku


def build_erp_index(erp: TabularDataset) -> dict[str, Mapping[str, Any]]:
    index: dict[str, Mapping[str, Any]] = {}
    for row in erp.rows:
        sku = to_text(first_value(row, ERP_SKU))
        if sku:
            # Repeated SKUs in the Odoo export: the last row wins.
            index[sku] = row
    return index


def _reconcile_row(
    ml_row: Mapping[str, Any],
    item_id: str,
    sku: str,
    erp_index: Mapping[str, Mapping[str, Any]],
    weight_by_sku: Mapping[str, float],
    rates: list[ShippingRateTier],
    config: ReconciliationConfig,
) -> ReconciledRow:
    notes: list[str] = []

    title = to_text(first_value(ml_row, ML_TITLE))
    ml_price = to_number(first_value(ml_row, ML_PRICE, 0))
    ml_quantity = to_number(first_value(ml_row, ML_QUANTITY, 0))
    listing_type = to_text(first_value(ml_row, ML_LISTING_TYPE))
    shipping_method = to_text(first_value(ml_row, ML_SHIPPING_METHOD)).lower()
    currency = to_text(first_value(ml_row, ML_CURRENCY)) or DEFAULT_CURRENCY

    fee = parse_marketplace_fee(first_value(ml_row, ML_FEE, None))
    financing_pct = extract_percentage(first_value(ml_row, ML_FINANCING, None))
    retention_pct = config.retention_percent / 100

    base_cost = 0.0
    erp_stock = 0.0
    tax_pct = 0.0
    erp_name = ""

    erp_row = erp_index.get(sku)
    if erp_row is None:
        notes.append(WARN_SKU_NOT_FOUND)
    else:
        erp_name = to_text(first_value(erp_row, ERP_NAME))
        base_cost = to_number(first_value(erp_row, ERP_BASE_COST, 0))
        erp_stock = to_number(first_value(erp_row, ERP_STOCK, 0))
        tax_text = to_text(first_value(erp_row, ERP_TAXES))
        tax_pct = extract_percentage(tax_text)
        if base_cost <= 0:
            notes.append(WARN_MISSING_TARIFF)

    weight_kg = weight_by_sku.get(sku, 0.0) or 0.0
    shipping_surcharge = 0.0
    if applies_shipping_surcharge(shipping_method):
        if config.use_weight_table and weight_kg > 0:
            resolution = resolve_shipping(weight_kg, rates)
            shipping_surcharge = resolution.surcharge
            if resolution.warning:
                notes.append(resolution.warning)
        else:
            manual = config.manual_shipping_surcharge
            if manual.kind == "fixed":
                shipping_surcharge = float(manual.amount)
            else:
                shipping_surcharge = base_cost * (manual.amount / 100)

    taxed_base = base_cost * (1 + tax_pct) if config.include_taxes_in_base_cost else base_cost
    target_tariff = taxed_base + shipping_surcharge

    total_deductions = fee.percent + financing_pct + retention_pct
    denominator = 1 - total_deductions

    sale_price = selling_fee = financing_cost = retention_cost = net_receipt = estimated_tax = 0.0
    published_stock = math.floor(erp_stock * (config.stock_publish_percent / 100))

    if denominator <= 0:
        notes.append(ERR_DEDUCTIONS_OVER_100)
    else:
        sale_price = (target_tariff + fee.fixed) / denominator
        selling_fee = sale_price * fee.percent + fee.fixed
        financing_cost = sale_price * financing_pct
        retention_cost = sale_price * retention_pct
        net_receipt = sale_price - (selling_fee + financing_cost + retention_cost)
        if tax_pct > 0:
            # IVA contained in the price, not added on top
            estimated_tax = sale_price * tax_pct / (1 + tax_pct)

    return ReconciledRow(
        sku=sku,
        listing_id=item_id,
        description=erp_name or title,
        erp_stock=erp_stock,
        published_stock=int(published_stock),
        previous_stock=ml_quantity,
        currency=currency,
        base_cost=round2(base_cost),
        target_tariff=round2(target_tariff),
        sale_price=round2(sale_price),
        previous_price=round2(ml_price),
        selling_fee=round2(selling_fee),
        fee_percent_applied=fee.percent * 100,
        fee_fixed_applied=fee.fixed,
        financing_percent_applied=financing_pct * 100,
        financing_cost=round2(financing_cost),
        retention_cost=round2(retention_cost),
        estimated_tax=round2(estimated_tax),
        net_receipt=round2(net_receipt),
        listing_type=listing_type,
        shipping_method=shipping_method,
        weight_kg=weight_kg,
        shipping_surcharge=round2(shipping_surcharge),
        notes=NOTE_SEPARATOR.join(notes) or NOTE_OK,
    )


def reconcile(
    marketplace: TabularDataset | None,
    erp: TabularDataset | None,
    config: ReconciliationConfig,
    weights: Iterable[WeightEntry] = (),
    rates: Iterable[ShippingRateTier] = (),
) -> list[ReconciledRow]:
    """One output row per Mercado Libre listing with an ``ML`` id and a SKU.

    ``weights`` and ``rates`` are snapshots; they are read once and never re-fetched.
    """
    if marketplace is None:
        raise ReconciliationError("Falta el archivo de Mercado Libre")
    if erp is None:
        raise ReconciliationError("Falta el archivo de Odoo")
    validate_config(config)

    erp_index = build_erp_index(erp)
    weight_by_sku: dict[str, float] = {}
    for w in weights:
        weight_by_sku[w.sku] = float(w.weight_kg)
    rate_snapshot = list(rates)

    results: list[ReconciledRow] = []
    for ml_row in marketplace.rows:
        keys = _is_reconcilable(ml_row)
        if keys is None:
            continue
        item_id, sku = keys
        results.append(_reconcile_row(ml_row, item_id, sku, erp_index, weight_by_sku, rate_snapshot, config))

    logger.info(
        "Conciliación: %s filas ML, %s emitidas, %s descartadas, %s SKUs en Odoo",
        len(marketplace.rows),
        len(results),
        len(marketplace.rows) - len(results),
        len(erp_index),
    )
    return results
