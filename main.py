from __future__ import annotations

import argparse
import logging
from pathlib import Path

from conciliador.excel_export import report_filename
from conciliador.excel_import import SpreadsheetError
from conciliador.reconciliation import ReconciliationError, validate_config
from conciliador.reference_store import open_reference_store
from conciliador.services import ReconciliationService
from conciliador.settings import Settings, configure_logging
from conciliador.tipos import ReconciliationConfig, ShippingSurcharge

logger = logging.getLogger("conciliador.main")


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Conciliación de precios y stock Mercado Libre + Odoo")
    parser.add_argument("--ml", required=True, type=Path, help="Reporte de publicaciones de Mercado Libre (.xlsx)")
    parser.add_argument("--odoo", required=True, type=Path, help="Reporte de inventario/tarifas de Odoo (.xlsx)")
    parser.add_argument("--out", type=Path, default=None, help="Archivo de salida (.xlsx)")
    parser.add_argument("--stock-pct", type=float, default=settings.DEFAULT_STOCK_PERCENT, help="% de stock a publicar")
    parser.add_argument(
        "--retention-pct", type=float, default=settings.DEFAULT_RETENTION_PERCENT, help="% de retenciones"
    )
    parser.add_argument(
        "--no-taxes",
        action="store_true",
        default=not settings.DEFAULT_INCLUDE_TAXES,
        help="No sumar impuestos al costo base",
    )
    parser.add_argument("--surcharge", type=float, default=0.0, help="Recargo de envío manual")
    parser.add_argument("--surcharge-kind", choices=["fixed", "percent"], default="fixed")
    parser.add_argument("--use-weights", action="store_true", help="Usar la base de pesos y escalas tarifarias")
    return parser


def main(argv: list[str] | None = None) -> int:
    settings = Settings()
    args = build_parser(settings).parse_args(argv)
    configure_logging(settings.LOG_LEVEL)

    config = ReconciliationConfig(
        stock_publish_percent=args.stock_pct,
        retention_percent=args.retention_pct,
        include_taxes_in_base_cost=not args.no_taxes,
        manual_shipping_surcharge=ShippingSurcharge(amount=args.surcharge, kind=args.surcharge_kind),
        use_weight_table=bool(args.use_weights),
    )

    settings.ensure_instance()
    service = ReconciliationService(open_reference_store(settings))
    try:
        validate_config(config)
        run = service.run_files(args.ml, args.odoo, config)
    except (ReconciliationError, SpreadsheetError) as e:
        logger.error("%s", e)
        return 2

    out = args.out or Path(report_filename())
    out.write_bytes(service.export(run.rows))

    s = run.summary
    print(
        f"analizados={s.total} sincronizados={s.synced} sin_odoo={s.unsynced} "
        f"cambio_precio={s.price_changed} cambio_stock={s.stock_changed} con_alertas={s.with_warnings}"
    )
    print(f"reporte: {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
