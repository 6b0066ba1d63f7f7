from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from conciliador.excel_import import read_workbook
from conciliador.logistics import LogisticsService
from conciliador.reference_store import open_reference_store
from conciliador.settings import Settings, configure_logging


def main() -> int:
    parser = argparse.ArgumentParser(description="Importa pesos por SKU desde una planilla")
    parser.add_argument("xlsx", type=Path, help="Planilla con columnas de SKU y PESO")
    parser.add_argument("--restore", action="store_true", help="Tratar el archivo como backup completo (pesos + escalas)")
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.LOG_LEVEL)
    settings.ensure_instance()

    service = LogisticsService(open_reference_store(settings))
    sheets = read_workbook(args.xlsx)
    if args.restore:
        res = service.restore_backup(sheets)
        print("restored weights", res.weights, "rates", res.rates)
        return 0

    if not sheets:
        print("El archivo no contiene datos")
        return 1
    res = service.import_weights(sheets[0])
    print("added", res.added, "updated", res.updated)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
