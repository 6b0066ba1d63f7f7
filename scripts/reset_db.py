from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from conciliador.db import create_engine_from_url, reset_db
from conciliador.settings import Settings


def main() -> int:
    settings = Settings()
    settings.ensure_instance()
    engine = create_engine_from_url(settings.DATABASE_URL)

    reset_db(engine)

    print("OK: base logística reiniciada (pesos y escalas vacías)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
