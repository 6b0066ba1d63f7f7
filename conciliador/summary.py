from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from conciliador.tipos import ReconciledRow

PRICE_CHANGE_THRESHOLD = 1.0


@dataclass(frozen=True)
class ReconciliationSummary:
    total: int = 0
    synced: int = 0
    unsynced: int = 0
    price_changed: int = 0
    stock_changed: int = 0
    with_warnings: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def summarize(rows: Iterable[ReconciledRow]) -> ReconciliationSummary:
    total = unsynced = price_changed = stock_changed = with_warnings = 0
    for r in rows:
        total += 1
        if "SKU no encontrado" in r.notes:
            unsynced += 1
        if abs(r.sale_price - r.previous_price) > PRICE_CHANGE_THRESHOLD:
            price_changed += 1
        if r.published_stock != r.previous_stock:
            stock_changed += 1
        if not r.is_ok:
            with_warnings += 1

    return ReconciliationSummary(
        total=total,
        synced=total - unsynced,
        unsynced=unsynced,
        price_changed=price_changed,
        stock_changed=stock_changed,
        with_warnings=with_warnings,
    )
