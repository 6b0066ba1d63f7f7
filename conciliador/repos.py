from __future__ import annotations

from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.orm import Session

from conciliador.models import ShippingRateRecord, WeightRecord, utcnow
from conciliador.tipos import ShippingRateTier, WeightEntry


def _kg(x: float) -> Decimal:
    return Decimal(str(x)).quantize(Decimal("0.001"))


def _money(x: float) -> Decimal:
    return Decimal(str(x)).quantize(Decimal("0.01"))


def dedup_by_sku(entries: list[WeightEntry]) -> list[WeightEntry]:
    # Imports can repeat a SKU; keep the last occurrence.
    dedup: dict[str, WeightEntry] = {}
    for e in entries:
        dedup[e.sku] = e
    return list(dedup.values())


def _to_entry(row: WeightRecord) -> WeightEntry:
    return WeightEntry(
        sku=row.sku,
        product_name=row.producto or "",
        weight_kg=float(row.peso_kg or 0),
        updated_at=row.updated_at,
    )


class WeightRepo:
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> list[WeightEntry]:
        rows = self.session.execute(select(WeightRecord).order_by(WeightRecord.sku.asc())).scalars().all()
        return [_to_entry(r) for r in rows]

    def replace_all(self, entries: list[WeightEntry]) -> int:
        entries = dedup_by_sku(entries)
        self.session.execute(delete(WeightRecord))
        for e in entries:
            self.session.add(
                WeightRecord(
                    sku=e.sku,
                    producto=e.product_name or "",
                    peso_kg=_kg(e.weight_kg),
                    updated_at=e.updated_at or utcnow(),
                )
            )
        self.session.flush()
        return len(entries)

    def upsert_many(self, entries: list[WeightEntry]) -> int:
        if not entries:
            return 0
        entries = dedup_by_sku(entries)

        # Fast path for SQLite: single executemany UPSERT.
        bind = self.session.get_bind()
        if bind is not None and getattr(bind.dialect, "name", "") == "sqlite":
            rows = [
                {
                    "sku": e.sku,
                    "producto": e.product_name or "",
                    "peso_kg": _kg(e.weight_kg),
                    "updated_at": e.updated_at or utcnow(),
                }
                for e in entries
            ]
            stmt = insert(WeightRecord).values(rows)
            stmt = stmt.on_conflict_do_update(
                index_elements=[WeightRecord.sku],
                set_={
                    "producto": stmt.excluded.producto,
                    "peso_kg": stmt.excluded.peso_kg,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            self.session.execute(stmt)
            return len(entries)

        # Generic fallback (non-sqlite)
        existing = {
            r.sku: r
            for r in self.session.execute(
                select(WeightRecord).where(WeightRecord.sku.in_([e.sku for e in entries]))
            ).scalars().all()
        }
        for e in entries:
            row = existing.get(e.sku)
            if row is None:
                self.session.add(
                    WeightRecord(
                        sku=e.sku,
                        producto=e.product_name or "",
                        peso_kg=_kg(e.weight_kg),
                        updated_at=e.updated_at or utcnow(),
                    )
                )
            else:
                row.producto = e.product_name or ""
                row.peso_kg = _kg(e.weight_kg)
                row.updated_at = e.updated_at or utcnow()
        return len(entries)

    def delete(self, sku: str) -> bool:
        k = (sku or "").strip()
        if not k:
            return False
        res = self.session.execute(delete(WeightRecord).where(WeightRecord.sku == k))
        return bool(res.rowcount)


class RateRepo:
    def __init__(self, session: Session):
        self.session = session

    def list(self) -> list[ShippingRateTier]:
        stmt = select(ShippingRateRecord).order_by(ShippingRateRecord.hasta_kg.asc(), ShippingRateRecord.id.asc())
        return [
            ShippingRateTier(max_weight_kg=float(r.hasta_kg), cost=float(r.costo))
            for r in self.session.execute(stmt).scalars().all()
        ]

    def replace_all(self, tiers: list[ShippingRateTier]) -> int:
        self.session.execute(delete(ShippingRateRecord))
        for t in sorted(tiers, key=lambda t: t.max_weight_kg):
            self.session.add(ShippingRateRecord(hasta_kg=_kg(t.max_weight_kg), costo=_money(t.cost)))
        self.session.flush()
        return len(tiers)
