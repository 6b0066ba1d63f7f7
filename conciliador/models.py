from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class WeightRecord(Base):
    __tablename__ = "weights"

    sku: Mapped[str] = mapped_column(String(255), primary_key=True)
    producto: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    peso_kg: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("0.000"))

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)


class ShippingRateRecord(Base):
    __tablename__ = "shipping_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Upper bound (inclusive) of the weight tier, in kg
    hasta_kg: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, index=True)
    costo: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
