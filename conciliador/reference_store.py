"""
Persistencia de la base logística: pesos por SKU y escalas tarifarias de envío.

Dos implementaciones con la misma interfaz:
- SqlReferenceStore: SQLAlchemy (SQLite por defecto).
- JsonReferenceStore: un único archivo JSON que se lee completo y se reescribe
  completo en cada cambio. Alcanza para cientos o pocos miles de SKUs.

El motor de conciliación nunca habla con estas clases: recibe una copia de las
tablas tomada antes de cada corrida.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from conciliador.db import create_engine_from_url, init_db, make_session_factory, session_scope
from conciliador.models import utcnow
from conciliador.repos import RateRepo, WeightRepo, dedup_by_sku
from conciliador.settings import Settings
from conciliador.tipos import ShippingRateTier, WeightEntry

logger = logging.getLogger(__name__)

DEFAULT_RATES: tuple[ShippingRateTier, ...] = (
    ShippingRateTier(max_weight_kg=0.5, cost=5500.0),
    ShippingRateTier(max_weight_kg=1.0, cost=6800.0),
    ShippingRateTier(max_weight_kg=2.0, cost=8200.0),
)


class ReferenceStore(Protocol):
    def list_weights(self) -> list[WeightEntry]: ...

    def replace_all_weights(self, entries: list[WeightEntry]) -> int: ...

    def upsert_weights(self, entries: list[WeightEntry]) -> int: ...

    def delete_weight(self, sku: str) -> bool: ...

    def list_rates(self) -> list[ShippingRateTier]: ...

    def replace_all_rates(self, tiers: list[ShippingRateTier]) -> int: ...


class SqlReferenceStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def list_weights(self) -> list[WeightEntry]:
        with session_scope(self._session_factory) as session:
            return WeightRepo(session).list()

    def replace_all_weights(self, entries: list[WeightEntry]) -> int:
        with session_scope(self._session_factory) as session:
            n = WeightRepo(session).replace_all(list(entries))
        logger.info("Base de pesos reemplazada: %s SKUs", n)
        return n

    def upsert_weights(self, entries: list[WeightEntry]) -> int:
        with session_scope(self._session_factory) as session:
            return WeightRepo(session).upsert_many(list(entries))

    def delete_weight(self, sku: str) -> bool:
        with session_scope(self._session_factory) as session:
            return WeightRepo(session).delete(sku)

    def list_rates(self) -> list[ShippingRateTier]:
        with session_scope(self._session_factory) as session:
            rates = RateRepo(session).list()
        return rates or list(DEFAULT_RATES)

    def replace_all_rates(self, tiers: list[ShippingRateTier]) -> int:
        with session_scope(self._session_factory) as session:
            n = RateRepo(session).replace_all(list(tiers))
        logger.info("Escalas tarifarias reemplazadas: %s escalas", n)
        return n


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed
        except ValueError:
            pass
    return utcnow()


class JsonReferenceStore:
    def __init__(self, path: Path | str):
        self.path = Path(path)
        # Flask serves requests from several threads; every read-modify-write holds this.
        self._lock = threading.RLock()

    def _default_data(self) -> dict:
        return {"weights": [], "rates": [r.as_dict() for r in DEFAULT_RATES]}

    def _read(self) -> dict:
        if not self.path.exists():
            data = self._default_data()
            self._write(data)
            return data
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            logger.warning("No se pudo leer %s (%s); se usan valores por defecto", self.path, e)
            return self._default_data()
        if not isinstance(parsed, dict):
            return self._default_data()

        weights = parsed.get("weights")
        rates = parsed.get("rates")
        return {
            "weights": weights if isinstance(weights, list) else [],
            "rates": rates if isinstance(rates, list) and rates else self._default_data()["rates"],
        }

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            tmp = Path(f.name)
        try:
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    @staticmethod
    def _weights_from(items: list) -> list[WeightEntry]:
        out: list[WeightEntry] = []
        for w in items:
            if not isinstance(w, dict) or not w.get("sku"):
                continue
            try:
                weight = float(w.get("weight") or 0)
            except (TypeError, ValueError):
                continue
            out.append(
                WeightEntry(
                    sku=str(w["sku"]),
                    product_name=str(w.get("product") or ""),
                    weight_kg=weight,
                    updated_at=_parse_timestamp(w.get("updatedAt")),
                )
            )
        return out

    def list_weights(self) -> list[WeightEntry]:
        with self._lock:
            return self._weights_from(self._read()["weights"])

    def replace_all_weights(self, entries: list[WeightEntry]) -> int:
        entries = dedup_by_sku(list(entries))
        with self._lock:
            data = self._read()
            data["weights"] = [e.as_dict() for e in entries]
            self._write(data)
        logger.info("Base de pesos reemplazada: %s SKUs", len(entries))
        return len(entries)

    def upsert_weights(self, entries: list[WeightEntry]) -> int:
        incoming = dedup_by_sku(list(entries))
        with self._lock:
            data = self._read()
            merged = {w.sku: w for w in self._weights_from(data["weights"])}
            for e in incoming:
                merged[e.sku] = e
            data["weights"] = [w.as_dict() for w in merged.values()]
            self._write(data)
        return len(incoming)

    def delete_weight(self, sku: str) -> bool:
        k = (sku or "").strip()
        if not k:
            return False
        with self._lock:
            data = self._read()
            before = len(data["weights"])
            data["weights"] = [w for w in data["weights"] if not (isinstance(w, dict) and w.get("sku") == k)]
            if len(data["weights"]) == before:
                return False
            self._write(data)
        return True

    def list_rates(self) -> list[ShippingRateTier]:
        with self._lock:
            raw = self._read()["rates"]
        out: list[ShippingRateTier] = []
        for r in raw:
            try:
                out.append(ShippingRateTier(max_weight_kg=float(r["maxWeight"]), cost=float(r["cost"])))
            except (KeyError, TypeError, ValueError):
                continue
        return sorted(out, key=lambda t: t.max_weight_kg) or list(DEFAULT_RATES)

    def replace_all_rates(self, tiers: list[ShippingRateTier]) -> int:
        ordered = sorted(tiers, key=lambda t: t.max_weight_kg)
        with self._lock:
            data = self._read()
            data["rates"] = [t.as_dict() for t in ordered]
            self._write(data)
        logger.info("Escalas tarifarias reemplazadas: %s escalas", len(ordered))
        return len(ordered)


def open_reference_store(settings: Settings) -> ReferenceStore:
    if settings.REFERENCE_BACKEND == "json":
        return JsonReferenceStore(settings.LOGISTICS_JSON_PATH)

    engine = create_engine_from_url(settings.DATABASE_URL)
    init_db(engine)
    return SqlReferenceStore(make_session_factory(engine))
