from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "si", "sí", "on")


def _env_float(name: str, default: str) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return float(default)


@dataclass(frozen=True)
class Settings:
    # App
    APP_NAME: str = os.environ.get("APP_NAME", "Conciliador ML + Odoo")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Storage
    INSTANCE_DIR: Path = Path(os.environ.get("INSTANCE_DIR", "instance")).resolve()
    DATABASE_URL: str = os.environ.get(
        "DATABASE_URL", f"sqlite:///{(Path('instance') / 'logistica.sqlite').as_posix()}"
    )
    # "sqlite" (SQLAlchemy) or "json" (single flat file)
    REFERENCE_BACKEND: str = os.environ.get("REFERENCE_BACKEND", "sqlite").strip().lower()
    LOGISTICS_JSON_PATH: str = os.environ.get("LOGISTICS_JSON_PATH", "")

    # Calculator defaults (used when the form/CLI omits a value)
    DEFAULT_STOCK_PERCENT: float = _env_float("DEFAULT_STOCK_PERCENT", "100")
    DEFAULT_RETENTION_PERCENT: float = _env_float("DEFAULT_RETENTION_PERCENT", "1")
    DEFAULT_INCLUDE_TAXES: bool = _env_bool("DEFAULT_INCLUDE_TAXES", "true")

    # Uploads
    MAX_UPLOAD_MB: int = int(os.environ.get("MAX_UPLOAD_MB", "25"))

    def __post_init__(self) -> None:
        db_url_env_set = os.environ.get("DATABASE_URL") is not None

        object.__setattr__(self, "INSTANCE_DIR", Path(self.INSTANCE_DIR).resolve())

        if self.REFERENCE_BACKEND not in ("sqlite", "json"):
            raise RuntimeError(f"REFERENCE_BACKEND inválido: {self.REFERENCE_BACKEND!r} (use 'sqlite' o 'json')")

        if not self.LOGISTICS_JSON_PATH:
            object.__setattr__(self, "LOGISTICS_JSON_PATH", str(self.INSTANCE_DIR / "logistics.json"))

        # If DATABASE_URL was not explicitly provided, always place the DB inside INSTANCE_DIR.
        if not db_url_env_set:
            abs_db = (self.INSTANCE_DIR / "logistica.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        db = str(self.DATABASE_URL or "").strip()
        if not db:
            abs_db = (self.INSTANCE_DIR / "logistica.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        # sqlite:///relative/path.sqlite -> absolute, so the working directory doesn't matter.
        if db.startswith("sqlite:///") and not db.startswith("sqlite:////"):
            path_part = db[len("sqlite:///") :]
            if "?" in path_part:
                path_part = path_part.split("?", 1)[0]
            if path_part == ":memory:":
                return

            p = Path(path_part)
            if not p.is_absolute():
                project_root = Path(__file__).resolve().parents[1]
                abs_path = (project_root / p).resolve()
                object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_path.as_posix()}")

    def ensure_instance(self) -> None:
        self.INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
        Path(self.LOGISTICS_JSON_PATH).parent.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
