"""Whole-blob persistence of the :class:`~siteclock.models.Store`.

The store is always written and read in one piece under a single fixed key.
There is no schema versioning; a blob that does not decode into the current
shape is treated as missing.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import sessionmaker

from .config import Settings
from .database import Base, SessionLocal, StoreBlob, db_session
from .errors import PersistenceCorrupt
from .models import Store

logger = logging.getLogger(__name__)


def encode_store(store: Store) -> str:
    return store.model_dump_json(by_alias=True)


def decode_store(raw: str) -> Store:
    try:
        return Store.model_validate_json(raw)
    except ValidationError as exc:
        raise PersistenceCorrupt(f"Stored blob does not match the store shape: {exc.error_count()} errors") from exc


class ShiftStore:
    """Loads and saves the store blob stored under ``key``."""

    def __init__(self, key: str) -> None:
        self.key = key

    def read_raw(self) -> Optional[str]:
        raise NotImplementedError

    def write_raw(self, raw: str) -> None:
        raise NotImplementedError

    def load(self) -> Optional[Store]:
        raw = self.read_raw()
        if raw is None:
            return None
        try:
            return decode_store(raw)
        except PersistenceCorrupt as exc:
            logger.warning("Discarding persisted store %r: %s", self.key, exc)
            return None

    def save(self, store: Store) -> None:
        self.write_raw(encode_store(store))


class SQLiteShiftStore(ShiftStore):
    def __init__(self, key: str, factory: sessionmaker = SessionLocal) -> None:
        super().__init__(key)
        self.factory = factory
        Base.metadata.create_all(bind=factory.kw["bind"])

    def read_raw(self) -> Optional[str]:
        with db_session(self.factory) as session:
            record = session.get(StoreBlob, self.key)
            return record.value if record else None

    def write_raw(self, raw: str) -> None:
        with db_session(self.factory) as session:
            record = session.get(StoreBlob, self.key)
            if record:
                record.value = raw
            else:
                session.add(StoreBlob(key=self.key, value=raw))


class JsonFileShiftStore(ShiftStore):
    def __init__(self, key: str, directory: Path) -> None:
        super().__init__(key)
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def read_raw(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read %s: %s", self.path, exc)
            return None

    def write_raw(self, raw: str) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(raw)
            os.replace(tmp_name, self.path)
        except Exception:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def build_shift_store(config: Settings) -> ShiftStore:
    if config.storage_backend == "json":
        return JsonFileShiftStore(config.storage_key, config.json_dir)
    return SQLiteShiftStore(config.storage_key)


__all__ = [
    "encode_store",
    "decode_store",
    "ShiftStore",
    "SQLiteShiftStore",
    "JsonFileShiftStore",
    "build_shift_store",
]
