# Kv Store Module
# AUTO-DOC-INDEX
#
# ES: Índice rápido
#   1) Propósito del módulo
#   2) Componentes principales
#   3) Puntos de extensión
#
# EN: Quick index
#   1) Module purpose
#   2) Main components
#   3) Extension points
#
# Secciones / Sections:
#   - Configuración / Configuration
#   - Lógica principal / Core logic
#   - Integraciones / Integrations

"""Almacenes clave-valor con presupuesto de bytes.

Key-value stores with a byte budget.
"""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_BUDGET_BYTES = 5 * 1024 * 1024


class StorageError(Exception):
    """Error base de almacenamiento. / Base storage error."""


class StorageFullError(StorageError):
    """El presupuesto de bytes se excedería. / The byte budget would be exceeded."""


class StorageCorruptError(StorageError):
    """El almacén no se puede leer. / The store cannot be read."""


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore(ABC):
    """Contrato mínimo de un almacén clave-valor transaccional.

    English:
        Minimal contract of a transactional key-value store. ``apply`` must be
        all-or-nothing: on ``StorageFullError`` the previous content is intact.
    """

    budget_bytes: int

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Lee una clave. / Read a key."""

    @abstractmethod
    def apply(
        self,
        updates: Mapping[str, str],
        deletes: Iterable[str] = (),
    ) -> None:
        """Aplica borrados y escrituras atómicamente. / Apply deletes and writes atomically."""

    @abstractmethod
    def used_bytes(self) -> int:
        """Bytes ocupados. / Bytes in use."""

    def remove(self, *keys: str) -> None:
        self.apply({}, deletes=keys)


class MemoryKeyValueStore(KeyValueStore):
    """Almacén en memoria, útil para pruebas y sesiones efímeras.

    English: In-memory store, for tests and ephemeral sessions.
    """

    def __init__(self, budget_bytes: int = DEFAULT_BUDGET_BYTES) -> None:
        self.budget_bytes = budget_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def apply(self, updates: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        staged = dict(self._data)
        for key in deletes:
            staged.pop(key, None)
        staged.update(updates)
        size = sum(_entry_size(key, value) for key, value in staged.items())
        if size > self.budget_bytes:
            logger.warning("kv_budget_exceeded", size_bytes=size, budget_bytes=self.budget_bytes)
            raise StorageFullError(
                f"store would use {size} bytes, budget is {self.budget_bytes}"
            )
        self._data = staged

    def used_bytes(self) -> int:
        return sum(_entry_size(key, value) for key, value in self._data.items())

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqliteKeyValueStore(KeyValueStore):
    """Almacén persistente en SQLite con presupuesto de bytes.

    Cada ``apply`` corre en una transacción; si el total supera el
    presupuesto se revierte completa.

    English:
        Persistent SQLite store with a byte budget. Every ``apply`` runs in
        one transaction and is rolled back entirely when the total would
        exceed the budget.
    """

    def __init__(self, db_path: str | Path, budget_bytes: int = DEFAULT_BUDGET_BYTES) -> None:
        self.db_path = str(db_path)
        self.budget_bytes = budget_bytes
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            with self._connection:
                self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
        except sqlite3.DatabaseError as exc:
            raise StorageCorruptError(f"cannot open {self.db_path}: {exc}") from exc
        logger.debug("kv_store_opened", db_path=self.db_path, budget_bytes=budget_bytes)

    def close(self) -> None:
        self._connection.close()

    def get(self, key: str) -> Optional[str]:
        try:
            row = self._connection.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.DatabaseError as exc:
            raise StorageCorruptError(str(exc)) from exc
        return row[0] if row else None

    def apply(self, updates: Mapping[str, str], deletes: Iterable[str] = ()) -> None:
        with self._lock:
            try:
                with self._connection:
                    self._connection.executemany(
                        "DELETE FROM kv WHERE key = ?", [(key,) for key in deletes]
                    )
                    self._connection.executemany(
                        "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                        list(updates.items()),
                    )
                    size = self._used_bytes_unlocked()
                    if size > self.budget_bytes:
                        raise StorageFullError(
                            f"store would use {size} bytes, budget is {self.budget_bytes}"
                        )
            except sqlite3.DatabaseError as exc:
                raise StorageCorruptError(str(exc)) from exc

    def used_bytes(self) -> int:
        with self._lock:
            return self._used_bytes_unlocked()

    def _used_bytes_unlocked(self) -> int:
        row = self._connection.execute(
            "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) FROM kv"
        ).fetchone()
        return int(row[0])
