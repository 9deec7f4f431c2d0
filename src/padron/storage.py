# Storage Module
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

"""Caché local del padrón con control de vigencia y fragmentación.

Local registry cache with staleness tracking and chunked layout.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import structlog
from pydantic import ValidationError

from .dedup import dedup
from .kv_store import KeyValueStore, StorageError, StorageFullError
from .models import Record

logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "voters_cache"
DEFAULT_TTL_MS = 24 * 60 * 60 * 1000
DEFAULT_MAX_RECORDS = 10_000
DEFAULT_CHUNK_BYTES = 1024 * 1024


def _now_ms() -> int:
    return int(time.time() * 1000)


def _approx_mb(text: str) -> float:
    return round(len(text) / 1024 / 1024, 2)


class _CorruptEntry(ValueError):
    pass


@dataclass(frozen=True)
class CachedRecords:
    """Resultado de una lectura válida. / Result of a valid cache read."""

    records: List[Record]
    reported_total: int
    timestamp_ms: int


class CacheStore:
    """Réplica local del padrón sobre un almacén clave-valor.

    Distribución de claves (``prefix`` por defecto ``voters_cache``):

    * ``<prefix>``: payload JSON completo;
    * ``<prefix>_meta``: ``{recordCount, reportedTotal, timestampMs}``;
    * ``<prefix>_chunks`` + ``<prefix>_chunk_<i>``: payload fragmentado.

    English:
        Local replica of the registry on top of a key-value store. Both the
        single-entry and the chunked layouts are read, and always cleared
        together.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_records: int = DEFAULT_MAX_RECORDS,
        chunk_bytes: int = DEFAULT_CHUNK_BYTES,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.kv = kv
        self.ttl_ms = ttl_ms
        self.max_records = max_records
        self.chunk_bytes = chunk_bytes
        self._clock = clock
        self.data_key = key_prefix
        self.meta_key = f"{key_prefix}_meta"
        self.chunk_count_key = f"{key_prefix}_chunks"

    def chunk_key(self, index: int) -> str:
        return f"{self.data_key}_chunk_{index}"

    def read(self) -> Optional[CachedRecords]:
        """Lee la caché si está vigente y es consistente.

        Cualquier fallo estructural borra la entrada completa y devuelve
        ``None``; nunca se confía parcialmente en una entrada.

        English:
            Read the cache when fresh and consistent. Any structural failure
            clears the whole entry and returns ``None``.
        """
        try:
            raw_meta = self.kv.get(self.meta_key)
            if raw_meta is None:
                return None
            meta = json.loads(raw_meta)
            if not isinstance(meta, dict):
                raise _CorruptEntry("meta is not an object")
            timestamp_ms = int(meta.get("timestampMs") or 0)
            reported_total = int(meta.get("reportedTotal") or 0)
            age_ms = self._clock() - timestamp_ms
            if age_ms >= self.ttl_ms or not reported_total:
                logger.info(
                    "cache_stale",
                    age_minutes=round(age_ms / 60000),
                    reported_total=reported_total,
                )
                self.clear()
                return None

            payload = self._read_payload()
            if payload is None:
                raise _CorruptEntry("payload missing")
            items = json.loads(payload)
            if not isinstance(items, list):
                raise _CorruptEntry("payload is not a list")
            if len(items) != int(meta.get("recordCount", -1)):
                raise _CorruptEntry(
                    f"payload has {len(items)} records, meta says {meta.get('recordCount')}"
                )
            records = dedup(Record.from_wire(item) for item in items)
        except (StorageError, ValueError, TypeError, ValidationError) as exc:
            # ValueError cubre JSONDecodeError y _CorruptEntry. / ValueError covers JSONDecodeError and _CorruptEntry.
            logger.error("cache_corrupt", error=str(exc))
            self.clear()
            return None

        logger.info(
            "cache_loaded",
            records=len(records),
            duplicates_removed=len(items) - len(records),
            approx_mb=_approx_mb(payload),
            age_minutes=round(age_ms / 60000),
        )
        return CachedRecords(records=records, reported_total=reported_total, timestamp_ms=timestamp_ms)

    def _read_payload(self) -> Optional[str]:
        payload = self.kv.get(self.data_key)
        if payload is not None:
            return payload
        raw_count = self.kv.get(self.chunk_count_key)
        if raw_count is None:
            return None
        parts = []
        for index in range(int(raw_count)):
            chunk = self.kv.get(self.chunk_key(index))
            if chunk is None:
                raise _CorruptEntry(f"chunk {index} missing")
            parts.append(chunk)
        return "".join(parts)

    def write(self, records: Sequence[Record], reported_total: int) -> bool:
        """Persiste el conjunto completo; devuelve ``True`` si se guardó.

        Conjuntos por encima de ``max_records`` no se guardan. Un fallo de
        cuota deja intacta la entrada previa.

        English:
            Persist the full set; returns ``True`` when stored. Sets above
            ``max_records`` are not cached. A quota failure leaves the prior
            entry untouched.
        """
        if not records:
            return False
        if len(records) > self.max_records:
            logger.info(
                "cache_skipped_too_large",
                records=len(records),
                max_records=self.max_records,
            )
            return False

        payload = json.dumps([record.to_wire() for record in records], ensure_ascii=False)
        meta = json.dumps(
            {
                "recordCount": len(records),
                "reportedTotal": reported_total,
                "timestampMs": self._clock(),
            }
        )
        updates = {self.meta_key: meta}
        if len(payload) > self.chunk_bytes:
            chunks = [
                payload[start : start + self.chunk_bytes]
                for start in range(0, len(payload), self.chunk_bytes)
            ]
            updates[self.chunk_count_key] = str(len(chunks))
            for index, chunk in enumerate(chunks):
                updates[self.chunk_key(index)] = chunk
        else:
            updates[self.data_key] = payload

        stale_keys = [key for key in self._existing_keys() if key not in updates]
        try:
            self.kv.apply(updates, deletes=stale_keys)
        except StorageFullError as exc:
            logger.error("cache_write_quota_exceeded", records=len(records), error=str(exc))
            return False
        except StorageError as exc:
            logger.error("cache_write_failed", records=len(records), error=str(exc))
            return False

        logger.info(
            "cache_written",
            records=len(records),
            chunks=int(updates.get(self.chunk_count_key, 0)),
            approx_mb=_approx_mb(payload),
        )
        return True

    def clear(self) -> None:
        """Borra la entrada y todos sus fragmentos; idempotente.

        English: Remove the entry and all its chunks; idempotent.
        """
        try:
            self.kv.remove(*self._existing_keys())
        except StorageError as exc:
            logger.error("cache_clear_failed", error=str(exc))

    def _existing_keys(self) -> List[str]:
        keys = [self.data_key, self.meta_key, self.chunk_count_key]
        try:
            raw_count = self.kv.get(self.chunk_count_key)
            count = int(raw_count) if raw_count is not None else 0
        except (StorageError, ValueError):
            count = 0
        keys.extend(self.chunk_key(index) for index in range(count))
        return keys
