# Sync Module
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

"""Orquestador de descarga paginada del padrón.

Paginated registry fetch orchestrator.

Flujo / Flow:
    caché -> página 1 (publicada de inmediato) -> lotes concurrentes de
    páginas restantes -> deduplicación final -> persistencia.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Set, Tuple

import structlog

from .client import RegistryClient, TransientNetworkError
from .dedup import IdentityKey, dedup
from .models import Record
from .normalize import extract_records, normalize_page
from .storage import CacheStore

logger = structlog.get_logger(__name__)

RETRYING_MESSAGE = "Connection problem... retrying {attempt}/{max_retries}"
FAILED_MESSAGE = "Could not load records. Use retry to try again."


class SyncStatus(str, Enum):
    """Estado de la sincronización. / Synchronization status."""

    IDLE = "idle"
    LOADING = "loading"
    RETRYING = "retrying"
    BACKGROUND = "background"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOptions:
    """Parámetros del bucle de paginación. / Pagination loop parameters."""

    page_size: int = 1000
    batch_size: int = 3
    inter_batch_delay: float = 0.3
    max_retries: int = 1
    retry_backoff: float = 2.0
    periodic_dedup_every: int = 5

    @classmethod
    def from_settings(cls, settings) -> "SyncOptions":
        return cls(
            page_size=settings.page_size,
            batch_size=settings.batch_size,
            inter_batch_delay=settings.inter_batch_delay,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff,
            periodic_dedup_every=settings.periodic_dedup_every,
        )


@dataclass(frozen=True)
class SyncSnapshot:
    """Vista inmutable del progreso publicada a los suscriptores.

    English: Immutable progress view published to subscribers.
    """

    records: Tuple[Record, ...] = ()
    reported_total: int = 0
    status: SyncStatus = SyncStatus.IDLE
    error_message: Optional[str] = None
    from_cache: bool = False
    pages_fetched: int = 0
    pages_failed: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status in (SyncStatus.LOADING, SyncStatus.RETRYING)

    @property
    def is_retrying(self) -> bool:
        return self.status is SyncStatus.RETRYING

    @property
    def total_count(self) -> int:
        return self.reported_total or len(self.records)


@dataclass
class _Progress:
    records: List[Record] = field(default_factory=list)
    pages_fetched: int = 1
    pages_failed: int = 0
    merged: int = 0
    seen: Set[IdentityKey] = field(default_factory=set)


class SyncOrchestrator:
    """Descarga resiliente del conjunto completo de registros.

    La primera página es crítica: si falla se reintenta una vez con espera
    fija. Las páginas siguientes se piden en lotes concurrentes y sus fallos
    se toleran; los datos parciales siguen siendo útiles.

    English:
        Resilient download of the full record set. The first page is
        critical and retried once after a fixed backoff; later pages are
        fetched in concurrent batches and their failures are tolerated.
    """

    def __init__(
        self,
        client: RegistryClient,
        cache: CacheStore,
        *,
        options: SyncOptions = SyncOptions(),
        on_update: Optional[Callable[[SyncSnapshot], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.cache = cache
        self.options = options
        self._on_update = on_update
        self._sleep = sleep
        self.snapshot = SyncSnapshot()

    def reset(self) -> None:
        """Descarta el progreso publicado. / Drop the published progress."""
        self.snapshot = SyncSnapshot()

    def _publish(self, **changes) -> None:
        if "records" in changes:
            changes["records"] = tuple(changes["records"])
        self.snapshot = replace(self.snapshot, **changes)
        if self._on_update is not None:
            self._on_update(self.snapshot)

    async def sync(self, attempt: int = 0) -> SyncSnapshot:
        """Sincroniza el padrón; nunca propaga errores de red.

        English: Synchronize the registry; never propagates network errors.
        """
        if attempt == 0:
            cached = self.cache.read()
            if cached is not None:
                logger.info("sync_from_cache", records=len(cached.records))
                self._publish(
                    records=cached.records,
                    reported_total=cached.reported_total,
                    status=SyncStatus.READY,
                    error_message=None,
                    from_cache=True,
                    pages_fetched=0,
                    pages_failed=0,
                )
                return self.snapshot

        if attempt == 0:
            self._publish(status=SyncStatus.LOADING, error_message=None, from_cache=False)
        logger.info("sync_start", attempt=attempt + 1)

        try:
            first_payload = await self._fetch_first_page()
        except TransientNetworkError as exc:
            logger.error("first_page_failed", attempt=attempt + 1, error=str(exc))
            if attempt < self.options.max_retries:
                self._publish(
                    status=SyncStatus.RETRYING,
                    error_message=RETRYING_MESSAGE.format(
                        attempt=attempt + 1, max_retries=self.options.max_retries
                    ),
                )
                await self._sleep(self.options.retry_backoff)
                return await self.sync(attempt + 1)
            self._publish(status=SyncStatus.FAILED, error_message=FAILED_MESSAGE)
            return self.snapshot

        page = normalize_page(first_payload)
        reported_total = page.reported_total
        progress = _Progress()
        progress.records = dedup(page.records, progress.seen)
        more_pages = reported_total > 0 and len(progress.records) < reported_total
        self._publish(
            records=progress.records,
            reported_total=reported_total or len(progress.records),
            status=SyncStatus.BACKGROUND if more_pages else SyncStatus.READY,
            error_message=None,
            pages_fetched=1,
            pages_failed=0,
        )
        logger.info(
            "first_page_loaded",
            records=len(progress.records),
            reported_total=reported_total,
        )

        if more_pages:
            await self._fetch_remaining(progress, reported_total)

        progress.records = dedup(progress.records)
        if more_pages:
            logger.info(
                "pagination_summary",
                expected=reported_total,
                loaded=len(progress.records),
                missing=max(0, reported_total - len(progress.records)),
                pages_fetched=progress.pages_fetched,
                pages_failed=progress.pages_failed,
            )
        self.cache.write(progress.records, reported_total or len(progress.records))
        if reported_total and len(progress.records) < reported_total:
            logger.warning(
                "sync_shortfall",
                loaded=len(progress.records),
                reported_total=reported_total,
                missing=reported_total - len(progress.records),
            )
        else:
            logger.info("sync_complete", records=len(progress.records))
        self._publish(
            records=progress.records,
            reported_total=reported_total or len(progress.records),
            status=SyncStatus.READY,
            error_message=None,
            pages_fetched=progress.pages_fetched,
            pages_failed=progress.pages_failed,
        )
        return self.snapshot

    async def _fetch_first_page(self):
        try:
            return await self.client.fetch_page(1, self.options.page_size)
        except TransientNetworkError as exc:
            logger.warning("first_page_unpaged_fallback", error=str(exc))
        return await self.client.fetch_unpaged()

    async def _fetch_remaining(self, progress: _Progress, reported_total: int) -> None:
        total_pages = math.ceil(reported_total / self.options.page_size)
        batch_size = self.options.batch_size
        logger.info("background_fetch_start", total_pages=total_pages, batch_size=batch_size)
        for start in range(2, total_pages + 1, batch_size):
            pages = list(range(start, min(start + batch_size, total_pages + 1)))
            results = await asyncio.gather(
                *(self.client.fetch_page_with_fallback(page, self.options.page_size) for page in pages),
                return_exceptions=True,
            )
            # Fusión en orden de página. / Merge in page order.
            for page, result in zip(pages, results):
                self._merge_page(progress, page, result, reported_total)
            await self._sleep(self.options.inter_batch_delay)

    def _merge_page(self, progress: _Progress, page: int, result, reported_total: int) -> None:
        if isinstance(result, BaseException):
            progress.pages_failed += 1
            logger.warning("page_failed", page=page, error=str(result) or type(result).__name__)
            return
        records, _ = extract_records(result)
        if not records:
            progress.pages_failed += 1
            logger.warning("page_empty", page=page)
            return

        # Solo entran registros con claves no vistas. / Only records with unseen keys are added.
        unique_page = dedup(records, progress.seen)
        progress.records.extend(unique_page)
        progress.pages_fetched += 1
        progress.merged += 1
        if progress.merged % self.options.periodic_dedup_every == 0:
            before = len(progress.records)
            progress.records = dedup(progress.records)
            if before != len(progress.records):
                logger.info("periodic_dedup", before=before, after=len(progress.records))
        self._publish(
            records=progress.records,
            reported_total=reported_total,
            pages_fetched=progress.pages_fetched,
            pages_failed=progress.pages_failed,
        )
        logger.info(
            "page_merged",
            page=page,
            unique=len(unique_page),
            loaded=len(progress.records),
            reported_total=reported_total,
            progress_percent=round(len(progress.records) * 100 / reported_total),
        )
