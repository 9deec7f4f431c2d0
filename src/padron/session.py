"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/padron/session.py`.
Contexto de sesión: dueño único del estado mutable (conjunto de registros,
caché de resultados, debounce pendiente, tarea de sincronización) y de la
superficie de comandos que consume la capa de presentación.

Componentes detectados:
  - SessionState
  - RegistrySession

Notas:
- El conjunto de registros solo cambia por publicaciones del orquestador y
  por acciones explícitas (dedup manual, limpieza de caché).
- Toda publicación de registros invalida la caché de resultados.

======================== ENGLISH ========================
File: `src/padron/session.py`.
Session context: single owner of the mutable state (record set, result cache,
pending debounce, sync task) and of the command surface consumed by the
presentation layer.

Detected components:
  - SessionState
  - RegistrySession

Notes:
- The record set only changes through orchestrator publications and explicit
  actions (manual dedup, cache clear).
- Every record publication invalidates the result cache.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import structlog

from .client import RegistryClient, build_client
from .config import PadronSettings
from .debounce import Debouncer, ScheduledTask
from .dedup import dedup
from .filters import FilterKind, filter_records
from .kv_store import SqliteKeyValueStore
from .logging import bind_context
from .models import Record
from .remote_search import RemoteSearchCoordinator, should_escalate
from .search import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_MAX_RESULTS,
    DEFAULT_SUGGESTION_LIMIT,
    MIN_QUERY_LENGTH,
    SearchMode,
    SearchResultCache,
    debounce_delay,
    normalize_query,
    rank_suggestions,
    search,
)
from .storage import CacheStore
from .sync import SyncOptions, SyncOrchestrator, SyncSnapshot

Listener = Callable[["SessionState"], None]


def build_cache_store(settings: PadronSettings) -> CacheStore:
    """Caché SQLite configurada. / Configured SQLite cache."""
    return CacheStore(
        SqliteKeyValueStore(settings.cache_db_path, budget_bytes=settings.cache_budget_bytes),
        key_prefix=settings.cache_key_prefix,
        ttl_ms=settings.cache_ttl_ms,
        max_records=settings.cache_max_records,
        chunk_bytes=settings.cache_chunk_bytes,
    )


@dataclass(frozen=True)
class SessionState:
    """Estado observable de la sesión. / Observable session state."""

    records: Tuple[Record, ...] = ()
    search_results: Tuple[Record, ...] = ()
    suggestions: Tuple[Record, ...] = ()
    filter_results: Tuple[Record, ...] = ()
    query: str = ""
    mode: SearchMode = SearchMode.ALL
    filter_kind: Optional[FilterKind] = None
    filter_value: str = ""
    is_loading: bool = False
    is_searching: bool = False
    is_retrying: bool = False
    error_message: Optional[str] = None
    total_count: int = 0

    @property
    def display_records(self) -> Tuple[Record, ...]:
        """Resultados si hay consulta activa; si no, todos los registros.

        English: Search results while a query is active, else all records.
        """
        if self.query.strip():
            return self.search_results
        return self.records


class RegistrySession:
    """Sesión de sincronización y búsqueda sobre el padrón.

    English: Synchronization and search session over the registry.
    """

    def __init__(
        self,
        client: RegistryClient,
        cache: CacheStore,
        *,
        sync_options: SyncOptions = SyncOptions(),
        search_cache_size: int = DEFAULT_CACHE_SIZE,
        search_max_results: int = DEFAULT_MAX_RESULTS,
        suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
        delay_for: Callable[[str], float] = debounce_delay,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session_id = uuid.uuid4().hex[:12]
        self.logger = bind_context(
            structlog.get_logger(__name__), session_id=self.session_id, source_url=client.base_url
        )
        self.client = client
        self.cache = cache
        self.orchestrator = SyncOrchestrator(
            client, cache, options=sync_options, on_update=self._on_sync_update, sleep=sleep
        )
        self.remote = RemoteSearchCoordinator(client)
        self.search_cache = SearchResultCache(search_cache_size)
        self._generation = 0
        self.search_max_results = search_max_results
        self.suggestion_limit = suggestion_limit
        self._delay_for = delay_for
        self._debouncer = Debouncer()
        self._listeners: List[Listener] = []
        self._sync_task: Optional[asyncio.Task] = None
        self._owned_http = False
        self.state = SessionState()

    @classmethod
    def from_settings(cls, settings: PadronSettings) -> "RegistrySession":
        """Construye la sesión completa desde la configuración.

        English: Build the full session from settings.
        """
        http = build_client(timeout=settings.request_timeout)
        client = RegistryClient(
            settings.api_base_url,
            http,
            page_retry_attempts=settings.page_retry_attempts,
            page_retry_delay=settings.page_retry_delay,
        )
        cache = build_cache_store(settings)
        session = cls(
            client,
            cache,
            sync_options=SyncOptions.from_settings(settings),
            search_cache_size=settings.search_cache_size,
            search_max_results=settings.search_max_results,
            suggestion_limit=settings.suggestion_limit,
        )
        session._owned_http = True
        return session

    async def __aenter__(self) -> "RegistrySession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Estado observable / Observable state
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Registra un oyente; devuelve la función para darlo de baja.

        English: Register a listener; returns its unsubscribe function.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, **changes) -> None:
        for name in ("records", "search_results", "suggestions", "filter_results"):
            if name in changes:
                changes[name] = tuple(changes[name])
        self.state = replace(self.state, **changes)
        for listener in list(self._listeners):
            listener(self.state)

    def _on_sync_update(self, snapshot: SyncSnapshot) -> None:
        changes = {
            "is_loading": snapshot.is_loading,
            "is_retrying": snapshot.is_retrying,
            "error_message": snapshot.error_message,
            "total_count": snapshot.total_count,
        }
        if snapshot.records != self.state.records:
            self._invalidate_results()
            changes["records"] = snapshot.records
            if self.state.filter_kind is not None:
                changes["filter_results"] = filter_records(
                    self.state.filter_kind, self.state.filter_value, snapshot.records
                )
        self._set_state(**changes)

    # ------------------------------------------------------------------
    # Sincronización / Synchronization
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Lanza la sincronización en segundo plano. / Launch background sync."""
        if self._sync_task is not None and not self._sync_task.done():
            return self._sync_task
        self._sync_task = asyncio.get_running_loop().create_task(self.orchestrator.sync(0))
        return self._sync_task

    async def wait_synced(self) -> SyncSnapshot:
        if self._sync_task is None:
            self.start()
        return await self._sync_task

    def retry(self) -> asyncio.Task:
        """Reintento manual desde cero. / Manual retry from scratch."""
        self.logger.info("manual_retry")
        return self.start()

    def clear_cache(self) -> asyncio.Task:
        """Borra la caché local y recarga desde la red.

        English: Clear the local cache and reload from the network.
        """
        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
        self._debouncer.cancel()
        self.cache.clear()
        self._invalidate_results()
        self.orchestrator.reset()
        self.logger.info("cache_cleared_reloading")
        self._set_state(
            records=(),
            search_results=(),
            suggestions=(),
            filter_results=(),
            is_searching=False,
            total_count=0,
        )
        self._sync_task = None
        return self.start()

    def dedup_now(self) -> int:
        """Deduplica el conjunto actual y reescribe la caché.

        Returns:
            Cantidad de duplicados eliminados.

        English:
            Deduplicate the current set, its search and filter results, and
            rewrite the cache. Returns the number of removed duplicates.
        """
        records = self.state.records
        if not records:
            return 0
        unique = dedup(records)
        removed = len(records) - len(unique)
        if not removed:
            self.logger.info("dedup_now_clean", records=len(records))
            return 0
        self._invalidate_results()
        search_results = dedup(self.state.search_results)
        self._set_state(
            records=unique,
            total_count=len(unique),
            search_results=search_results,
            suggestions=self._suggest(self.state.query, search_results),
            filter_results=dedup(self.state.filter_results),
        )
        self.cache.write(unique, len(unique))
        self.logger.info("dedup_now_done", removed=removed, records=len(unique))
        return removed

    # ------------------------------------------------------------------
    # Búsqueda / Search
    # ------------------------------------------------------------------

    def set_mode(self, mode: SearchMode | str) -> Optional[ScheduledTask]:
        self._set_state(mode=SearchMode(mode))
        return self.set_query(self.state.query)

    def set_query(self, query: str) -> Optional[ScheduledTask]:
        """Registra la consulta y programa su evaluación con debounce.

        Devuelve la manija programada, o ``None`` si la respuesta fue
        inmediata (consulta vacía, demasiado corta o en caché).

        English:
            Record the query and schedule its debounced evaluation. Returns
            the scheduled handle, or ``None`` when answered immediately
            (blank, too short, or cached).
        """
        self._debouncer.cancel()
        mode = self.state.mode
        normalized = normalize_query(query)
        if len(normalized) < MIN_QUERY_LENGTH:
            self._set_state(query=query, search_results=(), suggestions=(), is_searching=False)
            return None

        cached = self.search_cache.get(normalized, mode)
        if cached is not None:
            self._set_state(
                query=query,
                search_results=cached,
                suggestions=self._suggest(normalized, cached),
                is_searching=False,
            )
            return None

        self._set_state(query=query, is_searching=True)
        return self._debouncer.schedule(
            self._delay_for(normalized),
            lambda: self._evaluate(normalized, mode),
            label=normalized,
        )

    async def search_now(self, query: str, mode: SearchMode | str | None = None) -> List[Record]:
        """Evalúa una consulta sin debounce. / Evaluate a query without debounce."""
        self._debouncer.cancel()
        mode = SearchMode(mode) if mode is not None else self.state.mode
        normalized = normalize_query(query)
        self._set_state(query=query, mode=mode)
        if len(normalized) < MIN_QUERY_LENGTH:
            self._set_state(search_results=(), suggestions=(), is_searching=False)
            return []
        cached = self.search_cache.get(normalized, mode)
        if cached is not None:
            self._set_state(
                search_results=cached, suggestions=self._suggest(normalized, cached), is_searching=False
            )
            return cached
        self._set_state(is_searching=True)
        return await self._evaluate(normalized, mode)

    def _invalidate_results(self) -> None:
        """Descarta resultados cacheados al cambiar el conjunto.

        English: Drop cached results when the record set changes.
        """
        self._generation += 1
        self.search_cache.clear()

    def _local_search(self, query: str, mode: SearchMode, corpus: Sequence[Record]) -> List[Record]:
        return dedup(search(query, mode, corpus, max_results=self.search_max_results))

    async def _evaluate(self, query: str, mode: SearchMode) -> List[Record]:
        generation = self._generation
        corpus = self.state.records
        results = self._local_search(query, mode, corpus)
        self.logger.debug("local_search", query=query, mode=mode.value, results=len(results))
        cacheable = True

        if should_escalate(mode, results, corpus):
            self._set_state(search_results=results, suggestions=())
            results = await self.remote.remote_search(query, results)
            if generation != self._generation:
                # El conjunto cambió durante la consulta remota. / The set changed during the remote call.
                fresh = self._local_search(query, mode, self.state.records)
                self.logger.info("remote_search_outdated", query=query, local_results=len(fresh))
                cacheable = bool(fresh)
                if fresh:
                    results = fresh

        if cacheable:
            self.search_cache.put(query, mode, results)
        self._set_state(
            search_results=results,
            suggestions=self._suggest(query, results),
            is_searching=False,
        )
        return results

    def _suggest(self, query: str, results: Sequence[Record]) -> List[Record]:
        return rank_suggestions(query, results, limit=self.suggestion_limit)

    # ------------------------------------------------------------------
    # Filtros / Filters
    # ------------------------------------------------------------------

    def set_filter(self, kind: FilterKind | str | None, value: str = "") -> List[Record]:
        """Activa un filtro por mesa, apellido o dirección; ``None`` lo quita.

        English: Activate a booth/surname/address filter; ``None`` clears it.
        """
        if kind is None or kind == "search":
            self._set_state(filter_kind=None, filter_value="", filter_results=())
            return []
        kind = FilterKind(kind)
        results = filter_records(kind, value, self.state.records)
        self._set_state(filter_kind=kind, filter_value=value, filter_results=results)
        return results

    # ------------------------------------------------------------------
    # Ciclo de vida / Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancela debounce y sincronización pendientes y libera recursos.

        English: Cancel pending debounce and sync, release resources.
        """
        self._debouncer.cancel()
        if self._sync_task is not None and not self._sync_task.done():
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
        if self._owned_http:
            await self.client.http.aclose()
            close_kv = getattr(self.cache.kv, "close", None)
            if close_kv is not None:
                close_kv()
