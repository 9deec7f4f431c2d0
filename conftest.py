"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `conftest.py`.
Fixtures globales de pruebas del motor del padrón.

Componentes detectados:
  - block_network
  - wire_record
  - FakeRegistry
  - fake_registry
  - fast_options
  - memory_cache
  - make_session

======================== ENGLISH ========================
File: `conftest.py`.
Global test fixtures for the registry engine.

Detected components:
  - block_network
  - wire_record
  - FakeRegistry
  - fake_registry
  - fast_options
  - memory_cache
  - make_session
"""

from __future__ import annotations

import socket
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import pytest

from padron.client import RegistryClient
from padron.kv_store import MemoryKeyValueStore
from padron.session import RegistrySession
from padron.storage import CacheStore
from padron.sync import SyncOptions

BASE_URL = "https://registry.test/api/voters"


@pytest.fixture(autouse=True)
def block_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Impide conexiones de red reales en tests.

    English:
        Prevents real network connections in tests.
    """

    def guarded_connect(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("Network access is disabled during tests.")

    def guarded_create_connection(*args: Any, **kwargs: Any) -> None:
        raise RuntimeError("Network access is disabled during tests.")

    monkeypatch.setattr(socket.socket, "connect", guarded_connect, raising=True)
    monkeypatch.setattr(socket, "create_connection", guarded_create_connection, raising=True)


def wire_record(index: int, **overrides: Any) -> Dict[str, Any]:
    """Registro con nombres de campo del API. / Record using API field names."""
    record = {
        "_id": f"id-{index}",
        "EPIC_NO": f"EPIC{index:06d}",
        "name": f"Person {index}",
        "mobileNumber": f"98{index:08d}",
        "AC_NO": "215",
        "PART_NO": str(index % 7),
    }
    record.update(overrides)
    return {key: value for key, value in record.items() if value is not None}


class FakeRegistry:
    """API paginado en memoria servido por ``httpx.MockTransport``.

    English:
        In-memory paginated API served through ``httpx.MockTransport``.
        ``fail_pages`` answers 500 to ``page=N``; ``fail_skip`` answers 500 to
        the matching ``skip`` request; ``first_page_failures`` raises a
        connection error for that many page-1 requests.
    """

    def __init__(
        self,
        records: List[Dict[str, Any]],
        *,
        page_size: int,
        total: Optional[int] = None,
        fail_pages: Iterable[int] = (),
        fail_skip: Iterable[int] = (),
        first_page_failures: int = 0,
        fail_unpaged: bool = True,
        pages: Optional[Dict[int, List[Dict[str, Any]]]] = None,
        search_results: Optional[Callable[[str], Any]] = None,
        wrap: str = "data",
    ) -> None:
        self.records = records
        self.page_size = page_size
        self.total = len(records) if total is None else total
        self.fail_pages = set(fail_pages)
        self.fail_skip = set(fail_skip)
        self.first_page_failures = first_page_failures
        self.fail_unpaged = fail_unpaged
        self.pages = pages
        self.search_results = search_results
        self.wrap = wrap
        self.calls: List[Dict[str, str]] = []

    def _page(self, page: int) -> List[Dict[str, Any]]:
        if self.pages is not None:
            return self.pages.get(page, [])
        start = (page - 1) * self.page_size
        return self.records[start : start + self.page_size]

    def _body(self, items: List[Dict[str, Any]]) -> Any:
        if self.wrap == "array":
            return items
        return {self.wrap: items, "totalCount": self.total}

    def handler(self, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        self.calls.append({"path": request.url.path, **params})
        if request.url.path.endswith("/search"):
            if self.search_results is None:
                return httpx.Response(200, json={"success": True, "data": []})
            outcome = self.search_results(params.get("query", ""))
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(200, json=outcome)
        if "page" in params:
            page = int(params["page"])
            if page == 1 and self.first_page_failures > 0:
                self.first_page_failures -= 1
                raise httpx.ConnectError("connection refused", request=request)
            if page in self.fail_pages:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=self._body(self._page(page)))
        if "skip" in params:
            page = int(params["skip"]) // self.page_size + 1
            if page in self.fail_skip:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=self._body(self._page(page)))
        if self.fail_unpaged:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=self._body(self._page(1)))

    def client(self, **kwargs: Any) -> RegistryClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return RegistryClient(BASE_URL, http, page_retry_delay=0, **kwargs)

    def page_requests(self, page: int) -> int:
        return sum(1 for call in self.calls if call.get("page") == str(page))


@pytest.fixture
def fake_registry() -> Callable[..., FakeRegistry]:
    return FakeRegistry


@pytest.fixture
def fast_options() -> SyncOptions:
    return SyncOptions(
        page_size=2,
        batch_size=3,
        inter_batch_delay=0,
        max_retries=1,
        retry_backoff=0,
        periodic_dedup_every=5,
    )


@pytest.fixture
def memory_cache() -> CacheStore:
    return CacheStore(MemoryKeyValueStore())


@pytest.fixture
def make_session(fast_options: SyncOptions, memory_cache: CacheStore):
    """Fábrica de sesiones con debounce corto. / Session factory with short debounce."""

    def _make(registry: FakeRegistry, *, cache: Optional[CacheStore] = None, delay: float = 0.01):
        return RegistrySession(
            registry.client(),
            cache or memory_cache,
            sync_options=fast_options,
            delay_for=lambda _query: delay,
        )

    return _make
