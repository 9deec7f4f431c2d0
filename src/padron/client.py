"""Cliente HTTP asíncrono del registro remoto.

Async HTTP client for the remote registry.
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from . import __version__

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class TransientNetworkError(Exception):
    """Fallo de red recuperable (timeout, conexión, estado HTTP de error).

    English: Recoverable network failure (timeout, connection, error status).
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_client(timeout: float = DEFAULT_TIMEOUT_SECONDS, **kwargs: Any) -> httpx.AsyncClient:
    """Construye un cliente HTTP con timeout por petición.

    English: Build an HTTP client with a per-request timeout.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        headers={
            "Accept": "application/json",
            "User-Agent": f"PadronEngine/{__version__}",
        },
        **kwargs,
    )


class RegistryClient:
    """Acceso al API paginado del registro y a su endpoint de búsqueda.

    Todas las fallas de transporte, timeouts y estados >= 400 se traducen a
    :class:`TransientNetworkError`; un cuerpo no JSON se devuelve como
    ``None`` para que la normalización lo trate como cero registros.

    English:
        Access to the paginated registry API and its search endpoint. Every
        transport failure, timeout and status >= 400 maps to
        :class:`TransientNetworkError`; a non-JSON body comes back as ``None``
        so normalization treats it as zero records.
    """

    def __init__(
        self,
        base_url: str,
        http: httpx.AsyncClient,
        *,
        page_retry_attempts: int = 1,
        page_retry_delay: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.page_retry_attempts = max(1, page_retry_attempts)
        self.page_retry_delay = page_retry_delay

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/search"

    async def get_json(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Petición GET que devuelve el cuerpo JSON decodificado.

        English: GET request returning the decoded JSON body.
        """
        start = time.monotonic()
        try:
            response = await self.http.get(url, params=dict(params) if params else None)
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"timeout for {url}: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransientNetworkError(f"request failed for {url}: {exc}") from exc

        elapsed = round(time.monotonic() - start, 3)
        if response.status_code >= 400:
            logger.warning(
                "response_error",
                url=url,
                params=dict(params or {}),
                status_code=response.status_code,
                elapsed_seconds=elapsed,
            )
            raise TransientNetworkError(
                f"unexpected status {response.status_code} for {url}",
                status_code=response.status_code,
            )

        logger.debug(
            "response_ok",
            url=url,
            params=dict(params or {}),
            status_code=response.status_code,
            elapsed_seconds=elapsed,
        )
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("json_parse_error", url=url, error=str(exc))
            return None

    async def fetch_page(self, page: int, limit: int) -> Any:
        return await self.get_json(self.base_url, {"limit": limit, "page": page})

    async def fetch_offset(self, skip: int, limit: int) -> Any:
        return await self.get_json(self.base_url, {"limit": limit, "skip": skip})

    async def fetch_unpaged(self) -> Any:
        return await self.get_json(self.base_url)

    async def search(self, query: str) -> Any:
        return await self.get_json(self.search_url, {"query": query})

    async def fetch_page_with_fallback(self, page: int, limit: int) -> Any:
        """Pide una página por índice y, si falla, por desplazamiento.

        Cada estilo se reintenta hasta ``page_retry_attempts`` veces. Si ambos
        estilos se agotan se propaga el último :class:`TransientNetworkError`.

        English:
            Request a page by index and, on failure, by offset. Each style is
            tried up to ``page_retry_attempts`` times; when both are exhausted
            the last :class:`TransientNetworkError` propagates.
        """
        try:
            return await self._with_page_retry(self.fetch_page, page, limit)
        except TransientNetworkError as exc:
            logger.info("page_fallback_to_skip", page=page, error=str(exc))
        skip = (page - 1) * limit
        return await self._with_page_retry(self.fetch_offset, skip, limit)

    async def _with_page_retry(self, func, *args: Any) -> Any:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientNetworkError),
            stop=stop_after_attempt(self.page_retry_attempts),
            wait=wait_fixed(self.page_retry_delay),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await func(*args)
