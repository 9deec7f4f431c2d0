"""Búsqueda remota de respaldo para modos de documento y teléfono.

Remote search fallback for identity-number and phone modes.
"""

from __future__ import annotations

import re
from typing import List, Sequence

import structlog

from .client import RegistryClient, TransientNetworkError
from .dedup import dedup
from .models import Record
from .normalize import extract_records
from .search import SearchMode

logger = structlog.get_logger(__name__)

IDENTITY_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]{8,12}$", re.IGNORECASE)
_SEPARATORS = re.compile(r"[,\s]+")

REMOTE_MODES = frozenset({SearchMode.IDENTITY_NUMBER, SearchMode.PHONE})


def should_escalate(
    mode: SearchMode,
    local_results: Sequence[Record],
    corpus: Sequence[Record],
) -> bool:
    """Solo se consulta el API si la búsqueda local no halló nada.

    English:
        Escalate only for identity/phone modes with zero local matches over a
        non-empty corpus.
    """
    return SearchMode(mode) in REMOTE_MODES and not local_results and bool(corpus)


def clean_remote_query(query: str) -> str:
    return _SEPARATORS.sub(" ", query.strip()).strip()


class RemoteSearchCoordinator:
    """Coordina la consulta al endpoint ``/search`` del registro.

    English: Coordinates queries against the registry ``/search`` endpoint.
    """

    def __init__(self, client: RegistryClient) -> None:
        self.client = client

    async def remote_search(
        self,
        query: str,
        local_results: Sequence[Record] = (),
    ) -> List[Record]:
        """Busca en el API; ante un fallo de red devuelve los resultados locales.

        English:
            Search the API; on network failure return the local results.
        """
        cleaned = clean_remote_query(query)
        try:
            records, _ = extract_records(await self.client.search(cleaned))
            logger.info("remote_search_done", query=cleaned, results=len(records))
            if not records and IDENTITY_NUMBER_PATTERN.match(cleaned):
                upper = cleaned.upper()
                try:
                    records, _ = extract_records(await self.client.search(upper))
                    logger.info("remote_search_upper_done", query=upper, results=len(records))
                except TransientNetworkError as exc:
                    logger.warning("remote_search_upper_failed", query=upper, error=str(exc))
        except TransientNetworkError as exc:
            logger.warning("remote_search_failed", query=cleaned, error=str(exc))
            return dedup(local_results)
        return dedup(records)
