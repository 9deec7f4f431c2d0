"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/padron/search.py`.
Búsqueda local multi-modo sobre el conjunto de registros en memoria:
coincidencia exacta/subcadena, proyección de sugerencias ordenada por puntaje
y caché acotada de resultados por consulta.

Componentes detectados:
  - SearchMode
  - normalize_query
  - search
  - score_record
  - rank_suggestions
  - debounce_delay
  - SearchResultCache

======================== ENGLISH ========================
File: `src/padron/search.py`.
Multi-mode local search over the in-memory record set: exact/substring
matching, a score-ranked suggestion projection and a bounded per-query
result cache.

Detected components:
  - SearchMode
  - normalize_query
  - search
  - score_record
  - rank_suggestions
  - debounce_delay
  - SearchResultCache
"""

from __future__ import annotations

from collections import OrderedDict
from enum import Enum
from typing import Hashable, List, Optional, Sequence, Tuple

from .models import Record

MIN_QUERY_LENGTH = 2
DEFAULT_MAX_RESULTS = 5000
DEFAULT_SUGGESTION_WINDOW = 100
DEFAULT_SUGGESTION_LIMIT = 10
DEFAULT_CACHE_SIZE = 50


class SearchMode(str, Enum):
    """Modo de búsqueda. / Search mode."""

    ALL = "all"
    IDENTITY_NUMBER = "identityNumber"
    PHONE = "phone"
    NAME = "name"


def normalize_query(raw: str | None) -> str:
    """Recorta la consulta y, si trae comas, conserva el primer valor.

    English:
        Trim the query and, when it carries commas, keep the first value.
        Case is preserved; matching lower-cases on its own.
    """
    query = (raw or "").strip()
    if "," in query:
        parts = [part.strip() for part in query.split(",") if part.strip()]
        if parts:
            query = parts[0]
    return query


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def _name_fields(record: Record) -> Tuple[str, str, str, str]:
    return (
        _lower(record.name),
        _lower(record.name_localized),
        _lower(record.surname),
        _lower(record.surname_localized),
    )


def matches(record: Record, query: str, mode: SearchMode) -> bool:
    """Evalúa si un registro coincide con una consulta ya en minúsculas.

    English: Whether a record matches an already lower-cased query.
    """
    identity = _lower(record.identity_number)
    phone = _lower(record.phone)
    if mode is SearchMode.IDENTITY_NUMBER:
        return query in identity
    if mode is SearchMode.PHONE:
        return query in phone
    names = _name_fields(record)
    if mode is SearchMode.NAME:
        return any(query in value for value in names)
    if identity == query or phone == query:
        return True
    return any(query in value for value in names) or query in identity or query in phone


def search(
    query: str,
    mode: SearchMode,
    corpus: Sequence[Record],
    *,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> List[Record]:
    """Búsqueda lineal en orden del corpus con tope de resultados.

    English:
        Linear scan in corpus order, stopping after ``max_results`` matches.
        Queries shorter than two characters return nothing.
    """
    normalized = normalize_query(query).lower()
    if len(normalized) < MIN_QUERY_LENGTH or not corpus:
        return []
    mode = SearchMode(mode)
    results: List[Record] = []
    for record in corpus:
        if matches(record, normalized, mode):
            results.append(record)
            if len(results) >= max_results:
                break
    return results


def score_record(record: Record, query: str) -> int:
    """Puntaje heurístico de relevancia para una consulta en minúsculas.

    English: Heuristic relevance score for a lower-cased query.
    """
    score = 0
    identity = _lower(record.identity_number)
    phone = _lower(record.phone)
    if query in (identity, phone):
        score += 100
    elif identity.startswith(query) or phone.startswith(query):
        score += 50
    elif query in identity or query in phone:
        score += 25

    name = _lower(record.name)
    name_localized = _lower(record.name_localized)
    if name.startswith(query) or name_localized.startswith(query):
        score += 30
    elif query in name or query in name_localized:
        score += 15
    return score


def rank_suggestions(
    query: str,
    results: Sequence[Record],
    *,
    window: int = DEFAULT_SUGGESTION_WINDOW,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> List[Record]:
    """Proyección de sugerencias: top ``limit`` de los primeros ``window``.

    English:
        Suggestion projection: top ``limit`` of the first ``window`` results
        by descending score. Ties keep result order.
    """
    normalized = normalize_query(query).lower()
    if not normalized or not results:
        return []
    scored = [(score_record(record, normalized), record) for record in results[:window]]
    scored.sort(key=lambda item: item[0], reverse=True)
    return [record for _, record in scored[:limit]]


def debounce_delay(query: str) -> float:
    """Espera previa a evaluar según longitud. / Pre-evaluation wait by length."""
    length = len(query)
    if length <= 3:
        return 0.3
    if length <= 6:
        return 0.5
    return 0.7


class SearchResultCache:
    """Caché acotada; al exceder la capacidad expulsa la entrada más antigua.

    English: Bounded cache evicting the oldest inserted entry.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_SIZE) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[Hashable, Tuple[Record, ...]]" = OrderedDict()

    @staticmethod
    def key(query: str, mode: SearchMode) -> Tuple[str, str]:
        return (SearchMode(mode).value, normalize_query(query))

    def get(self, query: str, mode: SearchMode) -> Optional[List[Record]]:
        entry = self._entries.get(self.key(query, mode))
        return list(entry) if entry is not None else None

    def put(self, query: str, mode: SearchMode, results: Sequence[Record]) -> None:
        key = self.key(query, mode)
        self._entries.pop(key, None)
        self._entries[key] = tuple(results)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, item: Tuple[str, SearchMode]) -> bool:
        query, mode = item
        return self.key(query, mode) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
