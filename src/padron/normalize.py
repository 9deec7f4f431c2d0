"""
======================== ÍNDICE / INDEX ========================
1. Descripción general / Overview
2. Componentes principales / Main components
3. Notas de mantenimiento / Maintenance notes

======================== ESPAÑOL ========================
Archivo: `src/padron/normalize.py`.
Normaliza las distintas formas de respuesta del API remoto en una lista de
registros y un total reportado. Las formas se prueban en orden; la primera
regla que coincide gana.

Componentes detectados:
  - RECORD_RULES
  - TOTAL_FIELDS
  - extract_records
  - extract_total
  - normalize_page

======================== ENGLISH ========================
File: `src/padron/normalize.py`.
Normalizes the remote API's response shapes into a record list and a
reported total. Shapes are tried in order; the first matching rule wins.

Detected components:
  - RECORD_RULES
  - TOTAL_FIELDS
  - extract_records
  - extract_total
  - normalize_page
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

import structlog
from pydantic import ValidationError

from .models import Record

logger = structlog.get_logger(__name__)


def _raw_array(payload: Any) -> Optional[list]:
    return payload if isinstance(payload, list) else None


def _success_data(payload: Any) -> Optional[list]:
    if isinstance(payload, dict) and payload.get("success") and isinstance(payload.get("data"), list):
        return payload["data"]
    return None


def _wrapped(field: str) -> Callable[[Any], Optional[list]]:
    def _rule(payload: Any) -> Optional[list]:
        if isinstance(payload, dict) and isinstance(payload.get(field), list):
            return payload[field]
        return None

    _rule.__name__ = f"wrapped_{field}"
    return _rule


# Reglas en orden de prioridad. / Rules in priority order.
RECORD_RULES: Tuple[Tuple[str, Callable[[Any], Optional[list]]], ...] = (
    ("array", _raw_array),
    ("success_data", _success_data),
    ("data", _wrapped("data")),
    ("voters", _wrapped("voters")),
    ("results", _wrapped("results")),
)

TOTAL_FIELDS: Tuple[str, ...] = ("totalCount", "total", "count")


@dataclass(frozen=True)
class PageResult:
    """Página normalizada. / Normalized page."""

    records: List[Record]
    reported_total: int
    shape: Optional[str]


def extract_records(payload: Any) -> Tuple[List[Record], Optional[str]]:
    """Extrae registros aplicando las reglas de forma en orden.

    Un cuerpo sin forma conocida equivale a cero registros. Los elementos que
    no son objetos o que no se pueden interpretar se descartan con un aviso.

    English:
        Extract records applying the shape rules in order. A body with no
        known shape yields zero records; elements that are not objects or do
        not parse are dropped with a warning.
    """
    for shape, rule in RECORD_RULES:
        items = rule(payload)
        if items is None:
            continue
        records: List[Record] = []
        skipped = 0
        for item in items:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                records.append(Record.from_wire(item))
            except ValidationError as exc:
                skipped += 1
                logger.debug("record_parse_failed", error=str(exc))
        if skipped:
            logger.warning("records_skipped", shape=shape, skipped=skipped)
        return records, shape

    logger.warning("response_shape_mismatch", payload_type=type(payload).__name__)
    return [], None


def extract_total(payload: Any, fields: Sequence[str] = TOTAL_FIELDS) -> int:
    """Devuelve el total reportado o 0 si no hay pista utilizable.

    English: Return the reported total, or 0 when no usable hint exists.
    """
    if not isinstance(payload, dict):
        return 0
    for field in fields:
        if field not in payload or payload[field] is None:
            continue
        try:
            return max(0, int(payload[field]))
        except (TypeError, ValueError):
            logger.warning("total_unparseable", field=field, value=str(payload[field])[:64])
            return 0
    return 0


def normalize_page(payload: Any) -> PageResult:
    """Normaliza un cuerpo completo. / Normalize a full response body."""
    records, shape = extract_records(payload)
    return PageResult(records=records, reported_total=extract_total(payload), shape=shape)
