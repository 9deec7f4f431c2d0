"""Deduplicación de registros por clave de identidad.

Record deduplication by identity key.
"""

from __future__ import annotations

from typing import Hashable, Iterable, List, Optional, Set, Tuple

import structlog

from .models import Record

logger = structlog.get_logger(__name__)

IdentityKey = Tuple[Hashable, ...]


def _clean(value: str | None) -> str:
    return (value or "").strip().lower()


def identity_key(record: Record) -> IdentityKey:
    """Resuelve la clave de identidad principal de un registro.

    Prioridad: internal_id > identity_number > combinación de
    nombre + teléfono + código de circunscripción + número de parte.

    English:
        Resolve the primary identity key of a record. Priority: internal_id >
        identity_number > name + phone + constituency code + list part.
    """
    if record.internal_id:
        return ("id", record.internal_id)
    if record.identity_number:
        return ("identity", record.identity_number)
    return (
        "composite",
        _clean(record.name),
        _clean(record.phone),
        _clean(record.constituency_code),
        _clean(record.list_part_number),
    )


def identity_keys(record: Record) -> Tuple[IdentityKey, ...]:
    """Todas las claves fuertes del registro.

    Un registro con ``internal_id`` y ``identity_number`` aporta ambas, de
    modo que dos copias con el mismo documento pero distinto id interno se
    reconocen como la misma persona.

    English:
        Every strong key of the record. A record carrying both ids yields
        both keys, so two copies sharing an identity number but with
        different internal ids are recognized as the same person.
    """
    keys: List[IdentityKey] = []
    if record.internal_id:
        keys.append(("id", record.internal_id))
    if record.identity_number:
        keys.append(("identity", record.identity_number))
    if not keys:
        keys.append(identity_key(record))
    return tuple(keys)


def dedup(records: Iterable[Record], seen: Optional[Set[IdentityKey]] = None) -> List[Record]:
    """Elimina duplicados conservando la primera aparición y el orden.

    ``seen`` permite continuar una deduplicación previa: se descartan también
    los registros cuyas claves ya estén en el conjunto, y este se actualiza.

    English:
        Drop duplicates keeping the first occurrence and the original order.
        Single pass over a hash-based seen-set; passing ``seen`` continues a
        previous pass and updates it in place.
    """
    if seen is None:
        seen = set()
    unique: List[Record] = []
    removed = 0
    for record in records:
        keys = identity_keys(record)
        if any(key in seen for key in keys):
            removed += 1
            continue
        seen.update(keys)
        unique.append(record)
    if removed:
        logger.info("duplicates_removed", duplicates_removed=removed, unique=len(unique))
    return unique
