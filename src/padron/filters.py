"""Filtros lineales por mesa, apellido y dirección.

Linear filters by booth, surname and address.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .dedup import dedup
from .models import Record


class FilterKind(str, Enum):
    """Tipo de filtro. / Filter kind."""

    BOOTH = "booth"
    SURNAME = "surname"
    ADDRESS = "address"


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


def _last_word(value: Optional[str]) -> str:
    return _lower(value).split(" ")[-1]


def _booth_fields(record: Record) -> Iterable[str]:
    return (
        _lower(record.list_part_number),
        _lower(record.polling_center),
        _lower(record.polling_area),
    )


def _surname_fields(record: Record) -> Iterable[str]:
    return (
        _lower(record.surname),
        _lower(record.surname_localized),
        _last_word(record.name),
        _last_word(record.name_localized),
    )


def _address_fields(record: Record) -> Iterable[str]:
    return (
        _lower(record.address_primary),
        _lower(record.address_secondary),
        _lower(record.house_number),
        _lower(record.polling_station_address),
    )


_FIELDS: Dict[FilterKind, Callable[[Record], Iterable[str]]] = {
    FilterKind.BOOTH: _booth_fields,
    FilterKind.SURNAME: _surname_fields,
    FilterKind.ADDRESS: _address_fields,
}


def filter_records(kind: FilterKind | str, value: str | None, corpus: Sequence[Record]) -> List[Record]:
    """Filtra por subcadena sin distinguir mayúsculas; vacío devuelve ``[]``.

    English:
        Case-insensitive substring filter; a blank value returns ``[]``.
    """
    term = (value or "").strip().lower()
    if not term:
        return []
    fields = _FIELDS[FilterKind(kind)]
    return dedup(record for record in corpus if any(term in field for field in fields(record)))


def unique_booths(corpus: Iterable[Record]) -> List[str]:
    booths = set()
    for record in corpus:
        for value in (record.list_part_number, record.polling_center, record.polling_area):
            if value:
                booths.add(value)
    return sorted(booths)


def unique_surnames(corpus: Iterable[Record]) -> List[str]:
    """Apellidos explícitos más la última palabra de cada nombre.

    English: Explicit surnames plus the last word of each name.
    """
    surnames = set()
    for record in corpus:
        for value in (record.surname, record.surname_localized):
            if value:
                surnames.add(value)
        for name in (record.name, record.name_localized):
            if name:
                surnames.add(name.split(" ")[-1])
    return sorted(surname for surname in surnames if surname.strip())
