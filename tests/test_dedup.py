"""Pruebas de deduplicación por clave de identidad.

Tests for identity-key deduplication.
"""

from padron.dedup import dedup, identity_key, identity_keys
from padron.models import Record


def _record(**fields):
    return Record.from_wire(fields)


def test_identity_key_prefers_internal_id():
    record = _record(_id="a1", EPIC_NO="XYZ1234567", name="Asha")

    assert identity_key(record) == ("id", "a1")


def test_identity_key_falls_back_to_identity_number():
    record = _record(voterIdCard="XYZ1234567", name="Asha")

    assert identity_key(record) == ("identity", "XYZ1234567")


def test_composite_key_is_trimmed_and_case_insensitive():
    """Español: la clave compuesta ignora espacios y mayúsculas.

    English: the composite key ignores surrounding spaces and case.
    """
    first = _record(name=" Asha Patil ", mobileNumber="9800000001", AC_NO="215", PART_NO="7")
    second = _record(name="asha patil", mobileNumber=" 9800000001", AC_NO=215, PART_NO=7)

    assert identity_key(first) == identity_key(second)
    assert identity_key(first)[0] == "composite"


def test_identity_keys_include_both_strong_keys():
    record = _record(_id="a1", EPIC_NO="XYZ1234567")

    assert identity_keys(record) == (("id", "a1"), ("identity", "XYZ1234567"))


def test_dedup_keeps_first_occurrence_and_order():
    records = [
        _record(_id="1", name="First"),
        _record(_id="2", name="Second"),
        _record(_id="1", name="First copy"),
        _record(_id="3", name="Third"),
    ]

    unique = dedup(records)

    assert [record.name for record in unique] == ["First", "Second", "Third"]


def test_dedup_same_identity_number_different_internal_id():
    """Español: mismo documento con id interno distinto es la misma persona.

    English: the same identity number under another internal id is one person.
    """
    records = [
        _record(_id="p1-a", EPIC_NO="ABC1234567", name="Ravi"),
        _record(_id="p3-b", EPIC_NO="ABC1234567", name="Ravi"),
    ]

    unique = dedup(records)

    assert len(unique) == 1
    assert unique[0].internal_id == "p1-a"


def test_dedup_is_idempotent():
    records = [
        _record(_id="1", EPIC_NO="A"),
        _record(_id="2", EPIC_NO="A"),
        _record(name="Nameless", mobileNumber="1"),
        _record(name="nameless ", mobileNumber="1"),
        _record(_id="3"),
    ]

    once = dedup(records)

    assert dedup(once) == once
    assert len(once) == 3


def test_dedup_empty_input():
    assert dedup([]) == []


def test_dedup_continues_from_seen_keys():
    """Español: un conjunto ``seen`` compartido descarta claves ya vistas.

    English: a shared ``seen`` set drops keys met in an earlier pass.
    """
    seen = set()
    first = dedup([_record(_id="1", EPIC_NO="A"), _record(_id="2")], seen)
    second = dedup([_record(_id="9", EPIC_NO="A"), _record(_id="2"), _record(_id="3")], seen)

    assert [record.internal_id for record in first] == ["1", "2"]
    assert [record.internal_id for record in second] == ["3"]
    assert ("id", "3") in seen
