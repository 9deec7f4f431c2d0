"""Pruebas de búsqueda local, sugerencias y caché de resultados.

Tests for local search, suggestions and the result cache.
"""

import pytest

from padron.models import Record
from padron.search import (
    SearchMode,
    SearchResultCache,
    debounce_delay,
    normalize_query,
    rank_suggestions,
    score_record,
    search,
)


def _record(index, **fields):
    base = {"_id": f"id-{index}", "name": f"Person {index}"}
    base.update(fields)
    return Record.from_wire(base)


CORPUS = [
    _record(1, EPIC_NO="XYZ1234567", name="Asha Patil", mobileNumber="9811111111"),
    _record(2, EPIC_NO="ABC7654321", name="Ravi Kumar", mobileNumber="9822222222"),
    _record(3, EPIC_NO="XYZ7777777", name="Sunita Rao", name_mr="सुनीता", mobileNumber="9833333333"),
    _record(4, EPIC_NO="QWE0000001", name="Patil Mohan", LASTNAME_EN="Patil"),
]


def _ids(records):
    return [record.internal_id for record in records]


def test_identity_number_exact_match():
    """Español: la búsqueda por documento exacto devuelve solo ese registro.

    English: an exact identity number search returns only that record.
    """
    results = search("XYZ1234567", SearchMode.IDENTITY_NUMBER, CORPUS)

    assert _ids(results) == ["id-1"]


def test_comma_query_uses_first_value():
    assert normalize_query("  Asha, Patil ") == "Asha"
    assert normalize_query(",,Ravi") == "Ravi"

    results = search("Asha, Patil", SearchMode.ALL, CORPUS)

    assert _ids(results) == ["id-1"]


@pytest.mark.parametrize("query", ["", " ", "a", " x "])
def test_short_queries_return_nothing(query):
    assert search(query, SearchMode.ALL, CORPUS) == []


def test_empty_corpus_returns_nothing():
    assert search("asha", SearchMode.ALL, []) == []


def test_mode_restricts_fields():
    assert _ids(search("98222", SearchMode.PHONE, CORPUS)) == ["id-2"]
    assert search("98222", SearchMode.NAME, CORPUS) == []
    assert _ids(search("xyz", SearchMode.IDENTITY_NUMBER, CORPUS)) == ["id-1", "id-3"]
    assert _ids(search("सुनी", SearchMode.NAME, CORPUS)) == ["id-3"]


def test_all_mode_is_case_insensitive_and_keeps_corpus_order():
    results = search("PATIL", SearchMode.ALL, CORPUS)

    assert _ids(results) == ["id-1", "id-4"]


def test_string_mode_is_accepted():
    assert _ids(search("ravi", "name", CORPUS)) == ["id-2"]


def test_max_results_caps_output():
    corpus = [_record(index, name="Common Name") for index in range(20)]

    results = search("common", SearchMode.ALL, corpus, max_results=5)

    assert _ids(results) == [f"id-{index}" for index in range(5)]


def test_search_is_deterministic():
    first = search("pat", SearchMode.ALL, CORPUS)

    assert search("pat", SearchMode.ALL, CORPUS) == first
    assert search("pat", SearchMode.ALL, list(CORPUS)) == first


GROWN_CORPUS = CORPUS + [
    _record(5, EPIC_NO="XYZ5555555", name="Asha Deshmukh", mobileNumber="9811100000"),
    _record(6, EPIC_NO="ABC6666666", name="Ravi Patil", mobileNumber="9822200000"),
    _record(7, EPIC_NO="XYZ1230000", name="Sunil Rao", mobileNumber="9833300000"),
]


@pytest.mark.parametrize(
    "query, mode",
    [
        ("patil", SearchMode.ALL),
        ("xyz", SearchMode.IDENTITY_NUMBER),
        ("981", SearchMode.PHONE),
        ("asha", SearchMode.NAME),
    ],
)
@pytest.mark.parametrize("max_results", [5000, 1])
def test_results_survive_corpus_growth(query, mode, max_results):
    """Español: al crecer el conjunto, ningún resultado previo desaparece.

    English: when the record set grows, no earlier result disappears.
    """
    for size in range(len(GROWN_CORPUS) + 1):
        smaller = search(query, mode, GROWN_CORPUS[:size], max_results=max_results)
        larger = search(query, mode, GROWN_CORPUS, max_results=max_results)

        assert set(_ids(smaller)) <= set(_ids(larger))
    assert search(query, mode, GROWN_CORPUS, max_results=max_results)


def test_phone_mode_comma_query_uses_first_number():
    corpus = [
        _record(10, mobileNumber="9876543210"),
        _record(11, mobileNumber="9123456789"),
    ]

    results = search("9876543210,9123456789", SearchMode.PHONE, corpus)

    assert _ids(results) == ["id-10"]


def test_score_record_weights():
    record = CORPUS[0]

    assert score_record(record, "xyz1234567") == 100
    assert score_record(record, "xyz12") == 50
    assert score_record(record, "1234") == 25
    assert score_record(record, "asha") == 30
    assert score_record(record, "patil") == 15
    assert score_record(record, "nobody") == 0


def test_rank_suggestions_orders_by_score_with_stable_ties():
    results = search("patil", SearchMode.ALL, CORPUS)

    ranked = rank_suggestions("patil", results)

    assert _ids(ranked) == ["id-4", "id-1"]


def test_rank_suggestions_window_and_limit():
    results = [_record(index, name=f"Zed {index}") for index in range(150)]
    results.append(_record(999, name="Asha Late"))

    ranked = rank_suggestions("asha", results, window=100, limit=3)

    assert len(ranked) == 3
    assert "id-999" not in _ids(ranked)
    assert rank_suggestions("", results) == []


@pytest.mark.parametrize(
    "query, delay",
    [("ab", 0.3), ("abc", 0.3), ("abcd", 0.5), ("abcdef", 0.5), ("abcdefg", 0.7)],
)
def test_debounce_delay_tiers(query, delay):
    assert debounce_delay(query) == delay


def test_result_cache_evicts_oldest_entry():
    cache = SearchResultCache(max_entries=2)
    cache.put("one", SearchMode.ALL, [CORPUS[0]])
    cache.put("two", SearchMode.ALL, [CORPUS[1]])
    cache.put("three", SearchMode.ALL, [CORPUS[2]])

    assert len(cache) == 2
    assert ("one", SearchMode.ALL) not in cache
    assert cache.get("three", SearchMode.ALL) == [CORPUS[2]]


def test_result_cache_keys_on_mode_and_normalized_query():
    cache = SearchResultCache()
    cache.put(" asha, x", SearchMode.NAME, [CORPUS[0]])

    assert cache.get("asha", SearchMode.NAME) == [CORPUS[0]]
    assert cache.get("asha", SearchMode.ALL) is None

    cache.clear()
    assert len(cache) == 0
