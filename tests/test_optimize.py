import asyncio

import pytest

from grocery.pipelines.optimize import (
    QueryValidationError,
    optimize_prices,
    price_candidate,
    rank_by_price,
    validate_query,
)
from grocery.pipelines.records import SearchMethod

from conftest import FakeEmbedder, FakeStore, make_product


def run(coro):
    return asyncio.run(coro)


@pytest.mark.parametrize("query", [None, "", "   ", 42, ["milk"], "x" * 501])
def test_invalid_queries_are_rejected_before_embedding(query):
    store, embedder = FakeStore(), FakeEmbedder()

    with pytest.raises(QueryValidationError):
        run(optimize_prices(store, embedder, query))

    assert embedder.calls == []
    assert store.calls == []


def test_query_at_length_limit_is_accepted():
    assert validate_query("  " + "x" * 500 + "  ") == "x" * 500


def test_literal_zero_passes_parsing_but_not_the_positive_filter():
    zero = make_product("z", "Free Sample", price="0")
    unpriced = make_product("u", "Mystery", price="Price not available")

    assert price_candidate(zero).price == 0.0
    assert price_candidate(unpriced) is None

    ranked, total = rank_by_price([zero, unpriced], top_n=5)
    assert ranked == []
    assert total == 0


def test_returns_five_cheapest_sorted_ascending():
    candidates = [
        make_product("a", "Milk A", price="$4.10"),
        make_product("b", "Milk B", price="$3.49"),
        make_product("c", "Milk C", price="$2.00"),
        make_product("d", "Milk D", price="N/A"),
        make_product("e", "Milk E", price="$5.25"),
        make_product("f", "Milk F", price="$1,099.00"),
        make_product("g", "Milk G", price="$0.99"),
    ]
    store = FakeStore(semantic_results=candidates)

    ranking = run(optimize_prices(store, FakeEmbedder(), "  milk "))

    assert [p.record.id for p in ranking.results] == ["g", "c", "b", "a", "e"]
    assert ranking.total == 6
    assert ranking.query == "milk"
    assert ranking.method == SearchMethod.SEMANTIC
    match = store.called("match_by_embedding")[0]
    assert match["threshold"] == 0.3
    assert match["count"] == 20


def test_dollar_price_round_trip():
    store = FakeStore(semantic_results=[make_product("j", "Apple Juice", price="$3.49")])

    ranking = run(optimize_prices(store, FakeEmbedder(), "apple juice"))

    assert ranking.results[0].price == pytest.approx(3.49)
    assert ranking.results[0].record.price == "$3.49"


def test_similarity_failure_ranks_text_candidates():
    store = FakeStore(
        text_results=[make_product("1", "Milk", price="$3.00"), make_product("2", "Milk", price="$2.00")],
        fail_semantic=True,
    )

    ranking = run(optimize_prices(store, FakeEmbedder(), "milk"))

    assert ranking.method == SearchMethod.TEXT
    assert [p.record.id for p in ranking.results] == ["2", "1"]
    assert store.called("search_text")[0]["limit"] == 20


def test_all_backends_down_ranks_offline_catalog():
    store = FakeStore(fail_text=True, fail_semantic=True)

    ranking = run(optimize_prices(store, FakeEmbedder(fail=True), "apples"))

    assert ranking.fallback
    assert [p.record.name for p in ranking.results] == ["Red Apples", "Green Apples"]


def test_no_candidates_message():
    ranking = run(optimize_prices(FakeStore(), FakeEmbedder(), "caviar"))
    assert ranking.results == []
    assert ranking.message == "No products found matching your query"
