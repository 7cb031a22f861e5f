from grocery.config import settings

from conftest import make_product


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_reports_environment(client):
    body = client.get("/").json()
    assert body["environment"] == settings.environment.value
    assert body["endpoints"]["search"] == "/api/grocerysearch"


def test_search_empty_query_returns_empty_tag(client, store, embedder):
    response = client.get("/api/grocerysearch", params={"q": ""})

    assert response.status_code == 200
    body = response.json()
    assert body["searchMethod"] == "empty"
    assert body["resultCount"] == 0
    assert store.calls == []
    assert embedder.calls == []


def test_search_banana_scenario(client, store):
    store.text_results = [make_product("1", "Bananas"), make_product("2", "Banana Bread")]
    store.semantic_results = [
        make_product("2", "Banana Bread", similarity=0.8),
        make_product("3", "Organic Bananas", similarity=0.75),
        make_product("4", "Banana Chips", similarity=0.7),
        make_product("5", "Plantains", similarity=0.6),
        make_product("6", "Banana Yogurt", similarity=0.55),
    ]

    response = client.get("/api/grocerysearch", params={"q": "banana", "limit": 5})

    body = response.json()
    ids = [r["id"] for r in body["results"]]
    assert response.status_code == 200
    assert len(ids) <= 5
    assert len(ids) == len(set(ids))
    assert body["searchMethod"] in {"semantic", "text", "combined"}
    assert body["resultCount"] == len(ids)


def test_search_result_uses_display_keys(client, store):
    store.text_results = [
        make_product("1", "Whole Milk", price="$3.49", promotion="2 for $6", image_url="https://img/1.png"),
    ]

    item = client.get("/api/grocerysearch", params={"q": "milk"}).json()["results"][0]

    assert item["price"] == "$3.49"
    assert item["imageUrl"] == "https://img/1.png"
    assert item["promotion"] == "2 for $6"
    assert item["description"] == "2 for $6"


def test_search_similarity_failure_is_not_a_500(client, store):
    store.text_results = [make_product("1", "Whole Milk")]
    store.fail_semantic = True

    response = client.get("/api/grocerysearch", params={"q": "milk"})

    assert response.status_code == 200
    assert response.json()["searchMethod"] == "text"


def test_search_post_passes_filters(client, store):
    store.text_results = [
        make_product("1", "Milk", store="SuperMart"),
        make_product("2", "Milk", store="Fresh Market"),
    ]

    response = client.post(
        "/api/grocerysearch",
        json={"query": "milk", "limit": 3, "supermarket": "fresh", "exclude_stores": ["Corner Store"]},
    )

    assert response.status_code == 200
    assert [r["id"] for r in response.json()["results"]] == ["2"]
    assert store.called("match_by_embedding")[0]["exclude_stores"] == ["Corner Store"]


def test_search_post_rejects_non_string_query(client, store):
    response = client.post("/api/grocerysearch", json={"query": 123})

    assert response.status_code == 400
    assert response.json()["searchMethod"] == "error"
    assert store.calls == []


def test_search_limit_out_of_range_is_400(client):
    assert client.get("/api/grocerysearch", params={"q": "milk", "limit": 0}).status_code == 400


def test_unexpected_error_is_generic_500(client, store):
    async def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    store.search_text = boom

    response = client.get("/api/grocerysearch", params={"q": "milk"})

    assert response.status_code == 500
    assert response.json() == {"error": "internal_error", "detail": "Internal server error"}


def test_suggestions_short_query(client, store, embedder):
    response = client.get("/api/suggestions", params={"q": "m"})

    assert response.status_code == 200
    assert response.json() == []
    assert store.calls == []
    assert embedder.calls == []


def test_suggestions_parse_prices(client, store):
    store.text_results = [make_product("1", "Apple Juice", price="$3.49")]

    response = client.get("/api/suggestions", params={"q": "apple", "limit": 1})

    assert response.json() == [
        {
            "id": "1",
            "name": "Apple Juice",
            "price": 3.49,
            "store": "SuperMart",
            "quantity": "1 each",
            "promotion": None,
        }
    ]


def test_optimize_rejects_long_query_before_embedding(client, embedder):
    response = client.post("/api/optimize", json={"query": "a" * 501})

    assert response.status_code == 400
    assert embedder.calls == []


def test_optimize_rejects_missing_query(client):
    assert client.post("/api/optimize", json={}).status_code == 400
    assert client.get("/api/optimize").status_code == 400


def test_optimize_rejects_invalid_json(client):
    response = client.post("/api/optimize", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_optimize_returns_parsed_and_text_price(client, store):
    store.semantic_results = [
        make_product("1", "Apple Juice", price="$3.49"),
        make_product("2", "Apple Cider", price="$2.10"),
    ]

    response = client.post("/api/optimize", json={"query": "apple juice"})

    body = response.json()
    assert response.status_code == 200
    assert [r["price"] for r in body["results"]] == [2.10, 3.49]
    assert body["results"][1]["priceText"] == "$3.49"
    assert body["total"] == 2
    assert body["message"] == "Found 2 products sorted by price"


def test_optimize_get_variant(client, store):
    store.semantic_results = [make_product("1", "Bread", price="$2.50")]

    response = client.get("/api/optimize", params={"query": "bread"})

    assert response.status_code == 200
    assert response.json()["results"][0]["price"] == 2.5


def test_similar_products_excludes_target(client, store):
    store.similar_results = [make_product("p1", "Milk"), make_product("p2", "Oat Milk")]

    response = client.get("/api/products/p1/similar")

    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == ["p2"]
    assert store.called("find_similar")[0]["threshold"] == 0.8


def test_similar_products_backend_error_is_502(client, store):
    store.fail_semantic = True
    assert client.get("/api/products/p1/similar").status_code == 502


def test_recommendations(client, store, embedder):
    store.semantic_results = [make_product("1", "Granola")]

    response = client.post("/api/recommendations", json={"preferences": ["oats", " yogurt "]})

    assert response.status_code == 200
    assert [r["id"] for r in response.json()] == ["1"]
    assert embedder.calls[0][0] == "oats yogurt"
    assert store.called("match_by_embedding_basic")[0]["threshold"] == 0.6
    assert store.called("match_by_embedding") == []


def test_recommendations_need_preferences(client):
    assert client.post("/api/recommendations", json={"preferences": []}).status_code == 400


def test_recommendations_backend_failure_is_502(client, store):
    store.fail_semantic = True

    response = client.post("/api/recommendations", json={"preferences": ["oats"]})

    assert response.status_code == 502
    assert response.json()["error"] == "retrieval_error"


def test_recommendations_embedding_failure_is_502(client, embedder, store):
    embedder.fail = True

    response = client.post("/api/recommendations", json={"preferences": ["oats"]})

    assert response.status_code == 502
    assert store.calls == []


def test_cart_summary(client):
    milk = {"id": "1", "name": "Milk", "price": "$3.49"}
    bread = {"id": "2", "name": "Bread", "price": "$2.00"}

    response = client.post(
        "/api/cart/summary",
        json={"items": [{"product": milk, "quantity": 1}, {"product": bread}, {"product": milk, "quantity": 2}]},
    )

    body = response.json()
    assert response.status_code == 200
    assert [(line["id"], line["quantity"]) for line in body["lines"]] == [("1", 3), ("2", 1)]
    assert body["item_count"] == 4
    assert body["subtotal"] == 12.47
    assert body["tax"] == 1.09
    assert body["total"] == 13.56


def test_cart_rejects_zero_quantity(client):
    response = client.post(
        "/api/cart/summary",
        json={"items": [{"product": {"id": "1", "name": "Milk", "price": "$1"}, "quantity": 0}]},
    )
    assert response.status_code == 400


def test_debug_db_reports_each_check(client, store, embedder):
    store.text_results = [make_product("1", "Milk")]
    embedder.fail = True

    response = client.get("/api/debug-db")

    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    assert body["checks"]["products_table"]["success"] is True
    assert body["checks"]["embedding_generation"]["success"] is False
    assert body["checks"]["match_function"]["success"] is True
    assert body["recommendations"]["needs_embedding_service"] is True
    assert body["recommendations"]["needs_embedding_data"] is True
