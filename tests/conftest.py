"""Shared fakes for the retrieval pipelines and API tests."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ai.embeddings import TaskType
from grocery.api import app, get_embedder, get_product_store
from grocery.pipelines.records import ProductRecord
from grocery.pipelines.retrieval import RetrievalError


def make_product(pid: str, name: str, price: str = "$1.00", store: str = "SuperMart", **kwargs) -> ProductRecord:
    return ProductRecord(id=pid, name=name, price=price, store=store, quantity=kwargs.pop("quantity", "1 each"), **kwargs)


class FakeStore:
    """In-memory stand-in for ProductStore that records every call."""

    def __init__(
        self,
        text_results: list[ProductRecord] | None = None,
        semantic_results: list[ProductRecord] | None = None,
        similar_results: list[ProductRecord] | None = None,
        *,
        fail_text: bool = False,
        fail_semantic: bool = False,
    ):
        self.text_results = text_results or []
        self.semantic_results = semantic_results or []
        self.similar_results = similar_results or []
        self.fail_text = fail_text
        self.fail_semantic = fail_semantic
        self.calls: list[tuple[str, dict]] = []

    async def search_text(self, terms, *, limit, columns=None):
        self.calls.append(("search_text", {"terms": list(terms), "limit": limit, "columns": columns}))
        if self.fail_text:
            raise RetrievalError("text search down")
        return self.text_results[:limit]

    async def match_by_embedding(self, embedding, *, threshold, count, exclude_stores=None):
        self.calls.append(
            ("match_by_embedding", {"threshold": threshold, "count": count, "exclude_stores": exclude_stores})
        )
        if self.fail_semantic:
            raise RetrievalError("match function down")
        return self.semantic_results[:count]

    async def match_by_embedding_basic(self, embedding, *, threshold, count):
        self.calls.append(("match_by_embedding_basic", {"threshold": threshold, "count": count}))
        if self.fail_semantic:
            raise RetrievalError("match function down")
        return self.semantic_results[:count]

    async def find_similar(self, product_id, *, threshold, count):
        self.calls.append(("find_similar", {"product_id": product_id, "threshold": threshold, "count": count}))
        if self.fail_semantic:
            raise RetrievalError("similar function down")
        return self.similar_results[:count]

    async def sample_products(self, limit=3):
        self.calls.append(("sample_products", {"limit": limit}))
        if self.fail_text:
            raise RetrievalError("products table down")
        return self.text_results[:limit]

    async def count_embedded(self):
        self.calls.append(("count_embedded", {}))
        if self.fail_text:
            raise RetrievalError("products table down")
        return len(self.semantic_results)

    def called(self, name: str) -> list[dict]:
        return [kwargs for call, kwargs in self.calls if call == name]


class FakeEmbedder:
    """Returns a constant vector, or None when `fail` is set."""

    def __init__(self, *, fail: bool = False, dim: int = 768):
        self.fail = fail
        self.dim = dim
        self.calls: list[tuple[str, TaskType]] = []

    async def get_embedding(self, text: str, task: TaskType = TaskType.QUERY):
        self.calls.append((text, task))
        if self.fail:
            return None
        return [0.1] * self.dim

    async def aclose(self) -> None:
        return None


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def client(store, embedder):
    app.dependency_overrides[get_product_store] = lambda: store
    app.dependency_overrides[get_embedder] = lambda: embedder
    # Unexpected errors should come back as 500 responses, not raise
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
