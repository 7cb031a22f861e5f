"""Backend self-check: database, stored embeddings, embedding provider, match function."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from ai.embeddings import EmbeddingService, TaskType
from grocery.config import settings
from grocery.pipelines.retrieval import ProductStore, RetrievalError

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    success: bool
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosticsReport:
    timestamp: str
    checks: dict[str, CheckResult]

    @property
    def success(self) -> bool:
        return all(c.success for c in self.checks.values())

    @property
    def recommendations(self) -> dict[str, bool]:
        checks = self.checks
        return {
            "needs_rpc_function": not checks["match_function"].success,
            "needs_embedding_data": not checks["embedding_column"].details.get("embedded_products"),
            "needs_embedding_service": not checks["embedding_generation"].success,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "timestamp": self.timestamp,
            "checks": {name: asdict(check) for name, check in self.checks.items()},
            "recommendations": self.recommendations,
        }


async def run_diagnostics(store: ProductStore, embedder: EmbeddingService) -> DiagnosticsReport:
    """Run every check independently; a failing check never raises."""
    checks: dict[str, CheckResult] = {}

    try:
        sample = await store.sample_products(limit=3)
        checks["products_table"] = CheckResult(
            success=True,
            details={"sample": [p.name for p in sample[:2]], "record_count": len(sample)},
        )
    except RetrievalError as e:
        checks["products_table"] = CheckResult(success=False, error=str(e))

    try:
        embedded = await store.count_embedded()
        checks["embedding_column"] = CheckResult(success=True, details={"embedded_products": embedded})
    except RetrievalError as e:
        checks["embedding_column"] = CheckResult(success=False, error=str(e))

    embedding = await embedder.get_embedding("apple", TaskType.QUERY)
    if embedding is None:
        checks["embedding_generation"] = CheckResult(success=False, error="Embedding provider returned no vector")
    else:
        checks["embedding_generation"] = CheckResult(
            success=True,
            details={"length": len(embedding), "sample": embedding[:3]},
        )

    try:
        probe = [0.1] * settings.embeddings.dim
        rows = await store.match_by_embedding(
            probe,
            threshold=settings.search.search_threshold,
            count=1,
        )
        checks["match_function"] = CheckResult(success=True, details={"result_count": len(rows)})
    except RetrievalError as e:
        checks["match_function"] = CheckResult(success=False, error=str(e))

    report = DiagnosticsReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )
    logger.info(f"Diagnostics finished: success={report.success}")
    return report
