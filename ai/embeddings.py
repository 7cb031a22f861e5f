"""Embedding service for product search queries.

Calls the Gemini embedding endpoint over httpx by default; a local
sentence-transformers backend is available for offline development.
Failures are soft: `EmbeddingService.get_embedding` returns None.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from functools import lru_cache
from typing import Protocol

import httpx

from grocery.config import EmbeddingProvider, EmbeddingSettings, settings

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when embedding computation fails."""
    pass


class TaskType(str, Enum):
    """Retrieval intent sent along with the text."""
    QUERY = "RETRIEVAL_QUERY"
    DOCUMENT = "RETRIEVAL_DOCUMENT"


def clean_text(text: str) -> str:
    """Replace newlines with spaces and trim."""
    return text.replace("\n", " ").strip()


class EmbeddingBackend(Protocol):
    async def embed(self, text: str, task: TaskType) -> list[float]: ...

    async def aclose(self) -> None: ...


class GeminiEmbeddingBackend:
    """Remote embeddings through the Generative Language REST API."""

    def __init__(self, config: EmbeddingSettings, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout),
        )

    async def embed(self, text: str, task: TaskType) -> list[float]:
        if not self.config.api_key:
            raise EmbeddingError("EMBEDDING_API_KEY is not configured")

        model = self.config.model_name
        payload = {
            "model": model,
            "content": {"role": "user", "parts": [{"text": text}]},
            "taskType": task.value,
        }

        try:
            response = await self._client.post(
                f"/{model}:embedContent",
                json=payload,
                headers={"x-goog-api-key": self.config.api_key},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Embedding request failed with status {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        values = (data.get("embedding") or {}).get("values")
        if not isinstance(values, list) or not values:
            raise EmbeddingError("Embedding result did not contain expected values")
        return [float(v) for v in values]

    async def aclose(self) -> None:
        await self._client.aclose()


@lru_cache(maxsize=1)
def _load_model(model_name: str, device: str):
    """Load and cache the sentence transformer model.

    Raises:
        EmbeddingError: If model loading fails
    """
    try:
        from sentence_transformers import SentenceTransformer
    except ImportError as e:
        raise EmbeddingError(
            "Local embeddings need the 'local' extra (sentence-transformers)"
        ) from e

    try:
        logger.info(f"Loading embedding model: {model_name} on device: {device}")
        model = SentenceTransformer(model_name, device=device)
        logger.info("Model loaded successfully")
        return model
    except Exception as e:
        logger.error(f"Failed to load embedding model: {e}")
        raise EmbeddingError(f"Model loading failed: {e}") from e


class LocalEmbeddingBackend:
    """In-process sentence-transformers embeddings (no retrieval intent)."""

    def __init__(self, config: EmbeddingSettings):
        self.config = config

    def _encode(self, text: str) -> list[float]:
        model = _load_model(self.config.local_model_name, self.config.device)
        embedding = model.encode(
            [text],
            show_progress_bar=False,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return embedding[0].tolist()

    async def embed(self, text: str, task: TaskType) -> list[float]:
        try:
            return await asyncio.to_thread(self._encode, text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to compute embedding: {e}") from e

    async def aclose(self) -> None:
        return None


class EmbeddingService:
    """Process-wide embedding handle injected into request handlers."""

    def __init__(self, backend: EmbeddingBackend, dim: int):
        self.backend = backend
        self.dim = dim

    async def get_embedding(
        self,
        text: str,
        task: TaskType = TaskType.QUERY,
    ) -> list[float] | None:
        """Embed a single text.

        Args:
            text: Text to embed
            task: Retrieval intent (query or document)

        Returns:
            Embedding vector, or None if the text is empty or the provider failed
        """
        cleaned = clean_text(text)
        if not cleaned:
            logger.warning("Attempted to get embedding for empty text")
            return None

        try:
            embedding = await self.backend.embed(cleaned, task)
        except EmbeddingError as e:
            logger.warning(f"Error generating embedding for text: '{cleaned[:50]}...' - {e}")
            return None

        if len(embedding) != self.dim:
            logger.warning(f"Embedding has {len(embedding)} dimensions, expected {self.dim}")
            return None

        logger.debug(f"Computed embedding: {len(embedding)} dimensions")
        return embedding

    async def aclose(self) -> None:
        await self.backend.aclose()


def create_embedding_service(config: EmbeddingSettings | None = None) -> EmbeddingService:
    """Build the embedding service for the configured provider."""
    config = config or settings.embeddings
    if config.provider == EmbeddingProvider.LOCAL:
        backend: EmbeddingBackend = LocalEmbeddingBackend(config)
    else:
        backend = GeminiEmbeddingBackend(config)
    logger.info(f"Embedding provider: {config.provider.value}")
    return EmbeddingService(backend, dim=config.dim)
