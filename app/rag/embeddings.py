"""Embedding generation over OpenAI-compatible providers"""

from dataclasses import dataclass
from typing import List, Optional, Sequence
import hashlib
import json
import logging

import httpx
import numpy as np
import redis
from openai import OpenAI

from app.exceptions import EmbeddingError
from app.rag.config import rag_config
from app.rag.providers import EmbeddingServiceConfig

logger = logging.getLogger(__name__)

# Models that accept a requested output dimension
VARIABLE_DIMENSION_MODELS = ("text-embedding-3",)


@dataclass
class EmbeddingResult:
    """One embedding vector with the model that produced it"""
    vector: List[float]
    model: str
    dimensions: int


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        ValueError: If the vectors have different dimensions
    """
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)

    if vec_a.shape != vec_b.shape:
        raise ValueError(f"Vector dimension mismatch: {vec_a.size} vs {vec_b.size}")

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    # Floating point error can push identical vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


class EmbeddingCache:
    """Redis cache for embedding vectors"""

    def __init__(self, redis_url: str, ttl: int):
        self.ttl = ttl
        self.enabled = True
        try:
            self.redis_client = redis.from_url(
                redis_url,
                decode_responses=False  # Store bytes for embeddings
            )
            logger.info("Redis cache enabled for embeddings")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis cache: {e}")
            self.enabled = False

    @staticmethod
    def _key(model: str, dimensions: int, text: str) -> str:
        digest = hashlib.md5(text.encode()).hexdigest()
        return f"emb:{model}:{dimensions}:{digest}"

    def get(self, model: str, dimensions: int, text: str) -> Optional[List[float]]:
        if not self.enabled:
            return None
        try:
            cached = self.redis_client.get(self._key(model, dimensions, text))
            if cached:
                return json.loads(cached)
        except Exception as e:
            logger.warning(f"Cache retrieval error: {e}")
        return None

    def set(self, model: str, dimensions: int, text: str, vector: List[float]) -> None:
        if not self.enabled:
            return
        try:
            self.redis_client.setex(self._key(model, dimensions, text), self.ttl, json.dumps(vector))
        except Exception as e:
            logger.warning(f"Cache save error: {e}")


class EmbeddingsService:
    """Batched embedding generation for one resolved provider config"""

    def __init__(
        self,
        config: EmbeddingServiceConfig,
        batch_size: Optional[int] = None,
        max_input_chars: Optional[int] = None,
        cache: Optional[EmbeddingCache] = None,
        http_client: Optional[httpx.Client] = None
    ):
        self.config = config
        self.batch_size = batch_size or rag_config.embedding_batch_size
        self.max_input_chars = max_input_chars or rag_config.embedding_max_input_chars
        self.cache = cache
        self._http_client = http_client
        self._client: Optional[OpenAI] = None

    @property
    def model(self) -> str:
        return self.config.model

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            kwargs = {
                "api_key": self.config.api_key,
                "base_url": self.config.base_url.rstrip("/") or None,
                "max_retries": 0,
            }
            if self._http_client is not None:
                kwargs["http_client"] = self._http_client
            self._client = OpenAI(**kwargs)
        return self._client

    def _request_kwargs(self, batch: List[str]) -> dict:
        kwargs = {
            "model": self.config.model,
            "input": batch,
            "encoding_format": "float",
        }
        if any(prefix in self.config.model for prefix in VARIABLE_DIMENSION_MODELS):
            kwargs["dimensions"] = self.config.dimensions
        return kwargs

    def _embed_batch(self, batch: List[str]) -> List[List[float]]:
        try:
            response = self.client.embeddings.create(**self._request_kwargs(batch))
        except Exception as e:
            logger.error(f"Embedding batch failed [{self.config.provider}]: {e}")
            raise EmbeddingError(f"Embedding generation failed [{self.config.provider}]: {str(e)[:200]}") from e

        items = sorted(response.data, key=lambda item: item.index)
        if len(items) != len(batch):
            raise EmbeddingError(
                f"Invalid embedding response: expected {len(batch)} vectors, got {len(items)}"
            )
        return [list(item.embedding) for item in items]

    def embed(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings for texts, preserving input order

        Args:
            texts: Texts to embed (each truncated to the configured max length)

        Returns:
            One EmbeddingResult per input text
        """
        if not texts:
            return []

        if not self.config.api_key:
            raise EmbeddingError(
                "Embedding service is not available. The API key is missing from the environment."
            )

        prepared = [(text or "")[:self.max_input_chars] for text in texts]
        vectors: List[Optional[List[float]]] = [None] * len(prepared)

        if self.cache is not None:
            for i, text in enumerate(prepared):
                vectors[i] = self.cache.get(self.config.model, self.config.dimensions, text)

        pending = [i for i, vector in enumerate(vectors) if vector is None]

        for start in range(0, len(pending), self.batch_size):
            indexes = pending[start:start + self.batch_size]
            batch = [prepared[i] for i in indexes]
            for i, vector in zip(indexes, self._embed_batch(batch)):
                vectors[i] = vector
                if self.cache is not None:
                    self.cache.set(self.config.model, self.config.dimensions, prepared[i], vector)

        logger.info(f"Generated {len(pending)} embeddings ({len(texts) - len(pending)} cached) with {self.config.model}")

        return [
            EmbeddingResult(vector=vector, model=self.config.model, dimensions=len(vector))
            for vector in vectors
        ]

    def embed_query(self, text: str) -> EmbeddingResult:
        """Embed a single query string"""
        return self.embed([text])[0]


def build_cache() -> Optional[EmbeddingCache]:
    """Embedding cache when enabled in settings"""
    if not rag_config.enable_cache:
        return None
    return EmbeddingCache(rag_config.redis_url, rag_config.cache_ttl)
