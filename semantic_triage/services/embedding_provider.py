"""Embedding providers — turn email text into fixed-dimension unit vectors.

Three backends:
- hashing: offline feature hashing, no model download (default, used in tests)
- ollama: a local Ollama server's /api/embed endpoint
- sentence-transformers: an in-process model (optional `local` extra)
"""

import asyncio
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import httpx
import numpy as np

from semantic_triage.config import settings
from semantic_triage.exceptions import DimensionMismatch
from semantic_triage.services.model_registry import ModelId, ModelRegistry, default_registry

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two pre-normalized vectors, clamped to [-1, 1]."""
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    if len(a) == 0:
        return 0.0

    dot = float(np.dot(np.asarray(a, dtype=np.float64), np.asarray(b, dtype=np.float64)))
    # Clamp to absorb float error on vectors that should be unit length
    return max(-1.0, min(1.0, dot))


def _normalize(vec: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec = vec / norm
    return vec


class EmbeddingProvider(ABC):
    """Text -> vector capability consumed by the vector search."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return a unit-length vector of get_model().dimension floats."""

    @abstractmethod
    def get_model(self) -> ModelId:
        """Identity of the vector space this provider produces."""

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)

    def _check_dimension(self, vector: Sequence[float]) -> None:
        expected = self.get_model().dimension
        if len(vector) != expected:
            raise DimensionMismatch(expected, len(vector))

    async def close(self):
        """Release any held resources."""


class HashingEmbeddingProvider(EmbeddingProvider):
    """Bag of words + character trigrams hashed into a fixed-size vector.

    Cheap and fully deterministic across processes. Good enough to group
    emails that share vocabulary (invoices with receipts, meetings with
    calendar invites), not a semantic model.
    """

    WORD_WEIGHT = 2.0  # words count more than char trigrams
    TRIGRAM_WEIGHT = 1.0

    def __init__(self, dimension: int = None, registry: ModelRegistry = default_registry):
        dimension = dimension or settings.hashing_dimension
        self._model = registry.register(f"hashing-trigram-{dimension}", dimension)

    def get_model(self) -> ModelId:
        return self._model

    def _bucket(self, feature: str) -> int:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "little") % self._model.dimension

    def embed_sync(self, text: str) -> list[float]:
        vec = np.zeros(self._model.dimension, dtype=np.float64)
        text = (text or "").lower().strip()
        if not text:
            return vec.astype(np.float32).tolist()

        for i in range(len(text) - 2):
            vec[self._bucket("c:" + text[i:i + 3])] += self.TRIGRAM_WEIGHT

        for word in _WORD_RE.findall(text):
            vec[self._bucket("w:" + word)] += self.WORD_WEIGHT

        return _normalize(vec).astype(np.float32).tolist()

    async def embed(self, text: str) -> list[float]:
        return self.embed_sync(text)


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeddings from a local Ollama server."""

    def __init__(
        self,
        model: str = None,
        dimension: int = None,
        base_url: str = None,
        client: Optional[httpx.AsyncClient] = None,
        registry: ModelRegistry = default_registry,
    ):
        self._ollama_model = model or settings.embedding_model
        self._model = registry.register(
            f"ollama:{self._ollama_model}", dimension or settings.embedding_dimension
        )
        self._base_url = (base_url or settings.ollama_url).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.ollama_timeout)

    def get_model(self) -> ModelId:
        return self._model

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.post(
                f"{self._base_url}/api/embed",
                json={"model": self._ollama_model, "input": text},
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Ollama embedding request timed out ({self._ollama_model})")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Ollama embedding HTTP error: {e}")
            raise

        data = response.json()
        embeddings = data.get("embeddings") or []
        if not embeddings:
            raise ValueError(f"Ollama returned no embedding for model {self._ollama_model}")

        vector = _normalize(np.asarray(embeddings[0], dtype=np.float64))
        self._check_dimension(vector)
        return vector.astype(np.float32).tolist()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()


class SentenceTransformerProvider(EmbeddingProvider):
    """In-process sentence-transformers model, loaded on first use.

    Loading takes seconds, so the first embed() call starts a single load
    in a worker thread and every concurrent caller awaits that same load.
    """

    def __init__(
        self,
        model: str = None,
        dimension: int = None,
        hub_namespace: str = "sentence-transformers",
        registry: ModelRegistry = default_registry,
    ):
        name = model or settings.embedding_model
        self._model = registry.register(name, dimension or settings.embedding_dimension)
        self._hub_name = f"{hub_namespace}/{name}" if hub_namespace and "/" not in name else name
        self._encoder = None
        self._loading: Optional[asyncio.Future] = None

    def get_model(self) -> ModelId:
        return self._model

    def _load(self):
        """Blocking model load; runs in a worker thread."""
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model {self._hub_name}...")
        encoder = SentenceTransformer(self._hub_name)
        logger.info(f"Embedding model {self._hub_name} loaded")
        return encoder

    async def _get_encoder(self):
        if self._encoder is not None:
            return self._encoder

        if self._loading is None:
            self._loading = asyncio.ensure_future(asyncio.to_thread(self._load))
        loading = self._loading

        try:
            # shield: a cancelled caller must not cancel the shared load
            encoder = await asyncio.shield(loading)
        except Exception:
            # Forget the failed load so the next call retries
            if self._loading is loading:
                self._loading = None
            raise

        self._encoder = encoder
        return encoder

    async def embed(self, text: str) -> list[float]:
        encoder = await self._get_encoder()
        output = await asyncio.to_thread(encoder.encode, text, normalize_embeddings=True)
        vector = np.asarray(output, dtype=np.float32).reshape(-1)
        self._check_dimension(vector)
        return vector.tolist()
