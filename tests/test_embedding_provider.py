"""Embedding provider tests (no network, no model downloads)."""

import asyncio
import json
import math
import time

import httpx
import numpy as np
import pytest

from semantic_triage.exceptions import DimensionMismatch
from semantic_triage.services.embedding_provider import (
    HashingEmbeddingProvider,
    OllamaEmbeddingProvider,
    SentenceTransformerProvider,
    cosine_similarity,
)
from semantic_triage.services.model_registry import ModelRegistry


# --- Similarity ---

def test_similarity_of_identical_vectors():
    v = [1.0, 0.0, 0.0]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_similarity_of_opposite_vectors():
    assert cosine_similarity([1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]) == pytest.approx(-1.0)


def test_similarity_of_orthogonal_vectors():
    r = 1 / math.sqrt(2)
    assert cosine_similarity([r, r, 0.0], [r, -r, 0.0]) == pytest.approx(0.0, abs=1e-9)


def test_similarity_is_clamped():
    assert cosine_similarity([1.0000001, 0.0], [1.0000001, 0.0]) == 1.0
    assert cosine_similarity([2.0, 0.0], [-2.0, 0.0]) == -1.0


def test_similarity_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0])
    assert "dimension mismatch" in str(exc_info.value)
    assert (exc_info.value.expected, exc_info.value.actual) == (3, 2)


def test_provider_similarity_uses_cosine(registry):
    provider = HashingEmbeddingProvider(dimension=4, registry=registry)
    assert provider.similarity([0.0, 1.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]) == pytest.approx(1.0)
    with pytest.raises(DimensionMismatch):
        provider.similarity([1.0], [1.0, 0.0])


# --- Hashing provider ---

async def test_hashing_embeddings_are_normalized_and_fixed_size(registry):
    provider = HashingEmbeddingProvider(dimension=384, registry=registry)
    vector = await provider.embed("Your invoice for December")

    assert len(vector) == 384
    assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)
    assert provider.get_model().name == "hashing-trigram-384"
    assert provider.get_model().dimension == 384


async def test_hashing_is_deterministic(registry):
    first = await HashingEmbeddingProvider(dimension=64, registry=registry).embed("Meeting tomorrow")
    second = await HashingEmbeddingProvider(dimension=64, registry=registry).embed("Meeting tomorrow")
    assert first == second


async def test_hashing_is_case_insensitive(registry):
    provider = HashingEmbeddingProvider(dimension=128, registry=registry)
    assert await provider.embed("Payment Receipt") == await provider.embed("payment receipt")


async def test_hashing_empty_text_is_zero_vector(registry):
    provider = HashingEmbeddingProvider(dimension=16, registry=registry)
    assert await provider.embed("   ") == [0.0] * 16


async def test_hashing_groups_shared_vocabulary(registry):
    provider = HashingEmbeddingProvider(dimension=384, registry=registry)
    invoice = await provider.embed("Your invoice for December payment")
    receipt = await provider.embed("Invoice receipt for payment in December")
    meeting = await provider.embed("Meeting scheduled for tomorrow")

    assert provider.similarity(invoice, receipt) > provider.similarity(invoice, meeting)


# --- Ollama provider ---

def _ollama_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_ollama_embed_normalizes_response(registry):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"model": "nomic-embed-text", "embeddings": [[3.0, 4.0, 0.0]]})

    provider = OllamaEmbeddingProvider(
        model="nomic-embed-text",
        dimension=3,
        base_url="http://ollama.test/",
        client=_ollama_client(handler),
        registry=registry,
    )
    vector = await provider.embed("hello")
    await provider.close()

    assert vector == pytest.approx([0.6, 0.8, 0.0], abs=1e-6)
    assert seen["url"] == "http://ollama.test/api/embed"
    assert seen["body"] == {"model": "nomic-embed-text", "input": "hello"}
    assert provider.get_model().name == "ollama:nomic-embed-text"


async def test_ollama_wrong_dimension(registry):
    def handler(request):
        return httpx.Response(200, json={"embeddings": [[1.0, 0.0]]})

    provider = OllamaEmbeddingProvider(
        model="m", dimension=3, base_url="http://ollama.test", client=_ollama_client(handler), registry=registry
    )
    with pytest.raises(DimensionMismatch):
        await provider.embed("hello")


async def test_ollama_http_errors_propagate(registry):
    def handler(request):
        return httpx.Response(500, json={"error": "model not loaded"})

    provider = OllamaEmbeddingProvider(
        model="m", dimension=3, base_url="http://ollama.test", client=_ollama_client(handler), registry=registry
    )
    with pytest.raises(httpx.HTTPStatusError):
        await provider.embed("hello")


async def test_ollama_empty_response(registry):
    def handler(request):
        return httpx.Response(200, json={"embeddings": []})

    provider = OllamaEmbeddingProvider(
        model="m", dimension=3, base_url="http://ollama.test", client=_ollama_client(handler), registry=registry
    )
    with pytest.raises(ValueError):
        await provider.embed("hello")


# --- Sentence-transformers provider (loader replaced, nothing downloaded) ---

class FakeEncoder:
    def encode(self, text, normalize_embeddings=False):
        assert normalize_embeddings
        return np.array([0.0, 1.0, 0.0], dtype=np.float32)


class FakeSentenceTransformerProvider(SentenceTransformerProvider):
    def __init__(self, fail_first: bool = False, **kwargs):
        super().__init__(**kwargs)
        self.loads = 0
        self.fail_first = fail_first

    def _load(self):
        self.loads += 1
        time.sleep(0.05)
        if self.fail_first and self.loads == 1:
            raise RuntimeError("download failed")
        return FakeEncoder()


async def test_concurrent_first_use_loads_model_once(registry):
    provider = FakeSentenceTransformerProvider(model="tiny-model", dimension=3, registry=registry)

    vectors = await asyncio.gather(*(provider.embed(f"text {i}") for i in range(5)))

    assert provider.loads == 1
    assert all(v == [0.0, 1.0, 0.0] for v in vectors)

    await provider.embed("again")
    assert provider.loads == 1


async def test_failed_load_is_retried(registry):
    provider = FakeSentenceTransformerProvider(fail_first=True, model="tiny-model", dimension=3, registry=registry)

    with pytest.raises(RuntimeError):
        await provider.embed("first")

    assert await provider.embed("second") == [0.0, 1.0, 0.0]
    assert provider.loads == 2


async def test_sentence_transformer_dimension_checked(registry):
    provider = FakeSentenceTransformerProvider(model="wide-model", dimension=4, registry=registry)
    with pytest.raises(DimensionMismatch):
        await provider.embed("text")


def test_sentence_transformer_hub_name(registry):
    provider = SentenceTransformerProvider(model="all-MiniLM-L6-v2", dimension=384, registry=registry)
    assert provider._hub_name == "sentence-transformers/all-MiniLM-L6-v2"
    assert provider.get_model().name == "all-MiniLM-L6-v2"

    other = SentenceTransformerProvider(model="BAAI/bge-small-en-v1.5", dimension=384, registry=registry)
    assert other._hub_name == "BAAI/bge-small-en-v1.5"
