"""Shared fixtures: offline provider, in-memory and SQLite-backed stores."""

import pytest
from sqlalchemy.pool import StaticPool

from semantic_triage.database import init_db, make_engine, make_session_factory
from semantic_triage.services.embedding_provider import HashingEmbeddingProvider
from semantic_triage.services.embedding_store import InMemoryEmbeddingStore, SqlAlchemyEmbeddingStore
from semantic_triage.services.model_registry import ModelRegistry
from semantic_triage.services.vector_search import VectorSearch


class CountingProvider(HashingEmbeddingProvider):
    """Hashing provider that records how often embed() is called."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.embed_calls = 0

    async def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        return await super().embed(text)


@pytest.fixture
def registry():
    return ModelRegistry()


@pytest.fixture
def provider(registry):
    return CountingProvider(dimension=384, registry=registry)


@pytest.fixture
def memory_store():
    return InMemoryEmbeddingStore()


@pytest.fixture
async def db_engine():
    engine = make_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def sql_store(session_factory):
    return SqlAlchemyEmbeddingStore(session_factory)


@pytest.fixture
def search(provider, memory_store):
    return VectorSearch(provider, memory_store)


@pytest.fixture
def sql_search(provider, sql_store):
    return VectorSearch(provider, sql_store)
