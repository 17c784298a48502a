"""Startup wiring — builds the provider, store and vector search once.

The host application creates one VectorSearch at startup and passes it
to whatever needs folder suggestions; nothing here is a hidden global.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from semantic_triage.config import Settings, settings as default_settings
from semantic_triage.database import async_session, engine, init_db, make_engine, make_session_factory
from semantic_triage.services.embedding_provider import (
    EmbeddingProvider,
    HashingEmbeddingProvider,
    OllamaEmbeddingProvider,
    SentenceTransformerProvider,
)
from semantic_triage.services.embedding_store import EmbeddingStore, SqlAlchemyEmbeddingStore
from semantic_triage.services.model_registry import ModelRegistry, default_registry
from semantic_triage.services.vector_search import VectorSearch

logger = logging.getLogger("semantic-triage")

PROVIDERS = ("hashing", "ollama", "sentence-transformers")


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or default_settings.log_level).upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def build_provider(
    settings: Settings = default_settings,
    registry: ModelRegistry = default_registry,
) -> EmbeddingProvider:
    """Create the embedding provider selected by settings.embedding_provider."""
    kind = settings.embedding_provider.strip().lower()

    if kind == "hashing":
        return HashingEmbeddingProvider(dimension=settings.hashing_dimension, registry=registry)
    if kind == "ollama":
        return OllamaEmbeddingProvider(
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.ollama_url,
            registry=registry,
        )
    if kind == "sentence-transformers":
        return SentenceTransformerProvider(
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            registry=registry,
        )

    raise ValueError(f"Unknown embedding provider {kind!r}; expected one of {', '.join(PROVIDERS)}")


def build_store(session_factory: async_sessionmaker[AsyncSession] = None) -> EmbeddingStore:
    return SqlAlchemyEmbeddingStore(session_factory or async_session)


async def build_vector_search(
    settings: Settings = default_settings,
    provider: EmbeddingProvider = None,
    store: EmbeddingStore = None,
) -> VectorSearch:
    """Initialize the database and assemble a VectorSearch."""
    logger.info("=" * 60)
    logger.info("Semantic triage engine starting up")
    logger.info(f"Database: {settings.database_label}")
    logger.info(f"Embedding provider: {settings.embedding_provider}")
    logger.info("=" * 60)

    if store is None:
        bind = engine
        if settings.database_url != default_settings.database_url:
            bind = make_engine(settings.database_url)
        await init_db(bind)
        logger.info("Database initialized")
        store = build_store(make_session_factory(bind))

    provider = provider or build_provider(settings)
    logger.info(f"Embedding model: {provider.get_model().name} ({provider.get_model().dimension} dims)")

    return VectorSearch(provider, store, default_top_k=settings.default_top_k)
