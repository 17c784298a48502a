"""Vector search — semantic folder suggestions from previously filed emails.

Indexing: text -> provider.embed -> store.save (upsert per email and model).
Querying: store.find_all -> provider.embed -> ranker -> calculate_confidence.

The candidate set is always fetched before the query is embedded, so an
empty corpus answers [] without an inference call.
"""

import logging
from typing import Optional, Sequence

from semantic_triage.services.confidence import FolderSuggestion, calculate_confidence
from semantic_triage.services.embedding_provider import EmbeddingProvider
from semantic_triage.services.embedding_store import EmbeddingStore, SearchScope
from semantic_triage.services.ranking import LinearScanRanker, RankingStrategy, SimilarEmail
from semantic_triage.services.text_prep import prepare_email_for_embedding

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class VectorSearch:
    """Finds similar filed emails and votes on a destination folder."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: EmbeddingStore,
        ranker: Optional[RankingStrategy] = None,
        default_top_k: int = DEFAULT_TOP_K,
    ):
        self.provider = provider
        self.store = store
        self.ranker = ranker or LinearScanRanker()
        self.default_top_k = default_top_k

    async def find_similar(
        self,
        query_text: str,
        top_k: Optional[int] = None,
        scope: Optional[SearchScope] = None,
    ) -> list[SimilarEmail]:
        """Return up to top_k stored emails most similar to query_text.

        An empty corpus or top_k == 0 gives [] without embedding the query.
        A stored vector whose length differs from the query's raises
        DimensionMismatch and aborts the search.
        """
        if top_k is None:
            top_k = self.default_top_k

        model = self.provider.get_model()
        candidates = await self.store.find_all(model, scope)
        if not candidates:
            logger.debug(f"No {model.name} embeddings stored, skipping search")
            return []
        if top_k == 0:
            return []
        if top_k < 0:
            raise ValueError(f"top_k must not be negative, got {top_k}")

        query_vector = await self.provider.embed(query_text)
        results = self.ranker.rank(query_vector, candidates, top_k, self.provider.similarity)

        logger.debug(
            f"Searched {len(candidates)} {model.name} embeddings, "
            f"top={results[0].folder} ({results[0].similarity:.3f})"
        )
        return results

    async def index_email(
        self,
        email_id: int,
        text: str,
        folder: str,
        is_correction: bool = False,
    ) -> None:
        """Embed text and store it as the email's vector, replacing any previous one."""
        vector = await self.provider.embed(text)
        await self.store.save(email_id, vector, folder, is_correction, self.provider.get_model())
        logger.debug(
            f"Indexed email {email_id} -> {folder}"
            f"{' (correction)' if is_correction else ''}"
        )

    async def index_message(self, email, folder: str, is_correction: bool = False) -> None:
        """Index an email object (anything with id, subject and snippet)."""
        await self.index_email(email.id, prepare_email_for_embedding(email), folder, is_correction)

    async def remove_email(self, email_id: int) -> None:
        """Drop the email's embeddings for every model."""
        await self.store.delete(email_id)

    def calculate_confidence(self, neighbors: Sequence[SimilarEmail]) -> Optional[FolderSuggestion]:
        return calculate_confidence(neighbors)

    async def suggest_folder(
        self,
        query_text: str,
        top_k: Optional[int] = None,
        scope: Optional[SearchScope] = None,
    ) -> Optional[FolderSuggestion]:
        """Cheap first-pass folder suggestion, None when nothing is indexed."""
        neighbors = await self.find_similar(query_text, top_k, scope)
        return calculate_confidence(neighbors)

    async def get_stats(self) -> dict:
        """Indexing statistics for the active model."""
        stats = await self.store.get_stats()
        model = self.provider.get_model()
        stats["active_model"] = model.name
        stats["active_model_count"] = stats["by_model"].get(model.name, 0)
        return stats
