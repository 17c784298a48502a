"""Candidate ranking strategies for similarity search."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence

from semantic_triage.services.embedding_store import EmailEmbedding

SimilarityFn = Callable[[Sequence[float], Sequence[float]], float]


@dataclass
class SimilarEmail:
    """A previously filed email close to the query."""
    email_id: int
    folder: str
    similarity: float
    was_correction: bool


class RankingStrategy(ABC):
    """Orders stored embeddings by closeness to a query vector."""

    @abstractmethod
    def rank(
        self,
        query: Sequence[float],
        candidates: Sequence[EmailEmbedding],
        top_k: int,
        similarity: SimilarityFn,
    ) -> list[SimilarEmail]:
        """Return at most top_k neighbors, most similar first."""


class LinearScanRanker(RankingStrategy):
    """Scores every candidate. O(N) per query; meant for corpora up to ~10k rows.

    Errors from `similarity` (e.g. DimensionMismatch on a stale vector)
    abort the whole ranking; no partial results.
    """

    def rank(
        self,
        query: Sequence[float],
        candidates: Sequence[EmailEmbedding],
        top_k: int,
        similarity: SimilarityFn,
    ) -> list[SimilarEmail]:
        scored = [
            SimilarEmail(
                email_id=candidate.email_id,
                folder=candidate.folder,
                similarity=similarity(query, candidate.vector),
                was_correction=candidate.is_correction,
            )
            for candidate in candidates
        ]

        # Ties on similarity go to the lower email id
        scored.sort(key=lambda s: (-s.similarity, s.email_id))
        return scored[:top_k]
