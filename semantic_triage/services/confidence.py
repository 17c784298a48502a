"""Confidence aggregation — turns nearest neighbors into one folder suggestion."""

from dataclasses import dataclass
from typing import Optional, Sequence

from semantic_triage.services.ranking import SimilarEmail

# User corrections are trusted twice as much as automatic filings
CORRECTION_WEIGHT = 2.0


@dataclass
class FolderSuggestion:
    folder: str
    confidence: float


def neighbor_weight(neighbor: SimilarEmail) -> float:
    return neighbor.similarity * (CORRECTION_WEIGHT if neighbor.was_correction else 1.0)


def calculate_confidence(neighbors: Sequence[SimilarEmail]) -> Optional[FolderSuggestion]:
    """Weighted vote among neighbors.

    Each neighbor votes for its folder with weight similarity (x2 for
    corrections). The folder with the most weight wins; equal weights go
    to the alphabetically first folder. Confidence is the winner's share
    of the total weight, within [0, 1].
    """
    if not neighbors:
        return None

    folder_weights: dict[str, float] = {}
    total_weight = 0.0
    for neighbor in neighbors:
        weight = neighbor_weight(neighbor)
        folder_weights[neighbor.folder] = folder_weights.get(neighbor.folder, 0.0) + weight
        total_weight += weight

    folder, top_weight = min(folder_weights.items(), key=lambda item: (-item[1], item[0]))

    confidence = top_weight / total_weight if total_weight > 0 else 0.0
    return FolderSuggestion(folder=folder, confidence=max(0.0, min(1.0, confidence)))
