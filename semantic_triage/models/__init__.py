from semantic_triage.models.email import Email
from semantic_triage.models.embedding import EmailEmbeddingRecord

__all__ = [
    "Email",
    "EmailEmbeddingRecord",
]
