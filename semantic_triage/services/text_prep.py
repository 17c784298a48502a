"""Text preparation for embedding."""

from typing import Optional

from semantic_triage.config import settings


def prepare_email_text(subject: Optional[str], snippet: Optional[str], max_length: Optional[int] = None) -> str:
    """Combine subject and snippet into the text that gets embedded.

    The result is trimmed and cut to a prefix of max_length characters
    (the embedding models have a ~512 token window).
    """
    if max_length is None:
        max_length = settings.text_max_length
    combined = f"{subject or ''}\n{snippet or ''}".strip()
    return combined[:max_length]


def prepare_email_for_embedding(email, max_length: Optional[int] = None) -> str:
    """Prepare any object with `subject` and `snippet` attributes (e.g. models.Email)."""
    return prepare_email_text(
        getattr(email, "subject", None),
        getattr(email, "snippet", None),
        max_length=max_length,
    )
