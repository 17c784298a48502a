"""Email embedding model — one vector per (email, embedding model)."""

from datetime import datetime

from sqlalchemy import String, Boolean, Integer, DateTime, LargeBinary, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from semantic_triage.database import Base


class EmailEmbeddingRecord(Base):
    __tablename__ = "email_embeddings"
    __table_args__ = (
        UniqueConstraint("email_id", "embedding_model", name="uq_email_embeddings_email_model"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    # No ON DELETE CASCADE: callers remove embeddings explicitly
    email_id: Mapped[int] = mapped_column(Integer, ForeignKey("emails.id"), nullable=False, index=True)

    # Little-endian float32 array, see services/codec.py
    embedding: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    embedding_model: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    folder: Mapped[str] = mapped_column(String(128), nullable=False)
    is_correction: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<EmailEmbedding {self.id}: email={self.email_id} model={self.embedding_model} -> {self.folder}>"
