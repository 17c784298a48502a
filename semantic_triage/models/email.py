"""Email model — the mail store's table, owned by the sync layer.

Only the columns the triage engine reads are mapped: the owning account
for scoped searches, and subject/snippet for text preparation.
"""

from typing import Optional

from sqlalchemy import Text, Integer
from sqlalchemy.orm import Mapped, mapped_column

from semantic_triage.database import Base


class Email(Base):
    __tablename__ = "emails"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    subject: Mapped[Optional[str]] = mapped_column(Text)
    snippet: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self):
        return f"<Email {self.id}: {self.subject[:50] if self.subject else '(no subject)'}>"
