"""Embedding store — persistence of per-email embeddings.

At most one embedding exists per (email_id, model). Saving again for the
same pair overwrites vector, folder and is_correction but keeps the
original created_at. Concurrent saves resolve last-write-wins at the
database; nothing here locks.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

from sqlalchemy import select, delete, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from semantic_triage.exceptions import DimensionMismatch
from semantic_triage.models.email import Email
from semantic_triage.models.embedding import EmailEmbeddingRecord
from semantic_triage.services.codec import encode_vector, decode_vector
from semantic_triage.services.model_registry import ModelId

logger = logging.getLogger(__name__)


@dataclass
class EmailEmbedding:
    """A stored embedding for one email under one model."""
    id: int
    email_id: int
    vector: list[float]
    model: str
    folder: str
    is_correction: bool
    created_at: datetime


@dataclass(frozen=True)
class SearchScope:
    """Restricts candidate retrieval to one account's emails."""
    account_id: int


def _check_vector(vector: Sequence[float], model: ModelId) -> None:
    if len(vector) != model.dimension:
        raise DimensionMismatch(model.dimension, len(vector))


class EmbeddingStore(ABC):
    """Access contract for stored embeddings.

    find_all() makes no ordering promise; callers sort explicitly.
    """

    @abstractmethod
    async def find_by_email(self, email_id: int, model: Optional[ModelId] = None) -> Optional[EmailEmbedding]:
        """Exact (email, model) match, or the most recently created row when model is None."""

    @abstractmethod
    async def find_all(
        self, model: Optional[ModelId] = None, scope: Optional[SearchScope] = None
    ) -> list[EmailEmbedding]:
        """All rows matching the optional model and account scope."""

    @abstractmethod
    async def save(
        self,
        email_id: int,
        vector: Sequence[float],
        folder: str,
        is_correction: bool,
        model: ModelId,
    ) -> EmailEmbedding:
        """Upsert keyed by (email_id, model)."""

    @abstractmethod
    async def delete(self, email_id: int) -> None:
        """Remove every model's embedding for the email. No-op if none exist."""

    @abstractmethod
    async def count(self, model: Optional[ModelId] = None) -> int:
        """Number of stored rows, optionally for one model."""

    @abstractmethod
    async def get_stats(self) -> dict:
        """Row counts in total and per model."""


class InMemoryEmbeddingStore(EmbeddingStore):
    """Dict-backed store for tests and throwaway sessions.

    Account scoping needs to know which account owns each email; feed it
    through `email_accounts` or assign_account().
    """

    def __init__(self, email_accounts: Optional[Mapping[int, int]] = None):
        self._rows: dict[tuple[int, str], EmailEmbedding] = {}
        self._email_accounts: dict[int, int] = dict(email_accounts or {})
        self._ids = itertools.count(1)

    def assign_account(self, email_id: int, account_id: int) -> None:
        self._email_accounts[email_id] = account_id

    @staticmethod
    def _copy(row: EmailEmbedding) -> EmailEmbedding:
        return EmailEmbedding(
            id=row.id,
            email_id=row.email_id,
            vector=list(row.vector),
            model=row.model,
            folder=row.folder,
            is_correction=row.is_correction,
            created_at=row.created_at,
        )

    @staticmethod
    def _newest_first(rows) -> list[EmailEmbedding]:
        return sorted(rows, key=lambda r: (r.created_at, r.id), reverse=True)

    async def find_by_email(self, email_id: int, model: Optional[ModelId] = None) -> Optional[EmailEmbedding]:
        if model is not None:
            row = self._rows.get((email_id, model.name))
            return self._copy(row) if row else None

        rows = self._newest_first(r for r in self._rows.values() if r.email_id == email_id)
        return self._copy(rows[0]) if rows else None

    async def find_all(
        self, model: Optional[ModelId] = None, scope: Optional[SearchScope] = None
    ) -> list[EmailEmbedding]:
        rows = self._rows.values()
        if model is not None:
            rows = [r for r in rows if r.model == model.name]
        if scope is not None:
            rows = [r for r in rows if self._email_accounts.get(r.email_id) == scope.account_id]
        return [self._copy(r) for r in self._newest_first(rows)]

    async def save(
        self,
        email_id: int,
        vector: Sequence[float],
        folder: str,
        is_correction: bool,
        model: ModelId,
    ) -> EmailEmbedding:
        _check_vector(vector, model)
        # Round-trip through the codec so stored values match the relational store
        stored = decode_vector(encode_vector(vector))

        key = (email_id, model.name)
        existing = self._rows.get(key)
        if existing is None:
            row = EmailEmbedding(
                id=next(self._ids),
                email_id=email_id,
                vector=stored,
                model=model.name,
                folder=folder,
                is_correction=bool(is_correction),
                created_at=datetime.now(timezone.utc),
            )
            self._rows[key] = row
        else:
            existing.vector = stored
            existing.folder = folder
            existing.is_correction = bool(is_correction)
            row = existing

        return self._copy(row)

    async def delete(self, email_id: int) -> None:
        for key in [k for k in self._rows if k[0] == email_id]:
            del self._rows[key]

    async def count(self, model: Optional[ModelId] = None) -> int:
        if model is None:
            return len(self._rows)
        return sum(1 for r in self._rows.values() if r.model == model.name)

    async def get_stats(self) -> dict:
        by_model: dict[str, int] = {}
        for row in self._rows.values():
            by_model[row.model] = by_model.get(row.model, 0) + 1
        return {"total": len(self._rows), "by_model": by_model}


# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _to_embedding(row) -> EmailEmbedding:
    """Map an email_embeddings row (ORM object or result row) to EmailEmbedding."""
    return EmailEmbedding(
        id=row.id,
        email_id=row.email_id,
        vector=decode_vector(row.embedding),
        model=row.embedding_model,
        folder=row.folder,
        is_correction=bool(row.is_correction),
        created_at=row.created_at,
    )


class SqlAlchemyEmbeddingStore(EmbeddingStore):
    """Store over the email_embeddings table (SQLite or PostgreSQL)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def find_by_email(self, email_id: int, model: Optional[ModelId] = None) -> Optional[EmailEmbedding]:
        query = select(EmailEmbeddingRecord).where(EmailEmbeddingRecord.email_id == email_id)
        if model is not None:
            query = query.where(EmailEmbeddingRecord.embedding_model == model.name)
        else:
            # Latest wins when the email has several models stored
            query = query.order_by(
                EmailEmbeddingRecord.created_at.desc(), EmailEmbeddingRecord.id.desc()
            ).limit(1)

        async with self._session_factory() as db:
            result = await db.execute(query)
            record = result.scalars().first()
            return _to_embedding(record) if record else None

    async def find_all(
        self, model: Optional[ModelId] = None, scope: Optional[SearchScope] = None
    ) -> list[EmailEmbedding]:
        query = select(EmailEmbeddingRecord)

        if scope is not None:
            query = query.join(Email, Email.id == EmailEmbeddingRecord.email_id).where(
                Email.account_id == scope.account_id
            )
        if model is not None:
            query = query.where(EmailEmbeddingRecord.embedding_model == model.name)

        query = query.order_by(EmailEmbeddingRecord.created_at.desc(), EmailEmbeddingRecord.id.desc())

        async with self._session_factory() as db:
            result = await db.execute(query)
            return [_to_embedding(record) for record in result.scalars().all()]

    async def save(
        self,
        email_id: int,
        vector: Sequence[float],
        folder: str,
        is_correction: bool,
        model: ModelId,
    ) -> EmailEmbedding:
        _check_vector(vector, model)
        blob = encode_vector(vector)

        async with self._session_factory() as db:
            dialect = db.bind.dialect.name
            try:
                insert = _UPSERT_INSERTS[dialect]
            except KeyError:
                raise NotImplementedError(f"Embedding upsert not supported on {dialect}") from None

            table = EmailEmbeddingRecord.__table__
            stmt = insert(table).values(
                email_id=email_id,
                embedding=blob,
                embedding_model=model.name,
                folder=folder,
                is_correction=bool(is_correction),
                created_at=datetime.now(timezone.utc),
            )
            # created_at keeps its first-insert value
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.email_id, table.c.embedding_model],
                set_={
                    "embedding": stmt.excluded.embedding,
                    "folder": stmt.excluded.folder,
                    "is_correction": stmt.excluded.is_correction,
                },
            ).returning(*table.c)

            result = await db.execute(stmt)
            row = result.one()
            await db.commit()

        return _to_embedding(row)

    async def delete(self, email_id: int) -> None:
        async with self._session_factory() as db:
            await db.execute(
                delete(EmailEmbeddingRecord).where(EmailEmbeddingRecord.email_id == email_id)
            )
            await db.commit()
        logger.debug(f"Deleted embeddings for email {email_id}")

    async def count(self, model: Optional[ModelId] = None) -> int:
        query = select(func.count(EmailEmbeddingRecord.id))
        if model is not None:
            query = query.where(EmailEmbeddingRecord.embedding_model == model.name)

        async with self._session_factory() as db:
            return (await db.execute(query)).scalar() or 0

    async def get_stats(self) -> dict:
        async with self._session_factory() as db:
            total = (await db.execute(select(func.count(EmailEmbeddingRecord.id)))).scalar() or 0
            model_result = await db.execute(
                select(
                    EmailEmbeddingRecord.embedding_model,
                    func.count(EmailEmbeddingRecord.id),
                ).group_by(EmailEmbeddingRecord.embedding_model)
            )
            by_model = {row[0]: row[1] for row in model_result.all()}

        return {"total": total, "by_model": by_model}
