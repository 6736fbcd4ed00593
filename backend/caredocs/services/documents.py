"""
Document Record Provider

Read/write access to medical_documents for the processing pipeline:
  - get()                 read by id (family member eagerly loaded)
  - update_status()       write embedding_status [+ embedding_processed_at]
  - reset()               back to pending, processed_at cleared
  - list_pending()        batch input for process-pending
  - list_for_user()       batch input for process-by-user
  - accessible_titles()   retrieval scope for a principal

Ownership: a principal P owns a document when
    medical_documents.caregiver_id = P
 OR family_members.caregiver_id   = P  (via medical_documents.family_member_id)

Every call runs in its own short transaction (session_scope), so a status
write never rides along with, or blocks, the chunk replacement.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from caredocs.models.documents import Document, FamilyMember
from caredocs.schemas.documents import EmbeddingStatus

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class DocumentNotFoundError(LookupError):
    def __init__(self, document_id: UUID) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class DocumentRepositoryBase(ABC):

    @abstractmethod
    async def get(self, document_id: UUID) -> Document | None:
        """Return the document or None."""

    @abstractmethod
    async def update_status(
        self,
        document_id:  UUID,
        status:       EmbeddingStatus,
        processed_at: datetime | None = None,
    ) -> None:
        """Set embedding_status; also embedding_processed_at when given."""

    @abstractmethod
    async def reset(self, document_id: UUID) -> None:
        """
        Set status pending and clear embedding_processed_at.

        Raises:
            DocumentNotFoundError
        """

    @abstractmethod
    async def list_pending(self) -> list[Document]:
        """All pending documents, oldest first."""

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> list[Document]:
        """All documents owned by user_id (directly or via a family member), oldest first."""

    @abstractmethod
    async def accessible_titles(self, principal_id: UUID) -> dict[UUID, str]:
        """document_id → title for every document the principal owns."""


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

def _owned_by(principal_id: UUID):
    return or_(
        Document.caregiver_id == principal_id,
        Document.family_member_id.in_(
            select(FamilyMember.id).where(FamilyMember.caregiver_id == principal_id)
        ),
    )


class DocumentRepository(DocumentRepositoryBase):
    """
    Stateless; safe to share. session_factory defaults to
    caredocs.db.session.session_scope.
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        if session_factory is None:
            from caredocs.db.session import session_scope
            session_factory = session_scope
        self._session_factory = session_factory

    async def get(self, document_id: UUID) -> Document | None:
        stmt = (
            select(Document)
            .options(selectinload(Document.family_member))
            .where(Document.id == document_id)
        )
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one_or_none()

    async def update_status(
        self,
        document_id:  UUID,
        status:       EmbeddingStatus,
        processed_at: datetime | None = None,
    ) -> None:
        values: dict = {"embedding_status": status.value}
        if processed_at is not None:
            values["embedding_processed_at"] = processed_at

        async with self._session_factory() as session:
            await session.execute(
                update(Document).where(Document.id == document_id).values(**values)
            )
        logger.debug("Status write | doc=%s status=%s", document_id, status.value)

    async def reset(self, document_id: UUID) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(
                    embedding_status=EmbeddingStatus.PENDING.value,
                    embedding_processed_at=None,
                )
            )
            if not result.rowcount:
                raise DocumentNotFoundError(document_id)
        logger.info("Document reset to pending | doc=%s", document_id)

    async def list_pending(self) -> list[Document]:
        stmt = (
            select(Document)
            .options(selectinload(Document.family_member))
            .where(Document.embedding_status == EmbeddingStatus.PENDING.value)
            .order_by(Document.created_at)
        )
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_for_user(self, user_id: UUID) -> list[Document]:
        stmt = (
            select(Document)
            .options(selectinload(Document.family_member))
            .where(_owned_by(user_id))
            .order_by(Document.created_at)
        )
        async with self._session_factory() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def accessible_titles(self, principal_id: UUID) -> dict[UUID, str]:
        stmt = select(Document.id, Document.title).where(_owned_by(principal_id))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
        return {row.id: row.title for row in rows}
