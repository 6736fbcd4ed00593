"""
SQLAlchemy ORM Models — Documents & Embedded Chunks

Using SQLAlchemy 2.x mapped classes for full async support.

Ownership: a document belongs to a caregiver either directly (caregiver_id)
or through one of the caregiver's family members (family_member_id →
family_members.caregiver_id). Retrieval scopes by both paths.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from caredocs.core.config import settings
from caredocs.schemas.documents import EmbeddingStatus


# ---------------------------------------------------------------------------
# Declarative base — shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# FamilyMember model — family_members
# ---------------------------------------------------------------------------

class FamilyMember(Base):
    """A person cared for by a caregiver; documents may be filed under them."""

    __tablename__ = "family_members"
    __table_args__ = (
        Index("idx_family_members_caregiver_id", "caregiver_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    caregiver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)


# ---------------------------------------------------------------------------
# Document model — medical_documents
# ---------------------------------------------------------------------------

class Document(Base):
    """
    One uploaded file and its embedding lifecycle.

    State machine (embedding_status column):
        pending    — uploaded, extraction not yet started
        processing — extraction + embedding in flight
        completed  — chunk set written (possibly empty)
        failed     — unrecovered error; needs a forced reprocess

    Only the processing service mutates embedding_status. Rows are never
    deleted by this service.
    """

    __tablename__ = "medical_documents"
    __table_args__ = (
        CheckConstraint(
            "embedding_status IN ('pending', 'processing', 'completed', 'failed')",
            name="medical_documents_embedding_status_check",
        ),
        Index("idx_medical_documents_caregiver_id", "caregiver_id"),
        Index("idx_medical_documents_status",       "embedding_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )

    caregiver_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    family_member_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("family_members.id", ondelete="SET NULL"),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Original filename provided by the client",
    )
    file_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Storage locator: https:// URL or s3://bucket/key",
    )
    file_type: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Declared MIME type",
    )
    document_type: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Declared category, e.g. 'Diagnosis Report'",
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    embedding_status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=EmbeddingStatus.PENDING.value,
        server_default=EmbeddingStatus.PENDING.value,
    )
    embedding_processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    family_member: Mapped[Optional[FamilyMember]] = relationship(lazy="noload")

    def __repr__(self) -> str:
        return (
            f"<Document id={self.id} status={self.embedding_status} "
            f"file={self.file_name!r}>"
        )


# ---------------------------------------------------------------------------
# DocumentEmbedding model — document_embeddings
# ---------------------------------------------------------------------------

class DocumentEmbedding(Base):
    """
    One chunk of a document's extracted text plus its embedding vector.

    A document's chunks are replaced as a set; they are never updated in place.
    """

    __tablename__ = "document_embeddings"
    __table_args__ = (
        Index("idx_document_embeddings_document_id", "document_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("medical_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=False,
    )
    chunk_metadata: Mapped[dict] = mapped_column(
        "metadata",                 # PostgreSQL column name stays 'metadata'
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
        comment="chunk_index, total_chunks, extraction_method, content_quality, ...",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
