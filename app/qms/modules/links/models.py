from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.qms.models import Base


class RelationshipType(Base):
    __tablename__ = "ref_relationship_types"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # e.g. "implements" <-> "implemented_by"; None for symmetric types
    inverse_code: Mapped[str | None] = mapped_column(String(64), nullable=True)


class DocumentLink(Base):
    """
    Directed link between two document ids.

    Ids are free-form (controlled documents, problem reports, external
    standards), so there is no foreign key on either endpoint.
    """

    __tablename__ = "document_links"
    __table_args__ = (
        UniqueConstraint("source_doc_id", "target_doc_id", "relationship_type", name="uq_document_links_triple"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    source_doc_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    target_doc_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    relationship_type: Mapped[str] = mapped_column(ForeignKey("ref_relationship_types.code"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
