from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qms.db import JsonType
from app.qms.models import Base


class KnowledgeDoc(Base):
    __tablename__ = "kb_docs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    file_path: Mapped[str | None] = mapped_column(String(512), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    subcategory: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    doc_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str | None] = mapped_column(String(32), nullable=True)

    body_md: Mapped[str | None] = mapped_column(Text, nullable=True)
    frontmatter: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)

    content_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_dir: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # git sync metadata
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    git_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    git_author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    git_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited_by: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    draft: Mapped["DocDraft | None"] = relationship(
        "DocDraft",
        back_populates="doc",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class DocDraft(Base):
    """Pending revision of a KB doc. At most one per document."""

    __tablename__ = "doc_drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    doc_id: Mapped[int] = mapped_column(ForeignKey("kb_docs.id", ondelete="CASCADE"), nullable=False, unique=True)

    version: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body_md: Mapped[str | None] = mapped_column(Text, nullable=True)
    frontmatter: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)

    # draft -> in_review -> (approved: row deleted) | rejected -> in_review
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    doc: Mapped[KnowledgeDoc] = relationship("KnowledgeDoc", back_populates="draft", lazy="selectin")


class DocVersion(Base):
    """Immutable snapshot of a published KB doc version."""

    __tablename__ = "doc_versions"
    __table_args__ = (
        UniqueConstraint("doc_id", "version", name="uq_doc_versions_doc_version"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    doc_id: Mapped[int] = mapped_column(ForeignKey("kb_docs.id", ondelete="CASCADE"), nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(32), nullable=False)

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body_md: Mapped[str | None] = mapped_column(Text, nullable=True)
    frontmatter: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)

    published_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)  # sha256 hex of body_md

    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    superseded_by: Mapped[str | None] = mapped_column(String(32), nullable=True)  # version that replaced it
    changes: Mapped[str | None] = mapped_column(Text, nullable=True)
