from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qms.constants import RETENTION_BASIS_DEFAULT, RETENTION_YEARS_DEFAULT
from app.qms.models import Base

if TYPE_CHECKING:
    from app.qms.modules.knowledge_base.models import KnowledgeDoc


class DomainCode(Base):
    __tablename__ = "ref_domain_codes"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class DocumentType(Base):
    __tablename__ = "ref_document_types"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class DocumentStatus(Base):
    __tablename__ = "ref_document_statuses"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ControlledDocument(Base):
    __tablename__ = "controlled_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)  # e.g. "SOP-DC-001"
    title: Mapped[str] = mapped_column(String(255), nullable=False)

    document_type: Mapped[str] = mapped_column(ForeignKey("ref_document_types.code"), nullable=False)
    domain_code: Mapped[str] = mapped_column(ForeignKey("ref_domain_codes.code"), nullable=False)
    version: Mapped[str] = mapped_column(String(32), nullable=False, default="0.1")
    status: Mapped[str] = mapped_column(ForeignKey("ref_document_statuses.code"), nullable=False, default="draft")
    classification: Mapped[str] = mapped_column(String(32), nullable=False, default="internal")

    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_review_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reviewer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver: Mapped[str | None] = mapped_column(String(255), nullable=True)
    implements: Mapped[str | None] = mapped_column(String(255), nullable=True)

    retention_years: Mapped[int] = mapped_column(Integer, nullable=False, default=RETENTION_YEARS_DEFAULT)
    retention_basis: Mapped[str] = mapped_column(String(255), nullable=False, default=RETENTION_BASIS_DEFAULT)

    location: Mapped[str | None] = mapped_column(String(512), nullable=True)
    docs_id: Mapped[int | None] = mapped_column(ForeignKey("kb_docs.id", ondelete="SET NULL"), nullable=True, index=True)
    body_md: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    kb_doc: Mapped["KnowledgeDoc | None"] = relationship("KnowledgeDoc", lazy="selectin")


class DocumentTransition(Base):
    """Append-only history of status/version changes on a controlled document."""

    __tablename__ = "document_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        ForeignKey("controlled_documents.document_id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)  # create/register/approve/content_update/...

    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    from_version: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_version: Mapped[str | None] = mapped_column(String(32), nullable=True)

    performed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class ExternalDocument(Base):
    """External standards (ISO, IEC, MDR guidance) tracked for currency."""

    __tablename__ = "external_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    edition: Mapped[str | None] = mapped_column(String(64), nullable=True)
    publisher: Mapped[str | None] = mapped_column(String(128), nullable=True)
    acquired_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_checked: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_check_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class ReconciliationExclusion(Base):
    """KB docs deliberately kept out of the register (e.g. READMEs)."""

    __tablename__ = "reconciliation_exclusions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    docs_id: Mapped[int] = mapped_column(ForeignKey("kb_docs.id", ondelete="CASCADE"), nullable=False, unique=True)
    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    excluded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    excluded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
