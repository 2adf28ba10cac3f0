from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.qms.db import JsonType
from app.qms.models import Base


class EvidenceType(Base):
    __tablename__ = "ref_evidence_types"

    code: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    # 1 = draft, 2 = review, 3 = approval
    phase: Mapped[int] = mapped_column(Integer, nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class DocumentEvidence(Base):
    """
    Structured justification captured at a lifecycle step.

    At most one current (non-superseded) row per (document_id, evidence_type);
    older rows stay for the audit trail with superseded_by pointing at the newer one.
    """

    __tablename__ = "document_evidence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[str] = mapped_column(
        ForeignKey("controlled_documents.document_id", ondelete="CASCADE"), nullable=False, index=True
    )
    transition_id: Mapped[int | None] = mapped_column(
        ForeignKey("document_transitions.id", ondelete="SET NULL"), nullable=True
    )
    evidence_type: Mapped[str] = mapped_column(ForeignKey("ref_evidence_types.code"), nullable=False)
    evidence_data: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    evidence_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    recorded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    is_superseded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    superseded_by: Mapped[int | None] = mapped_column(
        ForeignKey("document_evidence.id", ondelete="SET NULL"), nullable=True
    )
