from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qms.db import JsonType
from app.qms.models import Base


class TrainingModule(Base):
    __tablename__ = "training_modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_code: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "TRN-DC-001"
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sop_reference: Mapped[str | None] = mapped_column(String(64), nullable=True)
    grants_roles: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    # [{"step": 1, "key": "...", "title": "...", "validation": "<validator name>"}, ...]
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False, default=list)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)  # username
    module_id: Mapped[int] = mapped_column(ForeignKey("training_modules.id", ondelete="RESTRICT"), nullable=False)
    training_doc_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # in_progress -> completed | abandoned
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="in_progress")
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    certificate_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    module: Mapped[TrainingModule] = relationship("TrainingModule", lazy="selectin")
    completions: Mapped[list["TrainingStepCompletion"]] = relationship(
        "TrainingStepCompletion",
        back_populates="session",
        order_by="TrainingStepCompletion.step_number",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TrainingStepCompletion(Base):
    __tablename__ = "training_step_completions"
    __table_args__ = (
        UniqueConstraint("session_id", "step_number", name="uq_training_step_completion"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("training_sessions.id", ondelete="CASCADE"), nullable=False)
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    step_key: Mapped[str] = mapped_column(String(64), nullable=False)
    validated_by: Mapped[str] = mapped_column(String(64), nullable=False)
    validated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    validation_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType, nullable=True)

    session: Mapped[TrainingSession] = relationship("TrainingSession", back_populates="completions")


class TrainingCertificate(Base):
    __tablename__ = "training_certificates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    certificate_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # CERT-YYYYMMDD-xxxxxx
    session_id: Mapped[int] = mapped_column(ForeignKey("training_sessions.id", ondelete="RESTRICT"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_fullname: Mapped[str | None] = mapped_column(String(255), nullable=True)
    module_code: Mapped[str] = mapped_column(String(64), nullable=False)
    module_title: Mapped[str] = mapped_column(String(255), nullable=False)
    qualified_for: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class QualificationGrant(Base):
    """Document-control role (author/reviewer/...) earned through training."""

    __tablename__ = "qualification_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "role_code", name="uq_qualification_grant_user_role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    role_code: Mapped[str] = mapped_column(String(64), nullable=False)
    granted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
