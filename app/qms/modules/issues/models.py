from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.qms.models import Base


class ProblemSeverity(Base):
    __tablename__ = "ref_problem_severities"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProblemStatus(Base):
    __tablename__ = "ref_problem_statuses"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProblemType(Base):
    __tablename__ = "ref_problem_types"

    code: Mapped[str] = mapped_column(String(32), primary_key=True)
    label: Mapped[str] = mapped_column(String(128), nullable=False)


class ProblemReport(Base):
    __tablename__ = "problem_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    report_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "PR-2026-014"
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    severity: Mapped[str] = mapped_column(ForeignKey("ref_problem_severities.code"), nullable=False)
    status: Mapped[str] = mapped_column(ForeignKey("ref_problem_statuses.code"), nullable=False)
    problem_type: Mapped[str] = mapped_column(ForeignKey("ref_problem_types.code"), nullable=False)

    scope: Mapped[str | None] = mapped_column(String(255), nullable=True)
    affected_component: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reported_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reported_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    disposition: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_capa_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_dr_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
