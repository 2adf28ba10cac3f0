from __future__ import annotations

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from app.qms.models import Base


class ContentItem(Base):
    """Site content node; items sharing a translation_group are translations of each other."""

    __tablename__ = "content_items"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: uuid.uuid4().hex)
    path: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)  # e.g. "/en/about"
    parent_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    translation_group: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
