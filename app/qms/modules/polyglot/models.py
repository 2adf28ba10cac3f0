from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.qms.models import Base


class CanonicalMessage(Base):
    """English source string extracted from a platform's message catalog."""

    __tablename__ = "canonical_messages"

    message_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    english_source: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    domain: Mapped[str | None] = mapped_column(String(64), nullable=True)
    msgctxt: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Translation(Base):
    __tablename__ = "translations"
    __table_args__ = (
        UniqueConstraint("message_id", "language", name="uq_translations_message_language"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    message_id: Mapped[str] = mapped_column(
        ForeignKey("canonical_messages.message_id", ondelete="CASCADE"), nullable=False, index=True
    )
    language: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    # Empty msgstr (or msgstr == english_source) counts as missing
    msgstr: Mapped[str] = mapped_column(Text, nullable=False, default="")
    translation_source: Mapped[str | None] = mapped_column(String(64), nullable=True)  # human/machine/memory
    review_state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # low/medium/high, set by the QA pipeline
    risk_level: Mapped[str | None] = mapped_column(String(16), nullable=True)


class LanguageConvention(Base):
    __tablename__ = "language_conventions"

    language_code: Mapped[str] = mapped_column(String(16), primary_key=True)
    language_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    language_name_native: Mapped[str | None] = mapped_column(String(128), nullable=True)
    formality: Mapped[str | None] = mapped_column(String(64), nullable=True)
    date_format: Mapped[str | None] = mapped_column(String(64), nullable=True)
    number_format: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quotation_marks: Mapped[str | None] = mapped_column(String(16), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class PreservedTerm(Base):
    """Terms kept untranslated (brand names, product names) per language."""

    __tablename__ = "preserved_terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    language_code: Mapped[str] = mapped_column(String(16), nullable=False)
    term: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    term_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    context: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class Terminology(Base):
    """IATE terminology entries."""

    __tablename__ = "terminology"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    english_term: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    language_code: Mapped[str] = mapped_column(String(16), nullable=False)
    translation: Mapped[str] = mapped_column(String(255), nullable=False)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reliability: Mapped[int | None] = mapped_column(Integer, nullable=True)  # IATE 1..4


class GlossaryTerm(Base):
    """Microsoft terminology glossary entry (English side)."""

    __tablename__ = "glossary_terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    en_term: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    definition: Mapped[str | None] = mapped_column(Text, nullable=True)
    part_of_speech: Mapped[str | None] = mapped_column(String(32), nullable=True)


class GlossaryTranslation(Base):
    __tablename__ = "glossary_translations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    term_entry_id: Mapped[int] = mapped_column(ForeignKey("glossary_terms.id", ondelete="CASCADE"), nullable=False)
    language_code: Mapped[str] = mapped_column(String(16), nullable=False)
    term: Mapped[str] = mapped_column(String(255), nullable=False)
