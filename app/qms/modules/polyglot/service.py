from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, case, func, or_
from sqlalchemy.exc import SQLAlchemyError

from app.qms.modules.polyglot.models import (
    CanonicalMessage,
    GlossaryTerm,
    GlossaryTranslation,
    LanguageConvention,
    PreservedTerm,
    Terminology,
    Translation,
)
from app.qms.utils import row_dict

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

TRANSLATION_FILTERS = ("missing", "translated")


def _is_translated():
    # Empty msgstr or msgstr equal to the English source both count as missing.
    return and_(Translation.msgstr != "", Translation.msgstr != CanonicalMessage.english_source)


# ---------------------------------------------------------------------------
# Coverage and risk
# ---------------------------------------------------------------------------


def coverage(s: "Session", language: str | None = None) -> list[dict[str, Any]]:
    translated = func.sum(case((_is_translated(), 1), else_=0))
    q = (
        s.query(Translation.language, CanonicalMessage.platform, func.count(Translation.id), translated)
        .join(CanonicalMessage, CanonicalMessage.message_id == Translation.message_id)
        .group_by(Translation.language, CanonicalMessage.platform)
        .order_by(Translation.language, CanonicalMessage.platform)
    )
    if language:
        q = q.filter(Translation.language == language)

    out = []
    for lang, platform, total, done in q.all():
        done = int(done or 0)
        out.append(
            {
                "language": lang,
                "platform": platform,
                "total": total,
                "translated": done,
                "missing": total - done,
                "coverage_pct": round(100.0 * done / total, 1) if total else 0.0,
            }
        )
    return out


def risk_summary(s: "Session", language: str) -> list[dict[str, Any]]:
    rows = (
        s.query(Translation.language, CanonicalMessage.platform, Translation.risk_level, func.count(Translation.id))
        .join(CanonicalMessage, CanonicalMessage.message_id == Translation.message_id)
        .filter(Translation.language == language, Translation.risk_level.isnot(None))
        .group_by(Translation.language, CanonicalMessage.platform, Translation.risk_level)
        .order_by(CanonicalMessage.platform, Translation.risk_level)
        .all()
    )
    return [{"language": lang, "platform": p, "risk_level": r, "count": n} for lang, p, r, n in rows]


def language_detail(s: "Session", code: str) -> dict[str, Any]:
    conventions = s.get(LanguageConvention, code)
    return {
        "language": code,
        "coverage": coverage(s, code),
        "conventions": row_dict(conventions) if conventions else None,
        "risk": risk_summary(s, code),
    }


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


def browse_translations(
    s: "Session",
    filters: dict[str, str | None],
    page: int,
    page_size: int,
    offset: int,
) -> dict[str, Any]:
    q = s.query(CanonicalMessage, Translation).outerjoin(
        Translation, Translation.message_id == CanonicalMessage.message_id
    )
    if filters.get("platform"):
        q = q.filter(CanonicalMessage.platform == filters["platform"])
    if filters.get("language"):
        q = q.filter(Translation.language == filters["language"])
    if filters.get("search"):
        like = f"%{filters['search']}%"
        q = q.filter(or_(CanonicalMessage.english_source.ilike(like), Translation.msgstr.ilike(like)))
    if filters.get("filter") == "missing":
        q = q.filter(or_(Translation.msgstr == "", Translation.msgstr == CanonicalMessage.english_source))
    elif filters.get("filter") == "translated":
        q = q.filter(_is_translated())

    total = q.count()
    rows = q.order_by(CanonicalMessage.message_id, Translation.language).limit(page_size).offset(offset).all()
    items = []
    for cm, t in rows:
        items.append(
            {
                "message_id": cm.message_id,
                "english_source": cm.english_source,
                "platform": cm.platform,
                "domain": cm.domain,
                "msgctxt": cm.msgctxt,
                "msgstr": t.msgstr if t else None,
                "language": t.language if t else None,
                "translation_source": t.translation_source if t else None,
                "review_state": t.review_state if t else None,
            }
        )
    return {"items": items, "items_total": total, "page": page, "page_size": page_size}


def message_detail(s: "Session", message_id: str) -> dict[str, Any]:
    message = s.get(CanonicalMessage, message_id)
    translations = (
        s.query(Translation, LanguageConvention.language_name_native)
        .outerjoin(LanguageConvention, LanguageConvention.language_code == Translation.language)
        .filter(Translation.message_id == message_id)
        .order_by(Translation.language)
        .all()
    )
    preserved: list[PreservedTerm] = []
    terminology: list[Terminology] = []
    if message is not None:
        preserved = (
            s.query(PreservedTerm)
            .filter(PreservedTerm.term == message.english_source)
            .order_by(PreservedTerm.language_code)
            .all()
        )
        terminology = (
            s.query(Terminology)
            .filter(Terminology.english_term == message.english_source)
            .order_by(Terminology.language_code)
            .all()
        )
    return {
        "message": row_dict(message) if message else None,
        "translations": [
            {
                "language": t.language,
                "msgstr": t.msgstr,
                "translation_source": t.translation_source,
                "review_state": t.review_state,
                "language_name_native": native,
            }
            for t, native in translations
        ],
        "preserved_terms": [
            row_dict(p, ("language_code", "term", "term_type", "context", "notes")) for p in preserved
        ],
        "terminology": [
            row_dict(t, ("english_term", "language_code", "translation", "source", "reliability")) for t in terminology
        ],
    }


# ---------------------------------------------------------------------------
# Glossary
# ---------------------------------------------------------------------------


def iate_terms(s: "Session", q: str, language: str | None, limit: int) -> list[dict[str, Any]]:
    query = s.query(Terminology).filter(Terminology.english_term.ilike(f"%{q}%"))
    if language:
        query = query.filter(Terminology.language_code == language)
    rows = query.order_by(Terminology.reliability.desc(), Terminology.english_term).limit(limit).all()
    return [row_dict(t, ("english_term", "language_code", "translation", "source", "reliability")) for t in rows]


def microsoft_terms(s: "Session", q: str, language: str | None, limit: int) -> list[dict[str, Any]]:
    """
    Microsoft glossary matches. The glossary tables are loaded separately and
    may be missing; a failing query yields no rows instead of failing the
    whole glossary search.
    """
    join_on = GlossaryTranslation.term_entry_id == GlossaryTerm.id
    if language:
        join_on = and_(join_on, GlossaryTranslation.language_code == language)
    try:
        with s.begin_nested():
            rows = (
                s.query(GlossaryTerm, GlossaryTranslation.language_code, GlossaryTranslation.term)
                .outerjoin(GlossaryTranslation, join_on)
                .filter(GlossaryTerm.en_term.ilike(f"%{q}%"))
                .order_by(GlossaryTerm.en_term)
                .limit(limit)
                .all()
            )
    except SQLAlchemyError:
        logger.warning("Microsoft glossary query failed; returning no glossary matches", exc_info=True)
        return []
    return [
        {
            "en_term": te.en_term,
            "definition": te.definition,
            "part_of_speech": te.part_of_speech,
            "language_code": lang,
            "translation": term,
        }
        for te, lang, term in rows
    ]


def glossary_search(s: "Session", q: str, language: str | None, limit: int) -> dict[str, Any]:
    if len(q) < 2:
        return {"iate": [], "microsoft": [], "query": q, "language": language}
    return {
        "iate": iate_terms(s, q, language, limit),
        "microsoft": microsoft_terms(s, q, language, limit),
        "query": q,
        "language": language,
    }
