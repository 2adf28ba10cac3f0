from __future__ import annotations

import hashlib
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.qms.audit import record_event
from app.qms.errors import BadRequest, NotFound
from app.qms.modules.knowledge_base.models import DocVersion, KnowledgeDoc

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.qms.models import User


VERSION_BUMPS = ("patch", "minor", "major")

# Columns returned by the list/search views (body and frontmatter are left to /view).
LIST_FIELDS = (
    "id",
    "slug",
    "title",
    "category",
    "subcategory",
    "status",
    "doc_date",
    "author",
    "version",
    "file_size",
    "git_hash",
    "git_author",
    "git_date",
    "synced_at",
    "updated_at",
)

SEARCH_FIELDS = ("id", "slug", "title", "category", "subcategory", "status", "doc_date", "author")

_TERM_RE = re.compile(r"\w+", re.UNICODE)


def content_hash(body_md: str | None) -> str | None:
    """SHA-256 hex digest of the markdown body (None when there is no body)."""
    if body_md is None:
        return None
    return hashlib.sha256(body_md.encode("utf-8")).hexdigest()


def bump_version(version: str, bump: str) -> str:
    """
    Semantic-version bump. Missing parts are padded with 0 ("1.2" -> "1.2.0");
    non-numeric parts are rejected.
    """
    if bump not in VERSION_BUMPS:
        raise BadRequest('Invalid version_bump: must be "patch", "minor", or "major"')
    try:
        parts = [int(p) for p in str(version).strip().split(".")]
    except ValueError:
        raise BadRequest(f"Cannot bump non-numeric version '{version}'")
    while len(parts) < 3:
        parts.append(0)
    major, minor, patch = parts[:3]
    if bump == "major":
        return f"{major + 1}.0.0"
    if bump == "minor":
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def doc_dict(doc: KnowledgeDoc, fields: tuple[str, ...] | None = None) -> dict[str, Any]:
    names = fields or tuple(c.key for c in KnowledgeDoc.__mapper__.column_attrs)
    return {f: getattr(doc, f) for f in names}


def get_doc_by_slug(s: "Session", slug: str) -> KnowledgeDoc | None:
    return s.query(KnowledgeDoc).filter(KnowledgeDoc.slug == slug).one_or_none()


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def search_terms(q: str) -> list[str]:
    seen: list[str] = []
    for t in _TERM_RE.findall(q or ""):
        t = t.lower()
        if t not in seen:
            seen.append(t)
    return seen


def _match_all_terms(query: "Query", terms: list[str]) -> "Query":
    for t in terms:
        like = f"%{t}%"
        query = query.filter(or_(KnowledgeDoc.title.ilike(like), KnowledgeDoc.body_md.ilike(like)))
    return query


def rank_doc(doc: KnowledgeDoc, terms: list[str]) -> float:
    """Occurrence count of the terms; title hits weigh double."""
    title = (doc.title or "").lower()
    body = (doc.body_md or "").lower()
    score = 0
    for t in terms:
        score += 2 * title.count(t) + body.count(t)
    return float(score)


def build_snippet(text: str | None, terms: list[str], max_fragments: int = 3, radius: int = 80) -> str:
    """Up to max_fragments excerpts around term hits, with hits wrapped in <mark>...</mark>."""
    if not text:
        return ""
    if not terms:
        return text[: radius * 2]
    pattern = re.compile("|".join(re.escape(t) for t in terms), re.IGNORECASE)

    fragments: list[str] = []
    covered_until = -1
    for m in pattern.finditer(text):
        if m.start() < covered_until:
            continue
        start = max(0, m.start() - radius)
        end = min(len(text), m.end() + radius)
        # snap to word boundaries
        if start > 0:
            space = text.find(" ", start)
            if 0 <= space < m.start():
                start = space + 1
        if end < len(text):
            space = text.rfind(" ", m.end(), end)
            if space > m.end():
                end = space
        frag = " ".join(text[start:end].split())
        fragments.append(pattern.sub(lambda hit: f"<mark>{hit.group(0)}</mark>", frag))
        covered_until = end
        if len(fragments) >= max_fragments:
            break

    if not fragments:
        return " ".join(text[: radius * 2].split())
    return " ... ".join(fragments)


def search_docs(s: "Session", q: str, page: int, page_size: int, offset: int) -> dict[str, Any]:
    terms = search_terms(q)
    if not terms:
        return {"items": [], "items_total": 0, "query": q, "page": page, "page_size": page_size}

    matches = _match_all_terms(s.query(KnowledgeDoc), terms).all()
    ranked = sorted(((rank_doc(d, terms), d) for d in matches), key=lambda pair: (-pair[0], pair[1].title))
    items = []
    for rank, d in ranked[offset : offset + page_size]:
        item = doc_dict(d, SEARCH_FIELDS)
        item["rank"] = rank
        item["snippet"] = build_snippet(d.body_md, terms)
        items.append(item)
    return {"items": items, "items_total": len(ranked), "query": q, "page": page, "page_size": page_size}


def list_docs(
    s: "Session",
    filters: dict[str, str | None],
    page: int,
    page_size: int,
    offset: int,
) -> dict[str, Any]:
    categories = (
        s.query(KnowledgeDoc.category, KnowledgeDoc.subcategory, func.count(KnowledgeDoc.id))
        .group_by(KnowledgeDoc.category, KnowledgeDoc.subcategory)
        .order_by(KnowledgeDoc.category, KnowledgeDoc.subcategory)
        .all()
    )

    q = s.query(KnowledgeDoc)
    if filters.get("category"):
        q = q.filter(KnowledgeDoc.category == filters["category"])
    if filters.get("subcategory"):
        q = q.filter(KnowledgeDoc.subcategory == filters["subcategory"])

    terms = search_terms(filters.get("search") or "")
    if terms:
        matches = _match_all_terms(q, terms).all()
        ordered = [d for _, d in sorted(((rank_doc(d, terms), d) for d in matches), key=lambda p: (-p[0], p[1].title))]
        total = len(ordered)
        docs = ordered[offset : offset + page_size]
    else:
        total = q.count()
        docs = q.order_by(KnowledgeDoc.title).limit(page_size).offset(offset).all()

    return {
        "categories": [{"category": c, "subcategory": sc, "doc_count": n} for c, sc, n in categories],
        "items": [doc_dict(d, LIST_FIELDS) for d in docs],
        "items_total": total,
        "page": page,
        "page_size": page_size,
    }


# ---------------------------------------------------------------------------
# Version snapshots
# ---------------------------------------------------------------------------


def snapshot_version(
    s: "Session",
    *,
    doc_id: int,
    version: str,
    title: str | None,
    body_md: str | None,
    frontmatter: dict | None,
    author: str | None,
    published_by: str,
    changes: str | None = None,
) -> DocVersion | None:
    """Insert a version snapshot unless (doc_id, version) already exists. Returns the new row or None."""
    existing = s.query(DocVersion).filter(DocVersion.doc_id == doc_id, DocVersion.version == version).one_or_none()
    if existing is not None:
        return None
    snap = DocVersion(
        doc_id=doc_id,
        version=version,
        title=title,
        body_md=body_md,
        frontmatter=frontmatter,
        author=author,
        published_by=published_by,
        published_at=datetime.utcnow(),
        content_hash=content_hash(body_md),
        changes=changes,
    )
    s.add(snap)
    s.flush()
    return snap


def supersede_versions(s: "Session", doc_id: int, new_version: str) -> int:
    """Mark every still-current snapshot other than new_version as superseded by it."""
    now = datetime.utcnow()
    rows = (
        s.query(DocVersion)
        .filter(DocVersion.doc_id == doc_id, DocVersion.superseded_at.is_(None), DocVersion.version != new_version)
        .all()
    )
    for r in rows:
        r.superseded_at = now
        r.superseded_by = new_version
    return len(rows)


# ---------------------------------------------------------------------------
# Save with version bump
# ---------------------------------------------------------------------------


def validate_save_payload(payload: dict) -> list[str]:
    errors = []
    if not payload.get("doc_id") or not payload.get("body_md") or not payload.get("version_bump") or not payload.get("change_summary"):
        errors.append("Missing required fields: doc_id, body_md, version_bump, change_summary")
    elif payload["version_bump"] not in VERSION_BUMPS:
        errors.append('Invalid version_bump: must be "patch", "minor", or "major"')
    return errors


def save_doc(s: "Session", payload: dict, user: "User") -> tuple[KnowledgeDoc, bool]:
    """
    Save new body text under a bumped version.

    Snapshots the new version (changes = change_summary) and, for
    QMS-registered docs, syncs the register version with a `content_update`
    transition. Returns (doc, qms_synced).
    """
    from app.qms.modules.register.service import add_transition, get_document_by_docs_id

    errors = validate_save_payload(payload)
    if errors:
        raise BadRequest("; ".join(errors))

    try:
        doc = s.get(KnowledgeDoc, int(payload["doc_id"]))
    except (TypeError, ValueError):
        doc = None
    if not doc:
        raise NotFound("Document not found")
    if not doc.version:
        raise BadRequest("Document has no current version; cannot bump")

    old_version = doc.version
    new_version = bump_version(old_version, payload["version_bump"])
    change_summary = str(payload["change_summary"]).strip()

    doc.body_md = payload["body_md"]
    doc.version = new_version
    doc.frontmatter = {**(doc.frontmatter or {}), "version": new_version}
    doc.is_edited = True
    doc.edited_by = user.username
    doc.updated_at = datetime.utcnow()

    snapshot_version(
        s,
        doc_id=doc.id,
        version=new_version,
        title=doc.title,
        body_md=doc.body_md,
        frontmatter=doc.frontmatter,
        author=doc.author,
        published_by=user.username,
        changes=change_summary,
    )
    supersede_versions(s, doc.id, new_version)

    qms_doc = get_document_by_docs_id(s, doc.id)
    if qms_doc is not None:
        qms_doc.version = new_version
        qms_doc.updated_at = datetime.utcnow()
        add_transition(
            s,
            document_id=qms_doc.document_id,
            action="content_update",
            from_version=old_version,
            to_version=new_version,
            performed_by=user.username,
            comment=change_summary,
        )

    record_event(
        s,
        actor=user,
        action="docs.save",
        entity_type="KnowledgeDoc",
        entity_id=str(doc.id),
        reason=change_summary,
        metadata={"slug": doc.slug, "from_version": old_version, "to_version": new_version},
    )
    return doc, qms_doc is not None
