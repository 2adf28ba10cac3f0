from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from app.qms.audit import record_event
from app.qms.constants import DOC_ID_RE, STATUS_EFFECTIVE, STATUS_OBSOLETE
from app.qms.errors import ApiError, BadRequest, Conflict, NotFound
from app.qms.modules.register.models import (
    ControlledDocument,
    DocumentStatus,
    DocumentTransition,
    DocumentType,
    DomainCode,
    ExternalDocument,
    ReconciliationExclusion,
)
from app.qms.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.qms.models import User


CLASSIFICATIONS = ("public", "internal", "confidential", "restricted")

DOCUMENT_FIELDS = (
    "id",
    "document_id",
    "title",
    "document_type",
    "domain_code",
    "version",
    "status",
    "classification",
    "effective_date",
    "next_review_date",
    "owner",
    "author",
    "reviewer",
    "approver",
    "implements",
    "retention_years",
    "retention_basis",
    "location",
    "docs_id",
    "body_md",
    "notes",
    "created_at",
    "updated_at",
)

# Fields a PUT may change; document_id is the natural key and stays fixed.
UPDATABLE_FIELDS = (
    "title",
    "document_type",
    "domain_code",
    "version",
    "status",
    "classification",
    "effective_date",
    "next_review_date",
    "owner",
    "author",
    "reviewer",
    "approver",
    "implements",
    "retention_years",
    "retention_basis",
    "location",
    "docs_id",
    "body_md",
    "notes",
)

TRANSITION_FIELDS = (
    "id",
    "document_id",
    "action",
    "from_status",
    "to_status",
    "from_version",
    "to_version",
    "performed_by",
    "comment",
    "evidence_ref",
    "performed_at",
)

# File names like "SOP-DC-001_document_control.md" -> "SOP-DC-001"
_SUGGEST_RE = re.compile(r"^(?P<prefix>[A-Za-z]{2,5})-(?P<domain>[A-Za-z]{2,5})-(?P<num>\d{2,4})")


# ---------------------------------------------------------------------------
# Parsing / validation
# ---------------------------------------------------------------------------


def is_valid_document_id(document_id: str) -> bool:
    return bool(DOC_ID_RE.match(document_id or ""))


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if s is None or isinstance(s, date):
        return s
    s = str(s).strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise BadRequest(f"Invalid date: {s!r} (expected YYYY-MM-DD)")


def parse_retention_years(value: Any) -> int:
    if isinstance(value, bool):
        raise BadRequest("retention_years must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest("retention_years must be an integer")


def _code_exists(s: "Session", model: type, code: Any) -> bool:
    return code is not None and s.get(model, str(code)) is not None


def validate_codes(s: "Session", payload: dict) -> list[str]:
    """Check type/domain/status/classification codes against reference data. Returns list of errors."""
    errors = []
    if "document_type" in payload and payload["document_type"] and not _code_exists(s, DocumentType, payload["document_type"]):
        errors.append(f"Unknown document_type: {payload['document_type']}")
    if "domain_code" in payload and payload["domain_code"] and not _code_exists(s, DomainCode, payload["domain_code"]):
        errors.append(f"Unknown domain_code: {payload['domain_code']}")
    if "status" in payload and payload["status"] and not _code_exists(s, DocumentStatus, payload["status"]):
        errors.append(f"Unknown status: {payload['status']}")
    classification = payload.get("classification")
    if classification and classification not in CLASSIFICATIONS:
        errors.append(f"Invalid classification. Must be one of: {', '.join(CLASSIFICATIONS)}")
    return errors


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def document_dict(doc: ControlledDocument) -> dict[str, Any]:
    return {f: getattr(doc, f) for f in DOCUMENT_FIELDS}


def transition_dict(t: DocumentTransition) -> dict[str, Any]:
    return {f: getattr(t, f) for f in TRANSITION_FIELDS}


def document_detail(s: "Session", doc: ControlledDocument) -> dict[str, Any]:
    from app.qms.modules.evidence.service import list_evidence

    out = document_dict(doc)
    out["kb_body_md"] = doc.kb_doc.body_md if doc.kb_doc else None
    out["kb_slug"] = doc.kb_doc.slug if doc.kb_doc else None
    transitions = (
        s.query(DocumentTransition)
        .filter(DocumentTransition.document_id == doc.document_id)
        .order_by(DocumentTransition.performed_at.desc(), DocumentTransition.id.desc())
        .all()
    )
    out["transitions"] = [transition_dict(t) for t in transitions]
    out["evidence"] = list_evidence(s, doc.document_id)
    return out


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_document(s: "Session", document_id: str) -> ControlledDocument | None:
    return s.query(ControlledDocument).filter(ControlledDocument.document_id == document_id).one_or_none()


def get_document_by_docs_id(s: "Session", docs_id: int) -> ControlledDocument | None:
    return s.query(ControlledDocument).filter(ControlledDocument.docs_id == docs_id).one_or_none()


def add_transition(
    s: "Session",
    *,
    document_id: str,
    action: str,
    performed_by: str,
    from_status: str | None = None,
    to_status: str | None = None,
    from_version: str | None = None,
    to_version: str | None = None,
    comment: str | None = None,
    evidence_ref: str | None = None,
) -> DocumentTransition:
    t = DocumentTransition(
        document_id=document_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        from_version=from_version,
        to_version=to_version,
        performed_by=performed_by,
        comment=comment,
        evidence_ref=evidence_ref,
        performed_at=datetime.utcnow(),
    )
    s.add(t)
    s.flush()
    return t


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def create_document(s: "Session", payload: dict, user: "User") -> ControlledDocument:
    """Create a new controlled document and record its `create` transition."""
    document_id = clean_str(payload.get("document_id")) or ""
    title = clean_str(payload.get("title")) or ""
    if not document_id or not title or not payload.get("document_type") or not payload.get("domain_code"):
        raise BadRequest("Required fields: document_id, title, document_type, domain_code")
    if not is_valid_document_id(document_id):
        raise BadRequest("Invalid document ID format")

    payload = {**payload}
    payload.setdefault("version", "0.1")
    payload.setdefault("status", "draft")
    payload.setdefault("classification", "internal")
    errors = validate_codes(s, payload)
    if errors:
        raise BadRequest("; ".join(errors))
    if get_document(s, document_id):
        raise Conflict(f"Document {document_id} already exists")

    doc = ControlledDocument(
        document_id=document_id,
        title=title,
        document_type=payload["document_type"],
        domain_code=payload["domain_code"],
        version=str(payload["version"]),
        status=payload["status"],
        classification=payload["classification"],
        effective_date=parse_date(payload.get("effective_date")),
        next_review_date=parse_date(payload.get("next_review_date")),
        owner=_blank_to_none(payload.get("owner")),
        author=_blank_to_none(payload.get("author")),
        reviewer=_blank_to_none(payload.get("reviewer")),
        approver=_blank_to_none(payload.get("approver")),
        implements=_blank_to_none(payload.get("implements")),
        location=_blank_to_none(payload.get("location")),
        docs_id=payload.get("docs_id") or None,
        body_md=payload.get("body_md") or None,
        notes=_blank_to_none(payload.get("notes")),
    )
    if payload.get("retention_years") is not None:
        doc.retention_years = parse_retention_years(payload["retention_years"])
    if payload.get("retention_basis"):
        doc.retention_basis = payload["retention_basis"]
    s.add(doc)
    s.flush()

    add_transition(
        s,
        document_id=document_id,
        action="create",
        to_status=doc.status,
        to_version=doc.version,
        performed_by=user.username,
        comment="Created via web UI",
    )
    record_event(
        s,
        actor=user,
        action="register.create",
        entity_type="ControlledDocument",
        entity_id=document_id,
        metadata={"title": doc.title, "status": doc.status, "version": doc.version},
    )
    return doc


def register_from_kb(
    s: "Session",
    payload: dict,
    user: "User",
    *,
    default_notes: str = "Registered from Knowledge Base",
    transition_comment: str = "Registered from Knowledge Base via reconciliation",
) -> ControlledDocument:
    """Register an existing KB doc in the QMS register (defaults: version 1.0, effective)."""
    from app.qms.modules.knowledge_base.models import KnowledgeDoc

    document_id = clean_str(payload.get("document_id")) or ""
    title = clean_str(payload.get("title")) or ""
    if (
        not payload.get("docs_id")
        or not document_id
        or not title
        or not payload.get("document_type")
        or not payload.get("domain_code")
    ):
        raise BadRequest("Required fields: docs_id, document_id, title, document_type, domain_code")
    if not is_valid_document_id(document_id):
        raise BadRequest("Invalid document ID format")

    try:
        kb_doc = s.get(KnowledgeDoc, int(payload["docs_id"]))
    except (TypeError, ValueError):
        kb_doc = None
    if not kb_doc:
        raise NotFound("Knowledge Base document not found")

    payload = {**payload}
    payload.setdefault("version", "1.0")
    payload.setdefault("status", STATUS_EFFECTIVE)
    payload.setdefault("classification", "internal")
    errors = validate_codes(s, payload)
    if errors:
        raise BadRequest("; ".join(errors))
    if get_document(s, document_id):
        raise Conflict(f"Document {document_id} already exists")

    doc = ControlledDocument(
        document_id=document_id,
        title=title,
        document_type=payload["document_type"],
        domain_code=payload["domain_code"],
        version=str(payload["version"]),
        status=payload["status"],
        classification=payload["classification"],
        location=kb_doc.file_path,
        docs_id=kb_doc.id,
        notes=_blank_to_none(payload.get("notes")) or default_notes,
    )
    s.add(doc)
    s.flush()

    add_transition(
        s,
        document_id=document_id,
        action="register",
        to_status=doc.status,
        to_version=doc.version,
        performed_by=user.username,
        comment=transition_comment,
    )
    record_event(
        s,
        actor=user,
        action="register.from_kb",
        entity_type="ControlledDocument",
        entity_id=document_id,
        metadata={"docs_id": kb_doc.id, "slug": kb_doc.slug},
    )
    return doc


def batch_register_from_kb(s: "Session", items: list[Any], user: "User") -> tuple[list[str], list[dict[str, str]]]:
    """
    Register many KB docs. Each item runs in its own savepoint so one bad item
    does not undo the others. Returns (registered document ids, errors).
    """
    registered: list[str] = []
    errors: list[dict[str, str]] = []
    for item in items:
        if not isinstance(item, dict):
            errors.append({"document_id": "(unknown)", "error": "Item must be an object"})
            continue
        label = clean_str(item.get("document_id")) or "(missing)"
        try:
            with s.begin_nested():
                doc = register_from_kb(
                    s,
                    item,
                    user,
                    default_notes="Batch registered from Knowledge Base",
                    transition_comment="Batch registered from Knowledge Base via reconciliation",
                )
            registered.append(doc.document_id)
        except ApiError as e:
            errors.append({"document_id": label, "error": e.message})
        except IntegrityError as e:
            errors.append({"document_id": label, "error": str(e.orig)})
    return registered, errors


def update_document(s: "Session", doc: ControlledDocument, payload: dict, user: "User") -> ControlledDocument:
    """Update whitelisted fields; '' clears a field."""
    updates = {f: _blank_to_none(payload[f]) for f in UPDATABLE_FIELDS if f in payload}
    if not updates:
        raise BadRequest("No fields to update")

    errors = validate_codes(s, updates)
    for required in ("title", "document_type", "domain_code", "version", "status", "classification"):
        if required in updates and updates[required] is None:
            errors.append(f"{required} cannot be empty")
    if errors:
        raise BadRequest("; ".join(errors))

    changes = {}
    for field, value in updates.items():
        if field in ("effective_date", "next_review_date"):
            value = parse_date(value)
        elif field == "retention_years" and value is not None:
            value = parse_retention_years(value)
        old = getattr(doc, field)
        if old != value:
            changes[field] = {"old": old, "new": value}
            setattr(doc, field, value)

    if changes:
        doc.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="register.update",
            entity_type="ControlledDocument",
            entity_id=doc.document_id,
            metadata={"changes": {k: v for k, v in changes.items() if k != "body_md"}},
        )
    return doc


def record_transition(s: "Session", doc: ControlledDocument, payload: dict, user: "User") -> DocumentTransition:
    action = clean_str(payload.get("action")) or ""
    if not action:
        raise BadRequest("Required field: action")
    to_status = _blank_to_none(payload.get("to_status"))
    to_version = _blank_to_none(payload.get("to_version"))
    if to_status and not _code_exists(s, DocumentStatus, to_status):
        raise BadRequest(f"Unknown status: {to_status}")

    t = add_transition(
        s,
        document_id=doc.document_id,
        action=action,
        from_status=doc.status,
        to_status=to_status or doc.status,
        from_version=doc.version,
        to_version=str(to_version) if to_version else doc.version,
        performed_by=user.username,
        comment=_blank_to_none(payload.get("comment")),
        evidence_ref=_blank_to_none(payload.get("evidence_ref")),
    )
    if to_status:
        doc.status = to_status
    if to_version:
        doc.version = str(to_version)
    if to_status == STATUS_EFFECTIVE:
        doc.effective_date = date.today()
    if to_status or to_version:
        doc.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=user,
        action=f"register.transition.{action}",
        entity_type="ControlledDocument",
        entity_id=doc.document_id,
        metadata={"from": [t.from_status, t.from_version], "to": [t.to_status, t.to_version]},
    )
    return t


# ---------------------------------------------------------------------------
# Read models (dashboard, register list, reviews, reconciliation)
# ---------------------------------------------------------------------------


def _facet(s: "Session", ref: type, column) -> list[dict[str, Any]]:
    rows = (
        s.query(ref.code, ref.label, func.count(ControlledDocument.id))
        .outerjoin(ControlledDocument, column == ref.code)
        .group_by(ref.code, ref.label, ref.sort_order)
        .order_by(ref.sort_order)
        .all()
    )
    return [{"code": code, "label": label, "doc_count": count} for code, label, count in rows]


def register_page(s: "Session", filters: dict[str, str | None], page: int, page_size: int, offset: int) -> dict[str, Any]:
    q = s.query(ControlledDocument)
    if filters.get("domain"):
        q = q.filter(ControlledDocument.domain_code == filters["domain"])
    if filters.get("type"):
        q = q.filter(ControlledDocument.document_type == filters["type"])
    if filters.get("status"):
        q = q.filter(ControlledDocument.status == filters["status"])
    if filters.get("classification"):
        q = q.filter(ControlledDocument.classification == filters["classification"])
    if filters.get("search"):
        like = f"%{filters['search']}%"
        q = q.filter(
            or_(
                ControlledDocument.document_id.ilike(like),
                ControlledDocument.title.ilike(like),
                ControlledDocument.body_md.ilike(like),
            )
        )

    total = q.count()
    docs = q.order_by(ControlledDocument.document_id).limit(page_size).offset(offset).all()
    items = []
    for d in docs:
        row = document_dict(d)
        # list view omits large/rarely used fields
        for f in ("body_md", "implements", "retention_years", "retention_basis", "docs_id"):
            row.pop(f, None)
        items.append(row)

    return {
        "domains": _facet(s, DomainCode, ControlledDocument.domain_code),
        "types": _facet(s, DocumentType, ControlledDocument.document_type),
        "statuses": _facet(s, DocumentStatus, ControlledDocument.status),
        "items": items,
        "items_total": total,
        "page": page,
        "page_size": page_size,
    }


def documents_by_status(s: "Session") -> list[dict[str, Any]]:
    rows = (
        s.query(ControlledDocument.status, func.count(ControlledDocument.id))
        .group_by(ControlledDocument.status)
        .order_by(ControlledDocument.status)
        .all()
    )
    return [{"status": status, "count": count} for status, count in rows]


def documents_by_domain(s: "Session") -> list[dict[str, Any]]:
    rows = (
        s.query(DomainCode.code, DomainCode.label, ControlledDocument.status, func.count(ControlledDocument.id))
        .join(ControlledDocument, ControlledDocument.domain_code == DomainCode.code)
        .group_by(DomainCode.code, DomainCode.label, DomainCode.sort_order, ControlledDocument.status)
        .order_by(DomainCode.sort_order, ControlledDocument.status)
        .all()
    )
    return [
        {"domain_code": code, "domain": label, "status": status, "doc_count": count}
        for code, label, status, count in rows
    ]


def overdue_reviews(s: "Session", limit: int | None = None) -> list[dict[str, Any]]:
    today = date.today()
    q = (
        s.query(ControlledDocument)
        .filter(
            ControlledDocument.next_review_date.is_not(None),
            ControlledDocument.next_review_date < today,
            ControlledDocument.status != STATUS_OBSOLETE,
        )
        .order_by(ControlledDocument.next_review_date.asc(), ControlledDocument.document_id)
    )
    if limit:
        q = q.limit(limit)
    return [
        {
            "document_id": d.document_id,
            "title": d.title,
            "version": d.version,
            "status": d.status,
            "next_review_date": d.next_review_date,
            "owner": d.owner,
            "days_overdue": (today - d.next_review_date).days,
        }
        for d in q.all()
    ]


def upcoming_reviews(s: "Session", limit: int = 50) -> list[dict[str, Any]]:
    today = date.today()
    docs = (
        s.query(ControlledDocument)
        .filter(
            ControlledDocument.next_review_date.is_not(None),
            ControlledDocument.next_review_date > today,
            ControlledDocument.status.in_((STATUS_EFFECTIVE, "draft")),
        )
        .order_by(ControlledDocument.next_review_date.asc(), ControlledDocument.document_id)
        .limit(limit)
        .all()
    )
    return [
        {
            "document_id": d.document_id,
            "title": d.title,
            "version": d.version,
            "status": d.status,
            "next_review_date": d.next_review_date,
            "owner": d.owner,
            "days_until": (d.next_review_date - today).days,
        }
        for d in docs
    ]


def recent_activity(s: "Session", limit: int = 20) -> list[dict[str, Any]]:
    rows = (
        s.query(DocumentTransition, ControlledDocument.title)
        .join(ControlledDocument, ControlledDocument.document_id == DocumentTransition.document_id)
        .order_by(DocumentTransition.performed_at.desc(), DocumentTransition.id.desc())
        .limit(limit)
        .all()
    )
    out = []
    for t, title in rows:
        out.append(
            {
                "id": t.id,
                "document_id": t.document_id,
                "action": t.action,
                "to_status": t.to_status,
                "to_version": t.to_version,
                "performed_by": t.performed_by,
                "comment": t.comment,
                "performed_at": t.performed_at,
                "title": title,
            }
        )
    return out


def suggest_registration(s: "Session", kb_doc) -> dict[str, Any]:
    """Guess register metadata for a KB doc from its file name."""
    name = PurePosixPath(kb_doc.file_path or kb_doc.slug or "").stem
    m = _SUGGEST_RE.match(name)
    prefix = m.group("prefix").upper() if m else None
    domain = m.group("domain").upper() if m else None

    suggested_type = prefix if prefix and _code_exists(s, DocumentType, prefix) else None
    suggested_domain = domain if domain and _code_exists(s, DomainCode, domain) else None
    suggested_status = kb_doc.status if kb_doc.status and _code_exists(s, DocumentStatus, kb_doc.status) else STATUS_EFFECTIVE

    if m and suggested_type and suggested_domain:
        confidence = "high"
    elif m and (suggested_type or suggested_domain):
        confidence = "medium"
    else:
        confidence = "low"

    return {
        "docs_id": kb_doc.id,
        "file_path": kb_doc.file_path,
        "kb_title": kb_doc.title,
        "kb_slug": kb_doc.slug,
        "source_dir": kb_doc.source_dir,
        "kb_created_at": kb_doc.created_at,
        "document_id": m.group(0).upper() if m else name.upper(),
        "prefix": prefix,
        "suggested_type": suggested_type,
        "suggested_domain": suggested_domain,
        "suggested_status": suggested_status,
        "suggested_version": kb_doc.version or "1.0",
        "suggested_classification": "internal",
        "confidence": confidence,
    }


def unregistered_documents(s: "Session") -> list[dict[str, Any]]:
    """KB docs that are neither registered nor excluded, with registration suggestions."""
    from app.qms.modules.knowledge_base.models import KnowledgeDoc

    registered = select(ControlledDocument.docs_id).where(ControlledDocument.docs_id.is_not(None))
    excluded = select(ReconciliationExclusion.docs_id)
    docs = (
        s.query(KnowledgeDoc)
        .filter(KnowledgeDoc.id.not_in(registered), KnowledgeDoc.id.not_in(excluded))
        .all()
    )
    items = [suggest_registration(s, d) for d in docs]
    items.sort(key=lambda r: r["document_id"])
    return items


def reconciliation_summary(s: "Session", unregistered: list[dict[str, Any]] | None = None) -> dict[str, int]:
    if unregistered is None:
        unregistered = unregistered_documents(s)
    return {
        "unregistered_count": len(unregistered),
        "high_confidence_count": sum(1 for r in unregistered if r["confidence"] == "high"),
        "excluded_count": s.query(func.count(ReconciliationExclusion.id)).scalar() or 0,
        "registered_count": s.query(func.count(ControlledDocument.id))
        .filter(ControlledDocument.docs_id.is_not(None))
        .scalar()
        or 0,
    }


def dashboard(s: "Session") -> dict[str, Any]:
    return {
        "by_status": documents_by_status(s),
        "by_domain": documents_by_domain(s),
        "overdue_reviews": overdue_reviews(s, limit=20),
        "recent_activity": recent_activity(s, limit=20),
        "external_documents_count": s.query(func.count(ExternalDocument.id)).scalar() or 0,
        "reconciliation": reconciliation_summary(s),
    }


def external_documents(s: "Session") -> list[dict[str, Any]]:
    fields = (
        "id",
        "document_id",
        "title",
        "edition",
        "publisher",
        "acquired_date",
        "owner",
        "current_status",
        "last_checked",
        "next_check_date",
        "notes",
    )
    docs = s.query(ExternalDocument).order_by(ExternalDocument.document_id).all()
    return [{f: getattr(d, f) for f in fields} for d in docs]
