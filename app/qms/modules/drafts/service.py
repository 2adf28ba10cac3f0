"""
Draft lifecycle for knowledge-base documents.

    draft ──submit──> in_review ──approve──> (published, draft row deleted)
      ^                   │
      └──(save)── rejected <──reject──┘      rejected ──submit──> in_review

Each call runs inside the request's single transaction; the route commits once
the whole sequence has succeeded. Evidence is only captured for documents that
are registered in the QMS register.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from app.qms.audit import record_event
from app.qms.constants import STATUS_EFFECTIVE, STATUS_IN_REVIEW
from app.qms.errors import BadRequest, Conflict, NotFound, Unprocessable
from app.qms.modules.evidence.service import missing_required_evidence, record_evidence
from app.qms.modules.knowledge_base.models import DocDraft, KnowledgeDoc
from app.qms.modules.knowledge_base.service import get_doc_by_slug, snapshot_version, supersede_versions
from app.qms.modules.register.service import add_transition, get_document_by_docs_id
from app.qms.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.qms.models import User

logger = logging.getLogger(__name__)


DRAFT_STATUS_DRAFT = "draft"
DRAFT_STATUS_REJECTED = "rejected"

DRAFT_TRANSITIONS: dict[str, dict[str, Any]] = {
    "submit": {"from": (DRAFT_STATUS_DRAFT, DRAFT_STATUS_REJECTED), "to": STATUS_IN_REVIEW},
    "approve": {"from": (STATUS_IN_REVIEW,), "to": None},
    "reject": {"from": (STATUS_IN_REVIEW,), "to": DRAFT_STATUS_REJECTED},
}

DRAFT_FIELDS = (
    "id",
    "doc_id",
    "version",
    "title",
    "body_md",
    "frontmatter",
    "status",
    "created_by",
    "updated_by",
    "created_at",
    "updated_at",
    "reviewer_notes",
)


def draft_dict(draft: DocDraft, doc: KnowledgeDoc | None = None) -> dict[str, Any]:
    out = {f: getattr(draft, f) for f in DRAFT_FIELDS}
    if doc is not None:
        out["slug"] = doc.slug
        out["effective_title"] = doc.title
        out["effective_version"] = doc.version
        out["effective_status"] = doc.status
    return out


def _require_slug(payload: dict) -> str:
    slug = clean_str(payload.get("slug")) or ""
    if not slug:
        raise BadRequest("Document slug required")
    return slug


def get_draft(s: "Session", slug: str) -> tuple[KnowledgeDoc, DocDraft]:
    doc = get_doc_by_slug(s, slug)
    draft = s.query(DocDraft).filter(DocDraft.doc_id == doc.id).one_or_none() if doc else None
    if doc is None or draft is None:
        raise NotFound("No draft found for this document")
    return doc, draft


def _check_transition(draft: DocDraft, action: str) -> None:
    rule = DRAFT_TRANSITIONS[action]
    if draft.status in rule["from"]:
        return
    if action == "submit":
        raise Conflict(f"Cannot submit: draft is currently '{draft.status}'")
    raise Conflict(f"Cannot {action}: draft status is '{draft.status}', expected '{STATUS_IN_REVIEW}'")


def _qms_document_id(s: "Session", doc: KnowledgeDoc) -> str | None:
    qms_doc = get_document_by_docs_id(s, doc.id)
    return qms_doc.document_id if qms_doc else None


# ---------------------------------------------------------------------------
# Save / abandon
# ---------------------------------------------------------------------------


def save_draft(s: "Session", payload: dict, user: "User") -> tuple[KnowledgeDoc, DocDraft, bool]:
    """
    Create or update the single draft of a doc. Returns (doc, draft, created).

    Saving a rejected draft puts it back to `draft` and clears reviewer notes.
    """
    slug = _require_slug(payload)
    doc = get_doc_by_slug(s, slug)
    if doc is None:
        raise NotFound("Document not found")
    version = clean_str(payload.get("version")) or ""
    if not version:
        raise BadRequest("Version is required for a draft")

    title = payload["title"] if "title" in payload else doc.title
    body_md = payload["body_md"] if "body_md" in payload else doc.body_md
    frontmatter = payload["frontmatter"] if "frontmatter" in payload else doc.frontmatter

    draft = s.query(DocDraft).filter(DocDraft.doc_id == doc.id).one_or_none()
    created = draft is None
    now = datetime.utcnow()
    if created:
        draft = DocDraft(
            doc_id=doc.id,
            status=DRAFT_STATUS_DRAFT,
            created_by=user.username,
            created_at=now,
        )
        s.add(draft)
    elif draft.status == DRAFT_STATUS_REJECTED:
        draft.status = DRAFT_STATUS_DRAFT
        draft.reviewer_notes = None

    draft.version = version
    draft.title = title
    draft.body_md = body_md
    draft.frontmatter = frontmatter
    draft.updated_by = user.username
    draft.updated_at = now
    s.flush()

    justification = payload.get("justification")
    if created and isinstance(justification, dict):
        qms_doc_id = _qms_document_id(s, doc)
        if qms_doc_id:
            record_evidence(
                s,
                document_id=qms_doc_id,
                evidence_type="justification",
                evidence_data={
                    "what": justification.get("what") or "",
                    "why": justification.get("why") or "",
                    "scope": justification.get("scope") or "",
                    "classification_estimate": justification.get("classification_estimate") or "",
                    "trigger": justification.get("trigger") or "manual",
                },
                evidence_text=f"Justification: {justification.get('why') or '(not provided)'}",
                recorded_by=user.username,
            )

    record_event(
        s,
        actor=user,
        action="draft.create" if created else "draft.update",
        entity_type="DocDraft",
        entity_id=str(draft.id),
        metadata={"slug": slug, "version": version},
    )
    return doc, draft, created


def abandon_draft(s: "Session", slug: str, user: "User") -> None:
    doc, draft = get_draft(s, slug)
    record_event(
        s,
        actor=user,
        action="draft.abandon",
        entity_type="DocDraft",
        entity_id=str(draft.id),
        metadata={"slug": doc.slug, "version": draft.version, "status": draft.status},
    )
    s.delete(draft)


# ---------------------------------------------------------------------------
# Review workflow
# ---------------------------------------------------------------------------


def submit_draft(s: "Session", payload: dict, user: "User") -> tuple[KnowledgeDoc, DocDraft]:
    """draft|rejected -> in_review; records COI and qualification evidence when supplied."""
    slug = _require_slug(payload)
    doc, draft = get_draft(s, slug)
    _check_transition(draft, "submit")

    draft.status = DRAFT_TRANSITIONS["submit"]["to"]
    draft.reviewer_notes = None
    draft.updated_by = user.username
    draft.updated_at = datetime.utcnow()

    qms_doc_id = _qms_document_id(s, doc)
    if qms_doc_id:
        coi = payload.get("coi_declaration")
        if isinstance(coi, dict):
            record_evidence(
                s,
                document_id=qms_doc_id,
                evidence_type="coi_declaration",
                evidence_data={
                    "has_conflict": bool(coi.get("has_conflict", False)),
                    "declaration": coi.get("declaration") or "",
                    "micro_enterprise_provision": bool(coi.get("micro_enterprise_provision", False)),
                    "same_author_reviewer": bool(coi.get("same_author_reviewer", False)),
                    "mitigation": coi.get("mitigation") or "",
                },
                evidence_text=(
                    f"COI declared: {coi.get('declaration') or ''}"
                    if coi.get("has_conflict")
                    else "No conflicts of interest declared"
                ),
                recorded_by=user.username,
            )

        qualification = payload.get("qualification")
        if isinstance(qualification, dict):
            contributors = qualification.get("contributors") or [
                {"user_id": user.username, "role": "reviewer", "basis": qualification.get("basis") or ""}
            ]
            record_evidence(
                s,
                document_id=qms_doc_id,
                evidence_type="qualification",
                evidence_data={"contributors": contributors},
                evidence_text=f"Qualification: {qualification.get('basis') or '(see evidence_data)'}",
                recorded_by=user.username,
            )

    record_event(
        s,
        actor=user,
        action="draft.submit",
        entity_type="DocDraft",
        entity_id=str(draft.id),
        metadata={"slug": slug, "version": draft.version},
    )
    return doc, draft


def reject_draft(s: "Session", payload: dict, user: "User") -> tuple[KnowledgeDoc, DocDraft]:
    """in_review -> rejected with reviewer notes; records rejection feedback for registered docs."""
    slug = _require_slug(payload)
    notes = clean_str(payload.get("notes")) or ""
    if not notes:
        raise BadRequest("Reviewer notes are required when rejecting a draft")
    doc, draft = get_draft(s, slug)
    _check_transition(draft, "reject")

    draft.status = DRAFT_TRANSITIONS["reject"]["to"]
    draft.reviewer_notes = notes
    draft.updated_by = user.username
    draft.updated_at = datetime.utcnow()

    qms_doc_id = _qms_document_id(s, doc)
    if qms_doc_id:
        rejection = payload.get("rejection") if isinstance(payload.get("rejection"), dict) else {}
        severity = rejection.get("severity") or "major"
        record_evidence(
            s,
            document_id=qms_doc_id,
            evidence_type="rejection_feedback",
            evidence_data={
                "categories": rejection.get("categories") or [],
                "feedback": notes,
                "severity": severity,
                "action_required": rejection.get("action_required") or "",
            },
            evidence_text=f"Rejected ({severity}): {notes}",
            recorded_by=user.username,
        )

    record_event(
        s,
        actor=user,
        action="draft.reject",
        entity_type="DocDraft",
        entity_id=str(draft.id),
        reason=notes,
        metadata={"slug": slug, "version": draft.version},
    )
    return doc, draft


def approve_draft(s: "Session", payload: dict, user: "User") -> dict[str, Any]:
    """
    Publish an in-review draft.

    The evidence gate runs before anything is written, so a 422 leaves the
    database untouched. After that, in order: snapshot the current effective
    content, supersede older snapshots, copy the draft into the doc, record the
    `approve` transition and approval evidence (registered docs only), make the
    register row effective, snapshot the new version and delete the draft.
    """
    slug = _require_slug(payload)
    doc, draft = get_draft(s, slug)
    _check_transition(draft, "approve")

    qms_doc = get_document_by_docs_id(s, doc.id)
    if qms_doc is not None:
        missing = missing_required_evidence(s, qms_doc.document_id)
        if missing:
            labels = ", ".join(t.label for t in missing)
            raise Unprocessable(
                f"Cannot approve: required evidence is missing: {labels}",
                missing_evidence=[{"code": t.code, "label": t.label} for t in missing],
            )

    previous_version = doc.version or "0.0"
    new_version = draft.version

    # 1. snapshot the content being replaced
    snapshot_version(
        s,
        doc_id=doc.id,
        version=previous_version,
        title=doc.title,
        body_md=doc.body_md,
        frontmatter=doc.frontmatter,
        author=doc.author,
        published_by=user.username,
    )
    # 2. older snapshots are superseded by the version being published
    supersede_versions(s, doc.id, new_version)

    # 3. draft content becomes the effective doc
    now = datetime.utcnow()
    if draft.title is not None:
        doc.title = draft.title
    if draft.body_md is not None:
        doc.body_md = draft.body_md
    if draft.frontmatter is not None:
        doc.frontmatter = draft.frontmatter
    doc.version = new_version
    doc.is_edited = True
    doc.edited_by = user.username
    doc.updated_at = now

    # 4. register transition + approval evidence
    if qms_doc is not None:
        comment = clean_str(payload.get("comment"))
        transition = add_transition(
            s,
            document_id=qms_doc.document_id,
            action="approve",
            from_status=STATUS_IN_REVIEW,
            to_status=STATUS_EFFECTIVE,
            from_version=previous_version,
            to_version=new_version,
            performed_by=user.username,
            comment=comment or "Approved via draft management",
        )
        _record_approval_evidence(s, payload, qms_doc.document_id, transition.id, user, comment)

        qms_doc.version = new_version
        qms_doc.status = STATUS_EFFECTIVE
        qms_doc.effective_date = date.today()
        qms_doc.updated_at = now

    # 5. snapshot what was just published
    snapshot_version(
        s,
        doc_id=doc.id,
        version=new_version,
        title=doc.title,
        body_md=doc.body_md,
        frontmatter=doc.frontmatter,
        author=doc.author,
        published_by=user.username,
    )

    # 6. the draft has served its purpose
    draft_id = draft.id
    doc.draft = None
    s.delete(draft)
    s.flush()

    record_event(
        s,
        actor=user,
        action="draft.approve",
        entity_type="KnowledgeDoc",
        entity_id=str(doc.id),
        metadata={
            "slug": slug,
            "draft_id": draft_id,
            "previous_version": previous_version,
            "version": new_version,
            "qms_document_id": qms_doc.document_id if qms_doc else None,
        },
    )
    logger.info("Draft approved slug=%s version=%s (previous %s)", slug, new_version, previous_version)
    return {
        "message": f"Version {new_version} published successfully",
        "slug": slug,
        "version": new_version,
        "previous_version": previous_version,
    }


def _record_approval_evidence(
    s: "Session",
    payload: dict,
    document_id: str,
    transition_id: int,
    user: "User",
    comment: str | None,
) -> None:
    checklist = payload.get("checklist")
    if isinstance(checklist, dict):
        outcome = checklist.get("outcome") or {"decision": "pass", "reviewer_signature": user.username}
        decision = str(outcome.get("decision") or "pass") if isinstance(outcome, dict) else "pass"
        record_evidence(
            s,
            document_id=document_id,
            transition_id=transition_id,
            evidence_type="self_review_checklist",
            evidence_data={
                "frm_dc_004_version": checklist.get("frm_dc_004_version") or "1.0",
                "sections": checklist.get("sections") or {},
                "outcome": outcome,
            },
            evidence_text=f"FRM-DC-004 self-review: {decision.upper()}",
            recorded_by=user.username,
        )

    approval = payload.get("approval_justification")
    if isinstance(approval, dict):
        record_evidence(
            s,
            document_id=document_id,
            transition_id=transition_id,
            evidence_type="approval_justification",
            evidence_data={
                "decision": "approve",
                "justification": approval.get("justification") or "",
                "ai_assisted": bool(approval.get("ai_assisted", False)),
                "ai_disclosure": approval.get("ai_disclosure") or "",
            },
            evidence_text=f"Approved: {approval.get('justification') or comment or '(no justification)'}",
            recorded_by=user.username,
        )

    classification = payload.get("change_classification")
    if isinstance(classification, dict):
        level = classification.get("classification") or "PATCH"
        record_evidence(
            s,
            document_id=document_id,
            transition_id=transition_id,
            evidence_type="change_classification",
            evidence_data={"classification": level, "rationale": classification.get("rationale") or ""},
            evidence_text=f"Classification: {level} - {classification.get('rationale') or ''}".rstrip(" -"),
            recorded_by=user.username,
        )
