from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.qms.audit import record_event
from app.qms.errors import BadRequest, NotFound
from app.qms.modules.evidence.models import DocumentEvidence, EvidenceType

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.qms.models import User


VALID_EVIDENCE_TYPES = (
    "justification",
    "qualification",
    "coi_declaration",
    "review_comment",
    "self_review_checklist",
    "approval_justification",
    "change_classification",
    "rejection_feedback",
)

# Evidence required before a draft may be approved: required types up to this phase.
APPROVAL_GATE_MAX_PHASE = 2


def record_evidence(
    s: "Session",
    *,
    document_id: str,
    evidence_type: str,
    evidence_data: dict[str, Any],
    recorded_by: str,
    evidence_text: str | None = None,
    transition_id: int | None = None,
) -> DocumentEvidence:
    """Insert an evidence row and supersede the previous current row(s) of the same type."""
    ev = DocumentEvidence(
        document_id=document_id,
        transition_id=transition_id,
        evidence_type=evidence_type,
        evidence_data=evidence_data,
        evidence_text=evidence_text,
        recorded_by=recorded_by,
    )
    s.add(ev)
    s.flush()

    previous = (
        s.query(DocumentEvidence)
        .filter(
            DocumentEvidence.document_id == document_id,
            DocumentEvidence.evidence_type == evidence_type,
            DocumentEvidence.is_superseded.is_(False),
            DocumentEvidence.id != ev.id,
        )
        .all()
    )
    for old in previous:
        old.is_superseded = True
        old.superseded_by = ev.id
    return ev


def current_evidence(s: "Session", document_id: str) -> dict[str, DocumentEvidence]:
    """Current (non-superseded) evidence row per type."""
    rows = (
        s.query(DocumentEvidence)
        .filter(DocumentEvidence.document_id == document_id, DocumentEvidence.is_superseded.is_(False))
        .order_by(DocumentEvidence.recorded_at.asc(), DocumentEvidence.id.asc())
        .all()
    )
    # Later rows win if a type somehow has more than one current row.
    return {r.evidence_type: r for r in rows}


def missing_required_evidence(s: "Session", document_id: str, max_phase: int = APPROVAL_GATE_MAX_PHASE) -> list[EvidenceType]:
    captured = current_evidence(s, document_id)
    required = (
        s.execute(
            select(EvidenceType)
            .where(EvidenceType.required.is_(True), EvidenceType.phase <= max_phase)
            .order_by(EvidenceType.phase, EvidenceType.sort_order, EvidenceType.code)
        )
        .scalars()
        .all()
    )
    return [t for t in required if t.code not in captured]


def evidence_dict(ev: DocumentEvidence, etype: EvidenceType | None) -> dict[str, Any]:
    return {
        "id": ev.id,
        "document_id": ev.document_id,
        "transition_id": ev.transition_id,
        "evidence_type": ev.evidence_type,
        "evidence_data": ev.evidence_data,
        "evidence_text": ev.evidence_text,
        "recorded_by": ev.recorded_by,
        "recorded_at": ev.recorded_at,
        "is_superseded": ev.is_superseded,
        "superseded_by": ev.superseded_by,
        "evidence_type_label": etype.label if etype else None,
        "phase": etype.phase if etype else None,
        "required": etype.required if etype else None,
    }


def list_evidence(s: "Session", document_id: str) -> list[dict[str, Any]]:
    """All evidence rows for a document, newest first, joined with their type metadata."""
    rows = (
        s.query(DocumentEvidence, EvidenceType)
        .join(EvidenceType, EvidenceType.code == DocumentEvidence.evidence_type)
        .filter(DocumentEvidence.document_id == document_id)
        .order_by(DocumentEvidence.recorded_at.desc(), DocumentEvidence.id.desc())
        .all()
    )
    return [evidence_dict(ev, et) for ev, et in rows]


def evidence_summary(s: "Session", document_id: str) -> dict[str, Any]:
    captured = current_evidence(s, document_id)
    types = s.query(EvidenceType).order_by(EvidenceType.phase, EvidenceType.code).all()
    items = []
    for t in types:
        ev = captured.get(t.code)
        items.append(
            {
                "evidence_type": t.code,
                "phase": t.phase,
                "required": t.required,
                "label": t.label,
                "captured": ev is not None,
                "evidence_id": ev.id if ev else None,
                "recorded_by": ev.recorded_by if ev else None,
                "recorded_at": ev.recorded_at if ev else None,
                "evidence_text": ev.evidence_text if ev else None,
            }
        )
    required_total = sum(1 for i in items if i["required"])
    required_captured = sum(1 for i in items if i["required"] and i["captured"])
    return {
        "document_id": document_id,
        "items": items,
        "required_total": required_total,
        "required_captured": required_captured,
        "complete": required_captured == required_total,
    }


def validate_evidence_payload(payload: dict) -> list[str]:
    errors = []
    if not payload.get("document_id") or not payload.get("evidence_type") or payload.get("evidence_data") is None:
        errors.append("Required fields: document_id, evidence_type, evidence_data")
        return errors
    if payload["evidence_type"] not in VALID_EVIDENCE_TYPES:
        errors.append(f"Invalid evidence_type. Valid types: {', '.join(VALID_EVIDENCE_TYPES)}")
    if not isinstance(payload["evidence_data"], dict):
        errors.append("evidence_data must be a JSON object")
    return errors


def create_evidence(s: "Session", payload: dict, user: "User") -> DocumentEvidence:
    """Record standalone evidence (not tied to a draft action)."""
    from app.qms.modules.register.models import ControlledDocument, DocumentTransition

    errors = validate_evidence_payload(payload)
    if errors:
        raise BadRequest("; ".join(errors))

    document_id = str(payload["document_id"])
    if not s.query(ControlledDocument.id).filter(ControlledDocument.document_id == document_id).first():
        raise NotFound("Document not found")

    transition_id: int | None = None
    if payload.get("transition_id"):
        try:
            transition_id = int(payload["transition_id"])
        except (TypeError, ValueError):
            raise BadRequest("transition_id must be an integer")
        t = s.get(DocumentTransition, transition_id)
        if not t or t.document_id != document_id:
            raise NotFound("Transition not found for this document")

    ev = record_evidence(
        s,
        document_id=document_id,
        transition_id=transition_id,
        evidence_type=payload["evidence_type"],
        evidence_data=payload["evidence_data"],
        evidence_text=payload.get("evidence_text") or None,
        recorded_by=user.username,
    )
    record_event(
        s,
        actor=user,
        action="evidence.record",
        entity_type="DocumentEvidence",
        entity_id=str(ev.id),
        metadata={"document_id": document_id, "evidence_type": ev.evidence_type},
    )
    return ev
