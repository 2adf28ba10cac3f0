"""Step validators and session handling for training modules."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from flask import current_app
from sqlalchemy import func

from app.qms.audit import record_event
from app.qms.constants import STATUS_DRAFT, STATUS_EFFECTIVE, STATUS_IN_REVIEW, STATUS_OBSOLETE
from app.qms.errors import ApiError, BadRequest, Conflict, Forbidden, NotFound
from app.qms.models import User
from app.qms.modules.evidence.models import DocumentEvidence
from app.qms.modules.knowledge_base.models import DocDraft, KnowledgeDoc
from app.qms.modules.register.models import ControlledDocument
from app.qms.modules.register.service import add_transition, get_document
from app.qms.modules.training.models import (
    QualificationGrant,
    TrainingCertificate,
    TrainingModule,
    TrainingSession,
    TrainingStepCompletion,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


SESSION_IN_PROGRESS = "in_progress"
SESSION_COMPLETED = "completed"
SESSION_ABANDONED = "abandoned"

MIN_DRAFT_CHARS = 20


# ---------------------------------------------------------------------------
# Step validators
# ---------------------------------------------------------------------------


@dataclass
class StepResult:
    ok: bool
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class TrainingDocRef:
    docs_id: int
    qms_doc_id: str


def _current_evidence(s: "Session", document_id: str, evidence_type: str) -> DocumentEvidence | None:
    return (
        s.query(DocumentEvidence)
        .filter(
            DocumentEvidence.document_id == document_id,
            DocumentEvidence.evidence_type == evidence_type,
            DocumentEvidence.is_superseded.is_(False),
        )
        .order_by(DocumentEvidence.recorded_at.desc(), DocumentEvidence.id.desc())
        .first()
    )


def _draft_for(s: "Session", docs_id: int) -> DocDraft | None:
    return s.query(DocDraft).filter(DocDraft.doc_id == docs_id).one_or_none()


def validate_draft_exists(s: "Session", ref: TrainingDocRef) -> StepResult:
    draft = _draft_for(s, ref.docs_id)
    if draft is None:
        return StepResult(False, "No draft found. Open the document editor, write content, and save.")
    if len((draft.body_md or "").strip()) < MIN_DRAFT_CHARS:
        return StepResult(False, "Draft content is too short. Write at least a paragraph of meaningful content.")
    return StepResult(True, data={"draft_id": draft.id, "version": draft.version, "status": draft.status})


def validate_evidence_justification(s: "Session", ref: TrainingDocRef) -> StepResult:
    ev = _current_evidence(s, ref.qms_doc_id, "justification")
    if ev is None:
        return StepResult(
            False,
            "No justification evidence found. Save the draft again with a justification (what, why, and scope).",
        )
    return StepResult(True, data={"evidence_id": ev.id, "recorded_at": ev.recorded_at.isoformat()})


def validate_draft_in_review(s: "Session", ref: TrainingDocRef) -> StepResult:
    draft = _draft_for(s, ref.docs_id)
    if draft is None:
        return StepResult(False, "No draft found. The draft may have already been approved.")
    if draft.status != STATUS_IN_REVIEW:
        return StepResult(
            False, f"Draft status is '{draft.status}', expected 'in_review'. Submit the draft for review."
        )
    return StepResult(True, data={"draft_id": draft.id, "status": STATUS_IN_REVIEW})


def validate_evidence_coi_qualification(s: "Session", ref: TrainingDocRef) -> StepResult:
    rows = (
        s.query(DocumentEvidence.evidence_type)
        .filter(
            DocumentEvidence.document_id == ref.qms_doc_id,
            DocumentEvidence.evidence_type.in_(("coi_declaration", "qualification")),
            DocumentEvidence.is_superseded.is_(False),
        )
        .all()
    )
    types = {t for (t,) in rows}
    missing = []
    if "coi_declaration" not in types:
        missing.append("COI declaration")
    if "qualification" not in types:
        missing.append("qualification")
    if missing:
        return StepResult(False, f"Missing evidence: {', '.join(missing)}. Submit the draft with all required fields.")
    return StepResult(True, data={"evidence_count": len(rows)})


def validate_evidence_checklist(s: "Session", ref: TrainingDocRef) -> StepResult:
    ev = _current_evidence(s, ref.qms_doc_id, "self_review_checklist")
    if ev is None:
        return StepResult(
            False,
            "No self-review checklist evidence found. Complete the FRM-DC-004 checklist and approve the document.",
        )
    return StepResult(True, data={"evidence_id": ev.id, "recorded_at": ev.recorded_at.isoformat()})


def validate_document_effective(s: "Session", ref: TrainingDocRef) -> StepResult:
    doc = get_document(s, ref.qms_doc_id)
    if doc is None:
        return StepResult(False, "Training document not found in QMS register.")
    if doc.status != STATUS_EFFECTIVE:
        return StepResult(
            False, f"Document status is '{doc.status}', expected 'effective'. Complete the approval step."
        )
    return StepResult(
        True,
        data={
            "status": STATUS_EFFECTIVE,
            "version": doc.version,
            "effective_date": doc.effective_date.isoformat() if doc.effective_date else None,
        },
    )


VALIDATORS: dict[str, Callable[["Session", TrainingDocRef], StepResult]] = {
    "draft_exists": validate_draft_exists,
    "evidence_justification": validate_evidence_justification,
    "draft_in_review": validate_draft_in_review,
    "evidence_coi_qualification": validate_evidence_coi_qualification,
    "evidence_checklist": validate_evidence_checklist,
    "document_effective": validate_document_effective,
}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


MODULE_FIELDS = ("id", "module_code", "title", "description", "sop_reference", "grants_roles", "steps", "active")


def module_dict(m: TrainingModule) -> dict[str, Any]:
    return {f: getattr(m, f) for f in MODULE_FIELDS}


def session_detail(s: "Session", ts: TrainingSession) -> dict[str, Any]:
    m = ts.module
    cert = None
    if ts.certificate_id:
        cert = (
            s.query(TrainingCertificate)
            .filter(TrainingCertificate.certificate_id == ts.certificate_id)
            .one_or_none()
        )
    return {
        "session_id": ts.id,
        "user_id": ts.user_id,
        "training_doc_id": ts.training_doc_id,
        "current_step": ts.current_step,
        "session_status": ts.status,
        "started_at": ts.started_at,
        "completed_at": ts.completed_at,
        "certificate_id": ts.certificate_id,
        "module_id": m.id,
        "module_code": m.module_code,
        "module_title": m.title,
        "module_description": m.description,
        "sop_reference": m.sop_reference,
        "module_steps": m.steps,
        "grants_roles": m.grants_roles,
        "cert_id": cert.certificate_id if cert else None,
        "cert_fullname": cert.user_fullname if cert else None,
        "cert_issued_at": cert.issued_at if cert else None,
        "cert_qualified_for": cert.qualified_for if cert else None,
        "completed_steps": [
            {
                "step_number": c.step_number,
                "step_key": c.step_key,
                "validated_at": c.validated_at,
                "validation_data": c.validation_data,
            }
            for c in ts.completions
        ],
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def active_modules(s: "Session") -> list[dict[str, Any]]:
    rows = (
        s.query(TrainingModule)
        .filter(TrainingModule.active.is_(True))
        .order_by(TrainingModule.module_code)
        .all()
    )
    return [module_dict(m) for m in rows]


def user_sessions(s: "Session", username: str) -> list[dict[str, Any]]:
    rows = (
        s.query(TrainingSession)
        .filter(TrainingSession.user_id == username)
        .order_by(TrainingSession.started_at.desc(), TrainingSession.id.desc())
        .all()
    )
    return [session_detail(s, ts) for ts in rows]


def module_session(s: "Session", username: str, module_code: str) -> dict[str, Any] | None:
    """The in-progress session for a module, else the most recent one."""
    rows = (
        s.query(TrainingSession)
        .join(TrainingModule, TrainingModule.id == TrainingSession.module_id)
        .filter(TrainingSession.user_id == username, TrainingModule.module_code == module_code)
        .order_by(TrainingSession.started_at.desc(), TrainingSession.id.desc())
        .all()
    )
    if not rows:
        return None
    in_progress = [ts for ts in rows if ts.status == SESSION_IN_PROGRESS]
    return session_detail(s, (in_progress or rows)[0])


def certificate_detail(s: "Session", certificate_id: str) -> dict[str, Any] | None:
    row = (
        s.query(TrainingCertificate, TrainingModule)
        .join(TrainingSession, TrainingSession.id == TrainingCertificate.session_id)
        .join(TrainingModule, TrainingModule.id == TrainingSession.module_id)
        .filter(TrainingCertificate.certificate_id == certificate_id)
        .one_or_none()
    )
    if row is None:
        return None
    cert, m = row
    return {
        "id": cert.id,
        "certificate_id": cert.certificate_id,
        "session_id": cert.session_id,
        "user_id": cert.user_id,
        "user_fullname": cert.user_fullname,
        "module_code": cert.module_code,
        "module_title": cert.module_title,
        "issued_at": cert.issued_at,
        "qualified_for": cert.qualified_for,
        "sop_reference": m.sop_reference,
        "module_description": m.description,
    }


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


def training_doc_id(s: "Session", username: str, today: datetime | None = None) -> str:
    """TST-TRN-<user>-<YYYYMMDD>, suffixed with -<n+1> when n training slugs already start with it."""
    base = f"TST-TRN-{username}-{(today or datetime.utcnow()).strftime('%Y%m%d')}"
    taken = s.query(func.count(KnowledgeDoc.id)).filter(KnowledgeDoc.slug.like(f"training/{base}%")).scalar() or 0
    return f"{base}-{taken + 1}" if taken else base


def _training_body(doc_id: str, module: TrainingModule, username: str, today: str) -> str:
    title = f"Training Document: {doc_id}"
    return "\n".join(
        [
            f"# {title}",
            "",
            f"**Module:** {module.title}",
            f"**SOP Reference:** {module.sop_reference}",
            f"**Trainee:** {username}",
            f"**Created:** {today}",
            "",
            "---",
            "",
            "## Purpose",
            "",
            "This is a training document created as part of the QMS competence certification process. ",
            "Edit this document to demonstrate your ability to use the document control system.",
            "",
            "## Content",
            "",
            "*Replace this section with your own content during training.*",
            "",
        ]
    )


def start_session(s: "Session", module_code: str, user: User) -> tuple[TrainingSession, str]:
    """
    Start a session: sandbox KB doc, its register row (REC/HR, v0.1, draft)
    with a `create` transition, and the session itself at step 1.
    Returns (session, training doc slug).
    """
    module = (
        s.query(TrainingModule)
        .filter(TrainingModule.module_code == module_code, TrainingModule.active.is_(True))
        .one_or_none()
    )
    if module is None:
        raise NotFound("Training module not found or inactive")

    existing = (
        s.query(TrainingSession)
        .filter(
            TrainingSession.user_id == user.username,
            TrainingSession.module_id == module.id,
            TrainingSession.status == SESSION_IN_PROGRESS,
        )
        .first()
    )
    if existing is not None:
        raise Conflict("You already have an in-progress session for this module", session_id=existing.id)

    now = datetime.utcnow()
    doc_id = training_doc_id(s, user.username, now)
    slug = f"training/{doc_id}"
    title = f"Training Document: {doc_id}"
    body_md = _training_body(doc_id, module, user.username, now.date().isoformat())

    kb_doc = KnowledgeDoc(
        slug=slug,
        file_path=f"{slug}.md",
        title=title,
        category="training",
        subcategory="competence",
        status=STATUS_DRAFT,
        author=user.username,
        version="0.1",
        body_md=body_md,
        content_type="document",
        source_dir="training",
        project="polyglot",
    )
    s.add(kb_doc)
    s.flush()

    s.add(
        ControlledDocument(
            document_id=doc_id,
            title=title,
            document_type="REC",
            domain_code="HR",
            version="0.1",
            status=STATUS_DRAFT,
            classification="internal",
            owner=user.username,
            author=user.username,
            docs_id=kb_doc.id,
            body_md=body_md,
            notes=f"Training document for module {module.module_code}",
        )
    )
    s.flush()
    add_transition(
        s,
        document_id=doc_id,
        action="create",
        to_status=STATUS_DRAFT,
        to_version="0.1",
        performed_by=user.username,
        comment=f"Training session started for {module.module_code}",
    )

    ts = TrainingSession(
        user_id=user.username,
        module_id=module.id,
        module=module,
        training_doc_id=doc_id,
        current_step=1,
        status=SESSION_IN_PROGRESS,
        started_at=now,
    )
    s.add(ts)
    s.flush()

    record_event(
        s,
        actor=user,
        action="training.start",
        entity_type="TrainingSession",
        entity_id=str(ts.id),
        metadata={"module_code": module.module_code, "training_doc_id": doc_id},
    )
    return ts, slug


def _owned_session(s: "Session", session_id: Any, user: User) -> TrainingSession:
    try:
        ts = s.get(TrainingSession, int(session_id))
    except (TypeError, ValueError):
        ts = None
    if ts is None:
        raise NotFound("Training session not found")
    if ts.user_id != user.username:
        raise Forbidden("This session belongs to another user")
    return ts


def _issue_certificate(s: "Session", ts: TrainingSession, user: User) -> TrainingCertificate:
    now = datetime.utcnow()
    cert = TrainingCertificate(
        certificate_id=f"CERT-{now.strftime('%Y%m%d')}-{secrets.token_hex(3)}",
        session_id=ts.id,
        user_id=user.username,
        user_fullname=user.fullname or user.username,
        module_code=ts.module.module_code,
        module_title=ts.module.title,
        qualified_for=list(ts.module.grants_roles or []),
        issued_at=now,
    )
    s.add(cert)
    return cert


def _grant_roles(s: "Session", username: str, roles: list[str]) -> None:
    grantor = current_app.config["TRAINING_GRANTOR"]
    now = datetime.utcnow()
    for role_code in roles:
        grant = (
            s.query(QualificationGrant)
            .filter(QualificationGrant.user_id == username, QualificationGrant.role_code == role_code)
            .one_or_none()
        )
        if grant is None:
            s.add(QualificationGrant(user_id=username, role_code=role_code, granted_by=grantor, granted_at=now))
        else:
            grant.active = True
            grant.granted_by = grantor
            grant.granted_at = now


def validate_step(s: "Session", payload: dict, user: User) -> dict[str, Any]:
    """
    Run the validator for the session's current step.

    A failing validator is not an error: the result carries ok=False and the
    validator's message. Passing the last step issues the certificate,
    completes the session and grants the module's qualifications.
    """
    session_id = payload.get("session_id")
    raw_step = payload.get("step_number")
    if not session_id or raw_step is None:
        raise BadRequest("session_id and step_number are required")
    try:
        step_number = int(raw_step)
    except (TypeError, ValueError):
        raise BadRequest("step_number must be an integer")

    ts = _owned_session(s, session_id, user)
    if ts.status != SESSION_IN_PROGRESS:
        raise Conflict(f"Session is '{ts.status}', cannot validate steps")
    if step_number != ts.current_step:
        raise Conflict(f"Expected step {ts.current_step}, got step {step_number}. Complete steps in order.")

    steps = ts.module.steps or []
    step_def = next((st for st in steps if st.get("step") == step_number), None)
    if step_def is None:
        raise BadRequest(f"Step {step_number} not defined in module")

    qms_doc = get_document(s, ts.training_doc_id) if ts.training_doc_id else None
    if qms_doc is None or qms_doc.docs_id is None:
        raise ApiError("Training document not found in database")
    validator = VALIDATORS.get(step_def.get("validation"))
    if validator is None:
        raise ApiError(f"Unknown validator: {step_def.get('validation')}")

    result = validator(s, TrainingDocRef(docs_id=qms_doc.docs_id, qms_doc_id=qms_doc.document_id))
    base = {"step_number": step_number, "step_key": step_def.get("key")}
    if not result.ok:
        return {"ok": False, **base, "message": result.message}

    done = {c.step_number for c in ts.completions}
    if step_number not in done:
        ts.completions.append(
            TrainingStepCompletion(
                step_number=step_number,
                step_key=step_def.get("key"),
                validated_by=user.username,
                validation_data=result.data,
            )
        )

    if step_number == len(steps):
        cert = _issue_certificate(s, ts, user)
        ts.status = SESSION_COMPLETED
        ts.current_step = step_number + 1
        ts.completed_at = datetime.utcnow()
        ts.certificate_id = cert.certificate_id
        _grant_roles(s, user.username, list(ts.module.grants_roles or []))
        s.flush()
        record_event(
            s,
            actor=user,
            action="training.complete",
            entity_type="TrainingSession",
            entity_id=str(ts.id),
            metadata={"certificate_id": cert.certificate_id, "qualified_for": cert.qualified_for},
        )
        logger.info("Training completed user=%s module=%s certificate=%s", user.username, ts.module.module_code, cert.certificate_id)
        return {
            "ok": True,
            **base,
            "completed": True,
            "certificate_id": cert.certificate_id,
            "message": "Congratulations! All steps completed. Certificate issued.",
        }

    ts.current_step = step_number + 1
    s.flush()
    record_event(
        s,
        actor=user,
        action="training.step",
        entity_type="TrainingSession",
        entity_id=str(ts.id),
        metadata={"step_number": step_number, "step_key": step_def.get("key")},
    )
    return {
        "ok": True,
        **base,
        "completed": False,
        "current_step": step_number + 1,
        "message": f"Step {step_number} validated. Proceed to step {step_number + 1}.",
    }


def abandon_session(s: "Session", session_id: Any, user: User) -> TrainingSession:
    if not session_id:
        raise BadRequest("session_id is required")
    ts = _owned_session(s, session_id, user)
    if ts.status != SESSION_IN_PROGRESS:
        raise Conflict(f"Session is already '{ts.status}'")

    now = datetime.utcnow()
    ts.status = SESSION_ABANDONED
    ts.completed_at = now

    if ts.training_doc_id:
        qms_doc = get_document(s, ts.training_doc_id)
        if qms_doc is not None:
            previous = qms_doc.status
            qms_doc.status = STATUS_OBSOLETE
            qms_doc.updated_at = now
            add_transition(
                s,
                document_id=qms_doc.document_id,
                action="obsolete",
                from_status=previous,
                to_status=STATUS_OBSOLETE,
                performed_by=user.username,
                comment="Training session abandoned",
            )

    record_event(
        s,
        actor=user,
        action="training.abandon",
        entity_type="TrainingSession",
        entity_id=str(ts.id),
        metadata={"training_doc_id": ts.training_doc_id},
    )
    return ts
