import pytest

from app.qms.db import session_scope
from app.qms.models import AuditEvent
from app.qms.modules.evidence.models import DocumentEvidence
from app.qms.modules.knowledge_base.models import DocDraft, DocVersion, KnowledgeDoc
from app.qms.modules.register.models import ControlledDocument, DocumentTransition


@pytest.fixture()
def registered_doc(client, admin_headers, make_kb_doc):
    kb_id = make_kb_doc("sop-dc-001", "Document Control", "Original body", version="1.0", author="QA")
    r = client.post(
        "/@qms/register/from-kb",
        json={"docs_id": kb_id, "document_id": "SOP-DC-001", "title": "Document Control", "document_type": "SOP", "domain_code": "DC"},
        headers=admin_headers,
    )
    assert r.status_code == 201
    return kb_id


def _put(client, headers, **payload):
    return client.put("/@docs/draft", json={"slug": "sop-dc-001", **payload}, headers=headers)


def _submit(client, headers, **payload):
    return client.post("/@docs/draft/submit", json={"slug": "sop-dc-001", **payload}, headers=headers)


def test_save_draft_create_then_update(client, app, admin_headers, registered_doc):
    r = _put(client, admin_headers, version="1.1", body_md="New body", justification={"what": "Edit", "why": "Typos"})
    assert r.status_code == 201
    assert r.json["@id"] == "http://localhost/@docs/draft?slug=sop-dc-001"
    assert r.json["status"] == "draft"
    assert r.json["title"] == "Document Control"
    assert r.json["effective_version"] == "1.0"

    r = _put(client, admin_headers, version="1.2", body_md="Newer body")
    assert r.status_code == 200
    assert r.json["version"] == "1.2"

    r = client.get("/@docs/draft?slug=sop-dc-001")
    assert r.status_code == 200
    assert r.json["body_md"] == "Newer body"

    with session_scope(app) as s:
        ev = s.query(DocumentEvidence).filter(DocumentEvidence.evidence_type == "justification").one()
        assert ev.document_id == "SOP-DC-001"
        assert ev.evidence_data["why"] == "Typos"
        assert ev.evidence_data["trigger"] == "manual"
        actions = [a for (a,) in s.query(AuditEvent.action).filter(AuditEvent.action.like("draft.%")).order_by(AuditEvent.id)]
        assert actions == ["draft.create", "draft.update"]


def test_save_draft_errors(client, admin_headers, registered_doc):
    assert client.put("/@docs/draft", json={"version": "1.1"}, headers=admin_headers).status_code == 400
    r = client.put("/@docs/draft", json={"slug": "nope", "version": "1.1"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json["error"] == "Document not found"
    r = _put(client, admin_headers, body_md="x")
    assert r.status_code == 400
    assert r.json["error"] == "Version is required for a draft"

    r = client.get("/@docs/draft?slug=sop-dc-001")
    assert r.status_code == 404
    assert r.json["error"] == "No draft found for this document"
    assert client.get("/@docs/draft").status_code == 400


def test_review_state_machine(client, app, admin_headers, registered_doc):
    _put(client, admin_headers, version="1.1", body_md="New body")

    r = client.post("/@docs/draft/reject", json={"slug": "sop-dc-001", "notes": "No"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json["error"] == "Cannot reject: draft status is 'draft', expected 'in_review'"

    r = client.post("/@docs/draft/approve", json={"slug": "sop-dc-001"}, headers=admin_headers)
    assert r.status_code == 409

    r = _submit(client, admin_headers)
    assert r.status_code == 200
    assert r.json["message"] == "Draft submitted for review"
    assert r.json["status"] == "in_review"

    r = _submit(client, admin_headers)
    assert r.status_code == 409
    assert r.json["error"] == "Cannot submit: draft is currently 'in_review'"

    r = client.post("/@docs/draft/reject", json={"slug": "sop-dc-001"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["error"] == "Reviewer notes are required when rejecting a draft"

    r = client.post(
        "/@docs/draft/reject",
        json={"slug": "sop-dc-001", "notes": "Section 3 is unclear", "rejection": {"severity": "minor"}},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["status"] == "rejected"
    assert r.json["reviewer_notes"] == "Section 3 is unclear"

    # editing a rejected draft returns it to draft and clears the notes
    r = _put(client, admin_headers, version="1.1", body_md="Clearer body")
    assert r.json["status"] == "draft"
    assert r.json["reviewer_notes"] is None

    with session_scope(app) as s:
        ev = s.query(DocumentEvidence).filter(DocumentEvidence.evidence_type == "rejection_feedback").one()
        assert ev.evidence_data["severity"] == "minor"
        assert ev.evidence_text == "Rejected (minor): Section 3 is unclear"


def test_approve_blocked_without_required_evidence(client, app, admin_headers, registered_doc):
    _put(client, admin_headers, version="1.1", body_md="New body")
    _submit(client, admin_headers)

    r = client.post("/@docs/draft/approve", json={"slug": "sop-dc-001"}, headers=admin_headers)
    assert r.status_code == 422
    assert r.json["error"].startswith("Cannot approve: required evidence is missing")
    assert [m["code"] for m in r.json["missing_evidence"]] == ["justification", "qualification", "coi_declaration"]

    with session_scope(app) as s:
        doc = s.get(KnowledgeDoc, registered_doc)
        assert doc.version == "1.0"
        assert doc.body_md == "Original body"
        assert s.query(DocVersion).count() == 0
        draft = s.query(DocDraft).one()
        assert draft.status == "in_review"
        assert s.query(ControlledDocument).one().version == "1.0"


def test_full_approval_publishes_version(client, app, admin_headers, registered_doc):
    r = _put(
        client,
        admin_headers,
        version="1.1",
        title="Document Control Procedure",
        body_md="Approved body",
        justification={"what": "Rewrite", "why": "Audit finding", "scope": "All"},
    )
    assert r.status_code == 201
    r = _submit(
        client,
        admin_headers,
        coi_declaration={"has_conflict": False, "declaration": "None"},
        qualification={"basis": "Trained on SOP-DC-001"},
    )
    assert r.status_code == 200

    r = client.post(
        "/@docs/draft/approve",
        json={
            "slug": "sop-dc-001",
            "comment": "Looks good",
            "checklist": {"sections": {"format": True}},
            "approval_justification": {"justification": "Meets requirements"},
            "change_classification": {"classification": "MINOR", "rationale": "Wording only"},
        },
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["message"] == "Version 1.1 published successfully"
    assert r.json["previous_version"] == "1.0"
    assert r.json["@id"] == "http://localhost/@docs/view?slug=sop-dc-001"

    with session_scope(app) as s:
        doc = s.get(KnowledgeDoc, registered_doc)
        assert doc.version == "1.1"
        assert doc.title == "Document Control Procedure"
        assert doc.body_md == "Approved body"
        assert doc.is_edited is True
        assert s.query(DocDraft).count() == 0

        snaps = {v.version: v for v in s.query(DocVersion).filter(DocVersion.doc_id == registered_doc)}
        assert set(snaps) == {"1.0", "1.1"}
        assert snaps["1.0"].body_md == "Original body"
        assert snaps["1.0"].superseded_by == "1.1"
        assert snaps["1.1"].superseded_at is None

        qms_doc = s.query(ControlledDocument).one()
        assert qms_doc.status == "effective"
        assert qms_doc.version == "1.1"
        assert qms_doc.effective_date is not None

        t = (
            s.query(DocumentTransition)
            .filter(DocumentTransition.document_id == "SOP-DC-001", DocumentTransition.action == "approve")
            .one()
        )
        assert (t.from_status, t.to_status) == ("in_review", "effective")
        assert t.comment == "Looks good"

        by_type = {
            e.evidence_type: e
            for e in s.query(DocumentEvidence).filter(DocumentEvidence.is_superseded.is_(False))
        }
        assert set(by_type) == {
            "justification",
            "coi_declaration",
            "qualification",
            "self_review_checklist",
            "approval_justification",
            "change_classification",
        }
        assert by_type["self_review_checklist"].transition_id == t.id
        assert by_type["change_classification"].evidence_text == "Classification: MINOR - Wording only"
        assert by_type["qualification"].evidence_data["contributors"][0]["user_id"] == "admin"

    assert client.get("/@docs/draft?slug=sop-dc-001").status_code == 404


def test_unregistered_doc_publishes_without_gate(client, app, admin_headers, make_kb_doc):
    kb_id = make_kb_doc("notes", "Notes", "old", version=None)
    client.put("/@docs/draft", json={"slug": "notes", "version": "0.1", "body_md": "new"}, headers=admin_headers)
    client.post("/@docs/draft/submit", json={"slug": "notes"}, headers=admin_headers)

    r = client.post("/@docs/draft/approve", json={"slug": "notes"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["previous_version"] == "0.0"

    with session_scope(app) as s:
        assert s.get(KnowledgeDoc, kb_id).version == "0.1"
        assert s.query(DocumentEvidence).count() == 0


def test_abandon_draft(client, app, admin_headers, registered_doc):
    _put(client, admin_headers, version="1.1")
    r = client.delete("/@docs/draft?slug=sop-dc-001", headers=admin_headers)
    assert r.status_code == 200
    assert r.json["message"] == "Draft abandoned successfully"
    assert r.json["@id"] == "http://localhost/@docs/draft?slug=sop-dc-001"
    assert client.delete("/@docs/draft?slug=sop-dc-001", headers=admin_headers).status_code == 404

    with session_scope(app) as s:
        assert s.query(DocDraft).count() == 0
        assert s.query(KnowledgeDoc).count() == 1
