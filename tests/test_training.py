from datetime import datetime

from app.qms.db import session_scope
from app.qms.modules.register.models import ControlledDocument, DocumentTransition
from app.qms.modules.training.models import QualificationGrant, TrainingCertificate, TrainingSession
from app.qms.modules.training.service import _grant_roles, training_doc_id

MODULE = "TRN-DC-001"


def _start(client, headers):
    r = client.post("/@qms/training/session/start", json={"module_code": MODULE}, headers=headers)
    assert r.status_code == 201, r.json
    return r.json


def _validate(client, headers, session_id, step):
    return client.post(
        "/@qms/training/session/validate-step",
        json={"session_id": session_id, "step_number": step},
        headers=headers,
    )


def test_modules_listed(client, admin_headers):
    r = client.get("/@qms/training/modules")
    assert r.status_code == 200
    (module,) = r.json["items"]
    assert module["module_code"] == MODULE
    assert [st["validation"] for st in module["steps"]] == [
        "draft_exists",
        "evidence_justification",
        "draft_in_review",
        "evidence_coi_qualification",
        "evidence_checklist",
        "document_effective",
    ]


def test_start_session_creates_sandbox_document(client, app, admin_headers):
    data = _start(client, admin_headers)
    today = datetime.utcnow().strftime("%Y%m%d")
    assert data["training_doc_id"] == f"TST-TRN-admin-{today}"
    assert data["training_doc_slug"] == f"training/TST-TRN-admin-{today}"
    assert data["current_step"] == 1
    assert data["session_status"] == "in_progress"
    assert data["completed_steps"] == []

    with session_scope(app) as s:
        doc = s.query(ControlledDocument).filter(ControlledDocument.document_id == data["training_doc_id"]).one()
        assert (doc.document_type, doc.domain_code, doc.version, doc.status) == ("REC", "HR", "0.1", "draft")
        assert doc.kb_doc.slug == data["training_doc_slug"]
        t = s.query(DocumentTransition).filter(DocumentTransition.document_id == doc.document_id).one()
        assert t.action == "create"

    r = client.post("/@qms/training/session/start", json={"module_code": MODULE}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json["session_id"] == data["session_id"]

    r = client.post("/@qms/training/session/start", json={"module_code": "TRN-NOPE"}, headers=admin_headers)
    assert r.status_code == 404
    r = client.post("/@qms/training/session/start", json={}, headers=admin_headers)
    assert r.status_code == 400


def test_training_doc_id_gets_suffix_on_collision(app, make_kb_doc):
    day = datetime(2026, 3, 2)
    with session_scope(app) as s:
        assert training_doc_id(s, "ada", day) == "TST-TRN-ada-20260302"
    make_kb_doc("training/TST-TRN-ada-20260302", "t1")
    with session_scope(app) as s:
        assert training_doc_id(s, "ada", day) == "TST-TRN-ada-20260302-2"


def test_validate_step_failures(client, admin_headers):
    data = _start(client, admin_headers)
    sid = data["session_id"]

    r = _validate(client, admin_headers, sid, 1)
    assert r.status_code == 200
    assert r.json["ok"] is False
    assert r.json["message"].startswith("No draft found")

    r = _validate(client, admin_headers, sid, 2)
    assert r.status_code == 409
    assert r.json["error"] == "Expected step 1, got step 2. Complete steps in order."

    client.put("/@docs/draft", json={"slug": data["training_doc_slug"], "version": "0.2", "body_md": "short"}, headers=admin_headers)
    r = _validate(client, admin_headers, sid, 1)
    assert r.json["ok"] is False
    assert r.json["message"].startswith("Draft content is too short")

    assert _validate(client, admin_headers, 99999, 1).status_code == 404
    r = client.post("/@qms/training/session/validate-step", json={"session_id": sid}, headers=admin_headers)
    assert r.status_code == 400


def test_other_users_session_is_forbidden(client, app, admin_headers):
    sid = _start(client, admin_headers)["session_id"]
    with session_scope(app) as s:
        s.get(TrainingSession, sid).user_id = "someone-else"
    r = _validate(client, admin_headers, sid, 1)
    assert r.status_code == 403


def test_full_training_flow_issues_certificate(client, app, admin_headers):
    data = _start(client, admin_headers)
    sid = data["session_id"]
    slug = data["training_doc_slug"]
    body = "This procedure explains how training documents are drafted and reviewed."

    r = client.put(
        "/@docs/draft",
        json={"slug": slug, "version": "1.0", "body_md": body, "justification": {"what": "Draft", "why": "Training", "scope": "Sandbox"}},
        headers=admin_headers,
    )
    assert r.status_code == 201
    assert _validate(client, admin_headers, sid, 1).json["ok"] is True
    r = _validate(client, admin_headers, sid, 2)
    assert r.json["ok"] is True
    assert r.json["current_step"] == 3

    assert _validate(client, admin_headers, sid, 3).json["ok"] is False
    r = client.post(
        "/@docs/draft/submit",
        json={"slug": slug, "coi_declaration": {"has_conflict": False}, "qualification": {"basis": "Read SOP-DC-001"}},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert _validate(client, admin_headers, sid, 3).json["ok"] is True
    assert _validate(client, admin_headers, sid, 4).json["ok"] is True

    assert _validate(client, admin_headers, sid, 5).json["ok"] is False
    r = client.post(
        "/@docs/draft/approve",
        json={
            "slug": slug,
            "checklist": {"sections": {"content": True}},
            "approval_justification": {"justification": "Complete"},
            "change_classification": {"classification": "MAJOR", "rationale": "First release"},
        },
        headers=admin_headers,
    )
    assert r.status_code == 200, r.json
    assert _validate(client, admin_headers, sid, 5).json["ok"] is True

    r = _validate(client, admin_headers, sid, 6)
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["completed"] is True
    cert_id = r.json["certificate_id"]
    assert cert_id.startswith(f"CERT-{datetime.utcnow().strftime('%Y%m%d')}-")
    assert len(cert_id.rsplit("-", 1)[1]) == 6

    r = client.get(f"/@qms/training/session?module_code={MODULE}")
    assert r.json["session_status"] == "completed"
    assert r.json["cert_id"] == cert_id
    assert [c["step_number"] for c in r.json["completed_steps"]] == [1, 2, 3, 4, 5, 6]

    r = client.get(f"/@qms/training/certificate?certificate_id={cert_id}")
    assert r.status_code == 200
    assert r.json["user_fullname"] == "Ada Admin"
    assert r.json["qualified_for"] == ["author", "reviewer"]
    assert r.json["sop_reference"] == "SOP-DC-001"

    r = _validate(client, admin_headers, sid, 7)
    assert r.status_code == 409

    with session_scope(app) as s:
        grants = {g.role_code: g for g in s.query(QualificationGrant).filter(QualificationGrant.user_id == "admin")}
        assert set(grants) == {"author", "reviewer"}
        assert all(g.granted_by == "training-system" and g.active for g in grants.values())
        assert s.query(TrainingCertificate).count() == 1

    # a new session is allowed once the previous one is complete
    _start(client, admin_headers)


def test_abandon_session_obsoletes_document(client, app, admin_headers):
    data = _start(client, admin_headers)
    r = client.post("/@qms/training/session/abandon", json={"session_id": data["session_id"]}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json["message"] == "Training session abandoned"

    r = client.post("/@qms/training/session/abandon", json={"session_id": data["session_id"]}, headers=admin_headers)
    assert r.status_code == 409

    with session_scope(app) as s:
        doc = s.query(ControlledDocument).filter(ControlledDocument.document_id == data["training_doc_id"]).one()
        assert doc.status == "obsolete"
        t = (
            s.query(DocumentTransition)
            .filter(DocumentTransition.document_id == doc.document_id, DocumentTransition.action == "obsolete")
            .one()
        )
        assert t.comment == "Training session abandoned"

    r = client.get("/@qms/training/session")
    assert [item["session_status"] for item in r.json["items"]] == ["abandoned"]

    # restarting the same day gets a suffixed training document
    again = _start(client, admin_headers)
    assert again["training_doc_id"] == data["training_doc_id"] + "-2"


def test_certificate_lookup_errors(client, admin_headers):
    assert client.get("/@qms/training/certificate").status_code == 400
    assert client.get("/@qms/training/certificate?certificate_id=CERT-0-000000").status_code == 404


def test_grantor_comes_from_config(app):
    app.config["TRAINING_GRANTOR"] = "qa-lead"
    with app.app_context():
        with session_scope(app) as s:
            _grant_roles(s, "ada", ["author"])
        with session_scope(app) as s:
            assert s.query(QualificationGrant).one().granted_by == "qa-lead"
