from app.qms.db import session_scope
from app.qms.modules.evidence.models import DocumentEvidence
from app.qms.modules.evidence.service import missing_required_evidence


def _register(client, headers, document_id="SOP-DC-001"):
    r = client.post(
        "/@qms/register",
        json={"document_id": document_id, "title": "Document Control", "document_type": "SOP", "domain_code": "DC"},
        headers=headers,
    )
    assert r.status_code == 201


def _record(client, headers, evidence_type, data, **extra):
    payload = {"document_id": "SOP-DC-001", "evidence_type": evidence_type, "evidence_data": data, **extra}
    return client.post("/@qms/evidence", json=payload, headers=headers)


def test_record_evidence_supersedes_previous_of_same_type(client, app, admin_headers):
    _register(client, admin_headers)

    r1 = _record(client, admin_headers, "justification", {"reason": "first"})
    assert r1.status_code == 201
    assert r1.json["evidence_type_label"] == "Change justification"
    assert r1.json["phase"] == 1
    assert r1.json["required"] is True

    r2 = _record(client, admin_headers, "justification", {"reason": "second"}, evidence_text="Second try")
    assert r2.status_code == 201

    with session_scope(app) as s:
        first = s.get(DocumentEvidence, r1.json["id"])
        second = s.get(DocumentEvidence, r2.json["id"])
        assert first.is_superseded is True
        assert first.superseded_by == second.id
        assert second.is_superseded is False

    r = client.get("/@qms/evidence?document_id=SOP-DC-001")
    assert r.status_code == 200
    assert r.json["items_total"] == 2
    assert r.json["items"][0]["id"] == r2.json["id"]


def test_evidence_validation(client, admin_headers):
    _register(client, admin_headers)

    r = _record(client, admin_headers, "made_up", {"x": 1})
    assert r.status_code == 400
    assert r.json["error"].startswith("Invalid evidence_type")

    r = _record(client, admin_headers, "justification", ["not", "an", "object"])
    assert r.status_code == 400
    assert r.json["error"] == "evidence_data must be a JSON object"

    r = client.post("/@qms/evidence", json={"document_id": "SOP-DC-001"}, headers=admin_headers)
    assert r.status_code == 400

    # an empty object is still evidence; only a missing or null value is rejected
    r = _record(client, admin_headers, "review_comment", {})
    assert r.status_code == 201
    assert r.json["evidence_data"] == {}
    r = _record(client, admin_headers, "review_comment", None)
    assert r.status_code == 400
    assert r.json["error"].startswith("Required fields")

    r = client.post(
        "/@qms/evidence",
        json={"document_id": "SOP-ZZ-404", "evidence_type": "justification", "evidence_data": {"a": 1}},
        headers=admin_headers,
    )
    assert r.status_code == 404

    r = _record(client, admin_headers, "justification", {"a": 1}, transition_id=99999)
    assert r.status_code == 404
    assert r.json["error"] == "Transition not found for this document"

    assert client.get("/@qms/evidence").status_code == 400


def test_summary_reports_required_progress(client, app, admin_headers):
    _register(client, admin_headers)
    _record(client, admin_headers, "justification", {"reason": "new SOP"})
    _record(client, admin_headers, "review_comment", {"comment": "looks fine"})

    r = client.get("/@qms/evidence/summary?document_id=SOP-DC-001")
    assert r.status_code == 200
    assert r.json["required_total"] == 6
    assert r.json["required_captured"] == 1
    assert r.json["complete"] is False
    by_type = {i["evidence_type"]: i for i in r.json["items"]}
    assert by_type["justification"]["captured"] is True
    assert by_type["justification"]["recorded_by"] == "admin"
    assert by_type["review_comment"]["required"] is False
    assert by_type["qualification"]["captured"] is False

    with session_scope(app) as s:
        missing = [t.code for t in missing_required_evidence(s, "SOP-DC-001")]
    assert missing == ["qualification", "coi_declaration"]
