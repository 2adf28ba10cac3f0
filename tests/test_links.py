from app.qms.db import session_scope
from app.qms.models import AuditEvent


def _link(client, headers, source, target, rtype, **extra):
    payload = {"source_doc_id": source, "target_doc_id": target, "relationship_type": rtype, **extra}
    return client.post("/@docs/links", json=payload, headers=headers)


def test_link_types_listed(client, admin_headers):
    r = client.get("/@docs/links/types")
    assert r.status_code == 200
    codes = {t["code"]: t for t in r.json["items"]}
    assert codes["implements"]["inverse_code"] == "implemented_by"
    assert codes["related_to"]["inverse_code"] is None


def test_bidirectional_view_uses_inverse_types(client, admin_headers):
    client.post(
        "/@qms/register",
        json={"document_id": "SOP-DC-001", "title": "Document Control", "document_type": "SOP", "domain_code": "DC"},
        headers=admin_headers,
    )
    r = _link(client, admin_headers, "SOP-DC-001", "ISO-13485", "implements", notes=" clause 4.2.4 ")
    assert r.status_code == 201
    assert r.json["notes"] == "clause 4.2.4"
    assert r.json["created_by"] == "admin"
    assert _link(client, admin_headers, "PR-2026-001", "SOP-DC-001", "related_to").status_code == 201

    r = client.get("/@docs/links?doc_id=SOP-DC-001")
    assert r.status_code == 200
    rows = [(i["direction"], i["relationship_type"], i["related_doc_id"]) for i in r.json["items"]]
    assert rows == [
        ("incoming", "related_to", "PR-2026-001"),
        ("outgoing", "implements", "ISO-13485"),
    ]

    r = client.get("/@docs/links?doc_id=ISO-13485")
    (item,) = r.json["items"]
    assert item["direction"] == "incoming"
    assert item["relationship_type"] == "implemented_by"
    assert item["relationship_label"] == "Implemented by"
    assert item["related_title"] == "Document Control"
    assert item["related_status"] == "draft"

    assert client.get("/@docs/links").status_code == 400


def test_link_validation(client, admin_headers):
    assert _link(client, admin_headers, "A", "A", "references").status_code == 400
    r = _link(client, admin_headers, "A", "B", "loves")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid relationship_type: loves"
    assert _link(client, admin_headers, "A", "", "references").status_code == 400

    assert _link(client, admin_headers, "A", "B", "references").status_code == 201
    r = _link(client, admin_headers, "A", "B", "references")
    assert r.status_code == 409
    assert r.json["error"] == "Link already exists"


def test_delete_link(client, app, admin_headers):
    link_id = _link(client, admin_headers, "A", "B", "supersedes").json["id"]
    r = client.delete(f"/@docs/links/{link_id}", headers=admin_headers)
    assert r.status_code == 204
    assert client.delete(f"/@docs/links/{link_id}", headers=admin_headers).status_code == 404

    with session_scope(app) as s:
        actions = [a for (a,) in s.query(AuditEvent.action).filter(AuditEvent.action.like("link.%")).order_by(AuditEvent.id)]
    assert actions == ["link.create", "link.delete"]


def test_viewer_cannot_create_links(client, viewer_headers):
    assert _link(client, viewer_headers, "A", "B", "references").status_code == 403


def test_link_fields_accept_scalars_and_reject_containers(client, admin_headers):
    r = _link(client, admin_headers, 101, 202, "references", notes=5)
    assert r.status_code == 201
    assert (r.json["source_doc_id"], r.json["target_doc_id"], r.json["notes"]) == ("101", "202", "5")

    r = _link(client, admin_headers, "A", "B", ["references"])
    assert r.status_code == 400
    assert r.json["error"].startswith("Invalid relationship_type")
