import pytest

from app.qms.db import session_scope
from app.qms.errors import BadRequest
from app.qms.modules.knowledge_base.models import DocVersion, KnowledgeDoc
from app.qms.modules.knowledge_base.service import build_snippet, bump_version
from app.qms.modules.register.models import DocumentTransition


@pytest.mark.parametrize(
    "version,bump,expected",
    [
        ("1.2.3", "patch", "1.2.4"),
        ("1.2.3", "minor", "1.3.0"),
        ("1.2.3", "major", "2.0.0"),
        ("1.0", "patch", "1.0.1"),
        ("2", "minor", "2.1.0"),
    ],
)
def test_bump_version(version, bump, expected):
    assert bump_version(version, bump) == expected


def test_bump_version_rejects_bad_input():
    with pytest.raises(BadRequest):
        bump_version("1.x", "patch")
    with pytest.raises(BadRequest):
        bump_version("1.0", "huge")


def test_build_snippet_marks_terms():
    text = "Records are retained for ten years. Retention applies to every controlled record."
    snippet = build_snippet(text, ["retention"])
    assert "<mark>Retention</mark>" in snippet
    assert build_snippet(None, ["x"]) == ""


def test_list_view_and_search(client, admin_headers, make_kb_doc):
    make_kb_doc("sop-dc-001", "Document Control", "How documents are controlled and reviewed.", category="qms")
    make_kb_doc("sop-rm-001", "Risk Management", "Risk analysis for documents.", category="qms")
    make_kb_doc("guide", "Style Guide", "Write short sentences.", category="guides")

    r = client.get("/@docs?category=qms")
    assert r.status_code == 200
    assert r.json["items_total"] == 2
    assert [i["slug"] for i in r.json["items"]] == ["sop-dc-001", "sop-rm-001"]
    assert "body_md" not in r.json["items"][0]
    cats = {c["category"]: c["doc_count"] for c in r.json["categories"]}
    assert cats == {"guides": 1, "qms": 2}

    r = client.get("/@docs/search?q=document")
    assert r.status_code == 200
    assert r.json["items_total"] == 2
    # title hit outranks body-only hit
    assert r.json["items"][0]["slug"] == "sop-dc-001"
    assert "<mark>" in r.json["items"][0]["snippet"]

    r = client.get("/@docs/search?q=risk documents")
    assert [i["slug"] for i in r.json["items"]] == ["sop-rm-001"]

    r = client.get("/@docs/search?q=x")
    assert r.json["items"] == []

    r = client.get("/@docs/view?slug=guide")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/@docs/view?slug=guide"
    assert r.json["body_md"] == "Write short sentences."

    assert client.get("/@docs/view?slug=missing").status_code == 404
    assert client.get("/@docs/view").status_code == 400


def test_save_bumps_version_and_syncs_register(client, app, admin_headers, make_kb_doc):
    kb_id = make_kb_doc("sop-dc-001", "Document Control", "v1 body", version="1.0")
    r = client.post(
        "/@qms/register/from-kb",
        json={"docs_id": kb_id, "document_id": "SOP-DC-001", "title": "Document Control", "document_type": "SOP", "domain_code": "DC"},
        headers=admin_headers,
    )
    assert r.status_code == 201

    r = client.post(
        "/@docs/save",
        json={"doc_id": kb_id, "body_md": "v2 body", "version_bump": "minor", "change_summary": "Clarify scope"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json["version"] == "1.1.0"
    assert r.json["qms_synced"] is True
    assert r.json["is_edited"] is True
    assert r.json["edited_by"] == "admin"
    assert r.json["frontmatter"]["version"] == "1.1.0"

    with session_scope(app) as s:
        snap = s.query(DocVersion).filter(DocVersion.doc_id == kb_id).one()
        assert snap.version == "1.1.0"
        assert snap.changes == "Clarify scope"
        assert len(snap.content_hash) == 64
        t = (
            s.query(DocumentTransition)
            .filter(DocumentTransition.document_id == "SOP-DC-001", DocumentTransition.action == "content_update")
            .one()
        )
        assert (t.from_version, t.to_version) == ("1.0", "1.1.0")

    r = client.get("/@qms/register/SOP-DC-001")
    assert r.json["version"] == "1.1.0"


def test_save_validation(client, app, admin_headers, make_kb_doc):
    kb_id = make_kb_doc("x", "X", "body", version=None)

    r = client.post("/@docs/save", json={"doc_id": kb_id}, headers=admin_headers)
    assert r.status_code == 400

    r = client.post(
        "/@docs/save",
        json={"doc_id": kb_id, "body_md": "b", "version_bump": "giant", "change_summary": "c"},
        headers=admin_headers,
    )
    assert r.status_code == 400

    r = client.post(
        "/@docs/save",
        json={"doc_id": kb_id, "body_md": "b", "version_bump": "patch", "change_summary": "c"},
        headers=admin_headers,
    )
    assert r.status_code == 400
    assert r.json["error"] == "Document has no current version; cannot bump"

    r = client.post(
        "/@docs/save",
        json={"doc_id": 4242, "body_md": "b", "version_bump": "patch", "change_summary": "c"},
        headers=admin_headers,
    )
    assert r.status_code == 404

    with session_scope(app) as s:
        assert s.get(KnowledgeDoc, kb_id).body_md == "body"


@pytest.mark.parametrize(
    "path,page,page_size",
    [
        ("/@docs?page=0&page_size=0", 1, 1),
        ("/@docs?page=-1&page_size=1000", 1, 100),
        ("/@docs", 1, 50),
        ("/@docs/search?q=document&page=0&page_size=0", 1, 1),
        ("/@docs/search?q=document&page_size=51", 1, 50),
        ("/@docs/search?q=document", 1, 20),
    ],
)
def test_pagination_is_clamped(client, admin_headers, make_kb_doc, path, page, page_size):
    make_kb_doc("sop-dc-001", "Document Control", "How documents are controlled.")
    r = client.get(path)
    assert r.status_code == 200
    assert (r.json["page"], r.json["page_size"]) == (page, page_size)
    assert len(r.json["items"]) == 1
