import pytest

from app.qms.db import session_scope
from app.qms.models import AuditEvent
from app.qms.modules.translations.models import ContentItem
from app.qms.modules.translations.service import content_path


@pytest.fixture()
def site(app):
    with session_scope(app) as s:
        s.add_all(
            [
                ContentItem(uuid="root", path="/", title="Site"),
                ContentItem(uuid="en", path="/en", title="English", language="en", parent_uuid="root"),
                ContentItem(uuid="de", path="/de", title="Deutsch", language="de", parent_uuid="root"),
                ContentItem(uuid="en-docs", path="/en/docs", title="Docs", language="en", parent_uuid="en", translation_group="g-docs"),
                ContentItem(uuid="de-docs", path="/de/docs", title="Doku", language="de", parent_uuid="de", translation_group="g-docs"),
                ContentItem(uuid="en-about", path="/en/docs/about", title="About", language="en", parent_uuid="en-docs"),
                ContentItem(uuid="de-about", path="/de/docs/about", title="Info", language="de", parent_uuid="de-docs"),
            ]
        )


@pytest.mark.parametrize("raw,expected", [("en/docs", "/en/docs"), ("/en/docs/", "/en/docs"), ("", "/"), (None, "/")])
def test_content_path(raw, expected):
    assert content_path(raw) == expected


def test_get_translations_lists_group_and_roots(client, admin_headers, site):
    r = client.get("/en/docs/@translations")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/en/docs/@translations"
    assert r.json["items"] == [
        {"@id": "http://localhost/de/docs", "language": "de"},
        {"@id": "http://localhost/en/docs", "language": "en"},
    ]
    assert r.json["root"] == {
        "en": "http://localhost/en",
        "de": "http://localhost/de",
        "fr": "http://localhost/fr",
    }

    r = client.get("/@translations")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/@translations"
    assert r.json["items"] == []

    r = client.get("/en/nowhere/@translations")
    assert r.status_code == 404


def test_link_by_path_creates_group_then_unlink(client, app, admin_headers, site):
    r = client.post("/en/docs/about/@translations", json={"id": "/de/docs/about"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json == {}

    with session_scope(app) as s:
        en, de = s.get(ContentItem, "en-about"), s.get(ContentItem, "de-about")
        assert en.translation_group is not None
        assert en.translation_group == de.translation_group

    r = client.get("/de/docs/about/@translations")
    assert [i["language"] for i in r.json["items"]] == ["de", "en"]

    r = client.delete("/en/docs/about/@translations", json={"language": "de"}, headers=admin_headers)
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(ContentItem, "de-about").translation_group is None
        actions = [a for (a,) in s.query(AuditEvent.action).filter(AuditEvent.action.like("translation.%")).order_by(AuditEvent.id)]
    assert actions == ["translation.link", "translation.unlink"]


def test_link_by_uuid_joins_existing_group(client, app, admin_headers, site):
    with session_scope(app) as s:
        s.add(ContentItem(uuid="fr-docs", path="/fr/docs", title="Docs FR", language="fr"))
    r = client.post("/en/docs/@translations", json={"id": "fr-docs"}, headers=admin_headers)
    assert r.status_code == 200
    with session_scope(app) as s:
        assert s.get(ContentItem, "fr-docs").translation_group == "g-docs"


def test_link_and_unlink_errors(client, admin_headers, site):
    r = client.post("/en/docs/@translations", json={}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json["error"] == "Required field: id"

    r = client.post("/en/docs/@translations", json={"id": "/xx/nothing"}, headers=admin_headers)
    assert r.status_code == 404

    r = client.delete("/en/docs/@translations", json={}, headers=admin_headers)
    assert r.status_code == 400

    r = client.delete("/en/docs/@translations", json={"language": "fr"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json["error"] == "No translation in language 'fr'"


def test_translation_locator(client, admin_headers, site):
    # parent /en/docs has a German translation
    r = client.get("/en/docs/about/@translation-locator?target_language=de")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/de/docs"

    # parent /en has no translation group: fall back to the language root
    r = client.get("/en/docs/@translation-locator?target_language=de")
    assert r.json["@id"] == "http://localhost/de"

    r = client.get("/en/docs/about/@translation-locator")
    assert r.status_code == 400


def test_viewer_without_content_permission(client, viewer_headers, site):
    assert client.get("/en/docs/@translations").status_code == 403
