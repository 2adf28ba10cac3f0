import pytest

from app.qms.db import session_scope
from app.qms.modules.polyglot.models import (
    CanonicalMessage,
    GlossaryTerm,
    GlossaryTranslation,
    LanguageConvention,
    PreservedTerm,
    Terminology,
    Translation,
)


@pytest.fixture()
def catalog(app):
    with session_scope(app) as s:
        s.add_all(
            [
                CanonicalMessage(message_id="app.save", english_source="Save", platform="web"),
                CanonicalMessage(message_id="app.cancel", english_source="Cancel", platform="web"),
                CanonicalMessage(message_id="menu/help", english_source="Help", platform="desktop", msgctxt="menu"),
                LanguageConvention(language_code="de", language_name="German", language_name_native="Deutsch", formality="Sie"),
                PreservedTerm(language_code="de", term="Help", term_type="ui", notes="keep in menus"),
                Terminology(english_term="Save", language_code="de", translation="Speichern", source="IATE", reliability=3),
                Terminology(english_term="Save as", language_code="fr", translation="Enregistrer sous", source="IATE", reliability=2),
                GlossaryTerm(id=1, en_term="save", definition="Store data", part_of_speech="verb"),
                GlossaryTranslation(term_entry_id=1, language_code="de", term="speichern"),
                GlossaryTranslation(term_entry_id=1, language_code="fr", term="enregistrer"),
            ]
        )
        s.flush()
        s.add_all(
            [
                Translation(message_id="app.save", language="de", msgstr="Speichern", review_state="reviewed", risk_level="low"),
                Translation(message_id="app.cancel", language="de", msgstr="", risk_level="high"),
                Translation(message_id="menu/help", language="de", msgstr="Help"),
                Translation(message_id="app.save", language="fr", msgstr="Enregistrer"),
            ]
        )


def test_coverage_counts_untranslated_and_copied_strings_as_missing(client, admin_headers, catalog):
    r = client.get("/@polyglot/coverage")
    assert r.status_code == 200
    rows = {(i["language"], i["platform"]): i for i in r.json["items"]}
    assert rows[("de", "web")]["total"] == 2
    assert rows[("de", "web")]["translated"] == 1
    assert rows[("de", "web")]["coverage_pct"] == 50.0
    assert rows[("de", "desktop")]["missing"] == 1
    assert rows[("fr", "web")]["coverage_pct"] == 100.0


def test_language_detail(client, admin_headers, catalog):
    r = client.get("/@polyglot/languages/de")
    assert r.status_code == 200
    assert r.json["conventions"]["language_name_native"] == "Deutsch"
    assert {c["platform"] for c in r.json["coverage"]} == {"desktop", "web"}
    assert [(x["risk_level"], x["count"]) for x in r.json["risk"]] == [("high", 1), ("low", 1)]

    r = client.get("/@polyglot/languages/xx")
    assert r.json["conventions"] is None
    assert r.json["coverage"] == []


def test_browse_translations_filters(client, admin_headers, catalog):
    r = client.get("/@polyglot/translations?language=de&filter=missing")
    assert r.status_code == 200
    assert [i["message_id"] for i in r.json["items"]] == ["app.cancel", "menu/help"]

    r = client.get("/@polyglot/translations?language=de&filter=translated")
    assert [i["message_id"] for i in r.json["items"]] == ["app.save"]

    r = client.get("/@polyglot/translations?platform=web&page_size=2")
    assert r.json["items_total"] == 3
    assert len(r.json["items"]) == 2

    r = client.get("/@polyglot/translations?search=enreg")
    assert [(i["message_id"], i["language"]) for i in r.json["items"]] == [("app.save", "fr")]

    # unknown filter values are ignored
    r = client.get("/@polyglot/translations?filter=bogus")
    assert r.json["items_total"] == 4


def test_message_detail(client, admin_headers, catalog):
    r = client.get("/@polyglot/messages/menu/help")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/@polyglot/messages/menu%2Fhelp"
    assert r.json["message"]["msgctxt"] == "menu"
    assert r.json["translations"][0]["language_name_native"] == "Deutsch"
    assert r.json["preserved_terms"][0]["notes"] == "keep in menus"

    r = client.get("/@polyglot/messages/app.save")
    assert [t["translation"] for t in r.json["terminology"]] == ["Speichern"]

    r = client.get("/@polyglot/messages/missing.id")
    assert r.status_code == 200
    assert r.json["message"] is None
    assert r.json["translations"] == []


def test_glossary_search(client, admin_headers, catalog):
    r = client.get("/@polyglot/glossary?q=save")
    assert r.status_code == 200
    assert [t["english_term"] for t in r.json["iate"]] == ["Save", "Save as"]
    assert {t["language_code"] for t in r.json["microsoft"]} == {"de", "fr"}

    r = client.get("/@polyglot/glossary?q=save&language=de")
    assert [t["translation"] for t in r.json["iate"]] == ["Speichern"]
    assert [t["translation"] for t in r.json["microsoft"]] == ["speichern"]

    r = client.get("/@polyglot/glossary?q=s")
    assert r.json["iate"] == [] and r.json["microsoft"] == []


def test_glossary_degrades_when_glossary_tables_are_missing(client, app, admin_headers, catalog):
    engine = app.extensions["sqlalchemy_engine"]
    GlossaryTranslation.__table__.drop(bind=engine)
    GlossaryTerm.__table__.drop(bind=engine)

    r = client.get("/@polyglot/glossary?q=save")
    assert r.status_code == 200
    assert r.json["microsoft"] == []
    assert len(r.json["iate"]) == 2


def test_viewer_without_polyglot_permission(client, viewer_headers):
    assert client.get("/@polyglot/coverage").status_code == 403


def test_browse_page_size_is_clamped(client, admin_headers, catalog):
    r = client.get("/@polyglot/translations?page=0&page_size=1000")
    assert (r.json["page"], r.json["page_size"]) == (1, 200)
    assert len(r.json["items"]) == 4

    r = client.get("/@polyglot/translations?page_size=0")
    assert r.json["page_size"] == 1
    assert len(r.json["items"]) == 1
