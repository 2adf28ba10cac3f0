import pytest

from app.qms.config import normalize_database_url
from app.qms.db import session_scope
from app.qms.models import AuditEvent


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_index_lists_services(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json["@id"] == "http://localhost/"
    assert r.json["services"]["qms"] == "http://localhost/@qms"


def test_anonymous_gets_401(client):
    r = client.get("/@qms/dashboard")
    assert r.status_code == 401
    assert r.json["error"] == "Authentication required"


def test_login_me_logout(client, app):
    r = client.post("/auth/login", json={"username": "admin", "password": "pw"})
    assert r.status_code == 200
    assert r.json["user"]["username"] == "admin"
    assert "qms.manage" in r.json["user"]["permissions"]
    token = r.json["csrf_token"]

    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["csrf_token"] == token

    r = client.post("/auth/logout")
    assert r.status_code == 200
    assert client.get("/auth/me").status_code == 401

    with session_scope(app) as s:
        actions = [a for (a,) in s.query(AuditEvent.action).order_by(AuditEvent.id).all()]
    assert actions == ["auth.login", "auth.logout"]


def test_login_with_email_is_case_insensitive(client):
    r = client.post("/auth/login", json={"email": "Admin@Example.com", "password": "pw"})
    assert r.status_code == 200


def test_bad_credentials_are_audited(client, app):
    r = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert r.status_code == 401
    assert r.json["error"] == "Invalid credentials"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).one()
        assert ev.action == "auth.login_failed"
        assert ev.actor_user_id is None


def test_login_requires_fields(client):
    r = client.post("/auth/login", json={"username": "admin"})
    assert r.status_code == 400


def test_login_rate_limited(client):
    for _ in range(5):
        assert client.post("/auth/login", json={"username": "admin", "password": "wrong"}).status_code == 401
    r = client.post("/auth/login", json={"username": "admin", "password": "pw"})
    assert r.status_code == 429


def test_viewer_forbidden_on_manage_endpoint(client, viewer_headers):
    r = client.post(
        "/@qms/register",
        json={"document_id": "SOP-QM-001", "title": "Quality Manual", "document_type": "SOP", "domain_code": "QM"},
        headers=viewer_headers,
    )
    assert r.status_code == 403
    assert r.json["error"] == "Permission 'qms.manage' required"


def test_write_without_csrf_token_rejected(client, admin_headers):
    r = client.post(
        "/@qms/register",
        json={"document_id": "SOP-QM-001", "title": "Quality Manual", "document_type": "SOP", "domain_code": "QM"},
    )
    assert r.status_code == 400
    assert r.json["error"] == "CSRF token missing or invalid."


def test_unknown_route_is_json_404(client):
    r = client.get("/no/such/route")
    assert r.status_code == 404
    assert "error" in r.json


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("postgres://u:p@db/qms", "postgresql+psycopg://u:p@db/qms"),
        ("postgresql://u:p@db/qms", "postgresql+psycopg://u:p@db/qms"),
        ("postgresql+psycopg://u:p@db/qms", "postgresql+psycopg://u:p@db/qms"),
        ("sqlite:///qms.db", "sqlite:///qms.db"),
    ],
)
def test_database_url_uses_psycopg_driver(raw, expected):
    assert normalize_database_url(raw) == expected
