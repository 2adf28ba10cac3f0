import pytest
from werkzeug.security import generate_password_hash

from app.qms import create_app
from app.qms import auth as auth_module
from app.qms.constants import PERM_DOCS_VIEW, PERM_QMS_VIEW, PERMISSIONS
from app.qms.db import session_scope
from app.qms.models import Base, Permission, Role, User
from app.qms.reference import seed_reference_data


@pytest.fixture(autouse=True)
def _reset_login_attempts():
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("AVAILABLE_LANGUAGES", "en,de,fr")
    monkeypatch.delenv("TRAINING_GRANTOR", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        perms = {key: Permission(key=key, name=name) for key, name in PERMISSIONS.items()}
        admin = Role(key="admin", name="Administrator")
        admin.permissions.extend(perms.values())
        viewer = Role(key="viewer", name="Viewer")
        viewer.permissions.extend([perms[PERM_DOCS_VIEW], perms[PERM_QMS_VIEW]])
        u_admin = User(
            username="admin",
            email="admin@example.com",
            fullname="Ada Admin",
            password_hash=generate_password_hash("pw"),
            is_active=True,
        )
        u_admin.roles.append(admin)
        u_viewer = User(
            username="viewer",
            email="viewer@example.com",
            fullname="Val Viewer",
            password_hash=generate_password_hash("pw"),
            is_active=True,
        )
        u_viewer.roles.append(viewer)
        s.add_all(list(perms.values()) + [admin, viewer, u_admin, u_viewer])
        seed_reference_data(s)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def login(client, username="admin", password="pw"):
    """Log in and return headers carrying the session's CSRF token."""
    r = client.post("/auth/login", json={"username": username, "password": password})
    assert r.status_code == 200, r.json
    return {"X-CSRF-Token": r.json["csrf_token"]}


@pytest.fixture()
def admin_headers(client):
    return login(client)


@pytest.fixture()
def viewer_headers(client):
    return login(client, "viewer")


@pytest.fixture()
def make_kb_doc(app):
    """Insert a knowledge-base document and return its id."""
    from app.qms.modules.knowledge_base.models import KnowledgeDoc

    def _make(slug, title, body_md="", version="1.0", **extra):
        with session_scope(app) as s:
            doc = KnowledgeDoc(slug=slug, title=title, body_md=body_md, version=version, **extra)
            s.add(doc)
            s.flush()
            return doc.id

    return _make
