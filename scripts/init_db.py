import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.qms.constants import (  # noqa: E402
    PERM_CONTENT_EDIT,
    PERM_CONTENT_VIEW,
    PERM_DOCS_EDIT,
    PERM_DOCS_VIEW,
    PERM_POLYGLOT_VIEW,
    PERM_QMS_MANAGE,
    PERM_QMS_VIEW,
    PERMISSIONS,
)
from app.qms.models import Permission, Role, User  # noqa: E402
from app.qms.reference import seed_reference_data  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

# role key -> (display name, permission keys)
ROLES = {
    "admin": ("Administrator", tuple(PERMISSIONS)),
    "editor": ("Editor", (PERM_DOCS_VIEW, PERM_DOCS_EDIT, PERM_QMS_VIEW, PERM_QMS_MANAGE, PERM_CONTENT_VIEW, PERM_CONTENT_EDIT)),
    "viewer": ("Viewer", (PERM_DOCS_VIEW, PERM_QMS_VIEW, PERM_POLYGLOT_VIEW, PERM_CONTENT_VIEW)),
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user and reference data in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip().lower()
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///qms.db").strip()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS.items():
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for role_key, (role_name, perm_keys) in ROLES.items():
            role = s.query(Role).filter(Role.key == role_key).one_or_none()
            if not role:
                role = Role(key=role_key, name=role_name)
                s.add(role)
            for key in perm_keys:
                if perms[key] not in role.permissions:
                    role.permissions.append(perms[key])
            roles[role_key] = role

        user = s.query(User).filter(User.username == admin_username).one_or_none()
        if not user:
            user = User(
                username=admin_username,
                email=admin_email,
                fullname="Administrator",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if roles["admin"] not in user.roles:
            user.roles.append(roles["admin"])

        seed_reference_data(s)

    print("Initialized database (seed_only).")
    print(f"Admin username: {admin_username}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
