"""
Release step: migrate the schema to head, then seed permissions, roles,
the admin user and reference data.

Seeding is idempotent and never overwrites an existing admin password.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _require_env(name: str) -> str:
    v = (os.environ.get(name) or "").strip()
    if not v:
        raise RuntimeError(f"Missing required environment variable {name}.")
    return v


def _alembic_config(db_url: str):
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


def _current_revision(db_url: str) -> str | None:
    from alembic.runtime.migration import MigrationContext

    from scripts._db_utils import create_script_engine

    engine = create_script_engine(db_url)
    try:
        with engine.connect() as conn:
            return MigrationContext.configure(conn).get_current_revision()
    finally:
        engine.dispose()


def migrate(db_url: str) -> None:
    from alembic import command
    from alembic.script import ScriptDirectory

    cfg = _alembic_config(db_url)
    head = ScriptDirectory.from_config(cfg).get_current_head()
    current = _current_revision(db_url)
    if current == head:
        print(f"Schema already at head ({head}).", flush=True)
        return
    print(f"Migrating schema {current or '(empty)'} -> {head}...", flush=True)
    command.upgrade(cfg, "head")
    print("Migrations complete.", flush=True)


def run_release() -> None:
    db_url = _require_env("DATABASE_URL")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("Refusing to run release on sqlite DATABASE_URL in production. Set DATABASE_URL to Postgres.")

    print(f"=== QMS API release (ENV={env or 'unset'}) ===", flush=True)
    migrate(db_url)

    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("=== QMS API release done ===", flush=True)


if __name__ == "__main__":
    run_release()
