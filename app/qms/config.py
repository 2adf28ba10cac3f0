import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    available_languages: tuple[str, ...]
    training_grantor: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getlist(name: str, default: str) -> tuple[str, ...]:
    raw = _getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def normalize_database_url(url: str) -> str:
    """Route bare Postgres URLs (postgres://, postgresql://) to the psycopg 3 driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=normalize_database_url(_getenv("DATABASE_URL", "sqlite:///qms.db")),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        available_languages=_getlist("AVAILABLE_LANGUAGES", "en"),
        training_grantor=_getenv("TRAINING_GRANTOR", "training-system"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "AVAILABLE_LANGUAGES": list(s.available_languages),
        "TRAINING_GRANTOR": s.training_grantor,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # JSON bodies only; 2MB is plenty for markdown documents
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
