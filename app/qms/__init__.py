import logging
from datetime import date, timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from flask.json.provider import DefaultJSONProvider
from werkzeug.exceptions import HTTPException

from app.qms.auth import bp as auth_bp, load_current_user
from app.qms.config import load_config
from app.qms.db import init_db, teardown_db_session
from app.qms.errors import ApiError
from app.qms.routes import bp as routes_bp
from app.qms.modules.register.api import bp as register_bp
from app.qms.modules.issues.api import bp as issues_bp
from app.qms.modules.evidence.api import bp as evidence_bp
from app.qms.modules.training.api import bp as training_bp
from app.qms.modules.knowledge_base.api import bp as knowledge_base_bp
from app.qms.modules.drafts.api import bp as drafts_bp
from app.qms.modules.links.api import bp as links_bp
from app.qms.modules.polyglot.api import bp as polyglot_bp
from app.qms.modules.translations.api import bp as translations_bp


class QmsJSONProvider(DefaultJSONProvider):
    """Dates and datetimes go out as ISO-8601 rather than HTTP dates."""

    @staticmethod
    def default(o):
        if isinstance(o, date):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.json = QmsJSONProvider(app)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    logging.basicConfig(level=app.config["LOG_LEVEL"], format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # CSRF protection (minimal)
    from app.qms.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os

        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(register_bp, url_prefix="/@qms")
    app.register_blueprint(issues_bp, url_prefix="/@qms")
    app.register_blueprint(evidence_bp, url_prefix="/@qms")
    app.register_blueprint(training_bp, url_prefix="/@qms/training")
    app.register_blueprint(knowledge_base_bp, url_prefix="/@docs")
    app.register_blueprint(drafts_bp, url_prefix="/@docs")
    app.register_blueprint(links_bp, url_prefix="/@docs")
    app.register_blueprint(polyglot_bp, url_prefix="/@polyglot")
    app.register_blueprint(translations_bp)

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    def _rollback_request_session() -> None:
        s = getattr(g, "db_session", None)
        if s is not None:
            s.rollback()

    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        _rollback_request_session()
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s)", e.message, getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"error": "Request body too large. Maximum size is 2MB."}), 413

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        _rollback_request_session()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
