from flask import Blueprint, jsonify

from app.qms.utils import resource_id

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify(
        {
            "@id": resource_id("/"),
            "services": {
                "qms": resource_id("/@qms"),
                "docs": resource_id("/@docs"),
                "polyglot": resource_id("/@polyglot"),
            },
        }
    )


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s probes. No DB access, minimal overhead.
    """
    return "ok", 200
