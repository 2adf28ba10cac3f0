from __future__ import annotations

from urllib.parse import urlencode

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_QMS_MANAGE, PERM_QMS_VIEW
from app.qms.db import db_session
from app.qms.modules.training.service import (
    abandon_session,
    active_modules,
    certificate_detail,
    module_session,
    session_detail,
    start_session,
    user_sessions,
    validate_step,
)
from app.qms.rbac import current_user, require_permission
from app.qms.utils import clean_str, json_body, resource_id

bp = Blueprint("training", __name__)


def _session_url(module_code: str | None = None) -> str:
    query = urlencode({"module_code": module_code}) if module_code else None
    return resource_id("/@qms/training/session", query)


@bp.get("/modules")
@require_permission(PERM_QMS_VIEW)
def modules_list():
    s = db_session()
    items = active_modules(s)
    return jsonify({"@id": resource_id("/@qms/training/modules"), "items": items, "items_total": len(items)})


@bp.get("/session")
@require_permission(PERM_QMS_VIEW)
def session_get():
    s = db_session()
    user = current_user()
    module_code = (request.args.get("module_code") or "").strip()
    if not module_code:
        items = user_sessions(s, user.username)
        return jsonify({"@id": _session_url(), "items": items, "items_total": len(items)})
    detail = module_session(s, user.username, module_code)
    if detail is None:
        return jsonify({"@id": _session_url(module_code), "session": None})
    return jsonify({"@id": _session_url(module_code), **detail})


@bp.post("/session/start")
@require_permission(PERM_QMS_MANAGE)
def session_start():
    module_code = clean_str(json_body().get("module_code")) or ""
    if not module_code:
        return jsonify({"error": "module_code is required"}), 400
    s = db_session()
    ts, slug = start_session(s, module_code, current_user())
    s.commit()
    return jsonify({"@id": _session_url(module_code), **session_detail(s, ts), "training_doc_slug": slug}), 201


@bp.post("/session/validate-step")
@require_permission(PERM_QMS_MANAGE)
def session_validate_step():
    s = db_session()
    result = validate_step(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": resource_id("/@qms/training/session/validate-step"), **result})


@bp.post("/session/abandon")
@require_permission(PERM_QMS_MANAGE)
def session_abandon():
    session_id = json_body().get("session_id")
    s = db_session()
    ts = abandon_session(s, session_id, current_user())
    s.commit()
    return jsonify(
        {
            "@id": resource_id("/@qms/training/session/abandon"),
            "message": "Training session abandoned",
            "session_id": ts.id,
        }
    )


@bp.get("/certificate")
@require_permission(PERM_QMS_VIEW)
def certificate_get():
    certificate_id = (request.args.get("certificate_id") or "").strip()
    if not certificate_id:
        return jsonify({"error": "certificate_id query parameter required"}), 400
    s = db_session()
    detail = certificate_detail(s, certificate_id)
    if detail is None:
        return jsonify({"error": "Certificate not found"}), 404
    return jsonify(
        {
            "@id": resource_id("/@qms/training/certificate", urlencode({"certificate_id": certificate_id})),
            **detail,
        }
    )
