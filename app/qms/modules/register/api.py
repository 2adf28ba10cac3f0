from __future__ import annotations

from urllib.parse import quote

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_QMS_MANAGE, PERM_QMS_VIEW
from app.qms.db import db_session
from app.qms.modules.register.service import (
    batch_register_from_kb,
    create_document,
    dashboard,
    document_detail,
    document_dict,
    external_documents,
    get_document,
    is_valid_document_id,
    overdue_reviews,
    reconciliation_summary,
    record_transition,
    register_from_kb,
    register_page,
    transition_dict,
    unregistered_documents,
    update_document,
    upcoming_reviews,
)
from app.qms.rbac import current_user, require_permission
from app.qms.utils import clean_str, json_body, pagination, resource_id

bp = Blueprint("register", __name__)


def _doc_url(document_id: str) -> str:
    return resource_id(f"/@qms/register/{quote(document_id, safe='')}")


# ---------------------------------------------------------------------------
# Read endpoints (qms.view)
# ---------------------------------------------------------------------------


@bp.get("/dashboard")
@require_permission(PERM_QMS_VIEW)
def dashboard_get():
    s = db_session()
    return jsonify({"@id": resource_id("/@qms/dashboard"), **dashboard(s)})


@bp.get("/register")
@require_permission(PERM_QMS_VIEW)
def register_list():
    s = db_session()
    page, page_size, offset = pagination(request.args, default_size=50, max_size=100)
    filters = {k: (request.args.get(k) or "").strip() or None for k in ("domain", "type", "status", "classification", "search")}
    return jsonify({"@id": resource_id("/@qms/register"), **register_page(s, filters, page, page_size, offset)})


@bp.get("/register/unregistered")
@require_permission(PERM_QMS_VIEW)
def register_unregistered():
    s = db_session()
    items = unregistered_documents(s)
    return jsonify(
        {
            "@id": resource_id("/@qms/register/unregistered"),
            "items": items,
            **reconciliation_summary(s, items),
        }
    )


@bp.get("/register/<document_id>")
@require_permission(PERM_QMS_VIEW)
def register_detail(document_id: str):
    if not is_valid_document_id(document_id):
        return jsonify({"error": "Invalid document ID format"}), 400
    s = db_session()
    doc = get_document(s, document_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    return jsonify({"@id": _doc_url(document_id), **document_detail(s, doc)})


@bp.get("/reviews")
@require_permission(PERM_QMS_VIEW)
def reviews():
    s = db_session()
    return jsonify(
        {
            "@id": resource_id("/@qms/reviews"),
            "overdue": overdue_reviews(s),
            "upcoming": upcoming_reviews(s, limit=50),
        }
    )


@bp.get("/external")
@require_permission(PERM_QMS_VIEW)
def external_list():
    s = db_session()
    items = external_documents(s)
    return jsonify({"@id": resource_id("/@qms/external"), "items": items, "items_total": len(items)})


# ---------------------------------------------------------------------------
# Write endpoints (qms.manage)
# ---------------------------------------------------------------------------


@bp.post("/register")
@require_permission(PERM_QMS_MANAGE)
def register_create():
    s = db_session()
    doc = create_document(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": _doc_url(doc.document_id), **document_dict(doc)}), 201


@bp.post("/register/from-kb")
@require_permission(PERM_QMS_MANAGE)
def register_create_from_kb():
    s = db_session()
    doc = register_from_kb(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": _doc_url(doc.document_id), **document_dict(doc)}), 201


@bp.post("/register/from-kb/batch")
@require_permission(PERM_QMS_MANAGE)
def register_create_from_kb_batch():
    items = json_body().get("items")
    if not isinstance(items, list) or not items:
        return jsonify({"error": "Required: items array with registration data"}), 400
    s = db_session()
    registered, errors = batch_register_from_kb(s, items, current_user())
    s.commit()
    return (
        jsonify(
            {
                "@id": resource_id("/@qms/register/from-kb/batch"),
                "registered": registered,
                "registered_count": len(registered),
                "errors": errors,
                "error_count": len(errors),
            }
        ),
        201,
    )


@bp.put("/register/<document_id>")
@require_permission(PERM_QMS_MANAGE)
def register_update(document_id: str):
    if not is_valid_document_id(document_id):
        return jsonify({"error": "Invalid document ID format"}), 400
    s = db_session()
    doc = get_document(s, document_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    update_document(s, doc, json_body(), current_user())
    s.commit()
    return jsonify({"@id": _doc_url(document_id), **document_dict(doc)})


@bp.post("/register/<document_id>/transition")
@require_permission(PERM_QMS_MANAGE)
def register_transition(document_id: str):
    if not is_valid_document_id(document_id):
        return jsonify({"error": "Invalid document ID format"}), 400
    payload = json_body()
    if not clean_str(payload.get("action")):
        return jsonify({"error": "Required field: action"}), 400
    s = db_session()
    doc = get_document(s, document_id)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    t = record_transition(s, doc, payload, current_user())
    s.commit()
    return jsonify({"@id": f"{_doc_url(document_id)}/transition", "transition": transition_dict(t)}), 201
