from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_DOCS_EDIT, PERM_DOCS_VIEW
from app.qms.db import db_session
from app.qms.modules.knowledge_base.service import doc_dict, get_doc_by_slug, list_docs, save_doc, search_docs
from app.qms.rbac import current_user, require_permission
from app.qms.utils import json_body, pagination, request_id_url, resource_id

bp = Blueprint("knowledge_base", __name__)


@bp.get("")
@require_permission(PERM_DOCS_VIEW)
def docs_list():
    s = db_session()
    page, page_size, offset = pagination(request.args, default_size=50, max_size=100)
    filters = {k: (request.args.get(k) or "").strip() or None for k in ("category", "subcategory", "search")}
    return jsonify({"@id": resource_id("/@docs"), **list_docs(s, filters, page, page_size, offset)})


@bp.get("/search")
@require_permission(PERM_DOCS_VIEW)
def docs_search():
    q = (request.args.get("q") or "").strip()
    if len(q) < 2:
        return jsonify({"@id": resource_id("/@docs/search"), "items": [], "items_total": 0, "query": q})
    s = db_session()
    page, page_size, offset = pagination(request.args, default_size=20, max_size=50)
    return jsonify({"@id": resource_id("/@docs/search"), **search_docs(s, q, page, page_size, offset)})


@bp.get("/view")
@require_permission(PERM_DOCS_VIEW)
def docs_view():
    slug = (request.args.get("slug") or "").strip()
    if not slug:
        return jsonify({"error": "Document slug required"}), 400
    s = db_session()
    doc = get_doc_by_slug(s, slug)
    if not doc:
        return jsonify({"error": "Document not found"}), 404
    return jsonify({"@id": request_id_url(), **doc_dict(doc)})


@bp.post("/save")
@require_permission(PERM_DOCS_EDIT)
def docs_save():
    s = db_session()
    doc, qms_synced = save_doc(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": resource_id("/@docs/save"), **doc_dict(doc), "qms_synced": qms_synced})
