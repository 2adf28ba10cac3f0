from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_DOCS_EDIT, PERM_DOCS_VIEW
from app.qms.db import db_session
from app.qms.modules.links.models import DocumentLink
from app.qms.modules.links.service import bidirectional_links, create_link, delete_link, link_dict, relationship_types
from app.qms.rbac import current_user, require_permission
from app.qms.utils import json_body, request_id_url, resource_id

bp = Blueprint("links", __name__)


@bp.get("/links/types")
@require_permission(PERM_DOCS_VIEW)
def link_types():
    s = db_session()
    return jsonify({"@id": resource_id("/@docs/links/types"), "items": relationship_types(s)})


@bp.get("/links")
@require_permission(PERM_DOCS_VIEW)
def links_for_doc():
    doc_id = (request.args.get("doc_id") or "").strip()
    if not doc_id:
        return jsonify({"error": "doc_id query parameter required"}), 400
    s = db_session()
    return jsonify({"@id": request_id_url(), "items": bidirectional_links(s, doc_id)})


@bp.post("/links")
@require_permission(PERM_DOCS_EDIT)
def link_create():
    s = db_session()
    link = create_link(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": resource_id(f"/@docs/links/{link.id}"), **link_dict(link)}), 201


@bp.delete("/links/<int:link_id>")
@require_permission(PERM_DOCS_EDIT)
def link_delete(link_id: int):
    s = db_session()
    link = s.get(DocumentLink, link_id)
    if not link:
        return jsonify({"error": "Link not found"}), 404
    delete_link(s, link, current_user())
    s.commit()
    return "", 204
