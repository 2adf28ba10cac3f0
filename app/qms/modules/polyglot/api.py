from __future__ import annotations

from urllib.parse import quote

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_POLYGLOT_VIEW
from app.qms.db import db_session
from app.qms.modules.polyglot.service import (
    TRANSLATION_FILTERS,
    browse_translations,
    coverage,
    glossary_search,
    language_detail,
    message_detail,
)
from app.qms.rbac import require_permission
from app.qms.utils import pagination, parse_int, resource_id

bp = Blueprint("polyglot", __name__)


@bp.get("/coverage")
@require_permission(PERM_POLYGLOT_VIEW)
def coverage_list():
    s = db_session()
    return jsonify({"@id": resource_id("/@polyglot/coverage"), "items": coverage(s)})


@bp.get("/languages/<code>")
@require_permission(PERM_POLYGLOT_VIEW)
def language_get(code: str):
    s = db_session()
    return jsonify({"@id": resource_id(f"/@polyglot/languages/{quote(code, safe='')}"), **language_detail(s, code)})


@bp.get("/translations")
@require_permission(PERM_POLYGLOT_VIEW)
def translations_list():
    s = db_session()
    page, page_size, offset = pagination(request.args, default_size=50, max_size=200)
    filters = {k: (request.args.get(k) or "").strip() or None for k in ("language", "platform", "search", "filter")}
    if filters["filter"] not in TRANSLATION_FILTERS:
        filters["filter"] = None
    return jsonify(
        {"@id": resource_id("/@polyglot/translations"), **browse_translations(s, filters, page, page_size, offset)}
    )


@bp.get("/messages/<path:message_id>")
@require_permission(PERM_POLYGLOT_VIEW)
def message_get(message_id: str):
    s = db_session()
    return jsonify(
        {"@id": resource_id(f"/@polyglot/messages/{quote(message_id, safe='')}"), **message_detail(s, message_id)}
    )


@bp.get("/glossary")
@require_permission(PERM_POLYGLOT_VIEW)
def glossary_get():
    q = (request.args.get("q") or "").strip()
    language = (request.args.get("language") or "").strip() or None
    limit = min(100, max(1, parse_int(request.args.get("page_size"), 50)))
    s = db_session()
    return jsonify({"@id": resource_id("/@polyglot/glossary"), **glossary_search(s, q, language, limit)})
