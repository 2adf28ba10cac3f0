from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.qms.constants import PERM_CONTENT_EDIT, PERM_CONTENT_VIEW
from app.qms.db import db_session
from app.qms.modules.translations.service import (
    get_context,
    group_members,
    link_translation,
    locate_translation,
    unlink_translation,
)
from app.qms.rbac import current_user, require_permission
from app.qms.utils import json_body, resource_id

bp = Blueprint("translations", __name__)


def _url(path: str) -> str:
    return resource_id("" if path == "/" else path)


@bp.get("/@translations")
@bp.get("/<path:content_path>/@translations")
@require_permission(PERM_CONTENT_VIEW)
def translations_get(content_path: str = ""):
    s = db_session()
    item = get_context(s, content_path)
    languages = current_app.config["AVAILABLE_LANGUAGES"]
    return jsonify(
        {
            "@id": f"{_url(item.path)}/@translations",
            "items": [{"@id": _url(m.path), "language": m.language} for m in group_members(s, item)],
            "root": {lang: _url(f"/{lang}") for lang in languages},
        }
    )


@bp.post("/@translations")
@bp.post("/<path:content_path>/@translations")
@require_permission(PERM_CONTENT_EDIT)
def translations_link(content_path: str = ""):
    s = db_session()
    item = get_context(s, content_path)
    link_translation(s, item, json_body().get("id"), current_user())
    s.commit()
    return jsonify({})


@bp.delete("/@translations")
@bp.delete("/<path:content_path>/@translations")
@require_permission(PERM_CONTENT_EDIT)
def translations_unlink(content_path: str = ""):
    s = db_session()
    item = get_context(s, content_path)
    unlink_translation(s, item, json_body().get("language"), current_user())
    s.commit()
    return jsonify({})


@bp.get("/@translation-locator")
@bp.get("/<path:content_path>/@translation-locator")
@require_permission(PERM_CONTENT_VIEW)
def translation_locator(content_path: str = ""):
    target_language = (request.args.get("target_language") or "").strip()
    if not target_language:
        return jsonify({"error": "target_language query parameter required"}), 400
    s = db_session()
    item = get_context(s, content_path)
    return jsonify({"@id": _url(locate_translation(s, item, target_language))})
