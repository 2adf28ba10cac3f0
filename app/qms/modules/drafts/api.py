from __future__ import annotations

from urllib.parse import urlencode

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_QMS_MANAGE
from app.qms.db import db_session
from app.qms.modules.drafts.service import (
    abandon_draft,
    approve_draft,
    draft_dict,
    get_draft,
    reject_draft,
    save_draft,
    submit_draft,
)
from app.qms.rbac import current_user, require_permission
from app.qms.utils import json_body, resource_id

bp = Blueprint("drafts", __name__)


def _draft_url(slug: str) -> str:
    return resource_id("/@docs/draft", urlencode({"slug": slug}))


def _slug_arg() -> str:
    return (request.args.get("slug") or "").strip()


@bp.get("/draft")
@require_permission(PERM_QMS_MANAGE)
def draft_get():
    slug = _slug_arg()
    if not slug:
        return jsonify({"error": "Document slug required"}), 400
    s = db_session()
    doc, draft = get_draft(s, slug)
    return jsonify({"@id": _draft_url(slug), **draft_dict(draft, doc)})


@bp.put("/draft")
@require_permission(PERM_QMS_MANAGE)
def draft_put():
    s = db_session()
    doc, draft, created = save_draft(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": _draft_url(doc.slug), **draft_dict(draft, doc)}), (201 if created else 200)


@bp.delete("/draft")
@require_permission(PERM_QMS_MANAGE)
def draft_delete():
    slug = _slug_arg()
    if not slug:
        return jsonify({"error": "Document slug required"}), 400
    s = db_session()
    abandon_draft(s, slug, current_user())
    s.commit()
    return jsonify({"@id": _draft_url(slug), "message": "Draft abandoned successfully", "slug": slug})


@bp.post("/draft/submit")
@require_permission(PERM_QMS_MANAGE)
def draft_submit():
    s = db_session()
    doc, draft = submit_draft(s, json_body(), current_user())
    s.commit()
    return jsonify(
        {
            "@id": _draft_url(doc.slug),
            "message": "Draft submitted for review",
            **draft_dict(draft, doc),
        }
    )


@bp.post("/draft/approve")
@require_permission(PERM_QMS_MANAGE)
def draft_approve():
    s = db_session()
    result = approve_draft(s, json_body(), current_user())
    s.commit()
    return jsonify({"@id": resource_id("/@docs/view", urlencode({"slug": result["slug"]})), **result})


@bp.post("/draft/reject")
@require_permission(PERM_QMS_MANAGE)
def draft_reject():
    s = db_session()
    doc, draft = reject_draft(s, json_body(), current_user())
    s.commit()
    return jsonify(
        {
            "@id": _draft_url(doc.slug),
            "message": "Draft rejected and returned to author",
            **draft_dict(draft, doc),
        }
    )
