from __future__ import annotations

from urllib.parse import quote

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_QMS_VIEW
from app.qms.db import db_session
from app.qms.modules.issues.service import issue_detail, issues_page
from app.qms.rbac import require_permission
from app.qms.utils import pagination, resource_id

bp = Blueprint("issues", __name__)


@bp.get("/issues")
@require_permission(PERM_QMS_VIEW)
def issues_list():
    s = db_session()
    page, page_size, offset = pagination(request.args, default_size=50, max_size=100)
    filters = {k: (request.args.get(k) or "").strip() or None for k in ("severity", "status", "problem_type", "search")}
    return jsonify({"@id": resource_id("/@qms/issues"), **issues_page(s, filters, page, page_size, offset)})


@bp.get("/issues/<report_id>")
@require_permission(PERM_QMS_VIEW)
def issue_get(report_id: str):
    s = db_session()
    issue = issue_detail(s, report_id)
    if issue is None:
        return jsonify({"error": "Issue not found"}), 404
    return jsonify({"@id": resource_id(f"/@qms/issues/{quote(report_id, safe='')}"), **issue})
