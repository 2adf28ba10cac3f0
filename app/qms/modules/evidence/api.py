from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.qms.constants import PERM_QMS_MANAGE, PERM_QMS_VIEW
from app.qms.db import db_session
from app.qms.modules.evidence.service import create_evidence, evidence_dict, evidence_summary, list_evidence
from app.qms.modules.evidence.models import EvidenceType
from app.qms.rbac import current_user, require_permission
from app.qms.utils import json_body, request_id_url, resource_id

bp = Blueprint("evidence", __name__)


@bp.get("/evidence")
@require_permission(PERM_QMS_VIEW)
def evidence_list():
    document_id = (request.args.get("document_id") or "").strip()
    if not document_id:
        return jsonify({"error": "document_id query parameter required"}), 400
    s = db_session()
    items = list_evidence(s, document_id)
    return jsonify({"@id": request_id_url(), "items": items, "items_total": len(items)})


@bp.get("/evidence/summary")
@require_permission(PERM_QMS_VIEW)
def evidence_summary_get():
    document_id = (request.args.get("document_id") or "").strip()
    if not document_id:
        return jsonify({"error": "document_id query parameter required"}), 400
    s = db_session()
    return jsonify({"@id": request_id_url(), **evidence_summary(s, document_id)})


@bp.post("/evidence")
@require_permission(PERM_QMS_MANAGE)
def evidence_create():
    s = db_session()
    ev = create_evidence(s, json_body(), current_user())
    s.commit()
    etype = s.get(EvidenceType, ev.evidence_type)
    return jsonify({"@id": resource_id("/@qms/evidence"), **evidence_dict(ev, etype)}), 201
