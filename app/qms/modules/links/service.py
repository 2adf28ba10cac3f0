from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.qms.audit import record_event
from app.qms.errors import BadRequest, Conflict
from app.qms.modules.links.models import DocumentLink, RelationshipType
from app.qms.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.qms.models import User


LINK_FIELDS = ("id", "source_doc_id", "target_doc_id", "relationship_type", "notes", "created_by", "created_at")


def link_dict(link: DocumentLink) -> dict[str, Any]:
    return {f: getattr(link, f) for f in LINK_FIELDS}


def relationship_types(s: "Session") -> list[dict[str, Any]]:
    rows = s.query(RelationshipType).order_by(RelationshipType.label).all()
    return [
        {"code": r.code, "label": r.label, "description": r.description, "inverse_code": r.inverse_code}
        for r in rows
    ]


def bidirectional_links(s: "Session", doc_id: str) -> list[dict[str, Any]]:
    """
    Links touching doc_id seen from doc_id's side.

    Outgoing links keep their type; incoming links are reported under the
    inverse type (e.g. "implemented_by") when one is defined.
    """
    from app.qms.modules.register.models import ControlledDocument

    types = {t.code: t for t in s.query(RelationshipType).all()}
    links = (
        s.query(DocumentLink)
        .filter((DocumentLink.source_doc_id == doc_id) | (DocumentLink.target_doc_id == doc_id))
        .all()
    )

    rows: list[dict[str, Any]] = []
    for link in links:
        rtype = types.get(link.relationship_type)
        if link.source_doc_id == doc_id:
            direction = "outgoing"
            related = link.target_doc_id
            code = link.relationship_type
            label = rtype.label if rtype else code
        else:
            direction = "incoming"
            related = link.source_doc_id
            inverse = types.get(rtype.inverse_code) if rtype and rtype.inverse_code else None
            code = inverse.code if inverse else link.relationship_type
            label = inverse.label if inverse else (rtype.label if rtype else code)
        rows.append(
            {
                "id": link.id,
                "relationship_type": code,
                "relationship_label": label,
                "direction": direction,
                "related_doc_id": related,
                "notes": link.notes,
                "created_by": link.created_by,
                "created_at": link.created_at,
            }
        )

    related_ids = {r["related_doc_id"] for r in rows}
    docs = {}
    if related_ids:
        docs = {
            d.document_id: d
            for d in s.query(ControlledDocument).filter(ControlledDocument.document_id.in_(related_ids)).all()
        }
    for r in rows:
        d = docs.get(r["related_doc_id"])
        r["related_title"] = d.title if d else None
        r["related_status"] = d.status if d else None

    rows.sort(key=lambda r: (r["direction"], r["relationship_label"], r["related_doc_id"]))
    return rows


def create_link(s: "Session", payload: dict, user: "User") -> DocumentLink:
    source = clean_str(payload.get("source_doc_id")) or ""
    target = clean_str(payload.get("target_doc_id")) or ""
    rtype = clean_str(payload.get("relationship_type")) or ""
    if not source or not target or not rtype:
        raise BadRequest("Missing required fields: source_doc_id, target_doc_id, relationship_type")
    if source == target:
        raise BadRequest("Cannot link a document to itself")
    if not s.get(RelationshipType, rtype):
        raise BadRequest(f"Invalid relationship_type: {rtype}")

    exists = (
        s.query(DocumentLink.id)
        .filter(
            DocumentLink.source_doc_id == source,
            DocumentLink.target_doc_id == target,
            DocumentLink.relationship_type == rtype,
        )
        .first()
    )
    if exists:
        raise Conflict("Link already exists")

    link = DocumentLink(
        source_doc_id=source,
        target_doc_id=target,
        relationship_type=rtype,
        notes=clean_str(payload.get("notes")),
        created_by=user.username,
    )
    s.add(link)
    s.flush()
    record_event(
        s,
        actor=user,
        action="link.create",
        entity_type="DocumentLink",
        entity_id=str(link.id),
        metadata={"source": source, "target": target, "type": rtype},
    )
    return link


def delete_link(s: "Session", link: DocumentLink, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="link.delete",
        entity_type="DocumentLink",
        entity_id=str(link.id),
        metadata={"source": link.source_doc_id, "target": link.target_doc_id, "type": link.relationship_type},
    )
    s.delete(link)
