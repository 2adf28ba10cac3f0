from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from app.qms.audit import record_event
from app.qms.errors import BadRequest, NotFound
from app.qms.modules.translations.models import ContentItem
from app.qms.utils import clean_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.qms.models import User


def content_path(raw: str | None) -> str:
    """Normalize a routed path to the stored form: leading '/', no trailing '/'."""
    path = "/" + (raw or "").strip("/")
    return path


def get_context(s: "Session", raw_path: str | None) -> ContentItem:
    path = content_path(raw_path)
    item = s.query(ContentItem).filter(ContentItem.path == path).one_or_none()
    if item is None:
        raise NotFound(f"Content not found: {path}")
    return item


def group_members(s: "Session", item: ContentItem) -> list[ContentItem]:
    if not item.translation_group:
        return []
    return (
        s.query(ContentItem)
        .filter(ContentItem.translation_group == item.translation_group)
        .order_by(ContentItem.language, ContentItem.path)
        .all()
    )


def _resolve_target(s: "Session", ref: str) -> ContentItem | None:
    if ref.startswith("/"):
        return s.query(ContentItem).filter(ContentItem.path == content_path(ref)).one_or_none()
    return s.get(ContentItem, ref)


def link_translation(s: "Session", item: ContentItem, ref: Any, user: "User") -> ContentItem:
    """Put `ref` (a path or uuid) in the context's translation group, creating the group if needed."""
    ref = clean_str(ref) or ""
    if not ref:
        raise BadRequest("Required field: id")
    target = _resolve_target(s, ref)
    if target is None:
        raise NotFound(f"Translation target not found: {ref}")

    if not item.translation_group:
        item.translation_group = uuid.uuid4().hex
    target.translation_group = item.translation_group

    record_event(
        s,
        actor=user,
        action="translation.link",
        entity_type="ContentItem",
        entity_id=item.uuid,
        metadata={"path": item.path, "target": target.path, "group": item.translation_group},
    )
    return target


def unlink_translation(s: "Session", item: ContentItem, language: Any, user: "User") -> ContentItem:
    language = clean_str(language) or ""
    if not language:
        raise BadRequest("Required field: language")
    member = None
    if item.translation_group:
        member = (
            s.query(ContentItem)
            .filter(ContentItem.translation_group == item.translation_group, ContentItem.language == language)
            .first()
        )
    if member is None:
        raise NotFound(f"No translation in language '{language}'")

    group = member.translation_group
    member.translation_group = None
    record_event(
        s,
        actor=user,
        action="translation.unlink",
        entity_type="ContentItem",
        entity_id=member.uuid,
        metadata={"path": member.path, "language": language, "group": group},
    )
    return member


def locate_translation(s: "Session", item: ContentItem, target_language: str) -> str:
    """
    Path of the parent's translation in target_language, falling back to the
    language root ("/<lang>") when the parent has none.
    """
    parent = s.get(ContentItem, item.parent_uuid) if item.parent_uuid else None
    if parent is not None and parent.translation_group:
        match = (
            s.query(ContentItem)
            .filter(ContentItem.translation_group == parent.translation_group, ContentItem.language == target_language)
            .first()
        )
        if match is not None:
            return match.path
    return f"/{target_language}"
