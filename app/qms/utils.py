from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import request


def root_url() -> str:
    """Site root without the trailing slash, e.g. ``http://localhost``."""
    return request.url_root.rstrip("/")


def resource_id(path: str, query: str | None = None) -> str:
    """Absolute ``@id`` for a resource path under this API."""
    url = f"{root_url()}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def request_id_url() -> str:
    """``@id`` of the resource the current request addresses (path + query)."""
    query = request.query_string.decode("utf-8", errors="replace")
    return resource_id(request.path, query or None)


def parse_int(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def pagination(args: Mapping[str, Any], *, default_size: int = 50, max_size: int = 100) -> tuple[int, int, int]:
    """
    Returns (page, page_size, offset).
    page is at least 1; page_size is clamped to 1..max_size; bad ints fall back to defaults.
    """
    page = max(1, parse_int(args.get("page"), 1))
    page_size = min(max(1, parse_int(args.get("page_size"), default_size)), max_size)
    return page, page_size, (page - 1) * page_size


def clean_str(value: Any) -> str | None:
    """Strip strings; empty strings become None."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def row_dict(obj: Any, columns: list[str] | tuple[str, ...] | None = None) -> dict[str, Any]:
    """Plain dict of an ORM row's mapped columns (or a chosen subset)."""
    names = columns or [c.key for c in obj.__mapper__.column_attrs]
    return {name: getattr(obj, name) for name in names}


def json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
