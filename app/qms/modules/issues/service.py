from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.qms.modules.issues.models import ProblemReport, ProblemSeverity, ProblemStatus, ProblemType

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


# Age after which an issue of a given severity is reported as OVERDUE.
SLA_LIMITS = {
    "critical": timedelta(hours=24),
    "high": timedelta(days=5),
    "medium": timedelta(days=10),
    "low": timedelta(days=20),
}

REPORT_FIELDS = (
    "id",
    "report_id",
    "title",
    "description",
    "severity",
    "status",
    "problem_type",
    "scope",
    "affected_component",
    "reported_by",
    "reported_at",
    "disposition",
    "related_capa_id",
    "related_dr_id",
    "resolution",
    "closed_at",
)

LIST_FIELDS = (
    "report_id",
    "title",
    "severity",
    "status",
    "problem_type",
    "scope",
    "affected_component",
    "reported_by",
    "reported_at",
    "disposition",
    "related_capa_id",
    "related_dr_id",
)


def sla_status(severity: str, age: timedelta) -> str:
    # Applied regardless of open/closed state.
    limit = SLA_LIMITS.get(severity)
    if limit is not None and age > limit:
        return "OVERDUE"
    return "ON TRACK"


def issues_page(
    s: "Session",
    filters: dict[str, str | None],
    page: int,
    page_size: int,
    offset: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.utcnow()

    q = s.query(ProblemReport, ProblemStatus.is_open).join(ProblemStatus, ProblemStatus.code == ProblemReport.status)
    if filters.get("severity"):
        q = q.filter(ProblemReport.severity == filters["severity"])
    if filters.get("status"):
        q = q.filter(ProblemReport.status == filters["status"])
    if filters.get("problem_type"):
        q = q.filter(ProblemReport.problem_type == filters["problem_type"])
    if filters.get("search"):
        like = f"%{filters['search']}%"
        q = q.filter(or_(ProblemReport.title.ilike(like), ProblemReport.report_id.ilike(like)))

    total = q.count()
    rows = (
        q.order_by(ProblemStatus.sort_order, ProblemReport.reported_at.desc())
        .limit(page_size)
        .offset(offset)
        .all()
    )
    items = []
    for pr, is_open in rows:
        age = now - pr.reported_at
        item = {f: getattr(pr, f) for f in LIST_FIELDS}
        item["is_open"] = is_open
        item["age"] = int(age.total_seconds())
        item["sla_status"] = sla_status(pr.severity, age)
        items.append(item)

    severities = (
        s.query(ProblemSeverity.code, ProblemSeverity.label, func.count(ProblemReport.id))
        .outerjoin(ProblemReport, ProblemReport.severity == ProblemSeverity.code)
        .group_by(ProblemSeverity.code, ProblemSeverity.label, ProblemSeverity.sort_order)
        .order_by(ProblemSeverity.sort_order)
        .all()
    )
    statuses = (
        s.query(ProblemStatus.code, ProblemStatus.label, ProblemStatus.is_open, func.count(ProblemReport.id))
        .outerjoin(ProblemReport, ProblemReport.status == ProblemStatus.code)
        .group_by(ProblemStatus.code, ProblemStatus.label, ProblemStatus.is_open, ProblemStatus.sort_order)
        .order_by(ProblemStatus.sort_order)
        .all()
    )
    types = (
        s.query(ProblemType.code, ProblemType.label, func.count(ProblemReport.id))
        .outerjoin(ProblemReport, ProblemReport.problem_type == ProblemType.code)
        .group_by(ProblemType.code, ProblemType.label)
        .order_by(ProblemType.label)
        .all()
    )

    return {
        "items": items,
        "items_total": total,
        "page": page,
        "page_size": page_size,
        "severities": [{"code": c, "label": lbl, "count": n} for c, lbl, n in severities],
        "statuses": [{"code": c, "label": lbl, "is_open": o, "count": n} for c, lbl, o, n in statuses],
        "types": [{"code": c, "label": lbl, "count": n} for c, lbl, n in types],
        "summary": issues_summary(s),
    }


def issues_summary(s: "Session") -> dict[str, int]:
    rows = (
        s.query(ProblemReport.severity, ProblemStatus.is_open)
        .join(ProblemStatus, ProblemStatus.code == ProblemReport.status)
        .all()
    )
    return {
        "total": len(rows),
        "open": sum(1 for _, is_open in rows if is_open),
        "closed": sum(1 for _, is_open in rows if not is_open),
        "high_severity_open": sum(1 for sev, is_open in rows if is_open and sev in ("critical", "high")),
    }


def issue_detail(s: "Session", report_id: str) -> dict[str, Any] | None:
    from app.qms.modules.links.service import bidirectional_links

    row = (
        s.query(ProblemReport, ProblemStatus, ProblemSeverity, ProblemType)
        .join(ProblemStatus, ProblemStatus.code == ProblemReport.status)
        .join(ProblemSeverity, ProblemSeverity.code == ProblemReport.severity)
        .join(ProblemType, ProblemType.code == ProblemReport.problem_type)
        .filter(ProblemReport.report_id == report_id)
        .one_or_none()
    )
    if row is None:
        return None
    pr, status, severity, ptype = row
    out = {f: getattr(pr, f) for f in REPORT_FIELDS}
    out["status_label"] = status.label
    out["is_open"] = status.is_open
    out["severity_label"] = severity.label
    out["type_label"] = ptype.label
    out["links"] = bidirectional_links(s, report_id)
    return out
