from datetime import datetime, timedelta

import pytest

from app.qms.db import session_scope
from app.qms.modules.issues.models import ProblemReport
from app.qms.modules.issues.service import sla_status


@pytest.mark.parametrize(
    "severity,age,expected",
    [
        ("critical", timedelta(hours=23), "ON TRACK"),
        ("critical", timedelta(hours=25), "OVERDUE"),
        ("high", timedelta(days=6), "OVERDUE"),
        ("medium", timedelta(days=9), "ON TRACK"),
        ("low", timedelta(days=21), "OVERDUE"),
        ("unknown", timedelta(days=365), "ON TRACK"),
    ],
)
def test_sla_status(severity, age, expected):
    assert sla_status(severity, age) == expected


@pytest.fixture()
def issues(app):
    now = datetime.utcnow()
    with session_scope(app) as s:
        s.add_all(
            [
                ProblemReport(
                    report_id="PR-2026-001",
                    title="Login page crashes",
                    severity="critical",
                    status="open",
                    problem_type="bug",
                    reported_by="admin",
                    reported_at=now - timedelta(days=2),
                ),
                ProblemReport(
                    report_id="PR-2026-002",
                    title="Typo in SOP",
                    severity="low",
                    status="closed",
                    problem_type="documentation",
                    reported_at=now - timedelta(days=1),
                    closed_at=now,
                ),
                ProblemReport(
                    report_id="PR-2026-003",
                    title="Slow search",
                    severity="medium",
                    status="investigating",
                    problem_type="performance",
                    reported_at=now - timedelta(hours=1),
                ),
            ]
        )


def test_issue_list_with_sla_and_facets(client, admin_headers, issues):
    r = client.get("/@qms/issues")
    assert r.status_code == 200
    assert r.json["items_total"] == 3
    # ordered by workflow status, open first
    assert [i["report_id"] for i in r.json["items"]] == ["PR-2026-001", "PR-2026-003", "PR-2026-002"]
    first = r.json["items"][0]
    assert first["sla_status"] == "OVERDUE"
    assert first["is_open"] is True
    assert first["age"] > 2 * 24 * 3600 - 60

    assert r.json["summary"] == {"total": 3, "open": 2, "closed": 1, "high_severity_open": 1}
    severities = {f["code"]: f["count"] for f in r.json["severities"]}
    assert severities == {"critical": 1, "high": 0, "medium": 1, "low": 1}

    r = client.get("/@qms/issues?severity=low")
    assert [i["report_id"] for i in r.json["items"]] == ["PR-2026-002"]
    assert r.json["items"][0]["is_open"] is False

    r = client.get("/@qms/issues?search=search")
    assert [i["report_id"] for i in r.json["items"]] == ["PR-2026-003"]


def test_issue_detail_includes_links(client, admin_headers, issues):
    client.post(
        "/@docs/links",
        json={"source_doc_id": "PR-2026-001", "target_doc_id": "SOP-SW-001", "relationship_type": "references"},
        headers=admin_headers,
    )
    r = client.get("/@qms/issues/PR-2026-001")
    assert r.status_code == 200
    assert r.json["severity_label"] == "Critical"
    assert r.json["status_label"] == "Open"
    assert r.json["type_label"] == "Bug"
    assert [l["related_doc_id"] for l in r.json["links"]] == ["SOP-SW-001"]

    assert client.get("/@qms/issues/PR-0000-000").status_code == 404


def test_viewer_can_read_issues(client, viewer_headers, issues):
    assert client.get("/@qms/issues").status_code == 200
