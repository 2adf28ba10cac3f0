"""
Reference data: code tables, evidence types, relationship types and the
document-control training module. Seeding is idempotent; existing rows are
left as they are.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.qms.modules.evidence.models import EvidenceType
from app.qms.modules.issues.models import ProblemSeverity, ProblemStatus, ProblemType
from app.qms.modules.links.models import RelationshipType
from app.qms.modules.register.models import DocumentStatus, DocumentType, DomainCode
from app.qms.modules.training.models import TrainingModule

DOMAIN_CODES = [
    ("QM", "Quality Management"),
    ("DC", "Document Control"),
    ("HR", "Human Resources & Training"),
    ("RM", "Risk Management"),
    ("SW", "Software Lifecycle"),
    ("RA", "Regulatory Affairs"),
    ("IT", "IT & Infrastructure"),
]

DOCUMENT_TYPES = [
    ("POL", "Policy"),
    ("SOP", "Standard Operating Procedure"),
    ("WI", "Work Instruction"),
    ("FRM", "Form"),
    ("TPL", "Template"),
    ("REC", "Record"),
    ("PLN", "Plan"),
    ("RPT", "Report"),
    ("SPEC", "Specification"),
]

DOCUMENT_STATUSES = [
    ("draft", "Draft"),
    ("in_review", "In Review"),
    ("approved", "Approved"),
    ("effective", "Effective"),
    ("under_revision", "Under Revision"),
    ("obsolete", "Obsolete"),
]

# (code, label, phase, required)
EVIDENCE_TYPES = [
    ("justification", "Change justification", 1, True),
    ("qualification", "Contributor qualification", 2, True),
    ("coi_declaration", "Conflict of interest declaration", 2, True),
    ("review_comment", "Review comment", 2, False),
    ("self_review_checklist", "Self-review checklist (FRM-DC-004)", 3, True),
    ("approval_justification", "Approval justification", 3, True),
    ("change_classification", "Change classification", 3, True),
    ("rejection_feedback", "Rejection feedback", 3, False),
]

# (code, label, description, inverse_code)
RELATIONSHIP_TYPES = [
    ("implements", "Implements", "Source implements the requirements of the target", "implemented_by"),
    ("implemented_by", "Implemented by", "Source is implemented by the target", "implements"),
    ("references", "References", "Source cites the target", "referenced_by"),
    ("referenced_by", "Referenced by", "Source is cited by the target", "references"),
    ("supersedes", "Supersedes", "Source replaces the target", "superseded_by"),
    ("superseded_by", "Superseded by", "Source has been replaced by the target", "supersedes"),
    ("addresses", "Addresses", "Source resolves or mitigates the target", "addressed_by"),
    ("addressed_by", "Addressed by", "Source is resolved or mitigated by the target", "addresses"),
    ("related_to", "Related to", "General association", None),
]

PROBLEM_SEVERITIES = [
    ("critical", "Critical"),
    ("high", "High"),
    ("medium", "Medium"),
    ("low", "Low"),
]

# (code, label, is_open)
PROBLEM_STATUSES = [
    ("open", "Open", True),
    ("investigating", "Investigating", True),
    ("fix_in_progress", "Fix in progress", True),
    ("verifying", "Verifying", True),
    ("closed", "Closed", False),
    ("rejected", "Rejected", False),
]

PROBLEM_TYPES = [
    ("bug", "Bug"),
    ("usability", "Usability"),
    ("documentation", "Documentation"),
    ("security", "Security"),
    ("performance", "Performance"),
]

DOCUMENT_CONTROL_TRAINING: dict[str, Any] = {
    "module_code": "TRN-DC-001",
    "title": "Document Control Competence",
    "description": (
        "Demonstrate competence in the document control lifecycle by drafting, "
        "submitting, reviewing and approving a training document."
    ),
    "sop_reference": "SOP-DC-001",
    "grants_roles": ["author", "reviewer"],
    "steps": [
        {"step": 1, "key": "draft_exists", "title": "Create a draft", "validation": "draft_exists"},
        {"step": 2, "key": "justification", "title": "Record a justification", "validation": "evidence_justification"},
        {"step": 3, "key": "submit_review", "title": "Submit for review", "validation": "draft_in_review"},
        {
            "step": 4,
            "key": "coi_qualification",
            "title": "Declare conflicts and qualification",
            "validation": "evidence_coi_qualification",
        },
        {"step": 5, "key": "self_review", "title": "Complete the self-review checklist", "validation": "evidence_checklist"},
        {"step": 6, "key": "effective", "title": "Publish the document", "validation": "document_effective"},
    ],
}


def _ensure(s: Session, model: type, code: str, **values: Any) -> None:
    if s.get(model, code) is None:
        s.add(model(code=code, **values))


def seed_reference_data(s: Session) -> None:
    for i, (code, label) in enumerate(DOMAIN_CODES, start=1):
        _ensure(s, DomainCode, code, label=label, sort_order=i)
    for i, (code, label) in enumerate(DOCUMENT_TYPES, start=1):
        _ensure(s, DocumentType, code, label=label, sort_order=i)
    for i, (code, label) in enumerate(DOCUMENT_STATUSES, start=1):
        _ensure(s, DocumentStatus, code, label=label, sort_order=i)
    for i, (code, label, phase, required) in enumerate(EVIDENCE_TYPES, start=1):
        _ensure(s, EvidenceType, code, label=label, phase=phase, required=required, sort_order=i)
    for code, label, description, inverse in RELATIONSHIP_TYPES:
        _ensure(s, RelationshipType, code, label=label, description=description, inverse_code=inverse)
    for i, (code, label) in enumerate(PROBLEM_SEVERITIES, start=1):
        _ensure(s, ProblemSeverity, code, label=label, sort_order=i)
    for i, (code, label, is_open) in enumerate(PROBLEM_STATUSES, start=1):
        _ensure(s, ProblemStatus, code, label=label, is_open=is_open, sort_order=i)
    for code, label in PROBLEM_TYPES:
        _ensure(s, ProblemType, code, label=label)

    module_code = DOCUMENT_CONTROL_TRAINING["module_code"]
    if s.query(TrainingModule).filter(TrainingModule.module_code == module_code).one_or_none() is None:
        s.add(TrainingModule(**DOCUMENT_CONTROL_TRAINING))
    s.flush()
