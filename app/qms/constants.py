"""
Central constants for the QMS API.
"""
from __future__ import annotations

import re

# Controlled document ids as they appear in URLs, e.g. "SOP-DC-001".
DOC_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,99}$")

# Permission keys (see scripts/init_db.py for seeding)
PERM_DOCS_VIEW = "docs.view"
PERM_DOCS_EDIT = "docs.edit"
PERM_QMS_VIEW = "qms.view"
PERM_QMS_MANAGE = "qms.manage"
PERM_POLYGLOT_VIEW = "polyglot.view"
PERM_CONTENT_VIEW = "content.view"
PERM_CONTENT_EDIT = "content.edit"

PERMISSIONS = {
    PERM_DOCS_VIEW: "View knowledge-base docs",
    PERM_DOCS_EDIT: "Modify docs and links",
    PERM_QMS_VIEW: "Access developer tools",
    PERM_QMS_MANAGE: "Manage documents",
    PERM_POLYGLOT_VIEW: "View translation data",
    PERM_CONTENT_VIEW: "View content translations",
    PERM_CONTENT_EDIT: "Modify content translations",
}

# Document statuses used by workflow code
STATUS_DRAFT = "draft"
STATUS_IN_REVIEW = "in_review"
STATUS_EFFECTIVE = "effective"
STATUS_OBSOLETE = "obsolete"

RETENTION_YEARS_DEFAULT = 10
RETENTION_BASIS_DEFAULT = "EU MDR Art 10.8"
