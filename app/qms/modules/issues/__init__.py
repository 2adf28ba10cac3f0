"""
Problem-report tracker (read-only). Reports are filed by tooling outside this
API; here they are listed with SLA status and cross-links to documents.
"""
