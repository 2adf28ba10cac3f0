"""
QMS document register.

- Controlled documents carry type/domain/status codes validated against reference tables
- Every status or version change is written to document_transitions
- KB docs not yet registered are surfaced through reconciliation suggestions
"""
