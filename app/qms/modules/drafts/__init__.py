"""
Draft editing and approval for knowledge-base documents.

At most one draft exists per document. Approval publishes the draft as a new
version and records the approval evidence in the same transaction.
"""
