"""
Lifecycle evidence for controlled documents.

Evidence rows are append-only; recording a new row of a type supersedes the
previous current row of that type for the same document.
"""
