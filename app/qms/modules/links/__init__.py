"""
Typed cross-links between documents, problem reports and standards.
"""
