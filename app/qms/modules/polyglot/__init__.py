"""
Read-only browsing of UI message translations, language conventions and
terminology sources (IATE, Microsoft glossary).
"""
