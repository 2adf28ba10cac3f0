"""
Translation groups for site content items.
"""
