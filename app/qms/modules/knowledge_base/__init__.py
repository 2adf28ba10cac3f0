"""
Knowledge base: markdown documents synced from git, browsable and searchable,
with semantic-version bumps on save and immutable version snapshots.
"""
