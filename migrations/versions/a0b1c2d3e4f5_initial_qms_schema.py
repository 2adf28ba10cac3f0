"""Initial QMS schema.

Auth/audit, knowledge base (docs, drafts, version snapshots), document register
with transitions and evidence, cross-links, problem reports, training,
translation browsing and content translation groups.

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-03-02
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a0b1c2d3e4f5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JsonType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _ref_table(name: str, code_len: int) -> None:
    op.create_table(
        name,
        sa.Column("code", sa.String(code_len), primary_key=True),
        sa.Column("label", sa.String(128), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )


def upgrade() -> None:
    # --- auth / audit -------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("fullname", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key"),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key"),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column("role_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), primary_key=True),
        sa.Column("permission_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_username", sa.String(64), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    # --- knowledge base -----------------------------------------------------
    op.create_table(
        "kb_docs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(512), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("category", sa.String(128), nullable=True),
        sa.Column("subcategory", sa.String(128), nullable=True),
        sa.Column("status", sa.String(32), nullable=True),
        sa.Column("doc_date", sa.Date(), nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("version", sa.String(32), nullable=True),
        sa.Column("body_md", sa.Text(), nullable=True),
        sa.Column("frontmatter", JsonType, nullable=True),
        sa.Column("content_type", sa.String(64), nullable=True),
        sa.Column("source_dir", sa.String(255), nullable=True),
        sa.Column("project", sa.String(128), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("git_hash", sa.String(64), nullable=True),
        sa.Column("git_author", sa.String(255), nullable=True),
        sa.Column("git_date", sa.DateTime(), nullable=True),
        sa.Column("synced_at", sa.DateTime(), nullable=True),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("edited_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_kb_docs_category", "kb_docs", ["category"])

    op.create_table(
        "doc_drafts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doc_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("body_md", sa.Text(), nullable=True),
        sa.Column("frontmatter", JsonType, nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("reviewer_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["doc_id"], ["kb_docs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doc_id"),
    )

    op.create_table(
        "doc_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doc_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.String(32), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("body_md", sa.Text(), nullable=True),
        sa.Column("frontmatter", JsonType, nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("published_by", sa.String(64), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=True),
        sa.Column("superseded_at", sa.DateTime(), nullable=True),
        sa.Column("superseded_by", sa.String(32), nullable=True),
        sa.Column("changes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["doc_id"], ["kb_docs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doc_id", "version", name="uq_doc_versions_doc_version"),
    )
    op.create_index("ix_doc_versions_doc_id", "doc_versions", ["doc_id"])

    # --- register -----------------------------------------------------------
    _ref_table("ref_domain_codes", 16)
    _ref_table("ref_document_types", 16)
    _ref_table("ref_document_statuses", 32)

    op.create_table(
        "controlled_documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("document_type", sa.String(16), nullable=False),
        sa.Column("domain_code", sa.String(16), nullable=False),
        sa.Column("version", sa.String(32), nullable=False, server_default="0.1"),
        sa.Column("status", sa.String(32), nullable=False, server_default="draft"),
        sa.Column("classification", sa.String(32), nullable=False, server_default="internal"),
        sa.Column("effective_date", sa.Date(), nullable=True),
        sa.Column("next_review_date", sa.Date(), nullable=True),
        sa.Column("owner", sa.String(255), nullable=True),
        sa.Column("author", sa.String(255), nullable=True),
        sa.Column("reviewer", sa.String(255), nullable=True),
        sa.Column("approver", sa.String(255), nullable=True),
        sa.Column("implements", sa.String(255), nullable=True),
        sa.Column("retention_years", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("retention_basis", sa.String(255), nullable=False, server_default="EU MDR Art 10.8"),
        sa.Column("location", sa.String(512), nullable=True),
        sa.Column("docs_id", sa.Integer(), nullable=True),
        sa.Column("body_md", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["document_type"], ["ref_document_types.code"]),
        sa.ForeignKeyConstraint(["domain_code"], ["ref_domain_codes.code"]),
        sa.ForeignKeyConstraint(["status"], ["ref_document_statuses.code"]),
        sa.ForeignKeyConstraint(["docs_id"], ["kb_docs.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("document_id"),
    )
    op.create_index("ix_controlled_documents_docs_id", "controlled_documents", ["docs_id"])

    op.create_table(
        "document_transitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("from_status", sa.String(32), nullable=True),
        sa.Column("to_status", sa.String(32), nullable=True),
        sa.Column("from_version", sa.String(32), nullable=True),
        sa.Column("to_version", sa.String(32), nullable=True),
        sa.Column("performed_by", sa.String(64), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("evidence_ref", sa.String(255), nullable=True),
        sa.Column("performed_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["controlled_documents.document_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_document_transitions_document_id", "document_transitions", ["document_id"])

    op.create_table(
        "external_documents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("edition", sa.String(64), nullable=True),
        sa.Column("publisher", sa.String(128), nullable=True),
        sa.Column("acquired_date", sa.Date(), nullable=True),
        sa.Column("owner", sa.String(255), nullable=True),
        sa.Column("current_status", sa.String(64), nullable=True),
        sa.Column("last_checked", sa.Date(), nullable=True),
        sa.Column("next_check_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("document_id"),
    )

    op.create_table(
        "reconciliation_exclusions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("docs_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("excluded_by", sa.String(64), nullable=True),
        sa.Column("excluded_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["docs_id"], ["kb_docs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("docs_id"),
    )

    # --- evidence -----------------------------------------------------------
    op.create_table(
        "ref_evidence_types",
        sa.Column("code", sa.String(64), primary_key=True),
        sa.Column("label", sa.String(128), nullable=False),
        sa.Column("phase", sa.Integer(), nullable=False),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "document_evidence",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(100), nullable=False),
        sa.Column("transition_id", sa.Integer(), nullable=True),
        sa.Column("evidence_type", sa.String(64), nullable=False),
        sa.Column("evidence_data", JsonType, nullable=False),
        sa.Column("evidence_text", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.String(64), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("is_superseded", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("superseded_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["document_id"], ["controlled_documents.document_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["transition_id"], ["document_transitions.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["evidence_type"], ["ref_evidence_types.code"]),
        sa.ForeignKeyConstraint(["superseded_by"], ["document_evidence.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_document_evidence_document_id", "document_evidence", ["document_id"])

    # --- links --------------------------------------------------------------
    op.create_table(
        "ref_relationship_types",
        sa.Column("code", sa.String(64), primary_key=True),
        sa.Column("label", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("inverse_code", sa.String(64), nullable=True),
    )
    op.create_table(
        "document_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("source_doc_id", sa.String(100), nullable=False),
        sa.Column("target_doc_id", sa.String(100), nullable=False),
        sa.Column("relationship_type", sa.String(64), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["relationship_type"], ["ref_relationship_types.code"]),
        sa.UniqueConstraint("source_doc_id", "target_doc_id", "relationship_type", name="uq_document_links_triple"),
    )
    op.create_index("ix_document_links_source_doc_id", "document_links", ["source_doc_id"])
    op.create_index("ix_document_links_target_doc_id", "document_links", ["target_doc_id"])

    # --- problem reports ----------------------------------------------------
    _ref_table("ref_problem_severities", 32)
    op.create_table(
        "ref_problem_statuses",
        sa.Column("code", sa.String(32), primary_key=True),
        sa.Column("label", sa.String(128), nullable=False),
        sa.Column("is_open", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "ref_problem_types",
        sa.Column("code", sa.String(32), primary_key=True),
        sa.Column("label", sa.String(128), nullable=False),
    )
    op.create_table(
        "problem_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("report_id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("severity", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("problem_type", sa.String(32), nullable=False),
        sa.Column("scope", sa.String(255), nullable=True),
        sa.Column("affected_component", sa.String(255), nullable=True),
        sa.Column("reported_by", sa.String(64), nullable=True),
        sa.Column("reported_at", sa.DateTime(), nullable=False),
        sa.Column("disposition", sa.String(64), nullable=True),
        sa.Column("related_capa_id", sa.String(64), nullable=True),
        sa.Column("related_dr_id", sa.String(64), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["severity"], ["ref_problem_severities.code"]),
        sa.ForeignKeyConstraint(["status"], ["ref_problem_statuses.code"]),
        sa.ForeignKeyConstraint(["problem_type"], ["ref_problem_types.code"]),
        sa.UniqueConstraint("report_id"),
    )

    # --- training -----------------------------------------------------------
    op.create_table(
        "training_modules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("module_code", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sop_reference", sa.String(64), nullable=True),
        sa.Column("grants_roles", JsonType, nullable=False),
        sa.Column("steps", JsonType, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("module_code"),
    )
    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("training_doc_id", sa.String(100), nullable=True),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(16), nullable=False, server_default="in_progress"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("certificate_id", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["module_id"], ["training_modules.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_training_sessions_user_id", "training_sessions", ["user_id"])
    op.create_table(
        "training_step_completions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("step_key", sa.String(64), nullable=False),
        sa.Column("validated_by", sa.String(64), nullable=False),
        sa.Column("validated_at", sa.DateTime(), nullable=False),
        sa.Column("validation_data", JsonType, nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["training_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("session_id", "step_number", name="uq_training_step_completion"),
    )
    op.create_table(
        "training_certificates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("certificate_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("user_fullname", sa.String(255), nullable=True),
        sa.Column("module_code", sa.String(64), nullable=False),
        sa.Column("module_title", sa.String(255), nullable=False),
        sa.Column("qualified_for", JsonType, nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["training_sessions.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("certificate_id"),
    )
    op.create_table(
        "qualification_grants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("role_code", sa.String(64), nullable=False),
        sa.Column("granted_by", sa.String(64), nullable=False),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("user_id", "role_code", name="uq_qualification_grant_user_role"),
    )

    # --- polyglot -----------------------------------------------------------
    op.create_table(
        "canonical_messages",
        sa.Column("message_id", sa.String(128), primary_key=True),
        sa.Column("english_source", sa.Text(), nullable=False),
        sa.Column("platform", sa.String(64), nullable=False),
        sa.Column("domain", sa.String(64), nullable=True),
        sa.Column("msgctxt", sa.String(255), nullable=True),
    )
    op.create_index("ix_canonical_messages_platform", "canonical_messages", ["platform"])
    op.create_table(
        "translations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("message_id", sa.String(128), nullable=False),
        sa.Column("language", sa.String(16), nullable=False),
        sa.Column("msgstr", sa.Text(), nullable=False, server_default=""),
        sa.Column("translation_source", sa.String(64), nullable=True),
        sa.Column("review_state", sa.String(32), nullable=True),
        sa.Column("risk_level", sa.String(16), nullable=True),
        sa.ForeignKeyConstraint(["message_id"], ["canonical_messages.message_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("message_id", "language", name="uq_translations_message_language"),
    )
    op.create_index("ix_translations_message_id", "translations", ["message_id"])
    op.create_index("ix_translations_language", "translations", ["language"])
    op.create_table(
        "language_conventions",
        sa.Column("language_code", sa.String(16), primary_key=True),
        sa.Column("language_name", sa.String(128), nullable=True),
        sa.Column("language_name_native", sa.String(128), nullable=True),
        sa.Column("formality", sa.String(64), nullable=True),
        sa.Column("date_format", sa.String(64), nullable=True),
        sa.Column("number_format", sa.String(64), nullable=True),
        sa.Column("quotation_marks", sa.String(16), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_table(
        "preserved_terms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("language_code", sa.String(16), nullable=False),
        sa.Column("term", sa.String(255), nullable=False),
        sa.Column("term_type", sa.String(64), nullable=True),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_preserved_terms_term", "preserved_terms", ["term"])
    op.create_table(
        "terminology",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("english_term", sa.String(255), nullable=False),
        sa.Column("language_code", sa.String(16), nullable=False),
        sa.Column("translation", sa.String(255), nullable=False),
        sa.Column("source", sa.String(64), nullable=True),
        sa.Column("reliability", sa.Integer(), nullable=True),
    )
    op.create_index("ix_terminology_english_term", "terminology", ["english_term"])
    op.create_table(
        "glossary_terms",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("en_term", sa.String(255), nullable=False),
        sa.Column("definition", sa.Text(), nullable=True),
        sa.Column("part_of_speech", sa.String(32), nullable=True),
    )
    op.create_index("ix_glossary_terms_en_term", "glossary_terms", ["en_term"])
    op.create_table(
        "glossary_translations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("term_entry_id", sa.Integer(), nullable=False),
        sa.Column("language_code", sa.String(16), nullable=False),
        sa.Column("term", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["term_entry_id"], ["glossary_terms.id"], ondelete="CASCADE"),
    )

    # --- content translations -----------------------------------------------
    op.create_table(
        "content_items",
        sa.Column("uuid", sa.String(36), primary_key=True),
        sa.Column("path", sa.String(512), nullable=False),
        sa.Column("parent_uuid", sa.String(36), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("language", sa.String(16), nullable=True),
        sa.Column("translation_group", sa.String(36), nullable=True),
        sa.UniqueConstraint("path"),
    )
    op.create_index("ix_content_items_translation_group", "content_items", ["translation_group"])


def downgrade() -> None:
    op.drop_index("ix_content_items_translation_group", table_name="content_items")
    op.drop_table("content_items")
    op.drop_table("glossary_translations")
    op.drop_index("ix_glossary_terms_en_term", table_name="glossary_terms")
    op.drop_table("glossary_terms")
    op.drop_index("ix_terminology_english_term", table_name="terminology")
    op.drop_table("terminology")
    op.drop_index("ix_preserved_terms_term", table_name="preserved_terms")
    op.drop_table("preserved_terms")
    op.drop_table("language_conventions")
    op.drop_index("ix_translations_language", table_name="translations")
    op.drop_index("ix_translations_message_id", table_name="translations")
    op.drop_table("translations")
    op.drop_index("ix_canonical_messages_platform", table_name="canonical_messages")
    op.drop_table("canonical_messages")

    op.drop_table("qualification_grants")
    op.drop_table("training_certificates")
    op.drop_table("training_step_completions")
    op.drop_index("ix_training_sessions_user_id", table_name="training_sessions")
    op.drop_table("training_sessions")
    op.drop_table("training_modules")

    op.drop_table("problem_reports")
    op.drop_table("ref_problem_types")
    op.drop_table("ref_problem_statuses")
    op.drop_table("ref_problem_severities")

    op.drop_index("ix_document_links_target_doc_id", table_name="document_links")
    op.drop_index("ix_document_links_source_doc_id", table_name="document_links")
    op.drop_table("document_links")
    op.drop_table("ref_relationship_types")

    op.drop_index("ix_document_evidence_document_id", table_name="document_evidence")
    op.drop_table("document_evidence")
    op.drop_table("ref_evidence_types")

    op.drop_table("reconciliation_exclusions")
    op.drop_table("external_documents")
    op.drop_index("ix_document_transitions_document_id", table_name="document_transitions")
    op.drop_table("document_transitions")
    op.drop_index("ix_controlled_documents_docs_id", table_name="controlled_documents")
    op.drop_table("controlled_documents")
    op.drop_table("ref_document_statuses")
    op.drop_table("ref_document_types")
    op.drop_table("ref_domain_codes")

    op.drop_index("ix_doc_versions_doc_id", table_name="doc_versions")
    op.drop_table("doc_versions")
    op.drop_table("doc_drafts")
    op.drop_index("ix_kb_docs_category", table_name="kb_docs")
    op.drop_table("kb_docs")

    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
