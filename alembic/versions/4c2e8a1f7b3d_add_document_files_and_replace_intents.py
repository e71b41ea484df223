"""add document_files and file_replace_intents tables

Revision ID: 4c2e8a1f7b3d
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c2e8a1f7b3d"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

file_visibility = sa.Enum("team", "public", name="filevisibility")
replace_intent_status = sa.Enum(
    "pending",
    "blob_committed",
    "done",
    "failed",
    "reconciled",
    "superseded",
    "abandoned",
    name="replaceintentstatus",
)


def upgrade() -> None:
    op.create_table(
        "document_files",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("storage_bucket", sa.String(length=100), nullable=False),
        sa.Column("document_id", sa.String(length=64), nullable=True),
        sa.Column("application_id", sa.String(length=64), nullable=True),
        sa.Column("uploaded_by", sa.String(length=64), nullable=True),
        sa.Column("visibility", file_visibility, nullable=False),
        sa.Column("team_id", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_files_document", "document_files", ["document_id"], unique=False
    )
    op.create_index(
        "ix_document_files_application", "document_files", ["application_id"], unique=False
    )

    op.create_table(
        "file_replace_intents",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("file_id", sa.String(length=64), nullable=False),
        sa.Column("staging_key", sa.String(length=1024), nullable=True),
        sa.Column("file_path", sa.String(length=1024), nullable=False),
        sa.Column("storage_bucket", sa.String(length=100), nullable=False),
        sa.Column("new_file_name", sa.String(length=255), nullable=False),
        sa.Column("new_file_type", sa.String(length=255), nullable=False),
        sa.Column("new_file_size", sa.Integer(), nullable=False),
        sa.Column("expected_version", sa.Integer(), nullable=False),
        sa.Column("status", replace_intent_status, nullable=False),
        sa.Column("failed_stage", sa.String(length=40), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_file_replace_intents_status_updated",
        "file_replace_intents",
        ["status", "updated_at"],
        unique=False,
    )
    op.create_index(
        "ix_file_replace_intents_file", "file_replace_intents", ["file_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_file_replace_intents_file", table_name="file_replace_intents")
    op.drop_index("ix_file_replace_intents_status_updated", table_name="file_replace_intents")
    op.drop_table("file_replace_intents")
    op.drop_index("ix_document_files_application", table_name="document_files")
    op.drop_index("ix_document_files_document", table_name="document_files")
    op.drop_table("document_files")
    replace_intent_status.drop(op.get_bind(), checkfirst=True)
    file_visibility.drop(op.get_bind(), checkfirst=True)
