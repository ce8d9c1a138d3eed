"""Initial schema - users, files, messages.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("customer_id", sa.String(255), nullable=True, unique=True),
        sa.Column("subscription_id", sa.String(255), nullable=True, unique=True),
        sa.Column("price_id", sa.String(255), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "files",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(512), nullable=False),
        sa.Column("key", sa.String(512), nullable=False, unique=True),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("upload_status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("page_count", sa.Integer, nullable=True),
        sa.Column(
            "user_id", sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_files_user_id", "files", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("is_user_message", sa.Boolean, nullable=False),
        sa.Column(
            "user_id", sa.String(255),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "file_id", UUID(as_uuid=True),
            sa.ForeignKey("files.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_messages_file_id_created_at", "messages", ["file_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_messages_file_id_created_at", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_files_user_id", table_name="files")
    op.drop_table("files")
    op.drop_table("users")
