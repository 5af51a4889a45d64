"""Create users, sign-on token and profile tables.

Revision ID: a1c4e7f0b2d3
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "a1c4e7f0b2d3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(table: str) -> bool:
    bind = op.get_bind()
    return sa.inspect(bind).has_table(table)


def upgrade() -> None:
    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.String(64), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("access_token", sa.Text(), nullable=True),
            sa.Column("refresh_token", sa.Text(), nullable=True),
            sa.Column("expiration_time", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("user_type", sa.String(32), nullable=False),
        )

    if not _has_table("user_sign_on_token"):
        op.create_table(
            "user_sign_on_token",
            sa.Column("token", sa.String(255), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("user_type", sa.String(32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_user_sign_on_token_email", "user_sign_on_token", ["email"])
        op.create_index("idx_user_sign_on_token_created_at", "user_sign_on_token", ["created_at"])

    for table in ("recruiter_profile", "developer_profile"):
        if not _has_table(table):
            op.create_table(
                table,
                sa.Column("id", sa.Integer(), primary_key=True),
                sa.Column("email", sa.String(320), nullable=False, unique=True),
                sa.Column("name", sa.String(255), nullable=True),
                sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            )


def downgrade() -> None:
    for table in ("developer_profile", "recruiter_profile"):
        if _has_table(table):
            op.drop_table(table)
    if _has_table("user_sign_on_token"):
        op.drop_index("idx_user_sign_on_token_created_at", table_name="user_sign_on_token")
        op.drop_index("idx_user_sign_on_token_email", table_name="user_sign_on_token")
        op.drop_table("user_sign_on_token")
    if _has_table("users"):
        op.drop_table("users")
