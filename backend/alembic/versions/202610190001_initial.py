"""initial schema: users, token pairs, login log

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sys_user",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("real_name", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("password_algorithm", sa.String(length=20), nullable=False, server_default="scrypt"),
        sa.Column("password_changed_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default=sa.text("1")),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("last_login_time", sa.DateTime(), nullable=True),
        sa.Column("last_login_ip", sa.String(length=64), nullable=True),
        sa.Column("login_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("failed_login_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("locked_until", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("status IN (0, 1, 2)", name="chk_sys_user_status"),
    )
    op.create_index("idx_sys_user_username", "sys_user", ["username"])
    op.create_index("idx_sys_user_status", "sys_user", ["status"])

    op.create_table(
        "sys_user_token",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("access_token", sa.String(length=1024), nullable=False),
        sa.Column("refresh_token", sa.String(length=1024), nullable=False),
        sa.Column("access_token_expires_at", sa.DateTime(), nullable=False),
        sa.Column("refresh_token_expires_at", sa.DateTime(), nullable=False),
        sa.Column("token_type", sa.String(length=20), nullable=False, server_default="Bearer"),
        sa.Column("client_ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("replaced_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["sys_user.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("access_token"),
        sa.UniqueConstraint("refresh_token"),
        sa.CheckConstraint(
            "access_token_expires_at < refresh_token_expires_at",
            name="chk_access_before_refresh",
        ),
        sa.CheckConstraint(
            "is_revoked = false OR revoked_at IS NOT NULL",
            name="chk_revoked_at_set",
        ),
    )
    op.create_index("idx_sys_user_token_user_revoked", "sys_user_token", ["user_id", "is_revoked"])
    op.create_index("idx_sys_user_token_refresh_expires", "sys_user_token", ["refresh_token_expires_at"])

    op.create_table(
        "sys_login_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("real_name", sa.String(length=100), nullable=True),
        sa.Column("status", sa.SmallInteger(), nullable=False),
        sa.Column("message", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["sys_user.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_sys_login_log_created_at", "sys_login_log", ["created_at"])
    op.create_index("ix_sys_login_log_username", "sys_login_log", ["username"])


def downgrade() -> None:
    op.drop_index("ix_sys_login_log_username", table_name="sys_login_log")
    op.drop_index("idx_sys_login_log_created_at", table_name="sys_login_log")
    op.drop_table("sys_login_log")

    op.drop_index("idx_sys_user_token_refresh_expires", table_name="sys_user_token")
    op.drop_index("idx_sys_user_token_user_revoked", table_name="sys_user_token")
    op.drop_table("sys_user_token")

    op.drop_index("idx_sys_user_status", table_name="sys_user")
    op.drop_index("idx_sys_user_username", table_name="sys_user")
    op.drop_table("sys_user")
