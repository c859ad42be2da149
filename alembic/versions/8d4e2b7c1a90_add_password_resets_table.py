"""add password_resets table

Revision ID: 8d4e2b7c1a90
Revises: 3a1f0c6e8b21
Create Date: 2026-10-20 10:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8d4e2b7c1a90"
down_revision: Union[str, Sequence[str], None] = "3a1f0c6e8b21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "password_resets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("code_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_reason", sa.String(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("verified_ip", sa.String(), nullable=True),
        sa.Column("verified_user_agent", sa.String(length=500), nullable=True),
        sa.Column("used_ip", sa.String(), nullable=True),
        sa.Column("used_user_agent", sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_password_resets_id", "password_resets", ["id"], unique=False)
    op.create_index("ix_password_resets_user_id", "password_resets", ["user_id"], unique=False)
    op.create_index("ix_password_resets_email_active", "password_resets", ["email", "active", "used"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_password_resets_email_active", table_name="password_resets")
    op.drop_index("ix_password_resets_user_id", table_name="password_resets")
    op.drop_index("ix_password_resets_id", table_name="password_resets")
    op.drop_table("password_resets")
