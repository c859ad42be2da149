"""create users, authorization requests, audit events, losses and harvests

Revision ID: 3a1f0c6e8b21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3a1f0c6e8b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="OPERADOR"),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "authorization_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("target_table", sa.String(length=50), nullable=False),
        sa.Column("target_record_id", sa.Integer(), nullable=False),
        sa.Column("requester_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=2000), nullable=False),
        sa.Column("state", sa.String(), nullable=False, server_default="PENDING"),
        sa.Column("approver_id", sa.Integer(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_comment", sa.String(), nullable=True),
        sa.Column("code_hash", sa.String(), nullable=True),
        sa.Column("code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("code_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_authorization_requests_id", "authorization_requests", ["id"], unique=False)
    op.create_index("ix_authorization_requests_kind", "authorization_requests", ["kind"], unique=False)
    op.create_index("ix_authorization_requests_requester_id", "authorization_requests", ["requester_id"], unique=False)
    op.create_index("ix_authorization_requests_state", "authorization_requests", ["state"], unique=False)
    op.create_index(
        "ix_authorization_requests_target",
        "authorization_requests",
        ["kind", "target_table", "target_record_id"],
        unique=False,
    )
    op.create_index(
        "uq_authorization_requests_pending",
        "authorization_requests",
        ["kind", "target_table", "target_record_id", "requester_id"],
        unique=True,
        postgresql_where=sa.text("state = 'PENDING'"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("target_table", sa.String(), nullable=False),
        sa.Column("target_record_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("detail", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"], unique=False)
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"], unique=False)
    op.create_index("ix_audit_events_target_table", "audit_events", ["target_table"], unique=False)
    op.create_index("ix_audit_events_target_record_id", "audit_events", ["target_record_id"], unique=False)
    op.create_index("ix_audit_events_action", "audit_events", ["action"], unique=False)
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"], unique=False)
    op.create_index(
        "ix_audit_events_target_action",
        "audit_events",
        ["target_table", "target_record_id", "action"],
        unique=False,
    )

    op.create_table(
        "losses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=True),
        sa.Column("pond_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("dead", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("missing", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("surplus", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("deformed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_losses_id", "losses", ["id"], unique=False)
    op.create_index("ix_losses_lot_id", "losses", ["lot_id"], unique=False)
    op.create_index("ix_losses_pond_id", "losses", ["pond_id"], unique=False)
    op.create_index("ix_losses_date", "losses", ["date"], unique=False)
    op.create_index("ix_losses_active", "losses", ["active"], unique=False)

    op.create_table(
        "harvests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lot_id", sa.Integer(), nullable=True),
        sa.Column("pond_id", sa.Integer(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("trout_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sheet_number", sa.String(), nullable=True),
        sa.Column("kilos", sa.Numeric(12, 3), nullable=False, server_default="0"),
        sa.Column("packages", sa.Integer(), nullable=True),
        sa.Column("package_type_id", sa.Integer(), nullable=True),
        sa.Column("detail_id", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_harvests_id", "harvests", ["id"], unique=False)
    op.create_index("ix_harvests_lot_id", "harvests", ["lot_id"], unique=False)
    op.create_index("ix_harvests_pond_id", "harvests", ["pond_id"], unique=False)
    op.create_index("ix_harvests_date", "harvests", ["date"], unique=False)
    op.create_index("ix_harvests_active", "harvests", ["active"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_harvests_active", table_name="harvests")
    op.drop_index("ix_harvests_date", table_name="harvests")
    op.drop_index("ix_harvests_pond_id", table_name="harvests")
    op.drop_index("ix_harvests_lot_id", table_name="harvests")
    op.drop_index("ix_harvests_id", table_name="harvests")
    op.drop_table("harvests")

    op.drop_index("ix_losses_active", table_name="losses")
    op.drop_index("ix_losses_date", table_name="losses")
    op.drop_index("ix_losses_pond_id", table_name="losses")
    op.drop_index("ix_losses_lot_id", table_name="losses")
    op.drop_index("ix_losses_id", table_name="losses")
    op.drop_table("losses")

    op.drop_index("ix_audit_events_target_action", table_name="audit_events")
    op.drop_index("ix_audit_events_occurred_at", table_name="audit_events")
    op.drop_index("ix_audit_events_action", table_name="audit_events")
    op.drop_index("ix_audit_events_target_record_id", table_name="audit_events")
    op.drop_index("ix_audit_events_target_table", table_name="audit_events")
    op.drop_index("ix_audit_events_actor_id", table_name="audit_events")
    op.drop_index("ix_audit_events_id", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("uq_authorization_requests_pending", table_name="authorization_requests")
    op.drop_index("ix_authorization_requests_target", table_name="authorization_requests")
    op.drop_index("ix_authorization_requests_state", table_name="authorization_requests")
    op.drop_index("ix_authorization_requests_requester_id", table_name="authorization_requests")
    op.drop_index("ix_authorization_requests_kind", table_name="authorization_requests")
    op.drop_index("ix_authorization_requests_id", table_name="authorization_requests")
    op.drop_table("authorization_requests")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
