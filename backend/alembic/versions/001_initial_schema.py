"""Initial schema — users, slots, swap_requests.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "slots",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="occupied"),
        sa.Column("lock_ref", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_slots"),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], name="fk_slots_owner_id_users"),
        sa.CheckConstraint("end_time > start_time", name="ck_slots_time_range"),
    )
    op.create_index("ix_slots_owner_start", "slots", ["owner_id", "start_time"])
    op.create_index("ix_slots_status", "slots", ["status"])
    op.create_index("ix_slots_lock_ref", "slots", ["lock_ref"])

    op.create_table(
        "swap_requests",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("requester_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("requester_slot_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("target_owner_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("target_slot_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_swap_requests"),
        sa.ForeignKeyConstraint(["requester_id"], ["users.id"], name="fk_swap_requests_requester_id_users"),
        sa.ForeignKeyConstraint(["target_owner_id"], ["users.id"], name="fk_swap_requests_target_owner_id_users"),
    )
    op.create_index("ix_swap_requests_target_status", "swap_requests", ["target_owner_id", "status"])
    op.create_index("ix_swap_requests_requester_status", "swap_requests", ["requester_id", "status"])
    op.create_index("ix_swap_requests_requester_slot_id", "swap_requests", ["requester_slot_id"])
    op.create_index("ix_swap_requests_target_slot_id", "swap_requests", ["target_slot_id"])


def downgrade() -> None:
    op.drop_table("swap_requests")
    op.drop_table("slots")
    op.drop_table("users")
