"""Add account lifecycle state and inactivity markers to users.

Revision ID: 003
Revises: 002
Create Date: 2026-10-05
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

suspension_reason = sa.Enum("inactivity", "manual", "policy_violation", "abuse", name="suspension_reason")

_MARKERS = (
    "inactivity_email_15_days_sent_at",
    "inactivity_email_25_days_sent_at",
    "inactivity_email_30_days_sent_at",
    "deletion_warning_sent_at",
)


def upgrade() -> None:
    suspension_reason.create(op.get_bind(), checkfirst=True)
    op.add_column("users", sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("users", sa.Column("suspension_reason", suspension_reason, nullable=True))
    op.add_column("users", sa.Column("suspension_note", sa.Text(), nullable=True))
    for marker in _MARKERS:
        op.add_column("users", sa.Column(marker, sa.DateTime(timezone=True), nullable=True))

    op.create_index("idx_users_active_last_login", "users", ["is_active", "last_login_at"])
    op.create_index("idx_users_suspension", "users", ["suspension_reason", "suspended_at"])


def downgrade() -> None:
    op.drop_index("idx_users_suspension", table_name="users")
    op.drop_index("idx_users_active_last_login", table_name="users")
    for marker in reversed(_MARKERS):
        op.drop_column("users", marker)
    op.drop_column("users", "suspension_note")
    op.drop_column("users", "suspension_reason")
    op.drop_column("users", "suspended_at")
    suspension_reason.drop(op.get_bind(), checkfirst=True)
