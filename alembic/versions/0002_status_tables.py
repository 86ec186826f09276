"""Per-procedure alert and delivery status projections"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_status_tables"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "procedure_alert_status",
        sa.Column("procedure_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("enargas_last_operation_date", sa.Date(), nullable=True),
        sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["procedure_id"], ["client_procedures.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("procedure_id"),
    )
    op.create_table(
        "procedure_delivery_status",
        sa.Column("procedure_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_up_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["procedure_id"], ["client_procedures.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("procedure_id"),
    )


def downgrade() -> None:
    op.drop_table("procedure_delivery_status")
    op.drop_table("procedure_alert_status")
