"""Reconciliation run log and system_config"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_run_log_and_system_config"
down_revision = "0002_status_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "alert_check_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.String(length=64), nullable=False),
        sa.Column("run_env", sa.String(length=32), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("overall_status", sa.String(length=32), nullable=False),
        sa.Column("filters_json", sa.JSON(), nullable=True),
        sa.Column("metrics_json", sa.JSON(), nullable=True),
        sa.Column("summary_text", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_id", name="uq_alert_check_runs_run_id"),
    )

    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if inspector.has_table("system_config"):
        return
    op.create_table(
        "system_config",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key", name="uq_system_config_key"),
    )


def downgrade() -> None:
    op.drop_table("system_config")
    op.drop_table("alert_check_runs")
