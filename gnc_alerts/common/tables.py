from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()


clients = sa.Table(
    "clients",
    metadata,
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("first_name", sa.Text(), nullable=False),
    sa.Column("last_name", sa.Text(), nullable=False),
    sa.Column("phone", sa.Text()),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
)


vehicles = sa.Table(
    "vehicles",
    metadata,
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id"), nullable=False),
    sa.Column("brand", sa.Text()),
    sa.Column("model", sa.Text()),
    sa.Column("domain", sa.String(length=16)),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Index("ix_vehicles_client_created", "client_id", "created_at"),
)


procedure_types = sa.Table(
    "procedure_types",
    metadata,
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("code", sa.String(length=64), nullable=False, unique=True),
    sa.Column("display_name", sa.Text(), nullable=False),
)


client_procedures = sa.Table(
    "client_procedures",
    metadata,
    sa.Column("id", sa.String(length=36), primary_key=True),
    sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id"), nullable=False),
    sa.Column(
        "procedure_type_id", sa.String(length=36), sa.ForeignKey("procedure_types.id"), nullable=False
    ),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    sa.Column("notes", sa.Text()),
    sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
    sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Index("ix_client_procedures_type_created", "procedure_type_id", "created_at"),
    sa.Index("ix_client_procedures_client", "client_id"),
)


procedure_alert_status = sa.Table(
    "procedure_alert_status",
    metadata,
    sa.Column(
        "procedure_id",
        sa.String(length=36),
        sa.ForeignKey("client_procedures.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("status", sa.String(length=32), nullable=False),
    sa.Column("enargas_last_operation_date", sa.Date()),
    sa.Column("last_checked_at", sa.DateTime(timezone=True)),
    sa.Column("notified_at", sa.DateTime(timezone=True)),
    sa.Column("notes", sa.Text()),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
)


procedure_delivery_status = sa.Table(
    "procedure_delivery_status",
    metadata,
    sa.Column(
        "procedure_id",
        sa.String(length=36),
        sa.ForeignKey("client_procedures.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    sa.Column("status", sa.String(length=32), nullable=False),
    sa.Column("received_at", sa.DateTime(timezone=True)),
    sa.Column("notified_at", sa.DateTime(timezone=True)),
    sa.Column("picked_up_at", sa.DateTime(timezone=True)),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
)


alert_check_runs = sa.Table(
    "alert_check_runs",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("run_id", sa.String(length=64), nullable=False, unique=True),
    sa.Column("run_env", sa.String(length=32)),
    sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("finished_at", sa.DateTime(timezone=True)),
    sa.Column("overall_status", sa.String(length=32), nullable=False),
    sa.Column("filters_json", sa.JSON()),
    sa.Column("metrics_json", sa.JSON()),
    sa.Column("summary_text", sa.Text()),
)


system_config = sa.Table(
    "system_config",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("key", sa.String(length=128), nullable=False, unique=True),
    sa.Column("value", sa.Text(), nullable=False),
    sa.Column("description", sa.Text()),
    sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
)
