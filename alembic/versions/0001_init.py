"""Core workshop tables: clients, vehicles, procedure types and procedures"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("model", sa.Text(), nullable=True),
        sa.Column("domain", sa.String(length=16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vehicles_client_created", "vehicles", ["client_id", "created_at"])
    op.create_table(
        "procedure_types",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_procedure_types_code"),
    )
    op.create_table(
        "client_procedures",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("client_id", sa.String(length=36), nullable=False),
        sa.Column("procedure_type_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("amount_paid", sa.Numeric(14, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["procedure_type_id"], ["procedure_types.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_client_procedures_type_created", "client_procedures", ["procedure_type_id", "created_at"]
    )
    op.create_index("ix_client_procedures_client", "client_procedures", ["client_id"])


def downgrade() -> None:
    op.drop_index("ix_client_procedures_client", table_name="client_procedures")
    op.drop_index("ix_client_procedures_type_created", table_name="client_procedures")
    op.drop_table("client_procedures")
    op.drop_table("procedure_types")
    op.drop_index("ix_vehicles_client_created", table_name="vehicles")
    op.drop_table("vehicles")
    op.drop_table("clients")
