"""Seed system_config and the alert-eligible procedure types"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0004_seed_reference_data"
down_revision = "0003_run_log_and_system_config"
branch_labels = None
depends_on = None


CONFIG_VALUES = [
    (
        "REGISTRY_LOOKUP_URL",
        "https://www.enargas.gob.ar/secciones/gas-natural-comprimido/consulta-dominio.php",
        "ENARGAS consulta por dominio form",
    ),
    ("REGISTRY_NAV_TIMEOUT_MS", "40000", "Navigation timeout for registry lookups"),
    ("REGISTRY_PROBE_DELAY_MS", "350", "Delay between consecutive registry lookups in a batch"),
    ("REGISTRY_MAX_DOMAINS_PER_RUN", "200", "Maximum distinct domains probed per batch run"),
    ("REGISTRY_HEADLESS", "true", "Whether the registry browser runs headless"),
    ("REGISTRY_BROWSER_BACKEND", "bundled_chromium", "bundled_chromium or local_chrome"),
    ("ALERT_PROCEDURE_CODES", "RENOVACION_OBLEA,PRUEBA_HIDRAULICA", "Procedure types tracked for expiration alerts"),
]

PROCEDURE_TYPES = [
    ("6f0c1a52-0d4e-4a55-9c1e-6a1f0b7e3a01", "RENOVACION_OBLEA", "Renovacion de oblea"),
    ("6f0c1a52-0d4e-4a55-9c1e-6a1f0b7e3a02", "PRUEBA_HIDRAULICA", "Prueba hidraulica"),
]


def _upsert_config(connection, *, key: str, value: str, description: str) -> None:
    existing = connection.execute(
        sa.text("SELECT id FROM system_config WHERE key = :key"), {"key": key}
    ).scalar()
    params = {"key": key, "value": value, "description": description, "is_active": True}
    if existing:
        connection.execute(
            sa.text(
                """
                UPDATE system_config
                SET value = :value,
                    description = :description,
                    is_active = :is_active
                WHERE key = :key
                """
            ),
            params,
        )
    else:
        connection.execute(
            sa.text(
                """
                INSERT INTO system_config (key, value, description, is_active)
                VALUES (:key, :value, :description, :is_active)
                """
            ),
            params,
        )


def upgrade() -> None:
    connection = op.get_bind()

    for key, value, description in CONFIG_VALUES:
        _upsert_config(connection, key=key, value=value, description=description)

    for type_id, code, display_name in PROCEDURE_TYPES:
        existing = connection.execute(
            sa.text("SELECT id FROM procedure_types WHERE code = :code"), {"code": code}
        ).scalar()
        if existing:
            continue
        connection.execute(
            sa.text("INSERT INTO procedure_types (id, code, display_name) VALUES (:id, :code, :display_name)"),
            {"id": type_id, "code": code, "display_name": display_name},
        )


def downgrade() -> None:
    connection = op.get_bind()
    for key, _, _ in CONFIG_VALUES:
        connection.execute(sa.text("DELETE FROM system_config WHERE key = :key"), {"key": key})
