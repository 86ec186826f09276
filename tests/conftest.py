import io
import json
import sys
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
import sqlalchemy as sa

ROOT = Path(__file__).resolve().parents[1]
PROJECT_PARENT = ROOT.parent

for path in (ROOT, PROJECT_PARENT):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from gnc_alerts.common import db as db_module  # noqa: E402
from gnc_alerts.common.json_logger import JsonLogger  # noqa: E402
from gnc_alerts.common.tables import (  # noqa: E402
    alert_check_runs,
    client_procedures,
    clients,
    metadata,
    procedure_alert_status,
    procedure_delivery_status,
    procedure_types,
    vehicles,
)
from gnc_alerts.registry_probe import ProbeResult  # noqa: E402

PROCEDURE_TYPES = (
    ("RENOVACION_OBLEA", "Renovacion de oblea"),
    ("PRUEBA_HIDRAULICA", "Prueba hidraulica"),
    ("CONVERSION", "Conversion a GNC"),
)


class Workshop:
    """Seeds and inspects the sqlite store through a synchronous engine."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = sa.create_engine(database_url.replace("+aiosqlite", ""))
        metadata.create_all(self.engine)
        self.type_ids: dict[str, str] = {}
        self._tick = datetime(2025, 6, 1, 12, 0)
        for code, name in PROCEDURE_TYPES:
            type_id = str(uuid.uuid4())
            self._insert(procedure_types, id=type_id, code=code, display_name=name)
            self.type_ids[code] = type_id

    def _insert(self, table, **values):
        with self.engine.begin() as conn:
            conn.execute(table.insert().values(**values))

    def _next_tick(self) -> datetime:
        self._tick += timedelta(minutes=1)
        return self._tick

    def add_client(self, first_name="Juan", last_name="Perez", phone="011-4555-1234") -> str:
        client_id = str(uuid.uuid4())
        self._insert(
            clients,
            id=client_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            created_at=self._next_tick(),
        )
        return client_id

    def add_vehicle(self, client_id: str, domain: str | None, brand="Fiat", model="Uno") -> str:
        vehicle_id = str(uuid.uuid4())
        self._insert(
            vehicles,
            id=vehicle_id,
            client_id=client_id,
            domain=domain,
            brand=brand,
            model=model,
            created_at=self._next_tick(),
        )
        return vehicle_id

    def add_procedure(
        self,
        client_id: str,
        *,
        code: str = "RENOVACION_OBLEA",
        created_at: datetime = datetime(2026, 1, 15, 15, 0),
        notes: str | None = None,
        total_amount: str = "0",
        amount_paid: str = "0",
        paid: bool = False,
    ) -> str:
        procedure_id = str(uuid.uuid4())
        self._insert(
            client_procedures,
            id=procedure_id,
            client_id=client_id,
            procedure_type_id=self.type_ids[code],
            created_at=created_at,
            notes=notes,
            total_amount=Decimal(total_amount),
            amount_paid=Decimal(amount_paid),
            paid=paid,
        )
        return procedure_id

    def set_alert_status(self, procedure_id: str, status: str, **extra) -> None:
        self._insert(procedure_alert_status, procedure_id=procedure_id, status=status, **extra)

    def set_delivery_status(self, procedure_id: str, status: str, **extra) -> None:
        self._insert(procedure_delivery_status, procedure_id=procedure_id, status=status, **extra)

    def _one(self, table, key_column, key):
        with self.engine.connect() as conn:
            row = conn.execute(sa.select(table).where(key_column == key)).mappings().first()
        return dict(row) if row else None

    def alert_status(self, procedure_id: str):
        return self._one(procedure_alert_status, procedure_alert_status.c.procedure_id, procedure_id)

    def delivery_status(self, procedure_id: str):
        return self._one(procedure_delivery_status, procedure_delivery_status.c.procedure_id, procedure_id)

    def procedure(self, procedure_id: str):
        return self._one(client_procedures, client_procedures.c.id, procedure_id)

    def runs(self):
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(sa.select(alert_check_runs)).mappings()]

    def count(self, table) -> int:
        with self.engine.connect() as conn:
            return conn.execute(sa.select(sa.func.count()).select_from(table)).scalar_one()


class FakeProbe:
    """Registry stand-in: ``dates`` maps domain -> ``DD/MM/YYYY``; ``errors`` maps domain -> message."""

    def __init__(self, dates=None, errors=None, raises=None):
        self.dates = dict(dates or {})
        self.errors = dict(errors or {})
        self.raises = dict(raises or {})
        self.calls: list[str] = []

    async def __call__(self, domain: str) -> ProbeResult:
        self.calls.append(domain)
        if domain in self.raises:
            raise self.raises[domain]
        if domain in self.errors:
            return ProbeResult(domain=domain, last_operation_date=None, error=self.errors[domain])
        return ProbeResult(domain=domain, last_operation_date=self.dates.get(domain))


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def read_events(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest_asyncio.fixture
async def database_url(tmp_path, monkeypatch):
    monkeypatch.setattr(db_module, "_engine_cache", {})
    monkeypatch.setattr(db_module, "_session_factory_cache", {})
    yield f"sqlite+aiosqlite:///{tmp_path / 'gnc.sqlite'}"
    await db_module.dispose_engines()


@pytest.fixture
def workshop(database_url):
    shop = Workshop(database_url)
    yield shop
    shop.engine.dispose()


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def logger(log_stream):
    json_logger = JsonLogger(run_id="test-run", stream=log_stream)
    yield json_logger
    json_logger.close()
