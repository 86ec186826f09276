"""
HTTP API tests

Exercises the FastAPI app end to end against a temporary sqlite store with
a fake registry probe.
"""

import io
import uuid
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProbe, RecordingSleep, Workshop
from gnc_alerts.api import create_app
from gnc_alerts.common import db as db_module
from gnc_alerts.common.errors import PersistenceError
from gnc_alerts.common.json_logger import JsonLogger
from gnc_alerts.pickup import payments
from gnc_alerts.reconciliation import ProbeThrottle
from gnc_alerts.services import Services

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


@pytest.fixture
def api_workshop(tmp_path, monkeypatch):
    monkeypatch.setattr(db_module, "_engine_cache", {})
    monkeypatch.setattr(db_module, "_session_factory_cache", {})
    shop = Workshop(f"sqlite+aiosqlite:///{tmp_path / 'api.sqlite'}")
    yield shop
    shop.engine.dispose()


@pytest.fixture
def probe():
    return FakeProbe(dates={"ABC123": "10/01/2026"})


def _services(workshop, probe):
    return Services(
        database_url=workshop.database_url,
        probe=probe,
        logger=JsonLogger(run_id="api-test", stream=io.StringIO()),
        tz=TZ,
        throttle=ProbeThrottle(sleep=RecordingSleep()),
    )


@pytest.fixture
def client(api_workshop, probe):
    app = create_app(services=_services(api_workshop, probe))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded(api_workshop):
    client_id = api_workshop.add_client(first_name="Juan", last_name="Perez", phone="011-4555-1234")
    api_workshop.add_vehicle(client_id, "ABC123", brand="Fiat", model="Uno")
    procedure_id = api_workshop.add_procedure(
        client_id, created_at=datetime(2026, 1, 15, 15, 0), total_amount="100000", amount_paid="30000"
    )
    return procedure_id


# ============================================
# System
# ============================================

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ============================================
# Alerts
# ============================================

def test_check_one_rejects_malformed_id_before_probing(client, probe):
    response = client.post("/api/alerts/check-one", json={"procedureId": "not-a-uuid"})

    assert response.status_code == 422
    assert probe.calls == []


def test_check_one_unknown_procedure(client):
    response = client.post("/api/alerts/check-one", json={"procedureId": str(uuid.uuid4())})

    assert response.status_code == 404


def test_check_one_stores_pending(client, seeded, api_workshop):
    response = client.post("/api/alerts/check-one", json={"procedureId": seeded})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "PENDIENTE_DE_AVISAR"
    assert data["enargasLastOperationDate"] == "10/01/2026"
    assert api_workshop.alert_status(seeded)["status"] == "PENDIENTE_DE_AVISAR"


def test_batch_check_validates_month(client, probe):
    assert client.post("/api/alerts/check", json={"month": "enero"}).status_code == 422
    assert client.post("/api/alerts/check", json={"month": "2026-13"}).status_code == 422
    assert probe.calls == []


def test_batch_check_reports_counts(client, seeded, probe):
    response = client.post("/api/alerts/check", json={"month": "2026-01"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["checked"] == 1
    assert data["pending"] == 1
    assert data["domainsChecked"] == 1
    assert data["domainsSkippedByLimit"] == 0
    assert data["probeErrors"] == 0
    assert probe.calls == ["ABC123"]


def test_list_alerts_and_notify(client, seeded):
    listing = client.get("/api/alerts", params={"month": "2026-01"})
    assert listing.status_code == 200
    body = listing.json()
    assert body["pagination"] == {"page": 1, "pageSize": 20, "total": 1, "totalPages": 1}
    row = body["data"][0]
    assert row["status"] == "PENDIENTE_DE_AVISAR"
    assert row["client"]["firstName"] == "Juan"
    assert row["vehicle"]["domain"] == "ABC123"
    assert row["whatsappLink"].startswith("https://api.whatsapp.com/send?phone=5491145551234&text=")

    notified = client.post("/api/alerts/notify", json={"procedureId": seeded})
    assert notified.status_code == 200
    assert notified.json()["data"]["ok"] is True

    filtered = client.get("/api/alerts", params={"month": "2026-01", "status": "AVISADO"}).json()
    assert filtered["pagination"]["total"] == 1
    assert filtered["data"][0]["notifiedAt"] is not None
    pending = client.get("/api/alerts", params={"month": "2026-01", "status": "PENDIENTE_DE_AVISAR"}).json()
    assert pending["pagination"]["total"] == 0


def test_list_alerts_rejects_bad_query(client):
    assert client.get("/api/alerts", params={"pageSize": 101}).status_code == 422
    assert client.get("/api/alerts", params={"page": 0}).status_code == 422
    assert client.get("/api/alerts", params={"status": "VENCIDO"}).status_code == 422
    assert client.get("/api/alerts", params={"date": "15/01/2026"}).status_code == 422


def test_notify_unknown_procedure(client):
    response = client.post("/api/alerts/notify", json={"procedureId": str(uuid.uuid4())})

    assert response.status_code == 404


# ============================================
# Pickups
# ============================================

def test_pickup_flow_books_payment(client, seeded, api_workshop):
    received = client.post("/api/pickups/status", json={"procedureId": seeded, "action": "received"})
    assert received.status_code == 200
    assert received.json()["data"]["status"] == "RECIBIDO"

    retired = client.post(
        "/api/pickups/status", json={"procedureId": seeded, "action": "retired", "amountPaid": 70000}
    )
    assert retired.status_code == 200
    payment = retired.json()["data"]["payment"]
    assert payment["amountPaid"] == 100000
    assert payment["paid"] is True
    assert api_workshop.delivery_status(seeded)["status"] == "RETIRADO"

    listing = client.get("/api/pickups", params={"filter": "all"}).json()
    assert listing["data"][0]["status"] == "RETIRADO"
    assert listing["data"][0]["balance"] == 0


def test_pickup_status_validation(client, seeded, api_workshop):
    bad_action = client.post("/api/pickups/status", json={"procedureId": seeded, "action": "lost"})
    negative = client.post(
        "/api/pickups/status", json={"procedureId": seeded, "action": "retired", "amountPaid": -5}
    )

    assert bad_action.status_code == 422
    assert negative.status_code == 422
    assert api_workshop.delivery_status(seeded) is None


def test_pickup_payment_failure_reports_committed_status(client, seeded, api_workshop, monkeypatch):
    async def failing_payment(**kwargs):
        raise PersistenceError("connection reset")

    monkeypatch.setattr(payments, "add_tendered_payment", failing_payment)

    response = client.post(
        "/api/pickups/status", json={"procedureId": seeded, "action": "retired", "amountPaid": 70000}
    )

    assert response.status_code == 500
    body = response.json()
    assert body["statusCommitted"] is True
    assert body["procedureId"] == seeded
    assert api_workshop.delivery_status(seeded)["status"] == "RETIRADO"


def test_strict_pickups_conflict(api_workshop, probe, seeded):
    app = create_app(services=_services(api_workshop, probe), strict_pickups=True)
    with TestClient(app) as strict_client:
        response = strict_client.post("/api/pickups/status", json={"procedureId": seeded, "action": "notified"})

    assert response.status_code == 409
    assert response.json()["currentStatus"] == "PENDIENTE_RECEPCION"


def test_pickups_listing_rejects_unknown_filter(client):
    assert client.get("/api/pickups", params={"filter": "tomorrow"}).status_code == 422


def test_patch_payment(client, seeded):
    response = client.patch(f"/api/procedures/{seeded}/payment", json={"amountPaid": 100000})

    assert response.status_code == 200
    assert response.json()["data"] == {
        "procedureId": seeded,
        "totalAmount": 100000,
        "amountPaid": 100000,
        "paid": True,
    }
    assert client.patch(f"/api/procedures/{seeded}/payment", json={"amountPaid": -1}).status_code == 422
    assert client.patch(f"/api/procedures/{uuid.uuid4()}/payment", json={"amountPaid": 1}).status_code == 404
