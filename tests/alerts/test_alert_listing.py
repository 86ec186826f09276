from __future__ import annotations

from datetime import date, datetime, timezone
from urllib.parse import parse_qs, urlparse
from zoneinfo import ZoneInfo

import pytest

from gnc_alerts.alerts import AlertFilters, list_alerts
from gnc_alerts.common.errors import ValidationFailure
from gnc_alerts.common.statuses import AlertStatus

TZ = ZoneInfo("America/Argentina/Buenos_Aires")


def _seed_january(workshop, count: int, *, status: str | None = None, phone="011-4555-1234"):
    ids = []
    for index in range(count):
        client_id = workshop.add_client(first_name=f"Cliente{index}", phone=phone)
        workshop.add_vehicle(client_id, f"AC{index:03d}ZZ")
        procedure_id = workshop.add_procedure(client_id, created_at=datetime(2026, 1, 2 + index, 12, 0))
        if status:
            workshop.set_alert_status(procedure_id, status)
        ids.append(procedure_id)
    return ids


def test_filters_validate_paging_and_status():
    with pytest.raises(ValidationFailure):
        AlertFilters(page=0)
    with pytest.raises(ValidationFailure):
        AlertFilters(page_size=101)
    with pytest.raises(ValidationFailure):
        AlertFilters(status="VENCIDO")
    assert AlertFilters(status="AVISADO").status is AlertStatus.AVISADO


@pytest.mark.asyncio
async def test_missing_status_row_defaults_to_pending(workshop):
    client_id = workshop.add_client(phone="011-4555-1234")
    workshop.add_vehicle(client_id, "ABC123", brand="Fiat", model="Uno")
    procedure_id = workshop.add_procedure(client_id)

    page = await list_alerts(database_url=workshop.database_url, filters=AlertFilters(month="2026-01"), tz=TZ)

    assert page.pagination.total == 1
    item = page.items[0]
    assert item.id == procedure_id
    assert item.status is AlertStatus.PENDIENTE_DE_AVISAR
    assert item.notified_at is None
    assert item.vehicle.domain == "ABC123"
    assert item.procedure_type.code == "RENOVACION_OBLEA"
    assert item.created_at == datetime(2026, 1, 15, 15, 0, tzinfo=timezone.utc)
    query = parse_qs(urlparse(item.whatsapp_link).query)
    assert query["phone"] == ["5491145551234"]
    assert query["text"][0].startswith("Hola Juan!")
    assert "del vehiculo ABC123" in query["text"][0]
    assert "vence este mes" in query["text"][0]


@pytest.mark.asyncio
async def test_notes_override_phone_and_vehicle(workshop):
    client_id = workshop.add_client(phone="011-4555-1234")
    workshop.add_vehicle(client_id, "AAA111")
    workshop.add_vehicle(client_id, "BBB222", brand="Ford", model="Ka")
    workshop.add_procedure(client_id, notes="[DOMINIO:BBB222] [TEL:3541555123]")

    page = await list_alerts(database_url=workshop.database_url, filters=AlertFilters(month="2026-01"), tz=TZ)

    item = page.items[0]
    assert item.client.phone == "3541555123"
    assert item.vehicle.domain == "BBB222"
    assert parse_qs(urlparse(item.whatsapp_link).query)["phone"] == ["5493541555123"]


@pytest.mark.asyncio
async def test_stored_status_fields_are_projected(workshop):
    client_id = workshop.add_client()
    workshop.add_vehicle(client_id, "ABC123")
    procedure_id = workshop.add_procedure(client_id)
    workshop.set_alert_status(
        procedure_id,
        "AVISADO",
        notified_at=datetime(2026, 1, 20, 13, 0),
        last_checked_at=datetime(2026, 1, 19, 9, 0),
        enargas_last_operation_date=date(2026, 1, 10),
        notes="Domain checked: ABC123",
    )

    page = await list_alerts(database_url=workshop.database_url, filters=AlertFilters(month="2026-01"), tz=TZ)

    item = page.items[0]
    assert item.status is AlertStatus.AVISADO
    assert item.notified_at == datetime(2026, 1, 20, 13, 0, tzinfo=timezone.utc)
    assert item.registry_date == date(2026, 1, 10)
    assert item.check_notes == "Domain checked: ABC123"
    reminder = parse_qs(urlparse(item.whatsapp_link).query)["text"][0]
    assert "del vehiculo ABC123 vence el 10/01/2026" in reminder


@pytest.mark.asyncio
async def test_sql_pagination_without_status_filter(workshop):
    _seed_january(workshop, 5)

    page = await list_alerts(
        database_url=workshop.database_url,
        filters=AlertFilters(month="2026-01", page=2, page_size=2),
        tz=TZ,
    )

    assert page.pagination.total == 5
    assert page.pagination.total_pages == 3
    assert [item.client.first_name for item in page.items] == ["Cliente2", "Cliente1"]


@pytest.mark.asyncio
async def test_status_filter_counts_only_matching_rows(workshop):
    _seed_january(workshop, 3, status="AVISADO")
    _seed_january(workshop, 4)

    page = await list_alerts(
        database_url=workshop.database_url,
        filters=AlertFilters(month="2026-01", status=AlertStatus.PENDIENTE_DE_AVISAR, page_size=3),
        tz=TZ,
    )

    assert page.pagination.total == 4
    assert page.pagination.total_pages == 2
    assert len(page.items) == 3
    assert all(item.status is AlertStatus.PENDIENTE_DE_AVISAR for item in page.items)


@pytest.mark.asyncio
async def test_search_matches_vehicle_and_client_fields_across_months(workshop):
    gomez = workshop.add_client(first_name="Ana", last_name="Gomez", phone="3541-111111")
    workshop.add_vehicle(gomez, "AB123CD", brand="Peugeot", model="208")
    workshop.add_procedure(gomez, created_at=datetime(2024, 5, 10, 12, 0))
    other = workshop.add_client(first_name="Luis", last_name="Lopez", phone="3541-222222")
    workshop.add_vehicle(other, "ZZ999ZZ", brand="Fiat", model="Palio")
    workshop.add_procedure(other)

    async def search(text):
        page = await list_alerts(
            database_url=workshop.database_url,
            filters=AlertFilters(query=text, month="2026-01"),
            tz=TZ,
        )
        return [item.client.last_name for item in page.items]

    assert await search("peugeot") == ["Gomez"]
    assert await search("ab123") == ["Gomez"]
    assert await search("GOMEZ") == ["Gomez"]
    assert await search("222222") == ["Lopez"]
    assert await search("nadie") == []


@pytest.mark.asyncio
async def test_like_wildcards_are_literal(workshop):
    client_id = workshop.add_client(first_name="100%", last_name="Real")
    workshop.add_procedure(client_id)
    workshop.add_procedure(workshop.add_client(first_name="Otro"))

    page = await list_alerts(
        database_url=workshop.database_url,
        filters=AlertFilters(query="%", show_all=True),
        tz=TZ,
    )

    assert [item.client.first_name for item in page.items] == ["100%"]


@pytest.mark.asyncio
async def test_other_procedure_types_are_not_listed(workshop):
    client_id = workshop.add_client()
    workshop.add_procedure(client_id, code="CONVERSION")
    workshop.add_procedure(client_id, code="PRUEBA_HIDRAULICA")

    page = await list_alerts(database_url=workshop.database_url, filters=AlertFilters(show_all=True), tz=TZ)

    assert [item.procedure_type.code for item in page.items] == ["PRUEBA_HIDRAULICA"]
    assert page.items[0].vehicle is None


@pytest.mark.asyncio
async def test_empty_listing_has_one_page(workshop):
    page = await list_alerts(database_url=workshop.database_url, filters=AlertFilters(month="2026-01"), tz=TZ)

    assert page.items == []
    assert page.pagination.total == 0
    assert page.pagination.total_pages == 1
