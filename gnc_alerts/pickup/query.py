"""Read path for the document pickup listing."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gnc_alerts.common.date_utils import as_utc, day_bounds, get_timezone, yesterday
from gnc_alerts.common.db import session_scope
from gnc_alerts.common.errors import PersistenceError, ValidationFailure
from gnc_alerts.common.listing import (
    DEFAULT_PAGE_SIZE,
    ClientRef,
    Pagination,
    ProcedureTypeRef,
    client_from_row,
    paginate,
    procedure_type_from_row,
    validate_paging,
)
from gnc_alerts.common.statuses import DEFAULT_DELIVERY_STATUS, DeliveryStatus, StatusLookup
from gnc_alerts.common.tables import procedure_delivery_status
from gnc_alerts.notifications import build_whatsapp_link, pickup_notice_message
from gnc_alerts.reconciliation.selection import (
    ALERT_PROCEDURE_CODES,
    apply_filters,
    count_rows,
    load_vehicles_by_client,
    newest_first,
    procedure_select,
)
from gnc_alerts.reconciliation.vehicles import VehicleRef, resolve_vehicle

from .state_machine import outstanding_balance

MAX_PENDING_ROWS = 5000


class PickupFilter(str, Enum):
    YESTERDAY = "yesterday"
    ALL = "all"
    PENDING = "pending"


@dataclass(frozen=True)
class PickupFilters:
    query: str = ""
    filter: PickupFilter = PickupFilter.YESTERDAY
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        validate_paging(self.page, self.page_size)
        if not isinstance(self.filter, PickupFilter):
            try:
                object.__setattr__(self, "filter", PickupFilter(self.filter))
            except ValueError as exc:
                raise ValidationFailure(f"unknown pickup filter: {self.filter!r}") from exc


@dataclass(frozen=True)
class DeliveryState:
    status: DeliveryStatus
    received_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None


@dataclass(frozen=True)
class PickupItem:
    id: str
    created_at: datetime
    notes: Optional[str]
    paid: bool
    total_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: DeliveryStatus
    received_at: Optional[datetime]
    notified_at: Optional[datetime]
    picked_up_at: Optional[datetime]
    client: ClientRef
    vehicle: Optional[VehicleRef]
    procedure_type: ProcedureTypeRef
    whatsapp_link: Optional[str]

    @property
    def awaiting_pickup(self) -> bool:
        return self.status is not DeliveryStatus.RETIRADO and self.vehicle is not None and self.vehicle.is_complete


@dataclass(frozen=True)
class PickupPage:
    items: List[PickupItem]
    pagination: Pagination


def _delivery_state(row: Mapping[str, Any]) -> DeliveryState:
    return DeliveryState(
        status=DeliveryStatus(row["status"]),
        received_at=as_utc(row["received_at"]),
        notified_at=as_utc(row["notified_at"]),
        picked_up_at=as_utc(row["picked_up_at"]),
    )


async def _load_delivery_states(session, procedure_ids: Sequence[str]) -> StatusLookup[DeliveryState]:
    default_state = DeliveryState(status=DEFAULT_DELIVERY_STATUS)
    if not procedure_ids:
        return StatusLookup(default=lambda _procedure_id: default_state)
    stmt = sa.select(procedure_delivery_status).where(
        procedure_delivery_status.c.procedure_id.in_(list(procedure_ids))
    )
    rows = (await session.execute(stmt)).mappings()
    return StatusLookup.from_rows(rows, build=_delivery_state, default=lambda _procedure_id: default_state)


def _build_item(row: Mapping[str, Any], state: DeliveryState, vehicles: Sequence[VehicleRef]) -> PickupItem:
    client = client_from_row(row)
    procedure_type = procedure_type_from_row(row)
    total = Decimal(row["total_amount"] or 0)
    amount_paid = Decimal(row["amount_paid"] or 0)
    return PickupItem(
        id=row["id"],
        created_at=as_utc(row["created_at"]),
        notes=row["notes"],
        paid=bool(row["paid"]),
        total_amount=total,
        amount_paid=amount_paid,
        balance=outstanding_balance(total, amount_paid),
        status=state.status,
        received_at=state.received_at,
        notified_at=state.notified_at,
        picked_up_at=state.picked_up_at,
        client=client,
        vehicle=resolve_vehicle(row["notes"], vehicles),
        procedure_type=procedure_type,
        whatsapp_link=build_whatsapp_link(client.phone, pickup_notice_message(procedure_type.code)),
    )


async def list_pickups(
    *,
    database_url: str,
    filters: PickupFilters,
    tz: ZoneInfo | None = None,
    procedure_codes: Sequence[str] = ALERT_PROCEDURE_CODES,
    reference: datetime | None = None,
) -> PickupPage:
    """Procedures awaiting or past pickup, newest first.

    ``yesterday`` keeps procedures created on the previous calendar day in the
    workshop timezone. ``pending`` drops retired procedures and those whose
    vehicle lacks domain, brand or model; it is applied here, before paging.
    """

    tz = tz or get_timezone()
    window = None
    if filters.filter is PickupFilter.YESTERDAY:
        window = day_bounds(yesterday(tz, reference), tz)
    stmt = newest_first(apply_filters(procedure_select(procedure_codes), query=filters.query.strip(), window=window))

    pending_only = filters.filter is PickupFilter.PENDING
    try:
        async with session_scope(database_url) as session:
            if pending_only:
                pagination = None
                stmt = stmt.limit(MAX_PENDING_ROWS)
            else:
                total = await count_rows(session, stmt)
                pagination = Pagination(page=filters.page, page_size=filters.page_size, total=total)
                stmt = stmt.offset(pagination.offset).limit(filters.page_size)
            rows = list((await session.execute(stmt)).mappings())
            states = await _load_delivery_states(session, [row["id"] for row in rows])
            vehicles_by_client = await load_vehicles_by_client(session, (row["client_id"] for row in rows))
    except SQLAlchemyError as exc:
        raise PersistenceError("could not load pickups") from exc

    items = [
        _build_item(row, states.get(row["id"]), vehicles_by_client.get(row["client_id"], []))
        for row in rows
    ]
    if pagination is None:
        items, pagination = paginate(
            [item for item in items if item.awaiting_pickup],
            filters.page,
            filters.page_size,
        )
    return PickupPage(items=items, pagination=pagination)
