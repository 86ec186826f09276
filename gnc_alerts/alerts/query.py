"""Read path for the expiration alert listing."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gnc_alerts.common.date_utils import as_utc, get_timezone
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
from gnc_alerts.common.statuses import DEFAULT_ALERT_STATUS, AlertStatus, StatusLookup
from gnc_alerts.common.tables import procedure_alert_status
from gnc_alerts.notifications import build_whatsapp_link, renewal_reminder_message
from gnc_alerts.reconciliation.selection import (
    ALERT_PROCEDURE_CODES,
    apply_filters,
    count_rows,
    load_vehicles_by_client,
    newest_first,
    procedure_select,
    resolve_month_window,
)
from gnc_alerts.reconciliation.vehicles import VehicleRef, resolve_vehicle

# Upper bound on rows filtered in memory when a status filter is active.
MAX_STATUS_FILTER_ROWS = 5000


@dataclass(frozen=True)
class AlertFilters:
    query: str = ""
    month: Optional[str] = None
    date_window: Optional[str] = None
    show_all: bool = False
    status: Optional[AlertStatus] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        validate_paging(self.page, self.page_size)
        if self.status is not None and not isinstance(self.status, AlertStatus):
            try:
                object.__setattr__(self, "status", AlertStatus(self.status))
            except ValueError as exc:
                raise ValidationFailure(f"unknown alert status: {self.status!r}") from exc

    @property
    def search_mode(self) -> bool:
        return bool(self.query.strip())


@dataclass(frozen=True)
class AlertState:
    status: AlertStatus
    notified_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    registry_date: Optional[date] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AlertItem:
    id: str
    created_at: datetime
    notes: Optional[str]
    status: AlertStatus
    notified_at: Optional[datetime]
    last_checked_at: Optional[datetime]
    registry_date: Optional[date]
    check_notes: Optional[str]
    client: ClientRef
    vehicle: Optional[VehicleRef]
    procedure_type: ProcedureTypeRef
    whatsapp_link: Optional[str]


@dataclass(frozen=True)
class AlertPage:
    items: List[AlertItem]
    pagination: Pagination


def _alert_state(row: Mapping[str, Any]) -> AlertState:
    return AlertState(
        status=AlertStatus(row["status"]),
        notified_at=as_utc(row["notified_at"]),
        last_checked_at=as_utc(row["last_checked_at"]),
        registry_date=row["enargas_last_operation_date"],
        notes=row["notes"],
    )


async def _load_alert_states(session, procedure_ids: Sequence[str]) -> StatusLookup[AlertState]:
    default_state = AlertState(status=DEFAULT_ALERT_STATUS)
    if not procedure_ids:
        return StatusLookup(default=lambda _procedure_id: default_state)
    stmt = sa.select(procedure_alert_status).where(procedure_alert_status.c.procedure_id.in_(list(procedure_ids)))
    rows = (await session.execute(stmt)).mappings()
    return StatusLookup.from_rows(rows, build=_alert_state, default=lambda _procedure_id: default_state)


def _reminder_link(client: ClientRef, vehicle: Optional[VehicleRef], registry_date: Optional[date]) -> Optional[str]:
    if not client.phone:
        return None
    message = renewal_reminder_message(
        client_name=client.first_name or "",
        domain=vehicle.domain if vehicle and vehicle.domain else None,
        expiration=registry_date.strftime("%d/%m/%Y") if registry_date else None,
    )
    return build_whatsapp_link(client.phone, message)


def _build_item(row: Mapping[str, Any], state: AlertState, vehicles: Sequence[VehicleRef]) -> AlertItem:
    client = client_from_row(row)
    vehicle = resolve_vehicle(row["notes"], vehicles)
    return AlertItem(
        id=row["id"],
        created_at=as_utc(row["created_at"]),
        notes=row["notes"],
        status=state.status,
        notified_at=state.notified_at,
        last_checked_at=state.last_checked_at,
        registry_date=state.registry_date,
        check_notes=state.notes,
        client=client,
        vehicle=vehicle,
        procedure_type=procedure_type_from_row(row),
        whatsapp_link=_reminder_link(client, vehicle, state.registry_date),
    )


async def list_alerts(
    *,
    database_url: str,
    filters: AlertFilters,
    tz: ZoneInfo | None = None,
    procedure_codes: Sequence[str] = ALERT_PROCEDURE_CODES,
) -> AlertPage:
    """Eligible procedures with their alert state, newest first.

    Without a status filter the store pages the rows. With one, every
    matching row (up to ``MAX_STATUS_FILTER_ROWS``) is loaded, filtered here
    and then paged so ``total`` counts only rows with that status.
    """

    tz = tz or get_timezone()
    window = resolve_month_window(
        month=filters.month,
        date_window=filters.date_window,
        show_all=filters.show_all,
        search_mode=filters.search_mode,
        tz=tz,
    )
    stmt = newest_first(
        apply_filters(procedure_select(procedure_codes), query=filters.query.strip(), window=window)
    )
    try:
        async with session_scope(database_url) as session:
            if filters.status is None:
                total = await count_rows(session, stmt)
                pagination = Pagination(page=filters.page, page_size=filters.page_size, total=total)
                stmt = stmt.offset(pagination.offset).limit(filters.page_size)
            else:
                pagination = None
                stmt = stmt.limit(MAX_STATUS_FILTER_ROWS)
            rows = list((await session.execute(stmt)).mappings())
            states = await _load_alert_states(session, [row["id"] for row in rows])
            vehicles_by_client = await load_vehicles_by_client(session, (row["client_id"] for row in rows))
    except SQLAlchemyError as exc:
        raise PersistenceError("could not load alerts") from exc

    items = [
        _build_item(row, states.get(row["id"]), vehicles_by_client.get(row["client_id"], []))
        for row in rows
    ]
    if pagination is None:
        items, pagination = paginate(
            [item for item in items if item.status is filters.status],
            filters.page,
            filters.page_size,
        )
    return AlertPage(items=items, pagination=pagination)
