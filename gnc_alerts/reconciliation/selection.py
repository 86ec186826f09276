"""Procedure selection shared by the reconciliation, alert and pickup read paths."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple
from zoneinfo import ZoneInfo

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from gnc_alerts.common.date_utils import current_month, month_bounds, parse_month
from gnc_alerts.common.errors import ValidationFailure
from gnc_alerts.common.tables import client_procedures, clients, procedure_types, vehicles

from .vehicles import VehicleRef

ALERT_PROCEDURE_CODES: Tuple[str, ...] = ("RENOVACION_OBLEA", "PRUEBA_HIDRAULICA")
MAX_VEHICLES_PER_CLIENT = 20


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def client_search_clause(query: str) -> sa.ColumnElement[bool]:
    """Match procedures whose client name/phone or any vehicle domain/brand/model contains ``query``."""

    pattern = _like_pattern(query)
    by_vehicle = sa.select(vehicles.c.client_id).where(
        sa.or_(
            vehicles.c.domain.ilike(pattern, escape="\\"),
            vehicles.c.brand.ilike(pattern, escape="\\"),
            vehicles.c.model.ilike(pattern, escape="\\"),
        )
    )
    by_client = sa.select(clients.c.id).where(
        sa.or_(
            clients.c.first_name.ilike(pattern, escape="\\"),
            clients.c.last_name.ilike(pattern, escape="\\"),
            clients.c.phone.ilike(pattern, escape="\\"),
        )
    )
    return sa.or_(
        client_procedures.c.client_id.in_(by_vehicle),
        client_procedures.c.client_id.in_(by_client),
    )


def resolve_month_window(
    *,
    month: str | None,
    date_window: str | None,
    show_all: bool,
    search_mode: bool,
    tz: ZoneInfo,
    reference: datetime | None = None,
) -> Tuple[datetime, datetime] | None:
    """Return the ``[start, end)`` creation window, or ``None`` for every period.

    Free-text search and ``show_all`` always span every period. Otherwise the
    explicit month wins over the month containing ``date_window``, and the
    current month is the fallback.
    """

    if show_all or search_mode:
        return None
    for label, raw in (("month", month), ("date", date_window)):
        if raw:
            parsed = parse_month(raw)
            if parsed is None:
                raise ValidationFailure(f"invalid {label} filter: {raw!r}")
            return month_bounds(*parsed, tz)
    return month_bounds(*current_month(tz, reference), tz)


def procedure_select(procedure_codes: Sequence[str] | None = ALERT_PROCEDURE_CODES) -> sa.Select:
    stmt = sa.select(
        client_procedures.c.id,
        client_procedures.c.client_id,
        client_procedures.c.created_at,
        client_procedures.c.notes,
        client_procedures.c.total_amount,
        client_procedures.c.amount_paid,
        client_procedures.c.paid,
        clients.c.first_name,
        clients.c.last_name,
        clients.c.phone,
        procedure_types.c.id.label("procedure_type_id"),
        procedure_types.c.code.label("procedure_type_code"),
        procedure_types.c.display_name.label("procedure_type_name"),
    ).select_from(
        client_procedures.join(clients, clients.c.id == client_procedures.c.client_id).join(
            procedure_types, procedure_types.c.id == client_procedures.c.procedure_type_id
        )
    )
    if procedure_codes is not None:
        stmt = stmt.where(procedure_types.c.code.in_(list(procedure_codes)))
    return stmt


def apply_filters(
    stmt: sa.Select,
    *,
    query: str | None,
    window: Tuple[datetime, datetime] | None,
) -> sa.Select:
    if window is not None:
        start, end = window
        stmt = stmt.where(client_procedures.c.created_at >= start, client_procedures.c.created_at < end)
    if query:
        stmt = stmt.where(client_search_clause(query))
    return stmt


def newest_first(stmt: sa.Select) -> sa.Select:
    return stmt.order_by(client_procedures.c.created_at.desc(), client_procedures.c.id)


async def count_rows(session: AsyncSession, stmt: sa.Select) -> int:
    count_stmt = sa.select(sa.func.count()).select_from(stmt.order_by(None).subquery())
    return int((await session.execute(count_stmt)).scalar_one())


async def load_vehicles_by_client(
    session: AsyncSession, client_ids: Iterable[str]
) -> Dict[str, List[VehicleRef]]:
    ids = sorted({client_id for client_id in client_ids if client_id})
    grouped: Dict[str, List[VehicleRef]] = defaultdict(list)
    if not ids:
        return grouped
    stmt = (
        sa.select(vehicles.c.client_id, vehicles.c.domain, vehicles.c.brand, vehicles.c.model)
        .where(vehicles.c.client_id.in_(ids))
        .order_by(vehicles.c.client_id, vehicles.c.created_at, vehicles.c.id)
    )
    for row in (await session.execute(stmt)).mappings():
        bucket = grouped[row["client_id"]]
        if len(bucket) < MAX_VEHICLES_PER_CLIENT:
            bucket.append(
                VehicleRef(
                    domain=row["domain"] or "",
                    brand=row["brand"] or "",
                    model=row["model"] or "",
                )
            )
    return grouped
