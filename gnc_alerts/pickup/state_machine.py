"""Receipt -> notification -> pickup tracking for a procedure's finished paperwork.

The default policy is permissive: any action may be applied from any state,
and re-applying an action only re-stamps its timestamp. ``strict=True``
restricts each action to its documented source states.

``retired`` also books the amount tendered at pickup. That payment update
runs after the status upsert has committed; when it fails the status stays
``RETIRADO`` and :class:`PaymentUpdateError` reports ``status_committed``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gnc_alerts.common.date_utils import utc_now
from gnc_alerts.common.db import is_sqlite_url, make_upsert, session_scope
from gnc_alerts.common.errors import (
    InvalidTransitionError,
    PaymentUpdateError,
    PersistenceError,
    ProcedureNotFoundError,
    ValidationFailure,
)
from gnc_alerts.common.json_logger import JsonLogger, log_event
from gnc_alerts.common.statuses import DEFAULT_DELIVERY_STATUS, DeliveryStatus
from gnc_alerts.common.tables import client_procedures, procedure_delivery_status

from . import payments


class PickupAction(str, Enum):
    RECEIVED = "received"
    NOTIFIED = "notified"
    RETIRED = "retired"


# action -> (target status, timestamp column)
TRANSITIONS: Dict[PickupAction, tuple[DeliveryStatus, str]] = {
    PickupAction.RECEIVED: (DeliveryStatus.RECIBIDO, "received_at"),
    PickupAction.NOTIFIED: (DeliveryStatus.AVISADO_RETIRO, "notified_at"),
    PickupAction.RETIRED: (DeliveryStatus.RETIRADO, "picked_up_at"),
}

DOCUMENTED_SOURCES: Dict[PickupAction, FrozenSet[DeliveryStatus]] = {
    PickupAction.RECEIVED: frozenset({DeliveryStatus.PENDIENTE_RECEPCION, DeliveryStatus.RECIBIDO}),
    PickupAction.NOTIFIED: frozenset({DeliveryStatus.RECIBIDO, DeliveryStatus.AVISADO_RETIRO}),
    PickupAction.RETIRED: frozenset({DeliveryStatus.RECIBIDO, DeliveryStatus.AVISADO_RETIRO}),
}


@dataclass(frozen=True)
class PickupActionResult:
    procedure_id: str
    action: PickupAction
    status: DeliveryStatus
    stamped_at: datetime
    payment: Optional[payments.PaymentState] = None


def parse_action(value: Any) -> PickupAction:
    if isinstance(value, PickupAction):
        return value
    try:
        return PickupAction(str(value))
    except ValueError as exc:
        raise ValidationFailure(f"unknown pickup action: {value!r}") from exc


async def _current_status(session, procedure_id: str) -> DeliveryStatus:
    stored = (
        await session.execute(
            sa.select(procedure_delivery_status.c.status).where(
                procedure_delivery_status.c.procedure_id == procedure_id
            )
        )
    ).scalar_one_or_none()
    return DeliveryStatus(stored) if stored else DEFAULT_DELIVERY_STATUS


async def apply_pickup_action(
    *,
    database_url: str,
    procedure_id: str,
    action: PickupAction | str,
    amount_paid: Any = None,
    strict: bool = False,
    logger: JsonLogger,
) -> PickupActionResult:
    action = parse_action(action)
    tendered = payments.to_amount(amount_paid, field="amount_paid")
    status, timestamp_column = TRANSITIONS[action]
    now = utc_now()

    try:
        async with session_scope(database_url) as session:
            exists = (
                await session.execute(sa.select(client_procedures.c.id).where(client_procedures.c.id == procedure_id))
            ).first()
            if exists is None:
                raise ProcedureNotFoundError(procedure_id)
            if strict:
                current = await _current_status(session, procedure_id)
                if current not in DOCUMENTED_SOURCES[action]:
                    raise InvalidTransitionError(procedure_id, action.value, current.value)
            await session.execute(
                make_upsert(
                    procedure_delivery_status,
                    {
                        "procedure_id": procedure_id,
                        "status": status.value,
                        timestamp_column: now,
                        "updated_at": now,
                    },
                    conflict_cols=["procedure_id"],
                    use_sqlite=is_sqlite_url(database_url),
                )
            )
            await session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not update delivery status for procedure {procedure_id}") from exc

    log_event(
        logger=logger,
        phase="pickup",
        message="delivery status stored",
        procedure_id=procedure_id,
        action=action.value,
        delivery_status=status.value,
    )
    if action is not PickupAction.RETIRED:
        return PickupActionResult(procedure_id=procedure_id, action=action, status=status, stamped_at=now)

    try:
        payment = await payments.add_tendered_payment(
            database_url=database_url,
            procedure_id=procedure_id,
            tendered=tendered,
        )
    except (PersistenceError, ProcedureNotFoundError) as exc:
        log_event(
            logger=logger,
            phase="pickup_payment",
            status="error",
            message="payment update failed after status commit",
            procedure_id=procedure_id,
            tendered=tendered,
            error=str(exc),
        )
        raise PaymentUpdateError(
            f"procedure {procedure_id} marked {status.value} but the payment update failed",
            procedure_id=procedure_id,
            status_committed=True,
        ) from exc

    log_event(
        logger=logger,
        phase="pickup_payment",
        message="pickup payment booked",
        procedure_id=procedure_id,
        tendered=tendered,
        amount_paid=payment.amount_paid,
        paid=payment.paid,
    )
    return PickupActionResult(
        procedure_id=procedure_id,
        action=action,
        status=status,
        stamped_at=now,
        payment=payment,
    )


def outstanding_balance(total: Decimal, amount_paid: Decimal) -> Decimal:
    return max(total - amount_paid, payments.ZERO)
