from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gnc_alerts.common.db import session_scope
from gnc_alerts.common.errors import PersistenceError, ProcedureNotFoundError, ValidationFailure
from gnc_alerts.common.tables import client_procedures

ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentState:
    procedure_id: str
    total_amount: Decimal
    amount_paid: Decimal
    paid: bool


def to_amount(value: Any, *, field: str = "amount") -> Decimal:
    """Coerce a caller amount to ``Decimal``; negative or non-numeric values are rejected."""

    if value is None:
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailure(f"{field} must be a number, got {value!r}") from exc
    if not amount.is_finite():
        raise ValidationFailure(f"{field} must be finite, got {value!r}")
    if amount < ZERO:
        raise ValidationFailure(f"{field} must be >= 0, got {value!r}")
    return amount


def compute_paid(total: Decimal, amount_paid: Decimal) -> bool:
    if total > ZERO:
        return amount_paid >= total
    return amount_paid > ZERO


async def _load_amounts(session, procedure_id: str) -> tuple[Decimal, Decimal]:
    row = (
        await session.execute(
            sa.select(client_procedures.c.total_amount, client_procedures.c.amount_paid).where(
                client_procedures.c.id == procedure_id
            )
        )
    ).first()
    if row is None:
        raise ProcedureNotFoundError(procedure_id)
    return Decimal(row.total_amount or 0), Decimal(row.amount_paid or 0)


async def _store(session, state: PaymentState, *, include_total: bool) -> None:
    values = {"amount_paid": state.amount_paid, "paid": state.paid}
    if include_total:
        values["total_amount"] = state.total_amount
    await session.execute(
        sa.update(client_procedures).where(client_procedures.c.id == state.procedure_id).values(**values)
    )


async def add_tendered_payment(*, database_url: str, procedure_id: str, tendered: Decimal) -> PaymentState:
    """Add ``tendered`` to the amount already paid and re-derive the paid flag."""

    try:
        async with session_scope(database_url) as session:
            total, current = await _load_amounts(session, procedure_id)
            new_paid = current + tendered
            state = PaymentState(
                procedure_id=procedure_id,
                total_amount=total,
                amount_paid=new_paid,
                paid=compute_paid(total, new_paid),
            )
            await _store(session, state, include_total=False)
            await session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not update payment for procedure {procedure_id}") from exc
    return state


async def update_procedure_payment(
    *,
    database_url: str,
    procedure_id: str,
    amount_paid: Any,
    total_amount: Any = None,
) -> PaymentState:
    """Overwrite the paid amount (and optionally the total) of a procedure."""

    new_paid = to_amount(amount_paid, field="amount_paid")
    new_total = to_amount(total_amount, field="total_amount") if total_amount is not None else None
    try:
        async with session_scope(database_url) as session:
            stored_total, _ = await _load_amounts(session, procedure_id)
            total = new_total if new_total is not None else stored_total
            state = PaymentState(
                procedure_id=procedure_id,
                total_amount=total,
                amount_paid=new_paid,
                paid=compute_paid(total, new_paid),
            )
            await _store(session, state, include_total=new_total is not None)
            await session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not update payment for procedure {procedure_id}") from exc
    return state
