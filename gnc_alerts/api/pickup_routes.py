"""
Pickup Routes - Document pickup tracking and payments

Endpoints:
- GET /api/pickups - List procedures by pickup filter
- POST /api/pickups/status - Apply a pickup action
- PATCH /api/procedures/{procedure_id}/payment - Overwrite payment fields
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from gnc_alerts.pickup import (
    PickupFilter,
    PickupFilters,
    apply_pickup_action,
    list_pickups,
    update_procedure_payment,
)
from gnc_alerts.services import Services

from .dependencies import get_services, strict_pickups
from .schemas import (
    PaymentUpdateRequest,
    PickupStatusRequest,
    pagination_payload,
    payment_payload,
    pickup_payload,
    pickup_result_payload,
)

router = APIRouter(tags=["pickups"])


@router.get("/api/pickups")
async def get_pickups(
    q: str = Query("", max_length=120),
    filter: PickupFilter = Query(PickupFilter.YESTERDAY),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    services: Services = Depends(get_services),
):
    """List procedures for the pickup desk"""
    result = await list_pickups(
        database_url=services.database_url,
        filters=PickupFilters(query=q, filter=filter, page=page, page_size=page_size),
        tz=services.tz,
        procedure_codes=services.procedure_codes,
    )
    return {
        "data": [pickup_payload(item) for item in result.items],
        "pagination": pagination_payload(result.pagination),
    }


@router.post("/api/pickups/status")
async def post_pickup_status(
    body: PickupStatusRequest,
    services: Services = Depends(get_services),
    strict: bool = Depends(strict_pickups),
):
    """Mark received / notified / retired"""
    result = await apply_pickup_action(
        database_url=services.database_url,
        procedure_id=str(body.procedureId),
        action=body.action,
        amount_paid=body.amountPaid,
        strict=strict,
        logger=services.logger.bind(endpoint="pickup-status"),
    )
    return {"data": pickup_result_payload(result)}


@router.patch("/api/procedures/{procedure_id}/payment")
async def patch_payment(
    procedure_id: UUID,
    body: PaymentUpdateRequest,
    services: Services = Depends(get_services),
):
    """Set amount paid (and optionally total); paid flag is derived"""
    payment = await update_procedure_payment(
        database_url=services.database_url,
        procedure_id=str(procedure_id),
        amount_paid=body.amountPaid,
        total_amount=body.totalAmount,
    )
    return {"data": payment_payload(payment)}
