"""
Alert Routes - ENARGAS expiration reconciliation endpoints

Endpoints:
- POST /api/alerts/check-one - Re-check a single procedure
- POST /api/alerts/check - Re-check every procedure matching the filters
- GET /api/alerts - List alerts with filters and pagination
- POST /api/alerts/notify - Mark a procedure as manually notified
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from gnc_alerts.alerts import AlertFilters, list_alerts
from gnc_alerts.common.statuses import AlertStatus
from gnc_alerts.reconciliation import BatchFilters, check_batch, check_procedure, mark_notified
from gnc_alerts.services import Services

from .dependencies import get_services
from .schemas import (
    DAY_PATTERN,
    MONTH_PATTERN,
    BatchCheckRequest,
    ProcedureRef,
    alert_payload,
    batch_summary_payload,
    check_result_payload,
    pagination_payload,
)

router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.post("/check-one")
async def check_one(body: ProcedureRef, services: Services = Depends(get_services)):
    """Probe the registry for one procedure and store its alert status"""
    result = await check_procedure(
        database_url=services.database_url,
        procedure_id=str(body.procedureId),
        probe=services.probe,
        logger=services.logger.bind(endpoint="check-one"),
        tz=services.tz,
    )
    return {"data": check_result_payload(result)}


@router.post("/check")
async def check(body: BatchCheckRequest, services: Services = Depends(get_services)):
    """Batch reconciliation; always reports probe coverage counts"""
    summary = await check_batch(
        database_url=services.database_url,
        filters=BatchFilters(query=body.q, month=body.month, date_window=body.date, show_all=body.all),
        probe=services.probe,
        logger=services.logger.bind(endpoint="check"),
        throttle=services.throttle,
        procedure_codes=services.procedure_codes,
        tz=services.tz,
        run_env=services.run_env,
    )
    return {"data": batch_summary_payload(summary)}


@router.get("")
async def get_alerts(
    q: str = Query("", max_length=120),
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    date: Optional[str] = Query(None, pattern=DAY_PATTERN),
    show_all: bool = Query(False, alias="all"),
    status: Optional[AlertStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    services: Services = Depends(get_services),
):
    """List eligible procedures with their alert state"""
    result = await list_alerts(
        database_url=services.database_url,
        filters=AlertFilters(
            query=q,
            month=month,
            date_window=date,
            show_all=show_all,
            status=status,
            page=page,
            page_size=page_size,
        ),
        tz=services.tz,
        procedure_codes=services.procedure_codes,
    )
    return {
        "data": [alert_payload(item) for item in result.items],
        "pagination": pagination_payload(result.pagination),
    }


@router.post("/notify")
async def notify(body: ProcedureRef, services: Services = Depends(get_services)):
    """Record that the client was notified by hand"""
    procedure_id = str(body.procedureId)
    notified_at = await mark_notified(
        database_url=services.database_url,
        procedure_id=procedure_id,
        logger=services.logger,
    )
    return {"data": {"ok": True, "procedureId": procedure_id, "notifiedAt": notified_at.isoformat()}}
