"""Request models and response projections for the HTTP API."""

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from gnc_alerts.alerts import AlertItem
from gnc_alerts.common.listing import ClientRef, Pagination, ProcedureTypeRef
from gnc_alerts.pickup import PaymentState, PickupAction, PickupActionResult, PickupItem
from gnc_alerts.reconciliation import BatchCheckSummary, ProcedureCheckResult, VehicleRef

MONTH_PATTERN = r"^\d{4}-\d{2}$"
DAY_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


# ============================================
# Request Models
# ============================================

class ProcedureRef(BaseModel):
    """Body carrying a single procedure id"""
    procedureId: UUID


class BatchCheckRequest(BaseModel):
    """Batch reconciliation filters"""
    q: str = Field("", max_length=120)
    month: Optional[str] = Field(None, pattern=MONTH_PATTERN)
    date: Optional[str] = Field(None, pattern=DAY_PATTERN)
    all: bool = False


class PickupStatusRequest(BaseModel):
    """Pickup action"""
    procedureId: UUID
    action: PickupAction
    amountPaid: Optional[Decimal] = Field(None, ge=0)


class PaymentUpdateRequest(BaseModel):
    """Direct payment mutation"""
    amountPaid: Decimal = Field(..., ge=0)
    totalAmount: Optional[Decimal] = Field(None, ge=0)


# ============================================
# Response projections
# ============================================

def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _amount(value: Decimal) -> float:
    return float(value)


def client_payload(client: ClientRef) -> Dict[str, Any]:
    return {
        "id": client.id,
        "firstName": client.first_name,
        "lastName": client.last_name,
        "phone": client.phone,
    }


def vehicle_payload(vehicle: Optional[VehicleRef]) -> Optional[Dict[str, Any]]:
    if vehicle is None:
        return None
    return {"domain": vehicle.domain, "brand": vehicle.brand, "model": vehicle.model}


def procedure_type_payload(procedure_type: ProcedureTypeRef) -> Dict[str, Any]:
    return {
        "id": procedure_type.id,
        "code": procedure_type.code,
        "displayName": procedure_type.display_name,
    }


def pagination_payload(pagination: Pagination) -> Dict[str, int]:
    return {
        "page": pagination.page,
        "pageSize": pagination.page_size,
        "total": pagination.total,
        "totalPages": pagination.total_pages,
    }


def alert_payload(item: AlertItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "createdAt": _iso(item.created_at),
        "notes": item.notes,
        "status": item.status.value,
        "notifiedAt": _iso(item.notified_at),
        "lastCheckedAt": _iso(item.last_checked_at),
        "enargasLastOperationDate": _iso(item.registry_date),
        "checkNotes": item.check_notes,
        "client": client_payload(item.client),
        "vehicle": vehicle_payload(item.vehicle),
        "procedureType": procedure_type_payload(item.procedure_type),
        "whatsappLink": item.whatsapp_link,
    }


def pickup_payload(item: PickupItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "createdAt": _iso(item.created_at),
        "notes": item.notes,
        "paid": item.paid,
        "totalAmount": _amount(item.total_amount),
        "amountPaid": _amount(item.amount_paid),
        "balance": _amount(item.balance),
        "status": item.status.value,
        "receivedAt": _iso(item.received_at),
        "notifiedAt": _iso(item.notified_at),
        "pickedUpAt": _iso(item.picked_up_at),
        "client": client_payload(item.client),
        "vehicle": vehicle_payload(item.vehicle),
        "procedureType": procedure_type_payload(item.procedure_type),
        "whatsappLink": item.whatsapp_link,
    }


def check_result_payload(result: ProcedureCheckResult) -> Dict[str, Any]:
    return {
        "procedureId": result.procedure_id,
        "status": result.status.value,
        "enargasLastOperationDate": result.registry_date,
        "notes": result.notes,
        "domain": result.domain,
    }


def batch_summary_payload(summary: BatchCheckSummary) -> Dict[str, Any]:
    return {
        "runId": summary.run_id,
        "checked": summary.checked,
        "pending": summary.pending,
        "notified": summary.notified,
        "noCorrespond": summary.no_correspond,
        "domainsChecked": summary.domains_checked,
        "domainsSkippedByLimit": summary.domains_skipped_by_limit,
        "probeErrors": summary.probe_errors,
    }


def payment_payload(payment: PaymentState) -> Dict[str, Any]:
    return {
        "procedureId": payment.procedure_id,
        "totalAmount": _amount(payment.total_amount),
        "amountPaid": _amount(payment.amount_paid),
        "paid": payment.paid,
    }


def pickup_result_payload(result: PickupActionResult) -> Dict[str, Any]:
    payload = {
        "procedureId": result.procedure_id,
        "action": result.action.value,
        "status": result.status.value,
        "stampedAt": _iso(result.stamped_at),
    }
    if result.payment is not None:
        payload["payment"] = payment_payload(result.payment)
    return payload
