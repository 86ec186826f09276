"""Expiration reconciliation: registry dates -> procedure alert statuses."""

from .engine import (
    MAX_BATCH_PROCEDURES,
    BatchCheckSummary,
    BatchFilters,
    ProbeThrottle,
    ProcedureCheckResult,
    check_batch,
    check_procedure,
    decide_status,
    mark_notified,
)
from .selection import ALERT_PROCEDURE_CODES, resolve_month_window
from .vehicles import (
    VehicleRef,
    candidate_domains,
    extract_domain_from_notes,
    extract_phone_from_notes,
    resolve_vehicle,
)

__all__ = [
    "ALERT_PROCEDURE_CODES",
    "MAX_BATCH_PROCEDURES",
    "BatchCheckSummary",
    "BatchFilters",
    "ProbeThrottle",
    "ProcedureCheckResult",
    "VehicleRef",
    "candidate_domains",
    "check_batch",
    "check_procedure",
    "decide_status",
    "extract_domain_from_notes",
    "extract_phone_from_notes",
    "mark_notified",
    "resolve_month_window",
    "resolve_vehicle",
]
