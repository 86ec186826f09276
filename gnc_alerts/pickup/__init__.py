"""Document pickup state machine and listing."""

from .payments import PaymentState, compute_paid, update_procedure_payment
from .query import PickupFilter, PickupFilters, PickupItem, PickupPage, list_pickups
from .state_machine import (
    DOCUMENTED_SOURCES,
    TRANSITIONS,
    PickupAction,
    PickupActionResult,
    apply_pickup_action,
    parse_action,
)

__all__ = [
    "DOCUMENTED_SOURCES",
    "TRANSITIONS",
    "PaymentState",
    "PickupAction",
    "PickupActionResult",
    "PickupFilter",
    "PickupFilters",
    "PickupItem",
    "PickupPage",
    "apply_pickup_action",
    "compute_paid",
    "list_pickups",
    "parse_action",
    "update_procedure_payment",
]
