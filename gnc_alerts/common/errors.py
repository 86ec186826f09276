"""Error taxonomy shared by the reconciliation, query and pickup layers."""

from __future__ import annotations


class GncAlertsError(RuntimeError):
    """Base class for failures surfaced to callers."""


class ValidationFailure(GncAlertsError, ValueError):
    """Raised when caller input is rejected before any side effect."""


class ProcedureNotFoundError(GncAlertsError):
    """Raised when a procedure identifier does not resolve to a row."""

    def __init__(self, procedure_id: str) -> None:
        super().__init__(f"procedure not found: {procedure_id}")
        self.procedure_id = procedure_id


class PersistenceError(GncAlertsError):
    """Raised when a store read/write fails; callers must assume nothing changed."""


class PaymentUpdateError(PersistenceError):
    """Raised when the pickup payment update fails after the status was stored.

    The delivery status upsert is not rolled back, so ``status_committed`` is
    ``True`` whenever this is raised from a ``retired`` action.
    """

    def __init__(self, message: str, *, procedure_id: str, status_committed: bool = True) -> None:
        super().__init__(message)
        self.procedure_id = procedure_id
        self.status_committed = status_committed


class InvalidTransitionError(GncAlertsError):
    """Raised only by the opt-in strict pickup policy."""

    def __init__(self, procedure_id: str, action: str, current_status: str) -> None:
        super().__init__(
            f"action {action!r} not allowed from {current_status} for procedure {procedure_id}"
        )
        self.procedure_id = procedure_id
        self.action = action
        self.current_status = current_status
