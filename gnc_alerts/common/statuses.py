from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Generic, Iterable, Mapping, TypeVar


class AlertStatus(str, Enum):
    PENDIENTE_DE_AVISAR = "PENDIENTE_DE_AVISAR"
    AVISADO = "AVISADO"
    NO_CORRESPONDE_AVISAR = "NO_CORRESPONDE_AVISAR"


class DeliveryStatus(str, Enum):
    PENDIENTE_RECEPCION = "PENDIENTE_RECEPCION"
    RECIBIDO = "RECIBIDO"
    AVISADO_RETIRO = "AVISADO_RETIRO"
    RETIRADO = "RETIRADO"


DEFAULT_ALERT_STATUS = AlertStatus.PENDIENTE_DE_AVISAR
DEFAULT_DELIVERY_STATUS = DeliveryStatus.PENDIENTE_RECEPCION

T = TypeVar("T")


@dataclass
class StatusLookup(Generic[T]):
    """Projection rows keyed by procedure id; a missing row resolves to ``default``."""

    rows: Dict[str, T] = field(default_factory=dict)
    default: Callable[[str], T] | None = None

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Mapping],
        *,
        build: Callable[[Mapping], T],
        default: Callable[[str], T],
    ) -> "StatusLookup[T]":
        return cls(rows={str(row["procedure_id"]): build(row) for row in rows}, default=default)

    def get(self, procedure_id: str) -> T:
        found = self.rows.get(procedure_id)
        if found is not None:
            return found
        if self.default is None:
            raise KeyError(procedure_id)
        return self.default(procedure_id)

    def __contains__(self, procedure_id: object) -> bool:
        return procedure_id in self.rows
