"""Row shapes and paging shared by the alert and pickup listings."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, TypeVar

from gnc_alerts.common.errors import ValidationFailure
from gnc_alerts.reconciliation.vehicles import VehicleRef, extract_phone_from_notes

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")


@dataclass(frozen=True)
class Pagination:
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(math.ceil(self.total / self.page_size), 1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class ClientRef:
    id: str
    first_name: str
    last_name: str
    phone: Optional[str]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class ProcedureTypeRef:
    id: str
    code: str
    display_name: str


def validate_paging(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationFailure(f"page must be >= 1, got {page}")
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationFailure(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")


def paginate(items: Sequence[T], page: int, page_size: int) -> Tuple[List[T], Pagination]:
    pagination = Pagination(page=page, page_size=page_size, total=len(items))
    return list(items[pagination.offset : pagination.offset + page_size]), pagination


def client_from_row(row: Mapping[str, Any]) -> ClientRef:
    """Client projection; a ``[TEL:…]`` tag in the procedure notes overrides the stored phone."""

    return ClientRef(
        id=row["client_id"],
        first_name=row["first_name"] or "",
        last_name=row["last_name"] or "",
        phone=extract_phone_from_notes(row["notes"]) or row["phone"],
    )


def procedure_type_from_row(row: Mapping[str, Any]) -> ProcedureTypeRef:
    return ProcedureTypeRef(
        id=row["procedure_type_id"],
        code=row["procedure_type_code"],
        display_name=row["procedure_type_name"],
    )


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "ClientRef",
    "Pagination",
    "ProcedureTypeRef",
    "VehicleRef",
    "client_from_row",
    "paginate",
    "procedure_type_from_row",
    "validate_paging",
]
