"""Map a procedure to the vehicle(s) it concerns.

A client may own several vehicles. The procedure notes can pin one with a
``[DOMINIO:ABC123]`` tag (older rows use ``dominio: ABC123``) and can carry a
``[TEL:1145551234]`` phone override.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from gnc_alerts.registry_probe import normalize_domain

_TAGGED_DOMAIN = re.compile(r"\[DOMINIO:([A-Z0-9-]+)\]", re.IGNORECASE)
_LEGACY_DOMAIN = re.compile(r"dominio:\s*([A-Z0-9-]+)", re.IGNORECASE)
_TAGGED_PHONE = re.compile(r"\[TEL:([0-9]+)\]", re.IGNORECASE)


@dataclass(frozen=True)
class VehicleRef:
    domain: str
    brand: str = ""
    model: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.domain.strip() and self.brand.strip() and self.model.strip())


def extract_domain_from_notes(notes: str | None) -> Optional[str]:
    if not notes:
        return None
    tagged = _TAGGED_DOMAIN.search(notes)
    if tagged:
        return tagged.group(1).upper()
    legacy = _LEGACY_DOMAIN.search(notes)
    if legacy:
        return legacy.group(1).upper()
    return None


def extract_phone_from_notes(notes: str | None) -> Optional[str]:
    if not notes:
        return None
    tagged = _TAGGED_PHONE.search(notes)
    return tagged.group(1) if tagged else None


def resolve_vehicle(notes: str | None, vehicles: Sequence[VehicleRef]) -> Optional[VehicleRef]:
    if not vehicles:
        return None
    pinned = extract_domain_from_notes(notes)
    if pinned:
        for vehicle in vehicles:
            if normalize_domain(vehicle.domain) == pinned:
                return vehicle
    return vehicles[0]


def candidate_domains(domains: Iterable[str | None], notes: str | None = None) -> List[str]:
    """Normalized, de-duplicated domains in creation order.

    When the notes pin one of these domains it is tried first.
    """

    ordered: List[str] = []
    for raw in domains:
        normalized = normalize_domain(raw or "")
        if normalized and normalized not in ordered:
            ordered.append(normalized)
    pinned = extract_domain_from_notes(notes)
    if pinned and pinned in ordered:
        ordered.remove(pinned)
        ordered.insert(0, pinned)
    return ordered
