"""ENARGAS registry lookup via a headless browser."""

from .dates import month_year_matches, registry_date_to_date, select_most_recent
from .probe import (
    DEFAULT_EXTRACTORS,
    DateExtractor,
    ProbeResult,
    ProbeSettings,
    RegistryProbe,
    fetch_last_operation_date,
    normalize_domain,
)

__all__ = [
    "DEFAULT_EXTRACTORS",
    "DateExtractor",
    "ProbeResult",
    "ProbeSettings",
    "RegistryProbe",
    "fetch_last_operation_date",
    "month_year_matches",
    "normalize_domain",
    "registry_date_to_date",
    "select_most_recent",
]
