"""Day-first registry date helpers."""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from gnc_alerts.common.date_utils import to_local

DATE_PATTERN = re.compile(r"\d{2}/\d{2}/\d{4}")
_FULL_DATE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def extract_date_matches(text: str | None) -> List[str]:
    if not text:
        return []
    return DATE_PATTERN.findall(text)


def registry_date_to_date(value: str | None) -> Optional[date]:
    """``"10/01/2026"`` -> ``date(2026, 1, 10)``; ``None`` for anything else."""

    if not value or not _FULL_DATE.match(value.strip()):
        return None
    day, month, year = (int(part) for part in value.strip().split("/"))
    try:
        return date(year, month, day)
    except ValueError:
        return None


def select_most_recent(values: Iterable[str]) -> Optional[str]:
    """Return the latest ``DD/MM/YYYY`` value by calendar order."""

    best: tuple[date, str] | None = None
    for value in values:
        parsed = registry_date_to_date(value)
        if parsed is None:
            continue
        if best is None or parsed > best[0]:
            best = (parsed, value.strip())
    return best[1] if best else None


def month_year_matches(registry_date: str | date | None, created_at: datetime | None, tz: ZoneInfo) -> bool:
    if registry_date is None or created_at is None:
        return False
    resolved = registry_date if isinstance(registry_date, date) else registry_date_to_date(registry_date)
    if resolved is None:
        return False
    local_created = to_local(created_at, tz)
    return resolved.month == local_created.month and resolved.year == local_created.year
