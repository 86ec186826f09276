"""Shared helpers for timezone-aware period calculations."""
from __future__ import annotations

import os
import re
from datetime import date, datetime, timedelta, timezone
from typing import Tuple
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})")


def get_timezone() -> ZoneInfo:
    """Return the configured workshop timezone.

    The timezone can be overridden via the ``PIPELINE_TIMEZONE`` environment
    variable so month boundaries do not depend on the machine locale.
    """

    name = os.getenv("PIPELINE_TIMEZONE", DEFAULT_TIMEZONE)
    return ZoneInfo(name)


def aware_now(tz: ZoneInfo | None = None) -> datetime:
    """Return ``datetime.now`` in the configured timezone."""

    return datetime.now(tz or get_timezone())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Interpret naive timestamps as UTC (how the store returns them) and convert."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz)


def parse_month(value: str) -> Tuple[int, int] | None:
    """Parse the ``YYYY-MM`` prefix of ``value`` (also accepts ``YYYY-MM-DD``)."""

    match = _MONTH_RE.match(value.strip())
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return year, month


def month_bounds(year: int, month: int, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Return ``[start, end)`` of a calendar month as UTC datetimes."""

    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year, month + 1, 1, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def current_month(tz: ZoneInfo, reference: datetime | None = None) -> Tuple[int, int]:
    current = reference or aware_now(tz)
    return current.year, current.month


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    start = datetime(day.year, day.month, day.day, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def yesterday(tz: ZoneInfo, reference: datetime | None = None) -> date:
    current = reference or aware_now(tz)
    return current.date() - timedelta(days=1)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
