"""Fold registry dates into per-procedure alert statuses.

Both entry points apply :func:`decide_status`:

* the registry date shares month and year with the procedure creation date
  -> ``PENDIENTE_DE_AVISAR``, or ``AVISADO`` when a person already notified
  the client;
* anything else (no vehicle, no record, probe failure) ->
  ``NO_CORRESPONDE_AVISAR``.

Probe failures and missing vehicles become data (status + note). Store
failures raise :class:`PersistenceError`; the batch writes every row in one
transaction so a failed run leaves no partial statuses behind.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from gnc_alerts.common.date_utils import get_timezone, utc_now
from gnc_alerts.common.db import is_sqlite_url, make_upsert, session_scope
from gnc_alerts.common.errors import PersistenceError, ProcedureNotFoundError
from gnc_alerts.common.json_logger import JsonLogger, log_event, new_run_id, timed_event
from gnc_alerts.common.statuses import AlertStatus
from gnc_alerts.common.tables import alert_check_runs, client_procedures, procedure_alert_status, vehicles
from gnc_alerts.registry_probe import ProbeResult, month_year_matches, registry_date_to_date

from .selection import (
    ALERT_PROCEDURE_CODES,
    MAX_VEHICLES_PER_CLIENT,
    apply_filters,
    load_vehicles_by_client,
    newest_first,
    procedure_select,
    resolve_month_window,
)
from .vehicles import candidate_domains

Probe = Callable[[str], Awaitable[ProbeResult]]

MAX_BATCH_PROCEDURES = 1200
UPSERT_CHUNK_SIZE = 500

NOTE_NO_VEHICLE = "No vehicle associated"


@dataclass(frozen=True)
class ProbeThrottle:
    """Sequential pacing for registry lookups within one run."""

    delay_seconds: float = 0.35
    max_domains: int = 200
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep


@dataclass(frozen=True)
class BatchFilters:
    query: str = ""
    month: Optional[str] = None
    date_window: Optional[str] = None
    show_all: bool = False

    @property
    def search_mode(self) -> bool:
        return bool(self.query.strip())


@dataclass
class ProcedureCheckResult:
    procedure_id: str
    status: AlertStatus
    registry_date: Optional[str]
    notes: str
    domain: Optional[str] = None


@dataclass
class BatchCheckSummary:
    run_id: str
    checked: int = 0
    pending: int = 0
    notified: int = 0
    no_correspond: int = 0
    domains_checked: int = 0
    domains_skipped_by_limit: int = 0
    probe_errors: int = 0
    results: List[ProcedureCheckResult] = field(default_factory=list)

    def metrics(self) -> Dict[str, int]:
        payload = asdict(self)
        payload.pop("results")
        payload.pop("run_id")
        return payload


def decide_status(
    *,
    registry_date: Optional[str],
    created_at: Optional[datetime],
    previous_status: Optional[str],
    tz: ZoneInfo,
) -> AlertStatus:
    if not month_year_matches(registry_date, created_at, tz):
        return AlertStatus.NO_CORRESPONDE_AVISAR
    if previous_status == AlertStatus.AVISADO.value:
        return AlertStatus.AVISADO
    return AlertStatus.PENDIENTE_DE_AVISAR


def _note_for(domain: Optional[str], result: Optional[ProbeResult]) -> str:
    if domain is None:
        return NOTE_NO_VEHICLE
    if result is None:
        return f"Domain skipped by probe limit: {domain}"
    if result.error:
        return f"Registry error: {result.error}"
    return f"Domain checked: {domain}"


async def _safe_probe(probe: Probe, domain: str, *, logger: JsonLogger) -> ProbeResult:
    try:
        return await probe(domain)
    except Exception as exc:
        log_event(
            logger=logger,
            phase="probe",
            status="error",
            message="probe raised instead of reporting an error",
            domain=domain,
            error=str(exc),
        )
        return ProbeResult(domain=domain, last_operation_date=None, error=str(exc) or exc.__class__.__name__)


def _status_row(
    procedure_id: str,
    status: AlertStatus,
    registry_date: Optional[str],
    notes: str,
    checked_at: datetime,
) -> Dict[str, Any]:
    return {
        "procedure_id": procedure_id,
        "status": status.value,
        "enargas_last_operation_date": registry_date_to_date(registry_date),
        "last_checked_at": checked_at,
        "notes": notes,
        "updated_at": checked_at,
    }


async def _upsert_alert_rows(database_url: str, rows: Sequence[Mapping[str, Any]]) -> None:
    if not rows:
        return
    use_sqlite = is_sqlite_url(database_url)
    async with session_scope(database_url) as session:
        try:
            for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
                chunk = rows[start : start + UPSERT_CHUNK_SIZE]
                await session.execute(
                    make_upsert(
                        procedure_alert_status,
                        chunk,
                        conflict_cols=["procedure_id"],
                        use_sqlite=use_sqlite,
                    )
                )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceError("could not store alert statuses; no status was changed") from exc


async def _previous_statuses(session, procedure_ids: Sequence[str]) -> Dict[str, str]:
    if not procedure_ids:
        return {}
    stmt = sa.select(procedure_alert_status.c.procedure_id, procedure_alert_status.c.status).where(
        procedure_alert_status.c.procedure_id.in_(list(procedure_ids))
    )
    return {row.procedure_id: row.status for row in await session.execute(stmt)}


async def check_procedure(
    *,
    database_url: str,
    procedure_id: str,
    probe: Probe,
    logger: JsonLogger,
    tz: ZoneInfo | None = None,
) -> ProcedureCheckResult:
    """Re-check one procedure, probing its client's domains until one has a date."""

    tz = tz or get_timezone()
    try:
        async with session_scope(database_url) as session:
            procedure = (
                await session.execute(
                    sa.select(
                        client_procedures.c.id,
                        client_procedures.c.client_id,
                        client_procedures.c.created_at,
                        client_procedures.c.notes,
                    ).where(client_procedures.c.id == procedure_id)
                )
            ).mappings().first()
            if procedure is None:
                raise ProcedureNotFoundError(procedure_id)
            domain_rows = await session.execute(
                sa.select(vehicles.c.domain)
                .where(vehicles.c.client_id == procedure["client_id"])
                .order_by(vehicles.c.created_at, vehicles.c.id)
                .limit(MAX_VEHICLES_PER_CLIENT)
            )
            domains = candidate_domains((row.domain for row in domain_rows), procedure["notes"])
            previous = (await _previous_statuses(session, [procedure_id])).get(procedure_id)
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not load procedure {procedure_id}") from exc

    checked_at = utc_now()
    if not domains:
        log_event(
            logger=logger,
            phase="check_one",
            status="warn",
            message="procedure has no vehicle domain; nothing to probe",
            procedure_id=procedure_id,
        )
        await _upsert_alert_rows(
            database_url,
            [_status_row(procedure_id, AlertStatus.NO_CORRESPONDE_AVISAR, None, NOTE_NO_VEHICLE, checked_at)],
        )
        return ProcedureCheckResult(
            procedure_id=procedure_id,
            status=AlertStatus.NO_CORRESPONDE_AVISAR,
            registry_date=None,
            notes=NOTE_NO_VEHICLE,
        )

    result = await _safe_probe(probe, domains[0], logger=logger)
    for domain in domains[1:]:
        if result.found:
            break
        result = await _safe_probe(probe, domain, logger=logger)

    status = decide_status(
        registry_date=result.last_operation_date,
        created_at=procedure["created_at"],
        previous_status=previous,
        tz=tz,
    )
    notes = _note_for(result.domain, result)
    await _upsert_alert_rows(
        database_url,
        [_status_row(procedure_id, status, result.last_operation_date, notes, checked_at)],
    )
    log_event(
        logger=logger,
        phase="check_one",
        message="procedure alert status stored",
        procedure_id=procedure_id,
        alert_status=status.value,
        domain=result.domain,
        registry_date=result.last_operation_date,
        previous_status=previous,
    )
    return ProcedureCheckResult(
        procedure_id=procedure_id,
        status=status,
        registry_date=result.last_operation_date,
        notes=notes,
        domain=result.domain,
    )


async def _record_run(
    *,
    database_url: str,
    summary: BatchCheckSummary,
    filters: BatchFilters,
    started_at: datetime,
    run_env: str | None,
    logger: JsonLogger,
) -> bool:
    overall = "warning" if summary.probe_errors or summary.domains_skipped_by_limit else "ok"
    text = (
        f"Checked {summary.checked} procedures: {summary.pending} pending, "
        f"{summary.notified} notified, {summary.no_correspond} not applicable. "
        f"Probed {summary.domains_checked} domains ({summary.probe_errors} errors, "
        f"{summary.domains_skipped_by_limit} skipped by limit)."
    )
    try:
        async with session_scope(database_url) as session:
            await session.execute(
                alert_check_runs.insert().values(
                    run_id=summary.run_id,
                    run_env=run_env,
                    started_at=started_at,
                    finished_at=utc_now(),
                    overall_status=overall,
                    filters_json=asdict(filters),
                    metrics_json=summary.metrics(),
                    summary_text=text,
                )
            )
            await session.commit()
    except SQLAlchemyError as exc:
        log_event(
            logger=logger,
            phase="run_summary",
            status="warn",
            message="Failed to persist alert check run summary",
            error=str(exc),
        )
        return False
    log_event(logger=logger, phase="run_summary", message="Run summary inserted", overall_status=overall)
    return True


async def check_batch(
    *,
    database_url: str,
    filters: BatchFilters,
    probe: Probe,
    logger: JsonLogger,
    throttle: ProbeThrottle | None = None,
    procedure_codes: Sequence[str] = ALERT_PROCEDURE_CODES,
    tz: ZoneInfo | None = None,
    run_id: str | None = None,
    run_env: str | None = None,
) -> BatchCheckSummary:
    """Re-check every eligible procedure selected by ``filters``.

    Each distinct domain is probed at most once per run, sequentially, with
    ``throttle.delay_seconds`` between probes and at most
    ``throttle.max_domains`` probes.
    """

    tz = tz or get_timezone()
    throttle = throttle or ProbeThrottle()
    summary = BatchCheckSummary(run_id=run_id or new_run_id())
    started_at = utc_now()
    window = resolve_month_window(
        month=filters.month,
        date_window=filters.date_window,
        show_all=filters.show_all,
        search_mode=filters.search_mode,
        tz=tz,
    )
    log_event(
        logger=logger,
        phase="check_batch",
        message="starting alert reconciliation",
        batch_run_id=summary.run_id,
        query=filters.query or None,
        window_start=window[0] if window else None,
        window_end=window[1] if window else None,
    )

    stmt = newest_first(
        apply_filters(procedure_select(procedure_codes), query=filters.query.strip(), window=window)
    ).limit(MAX_BATCH_PROCEDURES)
    try:
        async with session_scope(database_url) as session:
            procedures = list((await session.execute(stmt)).mappings())
            vehicles_by_client = await load_vehicles_by_client(
                session, (row["client_id"] for row in procedures)
            )
            previous = await _previous_statuses(session, [row["id"] for row in procedures])
    except SQLAlchemyError as exc:
        raise PersistenceError("could not load procedures for reconciliation") from exc

    if not procedures:
        log_event(logger=logger, phase="check_batch", status="warn", message="no eligible procedures selected")
        return summary

    candidates: Dict[str, List[str]] = {}
    unique_domains: List[str] = []
    for row in procedures:
        domains = candidate_domains(
            (vehicle.domain for vehicle in vehicles_by_client.get(row["client_id"], [])),
            row["notes"],
        )
        candidates[row["id"]] = domains
        for domain in domains:
            if domain not in unique_domains:
                unique_domains.append(domain)

    to_check = unique_domains[: throttle.max_domains]
    summary.domains_checked = len(to_check)
    summary.domains_skipped_by_limit = max(len(unique_domains) - len(to_check), 0)
    if summary.domains_skipped_by_limit:
        log_event(
            logger=logger,
            phase="probe",
            status="warn",
            message="probe limit reached; remaining domains skipped",
            limit=throttle.max_domains,
            skipped=summary.domains_skipped_by_limit,
        )

    results: Dict[str, ProbeResult] = {}
    with timed_event(logger=logger, phase="probe", message="registry probing", domains=len(to_check)):
        for index, domain in enumerate(to_check):
            if index and throttle.delay_seconds > 0:
                await throttle.sleep(throttle.delay_seconds)
            result = await _safe_probe(probe, domain, logger=logger)
            results[domain] = result
            if result.error:
                summary.probe_errors += 1

    checked_at = utc_now()
    rows: List[Dict[str, Any]] = []
    for row in procedures:
        domains = candidates[row["id"]]
        selected = next((domain for domain in domains if domain in results and results[domain].found), None)
        if selected is None and domains:
            selected = domains[0]
        result = results.get(selected) if selected else None
        registry_date = result.last_operation_date if result else None
        status = decide_status(
            registry_date=registry_date,
            created_at=row["created_at"],
            previous_status=previous.get(row["id"]),
            tz=tz,
        )
        notes = _note_for(selected, result)
        rows.append(_status_row(row["id"], status, registry_date, notes, checked_at))
        summary.results.append(
            ProcedureCheckResult(
                procedure_id=row["id"],
                status=status,
                registry_date=registry_date,
                notes=notes,
                domain=selected,
            )
        )
        if status is AlertStatus.PENDIENTE_DE_AVISAR:
            summary.pending += 1
        elif status is AlertStatus.AVISADO:
            summary.notified += 1
        else:
            summary.no_correspond += 1
    summary.checked = len(rows)

    await _upsert_alert_rows(database_url, rows)
    log_event(
        logger=logger,
        phase="check_batch",
        message="alert statuses stored",
        batch_run_id=summary.run_id,
        **summary.metrics(),
    )
    await _record_run(
        database_url=database_url,
        summary=summary,
        filters=filters,
        started_at=started_at,
        run_env=run_env,
        logger=logger,
    )
    return summary


async def mark_notified(*, database_url: str, procedure_id: str, logger: JsonLogger | None = None) -> datetime:
    """Record that a person notified the client; reconciliation keeps this state."""

    now = utc_now()
    try:
        async with session_scope(database_url) as session:
            exists = (
                await session.execute(
                    sa.select(client_procedures.c.id).where(client_procedures.c.id == procedure_id)
                )
            ).first()
            if exists is None:
                raise ProcedureNotFoundError(procedure_id)
            await session.execute(
                make_upsert(
                    procedure_alert_status,
                    {
                        "procedure_id": procedure_id,
                        "status": AlertStatus.AVISADO.value,
                        "notified_at": now,
                        "last_checked_at": now,
                        "updated_at": now,
                    },
                    conflict_cols=["procedure_id"],
                    use_sqlite=is_sqlite_url(database_url),
                )
            )
            await session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"could not mark procedure {procedure_id} as notified") from exc
    if logger is not None:
        log_event(logger=logger, phase="notify", message="procedure marked as notified", procedure_id=procedure_id)
    return now
