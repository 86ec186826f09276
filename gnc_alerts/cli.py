from __future__ import annotations

import argparse
import asyncio
import os
from typing import List, Optional

from gnc_alerts.common.db import dispose_engines
from gnc_alerts.common.errors import (
    PersistenceError,
    ProcedureNotFoundError,
    ValidationFailure,
)
from gnc_alerts.common.json_logger import get_logger, log_event, new_run_id
from gnc_alerts.config import ConfigError, get_config

EXIT_OK = 0
EXIT_PERSISTENCE = 1
EXIT_INVALID = 2


async def _check_async(args: argparse.Namespace) -> int:
    from gnc_alerts.reconciliation import BatchFilters, check_batch, check_procedure
    from gnc_alerts.services import services_from_config

    config = get_config()
    run_id = args.run_id or new_run_id()
    logger = get_logger(run_id=run_id, log_file_path=config.json_log_file or None)
    services = services_from_config(config, logger=logger)
    try:
        if args.command == "check-one":
            result = await check_procedure(
                database_url=services.database_url,
                procedure_id=args.procedure_id,
                probe=services.probe,
                logger=logger,
                tz=services.tz,
            )
            log_event(
                logger=logger,
                phase="cli",
                message="check-one finished",
                procedure_id=result.procedure_id,
                alert_status=result.status.value,
                notes=result.notes,
            )
        else:
            summary = await check_batch(
                database_url=services.database_url,
                filters=BatchFilters(
                    query=args.query or "",
                    month=args.month,
                    date_window=args.date,
                    show_all=args.all,
                ),
                probe=services.probe,
                logger=logger,
                throttle=services.throttle,
                procedure_codes=services.procedure_codes,
                tz=services.tz,
                run_id=run_id,
                run_env=services.run_env,
            )
            log_event(logger=logger, phase="cli", message="check finished", **summary.metrics())
        return EXIT_OK
    finally:
        await dispose_engines()
        logger.close()


def _run_server(args: argparse.Namespace) -> int:
    import uvicorn

    from gnc_alerts.api import create_app

    app = create_app(strict_pickups=args.strict_pickups)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gnc_alerts", description="GNC workshop ENARGAS alerts")
    subparsers = parser.add_subparsers(dest="command", required=True)

    server_parser = subparsers.add_parser("server", help="Serve the HTTP API")
    server_parser.add_argument("--host", default="0.0.0.0")
    server_parser.add_argument("--port", type=int, default=8000)
    server_parser.add_argument(
        "--strict-pickups",
        dest="strict_pickups",
        action="store_true",
        help="Reject pickup actions outside their documented source states",
    )

    check_parser = subparsers.add_parser("check", help="Re-check alert statuses against ENARGAS")
    check_parser.add_argument("--query", type=str, default=None, help="Free-text client/vehicle search")
    check_parser.add_argument("--month", type=str, default=None, help="Creation month YYYY-MM")
    check_parser.add_argument("--date", type=str, default=None, help="Any day YYYY-MM-DD of the creation month")
    check_parser.add_argument("--all", action="store_true", help="Ignore the creation month window")
    check_parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")

    one_parser = subparsers.add_parser("check-one", help="Re-check a single procedure")
    one_parser.add_argument("--procedure-id", dest="procedure_id", required=True)
    one_parser.add_argument("--run-id", dest="run_id", type=str, default=None, help="Override generated run id")

    db_parser = subparsers.add_parser("db", help="Database operations")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)
    upgrade_parser = db_sub.add_parser("upgrade", help="Run Alembic upgrade head")
    upgrade_parser.add_argument("--revision", default="head")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "db" and args.db_command == "upgrade":
        os.environ.setdefault("ALEMBIC_CONFIG", "alembic.ini")
        from gnc_alerts.common.db import run_alembic_upgrade

        run_alembic_upgrade(args.revision)
        return EXIT_OK

    try:
        if args.command == "server":
            return _run_server(args)
        if args.command in {"check", "check-one"}:
            return asyncio.run(_check_async(args))
    except (ConfigError, ValidationFailure, ProcedureNotFoundError) as exc:
        print(f"[gnc_alerts] {exc}", flush=True)
        return EXIT_INVALID
    except PersistenceError as exc:
        print(f"[gnc_alerts] {exc}", flush=True)
        return EXIT_PERSISTENCE
    parser.error("Unknown command")
    return EXIT_INVALID
