"""Runtime wiring shared by the CLI and the HTTP app."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from gnc_alerts.common.json_logger import JsonLogger, get_logger
from gnc_alerts.config import Config
from gnc_alerts.reconciliation import ALERT_PROCEDURE_CODES, ProbeThrottle
from gnc_alerts.reconciliation.engine import Probe
from gnc_alerts.registry_probe import ProbeSettings, RegistryProbe


@dataclass(frozen=True)
class Services:
    database_url: str
    probe: Probe
    logger: JsonLogger
    tz: ZoneInfo
    throttle: ProbeThrottle = ProbeThrottle()
    procedure_codes: Tuple[str, ...] = ALERT_PROCEDURE_CODES
    run_env: Optional[str] = None


def services_from_config(config: Config, *, logger: JsonLogger | None = None) -> Services:
    logger = logger or get_logger(log_file_path=config.json_log_file or None)
    return Services(
        database_url=config.database_url,
        probe=RegistryProbe(settings=ProbeSettings.from_config(config), logger=logger),
        logger=logger,
        tz=ZoneInfo(config.pipeline_timezone),
        throttle=ProbeThrottle(
            delay_seconds=config.registry_probe_delay_seconds,
            max_domains=config.registry_max_domains_per_run,
        ),
        procedure_codes=tuple(config.alert_procedure_codes),
        run_env=config.run_env,
    )
