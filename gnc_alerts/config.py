"""
CONFIG.PY : SINGLE SOURCE OF TRUTH (SSOT)

This module is the ONLY place allowed to:
- Read environment variables (apart from the timezone helper in common.date_utils
  and the alembic bootstrap in common.db / cli)
- Query the system_config table

ALL REQUIRED VARIABLES MUST EXIST: NO DEFAULTS.
If any variable (env or DB) is missing or invalid, the system MUST fail early.

Config is loaded ONCE, on first use, and cached in a single in-memory Config
object. Core modules never import it; entrypoints (CLI, API factory) read it
and pass explicit values down.

    from gnc_alerts.config import get_config
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, TypeVar

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(PROJECT_ROOT / ".env")

logger = logging.getLogger(__name__)

ENV_ONLY_KEYS = [
    "RUN_ENV",
    "PIPELINE_TIMEZONE",
    "DATABASE_URL",
    "ALEMBIC_CONFIG",
    "JSON_LOG_FILE",
    "BROWSER_CHROME_EXECUTABLE",
]

# Env keys whose value may legitimately be blank (feature switched off).
OPTIONAL_BLANK_ENV_KEYS = {"JSON_LOG_FILE", "BROWSER_CHROME_EXECUTABLE"}

REQUIRED_DB_KEYS = [
    "REGISTRY_LOOKUP_URL",
    "REGISTRY_NAV_TIMEOUT_MS",
    "REGISTRY_PROBE_DELAY_MS",
    "REGISTRY_MAX_DOMAINS_PER_RUN",
    "REGISTRY_HEADLESS",
    "REGISTRY_BROWSER_BACKEND",
    "ALERT_PROCEDURE_CODES",
]

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _require_env(key: str) -> str:
    value = os.getenv(key)
    if value is None:
        message = f"Missing required environment variable: {key}"
        logger.error(message)
        raise ConfigError(message)
    stripped = value.strip()
    if not stripped and key not in OPTIONAL_BLANK_ENV_KEYS:
        message = f"Environment variable {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _load_env_values() -> Dict[str, str]:
    return {key: _require_env(key) for key in ENV_ONLY_KEYS}


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    message = f"Config key {key} must be a boolean string; got {value!r}"
    logger.error(message)
    raise ConfigError(message)


def _parse_int(value: str, *, key: str, minimum: int = 0) -> int:
    try:
        parsed = int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if parsed < minimum:
        message = f"Config key {key} must be >= {minimum}; got {parsed}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    tokens = re.split(r"[,\n]", value)
    return [token.strip() for token in tokens if token and token.strip()]


def _clean_url(value: str, *, key: str) -> str:
    stripped = value.strip().rstrip("/")
    if not stripped:
        message = f"Config key {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


def _clean_text(value: str, *, key: str) -> str:
    stripped = value.strip()
    if not stripped:
        message = f"Config key {key} cannot be blank"
        logger.error(message)
        raise ConfigError(message)
    return stripped


T = TypeVar("T")


def _run_async_blocking(task_factory: Callable[[], Awaitable[T]]) -> T:
    result: dict[str, Any] = {}

    def _runner() -> None:
        try:
            result["value"] = asyncio.run(task_factory())
        except BaseException as exc:  # pragma: no cover - re-raised in caller
            result["error"] = exc

    thread = threading.Thread(target=_runner, name="config-db-loader", daemon=True)
    thread.start()
    thread.join()

    if "error" in result:
        raise result["error"]
    return result["value"]


async def _fetch_system_config_async(database_url: str) -> Dict[str, str]:
    engine: AsyncEngine | None = None
    try:
        engine = create_async_engine(database_url, future=True)
        async with engine.connect() as connection:
            rows = await connection.execute(
                text("SELECT key, value FROM system_config WHERE is_active = TRUE")
            )
            return {row.key: row.value for row in rows}
    except SQLAlchemyError as exc:
        message = "Unable to load configuration from system_config"
        logger.exception(message)
        raise ConfigError(message) from exc
    finally:
        if engine is not None:
            await engine.dispose()


def _load_system_config(database_url: str) -> Dict[str, str]:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_fetch_system_config_async(database_url))
    else:
        return _run_async_blocking(lambda: _fetch_system_config_async(database_url))


@dataclass(slots=True, frozen=True)
class Config:
    run_env: str
    pipeline_timezone: str
    database_url: str
    alembic_config: str
    json_log_file: str
    browser_chrome_executable: str

    registry_lookup_url: str
    registry_nav_timeout_ms: int
    registry_probe_delay_ms: int
    registry_max_domains_per_run: int
    registry_headless: bool
    registry_browser_backend: str
    alert_procedure_codes: list[str]

    @property
    def registry_probe_delay_seconds(self) -> float:
        return self.registry_probe_delay_ms / 1000

    @classmethod
    def load_from_env_and_db(cls) -> Config:
        env_values = _load_env_values()
        database_url = env_values["DATABASE_URL"]
        db_values = _load_system_config(database_url)

        missing = [key for key in REQUIRED_DB_KEYS if key not in db_values]
        if missing:
            message = f"Missing required system_config keys: {', '.join(sorted(missing))}"
            logger.error(message)
            raise ConfigError(message)

        alert_procedure_codes = [
            code.upper() for code in _parse_list(db_values["ALERT_PROCEDURE_CODES"])
        ]
        if not alert_procedure_codes:
            message = "Config key ALERT_PROCEDURE_CODES must list at least one procedure code"
            logger.error(message)
            raise ConfigError(message)

        return cls(
            run_env=env_values["RUN_ENV"],
            pipeline_timezone=env_values["PIPELINE_TIMEZONE"],
            database_url=database_url,
            alembic_config=env_values["ALEMBIC_CONFIG"],
            json_log_file=env_values["JSON_LOG_FILE"],
            browser_chrome_executable=env_values["BROWSER_CHROME_EXECUTABLE"],
            registry_lookup_url=_clean_url(db_values["REGISTRY_LOOKUP_URL"], key="REGISTRY_LOOKUP_URL"),
            registry_nav_timeout_ms=_parse_int(
                db_values["REGISTRY_NAV_TIMEOUT_MS"], key="REGISTRY_NAV_TIMEOUT_MS", minimum=1
            ),
            registry_probe_delay_ms=_parse_int(
                db_values["REGISTRY_PROBE_DELAY_MS"], key="REGISTRY_PROBE_DELAY_MS"
            ),
            registry_max_domains_per_run=_parse_int(
                db_values["REGISTRY_MAX_DOMAINS_PER_RUN"], key="REGISTRY_MAX_DOMAINS_PER_RUN", minimum=1
            ),
            registry_headless=_parse_bool(db_values["REGISTRY_HEADLESS"], key="REGISTRY_HEADLESS"),
            registry_browser_backend=_clean_text(
                db_values["REGISTRY_BROWSER_BACKEND"], key="REGISTRY_BROWSER_BACKEND"
            ),
            alert_procedure_codes=alert_procedure_codes,
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.load_from_env_and_db()
