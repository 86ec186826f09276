import sqlite3
from pathlib import Path

import pytest

from gnc_alerts.config import Config, ConfigError


REQUIRED_ENV_KEYS = [
    "RUN_ENV",
    "PIPELINE_TIMEZONE",
    "DATABASE_URL",
    "ALEMBIC_CONFIG",
    "JSON_LOG_FILE",
    "BROWSER_CHROME_EXECUTABLE",
]


def _base_rows() -> dict[str, str]:
    return {
        "REGISTRY_LOOKUP_URL": "https://www.enargas.gob.ar/secciones/gas-natural-comprimido/consulta-dominio.php/",
        "REGISTRY_NAV_TIMEOUT_MS": "30000",
        "REGISTRY_PROBE_DELAY_MS": "350",
        "REGISTRY_MAX_DOMAINS_PER_RUN": "200",
        "REGISTRY_HEADLESS": "true",
        "REGISTRY_BROWSER_BACKEND": "bundled_chromium",
        "ALERT_PROCEDURE_CODES": "renovacion_oblea, PRUEBA_HIDRAULICA",
    }


def _write_system_config(db_path: Path, rows: dict[str, str], *, inactive: set[str] | None = None) -> None:
    if db_path.exists():
        db_path.unlink()
    conn = sqlite3.connect(db_path)
    conn.execute(
        """
        CREATE TABLE system_config (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            key TEXT NOT NULL UNIQUE,
            value TEXT NOT NULL,
            description TEXT,
            is_active BOOLEAN NOT NULL DEFAULT 1,
            created_at TEXT DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
    )
    for key, value in rows.items():
        conn.execute(
            "INSERT INTO system_config (key, value, description, is_active) VALUES (?, ?, ?, ?)",
            (key, value, f"test value for {key}", 0 if key in (inactive or set()) else 1),
        )
    conn.commit()
    conn.close()


def _set_env(monkeypatch: pytest.MonkeyPatch, overrides: dict[str, str]) -> None:
    defaults = {
        "RUN_ENV": "test",
        "PIPELINE_TIMEZONE": "America/Argentina/Buenos_Aires",
        "ALEMBIC_CONFIG": "alembic.ini",
        "JSON_LOG_FILE": "",
        "BROWSER_CHROME_EXECUTABLE": "",
    }
    defaults.update(overrides)
    missing = [key for key in REQUIRED_ENV_KEYS if key not in defaults]
    if missing:
        raise AssertionError(f"Missing env defaults for: {missing}")
    for key, value in defaults.items():
        monkeypatch.setenv(key, value)


def _prepare(monkeypatch, tmp_path, rows: dict[str, str], **env) -> None:
    db_path = tmp_path / "config.sqlite"
    _write_system_config(db_path, rows)
    _set_env(monkeypatch, {"DATABASE_URL": f"sqlite+aiosqlite:///{db_path}", **env})


def test_config_loads_expected_values(monkeypatch, tmp_path):
    log_file = tmp_path / "logs" / "test.jsonl"
    _prepare(
        monkeypatch,
        tmp_path,
        _base_rows(),
        JSON_LOG_FILE=str(log_file),
        BROWSER_CHROME_EXECUTABLE="/usr/bin/google-chrome",
    )

    cfg = Config.load_from_env_and_db()

    assert cfg.run_env == "test"
    assert cfg.pipeline_timezone == "America/Argentina/Buenos_Aires"
    assert cfg.json_log_file == str(log_file)
    assert cfg.browser_chrome_executable == "/usr/bin/google-chrome"
    assert cfg.registry_lookup_url.endswith("consulta-dominio.php")
    assert cfg.registry_nav_timeout_ms == 30000
    assert cfg.registry_probe_delay_seconds == pytest.approx(0.35)
    assert cfg.registry_max_domains_per_run == 200
    assert cfg.registry_headless is True
    assert cfg.alert_procedure_codes == ["RENOVACION_OBLEA", "PRUEBA_HIDRAULICA"]


def test_optional_env_values_may_be_blank(monkeypatch, tmp_path):
    _prepare(monkeypatch, tmp_path, _base_rows())

    cfg = Config.load_from_env_and_db()

    assert cfg.json_log_file == ""
    assert cfg.browser_chrome_executable == ""


def test_missing_env_variable_raises(monkeypatch, tmp_path):
    _prepare(monkeypatch, tmp_path, _base_rows())
    monkeypatch.delenv("RUN_ENV")

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_blank_required_env_variable_raises(monkeypatch, tmp_path):
    _prepare(monkeypatch, tmp_path, _base_rows(), PIPELINE_TIMEZONE="   ")

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_missing_system_config_key(monkeypatch, tmp_path):
    rows = _base_rows()
    rows.pop("REGISTRY_LOOKUP_URL")
    _prepare(monkeypatch, tmp_path, rows)

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_inactive_system_config_key_counts_as_missing(monkeypatch, tmp_path):
    db_path = tmp_path / "config.sqlite"
    _write_system_config(db_path, _base_rows(), inactive={"REGISTRY_HEADLESS"})
    _set_env(monkeypatch, {"DATABASE_URL": f"sqlite+aiosqlite:///{db_path}"})

    with pytest.raises(ConfigError, match="REGISTRY_HEADLESS"):
        Config.load_from_env_and_db()


def test_invalid_integer_value(monkeypatch, tmp_path):
    rows = _base_rows()
    rows["REGISTRY_MAX_DOMAINS_PER_RUN"] = "abc"
    _prepare(monkeypatch, tmp_path, rows)

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_probe_limit_must_be_positive(monkeypatch, tmp_path):
    rows = _base_rows()
    rows["REGISTRY_MAX_DOMAINS_PER_RUN"] = "0"
    _prepare(monkeypatch, tmp_path, rows)

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_invalid_boolean_value(monkeypatch, tmp_path):
    rows = _base_rows()
    rows["REGISTRY_HEADLESS"] = "maybe"
    _prepare(monkeypatch, tmp_path, rows)

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_empty_procedure_code_list(monkeypatch, tmp_path):
    rows = _base_rows()
    rows["ALERT_PROCEDURE_CODES"] = " , "
    _prepare(monkeypatch, tmp_path, rows)

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_unreachable_config_table(monkeypatch, tmp_path):
    empty_db = tmp_path / "empty.sqlite"
    sqlite3.connect(empty_db).close()
    _set_env(monkeypatch, {"DATABASE_URL": f"sqlite+aiosqlite:///{empty_db}"})

    with pytest.raises(ConfigError):
        Config.load_from_env_and_db()


def test_os_getenv_usage_restricted():
    repo_root = Path(__file__).resolve().parents[1]
    package_root = repo_root / "gnc_alerts"
    allowed = {
        package_root / "config.py",
        package_root / "cli.py",
        package_root / "common" / "db.py",
        package_root / "common" / "date_utils.py",
        repo_root / "alembic" / "env.py",
    }
    offenders: list[Path] = []
    for path in list(package_root.rglob("*.py")) + list((repo_root / "alembic").rglob("*.py")):
        if path in allowed:
            continue
        text = path.read_text(encoding="utf-8")
        if "os.getenv" in text or "os.environ" in text:
            offenders.append(path)
    assert offenders == []
