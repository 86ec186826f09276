from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict

from playwright.async_api import Browser

from gnc_alerts.common.json_logger import JsonLogger, log_event

if TYPE_CHECKING:  # pragma: no cover
    from .probe import ProbeSettings

LAUNCH_ARGS = ["--disable-blink-features=AutomationControlled"]


async def launch_browser(*, playwright: Any, settings: ProbeSettings, logger: JsonLogger) -> Browser:
    backend = (settings.browser_backend or "").lower()
    chrome_exec = (settings.chrome_executable or "").strip() or None
    headless = settings.headless
    launch_kwargs: Dict[str, Any] = {"headless": headless, "args": list(LAUNCH_ARGS)}

    if backend == "local_chrome":
        if chrome_exec and Path(chrome_exec).is_file():
            launch_kwargs["executable_path"] = chrome_exec
            log_event(
                logger=logger,
                phase="probe_init",
                message="Launching Playwright with local Chrome executable",
                backend=backend,
                executable_path=chrome_exec,
                headless=headless,
            )
        else:
            log_event(
                logger=logger,
                phase="probe_init",
                status="warn",
                message="Configured local Chrome executable missing; falling back to bundled Chromium",
                backend=backend,
                executable_path=chrome_exec,
                headless=headless,
            )
    else:
        log_event(
            logger=logger,
            phase="probe_init",
            message="Launching Playwright with bundled Chromium",
            backend=backend or "bundled_chromium",
            headless=headless,
        )

    try:
        return await playwright.chromium.launch(**launch_kwargs)
    except Exception as exc:
        if launch_kwargs.pop("executable_path", None) is not None:
            log_event(
                logger=logger,
                phase="probe_init",
                status="warn",
                message="Local Chrome launch failed; retrying with bundled Chromium",
                backend=backend,
                executable_path=chrome_exec,
                headless=headless,
                error=str(exc),
            )
            return await playwright.chromium.launch(**launch_kwargs)
        raise
