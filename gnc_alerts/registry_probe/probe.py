"""Single-domain lookup against the ENARGAS "consulta por dominio" form.

One call opens an isolated browser, submits the domain, and reads every
``DD/MM/YYYY`` value it can find. Extraction runs an ordered list of
strategies (result table cells first, then the whole page text) so markup
drift on the registry side degrades to the next strategy instead of failing.

Outcomes:

* a date was found -> ``last_operation_date`` holds the most recent one;
* no date anywhere -> ``last_operation_date`` is ``None`` and ``error`` is
  ``None`` (the registry has no record for the domain);
* navigation/launch/markup failure -> ``error`` holds the message.

The browser is closed before returning on every path. Retries and pacing
belong to the caller.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError, async_playwright

from gnc_alerts.common.json_logger import JsonLogger, log_event

from . import page_selectors
from .browser import launch_browser
from .dates import extract_date_matches, registry_date_to_date, select_most_recent

if TYPE_CHECKING:  # pragma: no cover
    from gnc_alerts.config import Config

ENARGAS_URL = "https://www.enargas.gob.ar/secciones/gas-natural-comprimido/consulta-dominio.php"
REGISTRY_SOURCE = "ENARGAS"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
DIAGNOSTIC_SAMPLE_SIZE = 6


def normalize_domain(domain: str) -> str:
    return re.sub(r"\s+", "", domain or "").upper()


@dataclass(frozen=True)
class ProbeSettings:
    lookup_url: str = ENARGAS_URL
    nav_timeout_ms: int = 40_000
    selector_timeout_ms: int = 12_000
    results_timeout_ms: int = 10_000
    settle_ms: int = 1_200
    headless: bool = True
    browser_backend: str = "bundled_chromium"
    chrome_executable: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "es-AR"

    @classmethod
    def from_config(cls, config: Config) -> "ProbeSettings":
        return cls(
            lookup_url=config.registry_lookup_url,
            nav_timeout_ms=config.registry_nav_timeout_ms,
            headless=config.registry_headless,
            browser_backend=config.registry_browser_backend,
            chrome_executable=config.browser_chrome_executable or None,
        )


@dataclass
class ProbeResult:
    domain: str
    last_operation_date: Optional[str]
    source: str = REGISTRY_SOURCE
    error: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.last_operation_date)


@dataclass(frozen=True)
class DateExtractor:
    """Named source of raw text that may contain registry dates."""

    name: str
    collect: Callable[[Page], Awaitable[List[str]]]


async def _table_cell_texts(page: Page) -> List[str]:
    return [text.strip() for text in await page.locator(page_selectors.RESULT_CELLS).all_text_contents()]


async def _page_body_text(page: Page) -> List[str]:
    return [await page.text_content(page_selectors.PAGE_BODY) or ""]


DEFAULT_EXTRACTORS: Tuple[DateExtractor, ...] = (
    DateExtractor(name="table_cells", collect=_table_cell_texts),
    DateExtractor(name="page_text", collect=_page_body_text),
)


async def extract_dates(
    page: Page,
    extractors: Sequence[DateExtractor],
    *,
    logger: JsonLogger,
    domain: str,
) -> Tuple[Optional[str], List[str]]:
    """Run extractors in order; return ``(strategy_name, matches)`` of the first hit.

    Only real calendar dates count as matches.

    A strategy that raises is skipped; if every strategy raised the last error
    propagates so the caller reports a probe failure instead of "no record".
    """

    failures: List[Exception] = []
    for extractor in extractors:
        try:
            texts = await extractor.collect(page)
        except Exception as exc:
            failures.append(exc)
            log_event(
                logger=logger,
                phase="probe_extract",
                status="warn",
                message="date extraction strategy failed",
                domain=domain,
                strategy=extractor.name,
                error=str(exc),
            )
            continue
        # placeholders such as 00/00/0000 do not count as a hit
        matches = [
            match
            for text in texts
            for match in extract_date_matches(text)
            if registry_date_to_date(match) is not None
        ]
        if matches:
            return extractor.name, matches
    if failures and len(failures) == len(extractors):
        raise failures[-1]
    return None, []


async def _best_effort(awaitable: Awaitable[Any]) -> None:
    try:
        await awaitable
    except PlaywrightTimeoutError:
        pass


async def _submit_lookup(page: Page, domain: str, settings: ProbeSettings) -> None:
    await page.goto(settings.lookup_url, wait_until="domcontentloaded", timeout=settings.nav_timeout_ms)
    await page.wait_for_selector(page_selectors.DOMAIN_INPUT, timeout=settings.selector_timeout_ms)
    await page.fill(page_selectors.DOMAIN_INPUT, domain)
    await page.click(page_selectors.SUBMIT_BUTTON)
    await _best_effort(page.wait_for_load_state("networkidle", timeout=settings.selector_timeout_ms))
    await page.wait_for_timeout(settings.settle_ms)
    await _best_effort(page.wait_for_selector(page_selectors.RESULT_ROWS, timeout=settings.results_timeout_ms))


async def _sample_texts(page: Page, selector: str) -> List[str]:
    try:
        texts = await page.locator(selector).all_text_contents()
    except Exception:
        return []
    cleaned = [re.sub(r"\s+", " ", text).strip() for text in texts]
    return [text for text in cleaned if text][:DIAGNOSTIC_SAMPLE_SIZE]


async def _log_no_record(page: Page, *, domain: str, logger: JsonLogger) -> None:
    log_event(
        logger=logger,
        phase="probe",
        status="warn",
        message="registry returned no operation date",
        domain=domain,
        rows=await _sample_texts(page, page_selectors.RESULT_ROWS),
        notices=await _sample_texts(page, page_selectors.NOTICE_BOXES),
    )


async def fetch_last_operation_date(
    domain: str,
    *,
    settings: ProbeSettings | None = None,
    logger: JsonLogger,
    playwright_factory: Callable[[], Any] = async_playwright,
    extractors: Sequence[DateExtractor] = DEFAULT_EXTRACTORS,
) -> ProbeResult:
    settings = settings or ProbeSettings()
    normalized = normalize_domain(domain)
    browser = None
    try:
        async with playwright_factory() as playwright:
            browser = await launch_browser(playwright=playwright, settings=settings, logger=logger)
            try:
                context = await browser.new_context(user_agent=settings.user_agent, locale=settings.locale)
                page = await context.new_page()
                await _submit_lookup(page, normalized, settings)
                strategy, matches = await extract_dates(page, extractors, logger=logger, domain=normalized)
                latest = select_most_recent(matches)
                if latest is None:
                    await _log_no_record(page, domain=normalized, logger=logger)
                    return ProbeResult(domain=normalized, last_operation_date=None)
                log_event(
                    logger=logger,
                    phase="probe",
                    message="registry operation date found",
                    domain=normalized,
                    last_operation_date=latest,
                    strategy=strategy,
                    matches=len(matches),
                )
                return ProbeResult(domain=normalized, last_operation_date=latest, strategy=strategy)
            finally:
                try:
                    await browser.close()
                except Exception as exc:
                    log_event(
                        logger=logger,
                        phase="probe",
                        status="warn",
                        message="browser close failed",
                        domain=normalized,
                        error=str(exc),
                    )
    except Exception as exc:
        error = str(exc) or exc.__class__.__name__
        log_event(
            logger=logger,
            phase="probe",
            status="error",
            message="registry lookup failed",
            domain=normalized,
            error=error,
            browser_started=browser is not None,
        )
        return ProbeResult(domain=normalized, last_operation_date=None, error=error)


class RegistryProbe:
    """Callable binding settings and logger, as consumed by the reconciliation engine."""

    def __init__(
        self,
        *,
        settings: ProbeSettings | None = None,
        logger: JsonLogger,
        playwright_factory: Callable[[], Any] = async_playwright,
        extractors: Sequence[DateExtractor] = DEFAULT_EXTRACTORS,
    ) -> None:
        self.settings = settings or ProbeSettings()
        self.logger = logger
        self.playwright_factory = playwright_factory
        self.extractors = tuple(extractors)

    async def __call__(self, domain: str) -> ProbeResult:
        return await fetch_last_operation_date(
            domain,
            settings=self.settings,
            logger=self.logger.bind(component="registry_probe"),
            playwright_factory=self.playwright_factory,
            extractors=self.extractors,
        )
