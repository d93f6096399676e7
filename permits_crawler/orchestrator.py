"""Per-site crawl orchestration.

:class:`CrawlOrchestrator` owns the browser lifecycle of one crawl, resolves
the search window for the site, runs the platform scraper and wraps the
outcome in a :class:`ScrapeResult`. It never raises past :meth:`scrape`.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta
import logging
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from permits_crawler.configs.settings import CrawlTiming, app_config
from permits_crawler.normalizers.dates import coerce_date
from permits_crawler.schemas.search import ScrapeResult, SearchCriteria
from permits_crawler.schemas.site import SiteConfig
from permits_crawler.scrapers.base.permit_list import ProgressCallback
from permits_crawler.scrapers.base.playwright import BrowserSession
from permits_crawler.sites.registry import build_scraper


DateInput = Union[date, datetime, str, None]
SessionFactory = Callable[[], BrowserSession]


def build_search_criteria(
    site: SiteConfig,
    record_limit: Optional[int] = None,
    start_date: DateInput = None,
    end_date: DateInput = None,
    today: Optional[date] = None,
) -> SearchCriteria:
    """Resolve the search window for one crawl.

    Rules
    -----
    - Sites without date search crawl ``rolling_window_days`` ending today;
      requested dates are ignored.
    - Neither date given: today for both.
    - Only a start date: open-ended search.
    - Only an end date: a single-day search on that date.

    Raises
    ------
    ValueError
        On unparseable dates or a start date after the end date.

    Examples
    --------
    >>> site = SiteConfig(site_id="x", city="X", state="CA", platform="energov",
    ...                   base_url="https://x", search_url="https://x/s")
    >>> build_search_criteria(site, today=date(2025, 1, 15)).end_date
    '01/15/2025'
    """
    today = today or date.today()

    if not site.supports_date_search:
        if start_date is not None or end_date is not None:
            logging.info(
                "%s only serves a rolling window; ignoring requested dates %s - %s",
                site.site_id,
                start_date,
                end_date,
            )
        start = today - timedelta(days=site.rolling_window_days)
        return SearchCriteria.from_dates(start, today, record_limit)

    start = coerce_date(start_date)
    end = coerce_date(end_date)
    if start is None and end is None:
        start = end = today
    elif start is None:
        start = end
    if end is not None and start > end:
        raise ValueError(f"start_date {start} is after end_date {end}")
    return SearchCriteria.from_dates(start, end, record_limit)


class CrawlOrchestrator(BaseModel):
    """Run one site crawl from browser launch to result envelope.

    Parameters
    ----------
    timing : CrawlTiming
        Timeouts and delays handed to the scrapers.
    headless : bool
        Headless flag for the default browser session.
    block_resources : bool
        Resource blocking flag for the default browser session.
    session_factory : Optional[SessionFactory], default=None
        Builds the (not yet started) browser session. Defaults to
        :class:`BrowserSession`.
    progress_callback : Optional[ProgressCallback], default=None
        Forwarded to the list scraper.

    Examples
    --------
    >>> from permits_crawler.sites.registry import get_site
    >>> result = CrawlOrchestrator().scrape_sync(get_site("sunnyvale"), record_limit=5)
    >>> result.success
    True
    """

    timing: CrawlTiming = Field(default_factory=lambda: CrawlTiming.from_settings(app_config))
    headless: bool = app_config.HEADLESS
    block_resources: bool = app_config.BLOCK_RESOURCES
    session_factory: Optional[SessionFactory] = None
    progress_callback: Optional[ProgressCallback] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def set_headless(self, value: bool) -> None:
        self.headless = value

    def _new_session(self) -> BrowserSession:
        if self.session_factory is not None:
            return self.session_factory()
        return BrowserSession(headless=self.headless, block_resources=self.block_resources)

    async def scrape(
        self,
        site: SiteConfig,
        record_limit: Optional[int] = None,
        start_date: DateInput = None,
        end_date: DateInput = None,
    ) -> ScrapeResult:
        """Crawl ``site`` and return its permits.

        Parameters
        ----------
        site : SiteConfig
            Portal to crawl.
        record_limit : Optional[int], default=None
            Stop after this many records.
        start_date, end_date : date | datetime | str | None
            Search window; see :func:`build_search_criteria`.

        Returns
        -------
        ScrapeResult
            ``success=False`` with an error message on any failure; records
            gathered before the failure are discarded.
        """
        session: Optional[BrowserSession] = None
        try:
            criteria = build_search_criteria(site, record_limit, start_date, end_date)
            scraper = build_scraper(site, self.timing, self.progress_callback)
            session = self._new_session()
            await session.start()
            permits = await scraper.crawl(session, criteria)
            logging.info("%s scrape succeeded with %s permits", site.site_id, len(permits))
            return ScrapeResult.ok(permits)
        except Exception as e:
            logging.exception("%s scrape failed: %s", site.site_id, e)
            return ScrapeResult.failed(str(e) or type(e).__name__)
        finally:
            if session is not None:
                try:
                    await session.close()
                except Exception as e:
                    logging.warning("%s failed to close browser session: %s", site.site_id, e)

    def scrape_sync(
        self,
        site: SiteConfig,
        record_limit: Optional[int] = None,
        start_date: DateInput = None,
        end_date: DateInput = None,
    ) -> ScrapeResult:
        """Blocking wrapper around :meth:`scrape`."""
        try:
            return asyncio.run(self.scrape(site, record_limit, start_date, end_date))
        except RuntimeError as exc:
            if "asyncio.run() cannot be called from a running event loop" in str(exc):
                raise RuntimeError(
                    "scrape_sync() cannot be called from an active event loop; "
                    "use `await scrape(site)` instead."
                ) from exc
            raise
