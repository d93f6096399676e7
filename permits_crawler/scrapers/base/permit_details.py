"""Base class for detail page enrichers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from permits_crawler.configs.settings import CrawlTiming
from permits_crawler.exceptions import DetailPageBlockedError
from permits_crawler.schemas.enrichment import DetailEnrichment
from permits_crawler.schemas.site import SiteConfig
from permits_crawler.scrapers.base.page_commands import PageCommands
from permits_crawler.scrapers.base.playwright import BrowserSession


def resolve_detail_url(url: str, base_url: str, app_path_prefix: str = "") -> str:
    """Make a detail link absolute.

    Parameters
    ----------
    url : str
        Link as found in the result list.
    base_url : str
        Portal scheme and host.
    app_path_prefix : str, default=""
        Application root for hash routes and bare relative links.

    Returns
    -------
    str
        Absolute URL.

    Examples
    --------
    >>> resolve_detail_url("#/permit/abc", "https://x.gov", "/apps/SelfService")
    'https://x.gov/apps/SelfService#/permit/abc'
    >>> resolve_detail_url("/apps/SelfService#/permit/abc", "https://x.gov", "/apps/SelfService")
    'https://x.gov/apps/SelfService#/permit/abc'
    >>> resolve_detail_url("permit/abc", "https://x.gov", "/apps/SelfService")
    'https://x.gov/apps/SelfService/permit/abc'
    """
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    base = base_url.rstrip("/")
    prefix = app_path_prefix.rstrip("/")
    if url.startswith("#"):
        return f"{base}{prefix}{url}"
    if url.startswith("/"):
        return f"{base}{url}"
    return f"{base}{prefix}/{url}"


class PermitDetailsBaseScraper(ABC, BaseModel):
    """Base class for detail page enrichers.

    :meth:`enrich` owns the tab lifecycle and the failure policy: the tab is
    always closed and any exception becomes an empty
    :class:`DetailEnrichment`. Subclasses only implement :meth:`_extract`.

    Parameters
    ----------
    site : SiteConfig
        Portal being crawled.
    timing : CrawlTiming
        Timeouts and delays.
    """

    site: SiteConfig
    timing: CrawlTiming = Field(default_factory=CrawlTiming)

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    def resolve_url(self, url: str) -> str:
        return resolve_detail_url(url, self.site.base_url, self.site.app_path_prefix)

    async def enrich(self, session: BrowserSession, detail_url: Optional[str]) -> DetailEnrichment:
        """Open ``detail_url`` in its own tab and scrape supplementary fields.

        Parameters
        ----------
        session : BrowserSession
            Session providing the isolated tab.
        detail_url : Optional[str]
            Absolute or relative detail link.

        Returns
        -------
        DetailEnrichment
            Extracted fields; all empty when anything went wrong.
        """
        if not detail_url:
            return DetailEnrichment()
        url = self.resolve_url(detail_url)
        try:
            async with session.open_tab() as tab:
                return await self._extract(tab, url)
        except DetailPageBlockedError as e:
            logging.warning("%s detail page blocked: %s", self.site.site_id, e)
        except Exception as e:
            logging.exception("%s detail enrichment failed for %s: %s", self.site.site_id, url, e)
        return DetailEnrichment()

    async def _open(self, tab: PageCommands, url: str) -> None:
        """Navigate ``tab`` to ``url``; raise when the portal answers 403."""
        status = await tab.goto(url, timeout_ms=self.timing.navigation_timeout_ms)
        if status == 403:
            raise DetailPageBlockedError(f"HTTP 403 for {url}")

    async def _raise_if_forbidden(self, tab: PageCommands, url: str) -> None:
        """Some portals answer 200 with a forbidden page body."""
        html = await tab.content()
        if "403 forbidden" in html.lower():
            raise DetailPageBlockedError(f"Forbidden page content for {url}")

    @abstractmethod
    async def _extract(self, tab: PageCommands, url: str) -> DetailEnrichment:
        """Navigate ``tab`` to ``url`` and extract the enrichment fields."""
        pass
