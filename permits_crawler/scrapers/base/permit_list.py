"""Base class for platform list scrapers."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, Callable, ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from permits_crawler.configs.settings import CrawlTiming
from permits_crawler.normalizers.status import StatusVocabulary, resolve_status
from permits_crawler.schemas.enrichment import DetailEnrichment
from permits_crawler.schemas.permit_record import ExtractedPermitRecord, PermitStatus
from permits_crawler.schemas.search import SearchCriteria
from permits_crawler.schemas.site import SiteConfig
from permits_crawler.scrapers.base.page_commands import PageCommands
from permits_crawler.scrapers.base.permit_details import PermitDetailsBaseScraper
from permits_crawler.scrapers.base.playwright import BrowserSession
from permits_crawler.scrapers.base.waits import wait_for_framework_ready


ProgressCallback = Callable[[int, int, Optional[int]], None]


class PermitListBaseScraper(ABC, BaseModel):
    """Base class for platform list scrapers.

    One subclass exists per vendor platform; everything site-specific comes
    from :class:`SiteConfig`.

    Parameters
    ----------
    site : SiteConfig
        Portal to crawl.
    timing : CrawlTiming
        Timeouts and delays.
    enricher : Optional[PermitDetailsBaseScraper], default=None
        Detail page enricher, used when ``site.enrich_details`` is set.
    progress_callback : Optional[ProgressCallback], default=None
        Receives ``(kept_inc, dropped_inc, total)`` after every row.
    """

    vocabulary: ClassVar[StatusVocabulary]

    site: SiteConfig
    timing: CrawlTiming = Field(default_factory=CrawlTiming)
    enricher: Optional[PermitDetailsBaseScraper] = None
    progress_callback: Optional[ProgressCallback] = None

    _pages_parsed: int = PrivateAttr(default=0)
    _detail_fetches: int = PrivateAttr(default=0)

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    @property
    def pages_parsed(self) -> int:
        """Result pages parsed by the last :meth:`crawl`."""
        return self._pages_parsed

    @abstractmethod
    async def crawl(self, session: BrowserSession, criteria: SearchCriteria) -> List[ExtractedPermitRecord]:
        """Run the search and harvest every result page.

        Raises
        ------
        SearchSetupError
            When the search form cannot be driven.
        """
        pass

    # ------------------------
    # Shared row handling
    # ------------------------
    def _resolve_status(self, raw_status: Optional[str], issued_date: Optional[str] = None) -> PermitStatus:
        return resolve_status(
            raw_status,
            self.vocabulary,
            issued_date=issued_date,
            issued_date_overrides=self.site.issued_date_overrides_status,
            unknown_fallback=self.site.unknown_status_fallback,
        )

    def _build_record(self, **fields: Any) -> Optional[ExtractedPermitRecord]:
        """Validate a record; invalid ones are logged and dropped."""
        fields.setdefault("city", self.site.city)
        fields.setdefault("state", self.site.state)
        try:
            record = ExtractedPermitRecord(**fields)
        except ValidationError as e:
            logging.warning(
                "%s dropped invalid record %r: %s",
                self.site.site_id,
                fields.get("permit_number"),
                e,
            )
            self.process_progress_callback(0, 1)
            return None
        self.process_progress_callback(1, 0)
        return record

    async def _enrich(self, session: BrowserSession, detail_url: Optional[str]) -> DetailEnrichment:
        """Enrich one record, pausing between consecutive detail fetches."""
        if not self.site.enrich_details or self.enricher is None or not detail_url:
            return DetailEnrichment()
        if self._detail_fetches > 0:
            await session.commands.pause(self.site.detail_interval_ms)
        self._detail_fetches += 1
        try:
            return await self.enricher.enrich(session, detail_url)
        except Exception as e:
            logging.exception("%s enrichment raised for %s: %s", self.site.site_id, detail_url, e)
            return DetailEnrichment()

    async def _settle(self, commands: PageCommands, ms: Optional[int] = None) -> None:
        """Fixed settle delay followed by a framework readiness wait."""
        await commands.pause(self.timing.settle_ms if ms is None else ms)
        await wait_for_framework_ready(
            commands,
            timeout_ms=self.timing.framework_timeout_ms,
            fallback_ms=self.timing.framework_fallback_ms,
            interval_ms=self.timing.poll_interval_ms,
            backoff=self.timing.poll_backoff,
        )

    def _reset(self) -> None:
        self._pages_parsed = 0
        self._detail_fetches = 0

    def process_progress_callback(self, success_inc: int, failed_inc: int, total: Optional[int] = None) -> None:
        """Process the progress callback."""
        if self.progress_callback is not None:
            try:
                self.progress_callback(success_inc, failed_inc, total)
            except Exception as e:
                logging.warning("Progress callback failed: %s", e)
