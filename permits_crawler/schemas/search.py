"""Search criteria and crawl result schemas."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from .permit_record import ExtractedPermitRecord


PORTAL_DATE_FORMAT = "%m/%d/%Y"


class SearchCriteria(BaseModel):
    """Date window and record limit for one crawl.

    Parameters
    ----------
    start_date : str
        Inclusive start date in portal format (``MM/DD/YYYY``).
    end_date : Optional[str], default=None
        Inclusive end date in portal format. ``None`` means open-ended.
    record_limit : Optional[int], default=None
        Stop harvesting once this many records were collected.

    Examples
    --------
    >>> SearchCriteria.from_dates(date(2025, 1, 15), date(2025, 1, 15)).start_date
    '01/15/2025'
    """

    start_date: str
    end_date: Optional[str] = None
    record_limit: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def from_dates(cls, start: date, end: Optional[date] = None, record_limit: Optional[int] = None) -> "SearchCriteria":
        return cls(
            start_date=start.strftime(PORTAL_DATE_FORMAT),
            end_date=end.strftime(PORTAL_DATE_FORMAT) if end is not None else None,
            record_limit=record_limit,
        )

    def limit_reached(self, collected: int) -> bool:
        return self.record_limit is not None and collected >= self.record_limit


class ScrapeResult(BaseModel):
    """Envelope returned by the orchestrator for one site crawl.

    Parameters
    ----------
    permits : List[ExtractedPermitRecord]
        Harvested records; empty on failure.
    success : bool
        Whether the crawl completed.
    error : Optional[str], default=None
        Failure description when ``success`` is ``False``.
    scraped_at : datetime
        When the crawl finished.
    """

    permits: List[ExtractedPermitRecord] = Field(default_factory=list)
    success: bool
    error: Optional[str] = None
    scraped_at: datetime = Field(default_factory=datetime.now)

    @classmethod
    def ok(cls, permits: List[ExtractedPermitRecord]) -> "ScrapeResult":
        return cls(permits=permits, success=True)

    @classmethod
    def failed(cls, error: str) -> "ScrapeResult":
        return cls(permits=[], success=False, error=error or "Unknown error")
