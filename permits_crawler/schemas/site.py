"""Site configuration schema.

Every crawl target is a data record: which platform adapter drives it, where
it lives, and which optional behaviours it supports.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .permit_record import PermitStatus


class PlatformType(str, Enum):
    """Vendor platform behind a permit portal."""

    ENERGOV = "energov"
    ACCELA = "accela"


class SiteConfig(BaseModel):
    """Configuration for one permit portal.

    Parameters
    ----------
    site_id : str
        Registry key, e.g. ``"sunnyvale"``.
    city : str
        Jurisdiction city written on every record.
    state : str
        Jurisdiction state written on every record.
    platform : PlatformType
        Selects the adapter implementation.
    base_url : str
        Scheme and host of the portal, used to resolve relative links.
    search_url : str
        Page where a crawl starts.
    app_path_prefix : str, default="/apps/SelfService"
        Application root that hash routes and bare relative links hang off.
    enabled : bool, default=True
        Include the site in "crawl all" runs.
    supports_date_search : bool, default=True
        ``False`` for portals that only serve a recent window; requested
        dates are then replaced by a rolling window ending today.
    rolling_window_days : int, default=30
        Size of that rolling window.
    enrich_details : bool, default=True
        Open every record's detail page for valuation / contractor fields.
    contractor_info_accessible : bool, default=True
        Whether anonymous users may read contractor or licensed-professional
        details; when ``False`` that step of enrichment is skipped.
    issued_date_overrides_status : bool, default=True
        A populated issued-date column forces ``ISSUED``.
    unknown_status_fallback : Optional[PermitStatus], default=None
        Status used instead of ``UNKNOWN`` for unmapped status text.
    detail_interval_ms : int, default=10000
        Pause between consecutive detail page fetches.
    """

    site_id: str
    city: str
    state: str
    platform: PlatformType
    base_url: str
    search_url: str
    app_path_prefix: str = "/apps/SelfService"
    enabled: bool = True
    supports_date_search: bool = True
    rolling_window_days: int = Field(default=30, ge=1)
    enrich_details: bool = True
    contractor_info_accessible: bool = True
    issued_date_overrides_status: bool = True
    unknown_status_fallback: Optional[PermitStatus] = None
    detail_interval_ms: int = Field(default=10000, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def label(self) -> str:
        return f"{self.city}, {self.state}"
