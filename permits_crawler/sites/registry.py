"""Site registry: which adapter crawls which portal."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple, Type

from permits_crawler.configs.settings import CrawlTiming
from permits_crawler.schemas.permit_record import PermitStatus
from permits_crawler.schemas.site import PlatformType, SiteConfig
from permits_crawler.scrapers.base.permit_details import PermitDetailsBaseScraper
from permits_crawler.scrapers.base.permit_list import PermitListBaseScraper, ProgressCallback
from permits_crawler.scrapers.platforms.accela.permit_details import AccelaPermitDetailsScraper
from permits_crawler.scrapers.platforms.accela.permits_list import AccelaPermitScraper
from permits_crawler.scrapers.platforms.energov.permit_details import EnerGovPermitDetailsScraper
from permits_crawler.scrapers.platforms.energov.permits_list import EnerGovPermitScraper


SITES: List[SiteConfig] = [
    SiteConfig(
        site_id="sunnyvale",
        city="Sunnyvale",
        state="CA",
        platform=PlatformType.ENERGOV,
        base_url="https://sunnyvaleca-energovpub.tylerhost.net",
        search_url="https://sunnyvaleca-energovpub.tylerhost.net/apps/SelfService#/search",
        app_path_prefix="/apps/SelfService",
        # Anonymous users get 403 on the contractor panel.
        contractor_info_accessible=False,
        unknown_status_fallback=PermitStatus.IN_REVIEW,
        detail_interval_ms=10000,
    ),
    SiteConfig(
        site_id="gilroy",
        city="Gilroy",
        state="CA",
        platform=PlatformType.ENERGOV,
        base_url="https://gilroyca-energovweb.tylerhost.net",
        search_url="https://gilroyca-energovweb.tylerhost.net/apps/selfservice#/search",
        app_path_prefix="/apps/selfservice",
        contractor_info_accessible=True,
        unknown_status_fallback=PermitStatus.IN_REVIEW,
        detail_interval_ms=10000,
    ),
    SiteConfig(
        site_id="los_gatos",
        city="Los Gatos",
        state="CA",
        platform=PlatformType.ACCELA,
        base_url="https://aca-prod.accela.com",
        search_url="https://aca-prod.accela.com/TLG/Cap/CapHome.aspx?module=Building&TabName=HOME",
        app_path_prefix="/TLG/Cap",
        contractor_info_accessible=True,
        detail_interval_ms=500,
    ),
    SiteConfig(
        site_id="oakland",
        city="Oakland",
        state="CA",
        platform=PlatformType.ACCELA,
        base_url="https://aca-prod.accela.com",
        search_url="https://aca-prod.accela.com/OAKL/Cap/CapHome.aspx",
        app_path_prefix="/OAKL/Cap",
        enabled=False,
        contractor_info_accessible=True,
        detail_interval_ms=500,
    ),
]

PLATFORM_SCRAPERS: Dict[PlatformType, Tuple[Type[PermitListBaseScraper], Type[PermitDetailsBaseScraper]]] = {
    PlatformType.ENERGOV: (EnerGovPermitScraper, EnerGovPermitDetailsScraper),
    PlatformType.ACCELA: (AccelaPermitScraper, AccelaPermitDetailsScraper),
}


def _normalize_site_id(site_id: str) -> str:
    return site_id.lower().strip().replace(" ", "_").replace("-", "_")


def list_sites() -> List[SiteConfig]:
    return list(SITES)


def enabled_sites() -> List[SiteConfig]:
    """Sites included in "crawl all" runs."""
    return [s for s in SITES if s.enabled]


def get_site(site_id: str) -> SiteConfig:
    """Look up a site by id (case, spaces and dashes are ignored).

    Raises
    ------
    ValueError
        If no site matches.
    """
    key = _normalize_site_id(site_id)
    for site in SITES:
        if site.site_id == key:
            return site
    msg = f"No site configured for site_id={site_id!r}."
    logging.error(msg)
    raise ValueError(msg)


def build_scraper(
    site: SiteConfig,
    timing: Optional[CrawlTiming] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> PermitListBaseScraper:
    """Instantiate the list scraper for ``site`` with its detail enricher attached.

    Raises
    ------
    ValueError
        If the site's platform has no adapter.
    """
    timing = timing or CrawlTiming()
    classes = PLATFORM_SCRAPERS.get(site.platform)
    if classes is None:
        msg = f"No adapter available for platform={site.platform!r}."
        logging.error(msg)
        raise ValueError(msg)
    list_cls, details_cls = classes
    enricher = details_cls(site=site, timing=timing) if site.enrich_details else None
    return list_cls(site=site, timing=timing, enricher=enricher, progress_callback=progress_callback)
