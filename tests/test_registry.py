"""Test the site registry."""

import pytest

from permits_crawler.schemas.permit_record import PermitStatus
from permits_crawler.schemas.site import PlatformType
from permits_crawler.scrapers.platforms.accela.permit_details import AccelaPermitDetailsScraper
from permits_crawler.scrapers.platforms.accela.permits_list import AccelaPermitScraper
from permits_crawler.scrapers.platforms.energov.permit_details import EnerGovPermitDetailsScraper
from permits_crawler.scrapers.platforms.energov.permits_list import EnerGovPermitScraper
from permits_crawler.sites.registry import build_scraper, enabled_sites, get_site, list_sites


@pytest.mark.parametrize("site_id", ["sunnyvale", "Sunnyvale", " SUNNYVALE "])
def test_get_site_normalizes_id(site_id):
    assert get_site(site_id).site_id == "sunnyvale"


def test_get_site_accepts_dashes_and_spaces():
    assert get_site("Los Gatos").site_id == "los_gatos"
    assert get_site("los-gatos").site_id == "los_gatos"


def test_get_site_unknown():
    with pytest.raises(ValueError, match="atlantis"):
        get_site("atlantis")


def test_site_ids_are_unique():
    ids = [s.site_id for s in list_sites()]
    assert len(ids) == len(set(ids))


def test_enabled_sites_skip_disabled():
    ids = [s.site_id for s in enabled_sites()]
    assert "oakland" not in ids
    assert "sunnyvale" in ids


def test_sunnyvale_settings():
    site = get_site("sunnyvale")
    assert site.platform is PlatformType.ENERGOV
    assert site.contractor_info_accessible is False
    assert site.unknown_status_fallback is PermitStatus.IN_REVIEW
    assert site.label == "Sunnyvale, CA"


def test_build_energov_scraper():
    scraper = build_scraper(get_site("gilroy"))
    assert isinstance(scraper, EnerGovPermitScraper)
    assert isinstance(scraper.enricher, EnerGovPermitDetailsScraper)


def test_build_accela_scraper():
    scraper = build_scraper(get_site("los_gatos"))
    assert isinstance(scraper, AccelaPermitScraper)
    assert isinstance(scraper.enricher, AccelaPermitDetailsScraper)


def test_build_scraper_without_enrichment():
    site = get_site("sunnyvale").model_copy(update={"enrich_details": False})
    assert build_scraper(site).enricher is None
