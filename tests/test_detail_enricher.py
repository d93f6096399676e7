"""Test detail page enrichment for both platforms."""

from typing import Optional

import pytest

from fakes import FAST_TIMING, FakePage, FakeSession
from permits_crawler.schemas.site import PlatformType, SiteConfig
from permits_crawler.scrapers.base import scripts
from permits_crawler.scrapers.base.permit_details import resolve_detail_url
from permits_crawler.scrapers.platforms.accela.permit_details import (
    AccelaPermitDetailsScraper,
    collapsed_sections,
    find_job_value,
    find_licensed_professional,
)
from permits_crawler.scrapers.platforms.energov.permit_details import (
    EnerGovPermitDetailsScraper,
    find_contractor_license,
    find_valuation,
)


SITE = SiteConfig(
    site_id="testville",
    city="Testville",
    state="CA",
    platform=PlatformType.ENERGOV,
    base_url="https://portal.test",
    search_url="https://portal.test/apps/SelfService#/search",
)
URL = "https://portal.test/apps/SelfService#/permit/abc"


class ExplodingPage(FakePage):
    async def goto(self, url: str, timeout_ms: int = 60000, wait_for_idle: bool = True) -> Optional[int]:
        raise RuntimeError("navigation crashed")


# ------------------------
# EnerGov extraction
# ------------------------
@pytest.mark.parametrize(
    "html,expected",
    [
        (
            '<div id="label-PermitDetail-Valuation"><p class="form-control-static">$1,250.50</p></div>',
            1250.5,
        ),
        (
            # placeholder in the first match, real value further down the chain
            '<div id="label-PermitDetail-Valuation"><p>No records to display</p></div>'
            '<div name="label-Valuation"><span>$80,000</span></div>',
            80000.0,
        ),
        ('<input name="txtValuation" value="$5,000.00"/>', 5000.0),
        (
            '<div class="row"><label>Project Valuation</label><div><span>$310,000.00</span></div></div>',
            310000.0,
        ),
        (
            '<div class="row"><label>Total Valuation</label><span>9.00</span></div>',
            None,
        ),
        ("<p>Valuation for this project: $45,500</p>", 45500.0),
        ('<div id="label-PermitDetail-Valuation"><p class="form-control-static">$0.00</p></div>', None),
        ("<p>nothing here</p>", None),
    ],
)
def test_find_valuation(html, expected):
    assert find_valuation(html) == expected


@pytest.mark.parametrize(
    "html,expected",
    [
        ('<span id="NUM_ContractorLicense">987654</span>', "987654"),
        ('<div id="NUM_ContractorLicense"><span>12345678</span></div>', "12345678"),
        ('<span id="NUM_ContractorLicense">N/A</span><p>Contractor License #: 1234567</p>', "1234567"),
        ('<span id="NUM_ContractorLicense">12345</span>', None),
    ],
)
def test_find_contractor_license(html, expected):
    assert find_contractor_license(html) == expected


async def test_energov_enrich_reads_valuation_and_license():
    html = """
    <div id="label-PermitDetail-Valuation"><p class="form-control-static">$24,000.00</p></div>
    <button id="button-TabButton-MoreInfo">More Info</button>
    <span id="NUM_ContractorLicense">1234567</span>
    """
    session = FakeSession(detail_pages={URL: html})
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    result = await enricher.enrich(session, URL)

    assert result.value == 24000.0
    assert result.licensed_professional_text == "1234567"
    tab = session.tabs[0]
    assert tab.closed
    assert tab.clicked("#button-TabButton-MoreInfo") == 1
    binding = tab.clicks[0][1]
    assert binding.calls[0].path == "vm.tabNavigatorService.navigate"
    assert binding.calls[0].arg_paths == ["vm.tabNavigatorService.tabConstant.Moreinfo"]


async def test_energov_enrich_resolves_hash_route():
    session = FakeSession(detail_pages={URL: '<div name="label-Valuation"><span>$10</span></div>'})
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    result = await enricher.enrich(session, "#/permit/abc")

    assert result.value == 10.0
    assert session.tabs[0].visited == [URL]


async def test_enrich_returns_empty_on_http_403():
    session = FakeSession(detail_pages={URL: "<p>Valuation: $1,000</p>"}, detail_statuses={URL: 403})
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    result = await enricher.enrich(session, URL)

    assert result.is_empty
    assert session.tabs[0].closed


async def test_enrich_returns_empty_on_forbidden_body():
    session = FakeSession(detail_pages={URL: "<h1>403 Forbidden</h1><p>Valuation: $1,000</p>"})
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    result = await enricher.enrich(session, URL)

    assert result.is_empty


async def test_enrich_swallows_errors_and_closes_tab():
    session = FakeSession(tab_class=ExplodingPage)
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    result = await enricher.enrich(session, URL)

    assert result.is_empty
    assert len(session.tabs) == 1
    assert session.tabs[0].closed


async def test_enrich_without_url_opens_nothing():
    session = FakeSession()
    enricher = EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING)

    assert (await enricher.enrich(session, None)).is_empty
    assert session.tabs == []


async def test_valuation_is_retried_until_rendered():
    class LateValuationPage(FakePage):
        reads = 0

        async def content(self) -> str:
            LateValuationPage.reads += 1
            if LateValuationPage.reads < 3:
                return "<p>Loading...</p>"
            return '<div name="label-Valuation"><span>$700</span></div>'

    session = FakeSession(tab_class=LateValuationPage)
    enricher = EnerGovPermitDetailsScraper(
        site=SITE.model_copy(update={"contractor_info_accessible": False}),
        timing=FAST_TIMING.model_copy(update={"enrichment_attempts": 3}),
    )

    result = await enricher.enrich(session, URL)

    assert result.value == 700.0


async def test_energov_detail_waits_for_framework_before_reading():
    session = FakeSession(detail_pages={URL: '<div name="label-Valuation"><span>$5,000</span></div>'})
    enricher = EnerGovPermitDetailsScraper(
        site=SITE.model_copy(update={"contractor_info_accessible": False}),
        timing=FAST_TIMING,
    )

    result = await enricher.enrich(session, URL)

    assert result.value == 5000.0
    assert scripts.FRAMEWORK_READY in session.tabs[0].evaluated


# ------------------------
# Accela extraction
# ------------------------
@pytest.mark.parametrize(
    "text,expected",
    [
        ("Job Value($): $24,000.00", 24000.0),
        ("Job Value($):\n$1,500", 1500.0),
        ("Job Value: 12,345.67", 12345.67),
        ("Estimated value of work (dollars): 9,999", 9999.0),
        ("Valuation amount: 50,000", 50000.0),
        ("No monetary fields here", None),
    ],
)
def test_find_job_value(text, expected):
    assert find_job_value(text) == expected


def test_find_licensed_professional_prefers_table():
    assert find_licensed_professional("  JANE DOE \n\n ACME  ", "") == "JANE DOE ACME"
    body = "Licensed Professional:\nJANE DOE CONSTRUCTION\nOther"
    assert find_licensed_professional(None, body) == "JANE DOE CONSTRUCTION"
    assert find_licensed_professional(None, "nothing") is None


def test_collapsed_sections():
    html = """
    <tr id="TRMoreDetail" style="display: none"></tr>
    <tr id="trADIList" style="DISPLAY:NONE"></tr>
    <tr id="trASIList"></tr>
    """
    assert collapsed_sections(html) == ["#lnkMoreDetail", "#lnkAddtional"]


async def test_accela_enrich_expands_sections():
    site = SITE.model_copy(update={"platform": PlatformType.ACCELA, "base_url": "https://aca.test"})
    url = "https://aca.test/TLG/Cap/CapDetail.aspx?altId=BP-1"
    html = """
    <a id="lnkAddtional">Additional Information</a>
    <table><tr id="trADIList" style="display:none"><td>Job Value($): $3,200.00</td></tr></table>
    <div>Licensed Professional:</div>
    <div>BOB BUILDER INC</div>
    """
    session = FakeSession(detail_pages={url: html})
    enricher = AccelaPermitDetailsScraper(site=site, timing=FAST_TIMING)

    result = await enricher.enrich(session, url)

    assert result.value == 3200.0
    assert result.licensed_professional_text == "BOB BUILDER INC"
    assert session.tabs[0].clicked("#lnkAddtional") == 1


# ------------------------
# URL resolution
# ------------------------
@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://other.test/x", "https://other.test/x"),
        ("#/permit/1", "https://portal.test/apps/SelfService#/permit/1"),
        ("/apps/SelfService#/permit/1", "https://portal.test/apps/SelfService#/permit/1"),
        ("permit/1", "https://portal.test/apps/SelfService/permit/1"),
    ],
)
def test_resolve_detail_url(url, expected):
    assert resolve_detail_url(url, "https://portal.test/", "/apps/SelfService") == expected


@pytest.mark.parametrize("accessible,expected", [(True, "ACME BUILDERS LIC 123456"), (False, None)])
async def test_accela_licensed_professional_follows_site_flag(accessible, expected):
    site = SITE.model_copy(
        update={"platform": PlatformType.ACCELA, "base_url": "https://aca.test", "contractor_info_accessible": accessible}
    )
    url = "https://aca.test/TLG/Cap/CapDetail.aspx?altId=BP-2"
    html = """
    <div>Job Value($): $1,000.00</div>
    <table id="tbl_licensedps"><tr><td>ACME BUILDERS LIC 123456</td></tr></table>
    """
    session = FakeSession(detail_pages={url: html})

    result = await AccelaPermitDetailsScraper(site=site, timing=FAST_TIMING).enrich(session, url)

    assert result.value == 1000.0
    assert result.licensed_professional_text == expected
