"""Test the EnerGov list scraper against an in-memory portal."""

from datetime import date
from typing import List

import pytest

from fakes import FAST_TIMING, FakePage, FakeSession
from permits_crawler.exceptions import SearchSetupError
from permits_crawler.schemas.permit_record import PermitStatus
from permits_crawler.schemas.search import SearchCriteria
from permits_crawler.schemas.site import PlatformType, SiteConfig
from permits_crawler.scrapers.platforms.energov.permit_details import EnerGovPermitDetailsScraper
from permits_crawler.scrapers.platforms.energov.permits_list import (
    EnerGovPermitScraper,
    find_next_page_control,
    find_permit_option,
    option_model_value,
    parse_result_count,
    parse_result_rows,
)


SITE = SiteConfig(
    site_id="testville",
    city="Testville",
    state="CA",
    platform=PlatformType.ENERGOV,
    base_url="https://portal.test",
    search_url="https://portal.test/apps/SelfService#/search",
    unknown_status_fallback=PermitStatus.IN_REVIEW,
    detail_interval_ms=0,
)

CRITERIA = SearchCriteria(start_date="01/01/2025", end_date="01/31/2025")

CATEGORY = """
<select id="SearchModule">
  <option value="number:1">Plan</option>
  <option value="number:2">Permit</option>
  <option value="number:3">Inspection</option>
</select>
"""

FILTER_PANEL = """
<div id="collapseFilter">
  <input id="ApplyDateFrom"/>
  <input id="ApplyDateTo"/>
</div>
<button id="button-Search">Search</button>
"""


def search_form(expanded: bool = False, category: str = CATEGORY) -> str:
    panel = FILTER_PANEL if expanded else ""
    return f"""
    <form name="energovSearchForm">
      {category}
      <button id="button-Advanced">Advanced</button>
      {panel}
    </form>
    """


def result_row(
    number: str,
    status: str = "",
    applied: str = "",
    issued: str = "",
    permit_type: str = "Residential Alteration",
    address: str = "",
    description: str = "",
) -> str:
    issued_html = f'<div name="label-IssuedDate"><span>{issued}</span></div>' if issued else ""
    return f"""
    <div name="label-SearchResult" ng-repeat="record in vm.entityRecords">
      <div name="label-CaseNumber"><a href="#/permit/{number.lower()}">{number}</a></div>
      <div name="label-ApplyDate"><span>{applied}</span></div>
      <div name="label-Status"><tyler-highlight>{status}</tyler-highlight></div>
      {issued_html}
      <div name="label-CaseType"><tyler-highlight>{permit_type}</tyler-highlight></div>
      <div name="label-Address"><tyler-highlight>{address}</tyler-highlight></div>
      <div name="label-Description"><tyler-highlight>{description}</tyler-highlight></div>
    </div>
    """


def results_page(rows: List[str], has_next: bool = False, next_disabled: bool = False, extra: str = "") -> str:
    pager = ""
    if has_next:
        cls = ' class="disabled"' if next_disabled else ""
        pager = f'<ul class="pagination"><li{cls}><a id="link-NextPage" href="">Next</a></li></ul>'
    return f"""
    <html><body>
      {search_form(expanded=True)}
      {extra}
      <div id="results">{''.join(rows)}</div>
      {pager}
    </body></html>
    """


def portal(pages: List[str]) -> FakePage:
    """Search form that renders ``pages`` one after another on "Next"."""
    page = FakePage(html=f"<html><body>{search_form()}</body></html>", url=SITE.search_url)
    state = {"index": 0}

    def show_results(p: FakePage) -> None:
        p.html = pages[0]

    def next_page(p: FakePage) -> None:
        if state["index"] + 1 < len(pages):
            state["index"] += 1
            p.html = pages[state["index"]]

    page.on_click["#button-Advanced"] = lambda p: setattr(p, "html", f"<html><body>{search_form(expanded=True)}</body></html>")
    page.on_click["#button-Search"] = show_results
    page.on_click["#link-NextPage"] = next_page
    return page


def detail_url(number: str) -> str:
    return f"https://portal.test/apps/SelfService#/permit/{number.lower()}"


DETAIL_HTML = """
<html><body>
  <div id="label-PermitDetail-Valuation">
    <label>Valuation</label>
    <p class="form-control-static ng-binding">$24,000.00</p>
  </div>
  <button id="button-TabButton-MoreInfo">More Info</button>
  <span id="NUM_ContractorLicense">1234567</span>
</body></html>
"""


async def test_crawl_end_to_end_with_enrichment():
    page = portal([
        results_page([
            result_row(
                "B-2025-0001",
                status="Plan Review",
                applied="01/15/2025",
                issued="01/20/2025",
                address="1067 PAINTBRUSH DR SUNNYVALE CA 94086",
                description="Kitchen remodel",
            ),
            result_row("B-2025-0002", status="Pending Review", applied="01/16/2025"),
        ])
    ])
    session = FakeSession(
        page,
        detail_pages={detail_url("B-2025-0001"): DETAIL_HTML, detail_url("B-2025-0002"): DETAIL_HTML},
        detail_statuses={detail_url("B-2025-0002"): 403},
    )
    scraper = EnerGovPermitScraper(
        site=SITE,
        timing=FAST_TIMING,
        enricher=EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING),
    )

    records = await scraper.crawl(session, CRITERIA)

    assert [r.permit_number for r in records] == ["B-2025-0001", "B-2025-0002"]
    assert scraper.pages_parsed == 1

    first, second = records
    assert first.status is PermitStatus.ISSUED
    assert first.value == 24000.0
    assert first.licensed_professional_text == "1234567"
    assert first.applied_date == date(2025, 1, 15)
    assert first.applied_date_string == "01/15/2025"
    assert first.address == "1067 PAINTBRUSH DR SUNNYVALE CA 94086"
    assert first.zip_code == "94086"
    assert first.city == "Testville"
    assert first.state == "CA"
    assert first.title == "Residential Alteration"
    assert first.description == "Kitchen remodel"
    assert first.source_url == detail_url("B-2025-0001")

    assert second.status is PermitStatus.IN_REVIEW
    assert second.value is None
    assert second.licensed_professional_text is None

    assert page.field_values["#ApplyDateFrom"] == "01/01/2025"
    assert page.field_values["#ApplyDateTo"] == "01/31/2025"
    assert page.field_values["#SearchModule"] == "number:2"
    assert len(session.tabs) == 2
    assert all(tab.closed for tab in session.tabs)


async def test_contractor_tab_skipped_when_not_accessible():
    site = SITE.model_copy(update={"contractor_info_accessible": False})
    page = portal([results_page([result_row("B-1", status="Issued")])])
    session = FakeSession(page, detail_pages={detail_url("B-1"): DETAIL_HTML})
    scraper = EnerGovPermitScraper(
        site=site,
        timing=FAST_TIMING,
        enricher=EnerGovPermitDetailsScraper(site=site, timing=FAST_TIMING),
    )

    records = await scraper.crawl(session, CRITERIA)

    assert records[0].value == 24000.0
    assert records[0].licensed_professional_text is None
    assert session.tabs[0].clicked("#button-TabButton-MoreInfo") == 0


async def test_unmapped_status_uses_site_fallback():
    page = portal([results_page([result_row("B-1", status="Something New")])])
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    records = await scraper.crawl(FakeSession(page), CRITERIA)

    assert records[0].status is PermitStatus.IN_REVIEW


async def test_missing_permit_category_is_fatal():
    category = '<select id="SearchModule"><option value="number:1">Plan</option></select>'
    page = FakePage(html=search_form(category=category), url=SITE.search_url)
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    with pytest.raises(SearchSetupError):
        await scraper.crawl(FakeSession(page), CRITERIA)


async def test_filter_panel_never_mounting_is_fatal():
    page = FakePage(html=search_form(), url=SITE.search_url)
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    with pytest.raises(SearchSetupError):
        await scraper.crawl(FakeSession(page), CRITERIA)
    # one trigger plus one retry
    assert page.clicked("#button-Advanced") == 2


async def test_hidden_advanced_toggle_is_fatal():
    html = search_form().replace('<button id="button-Advanced">', '<button id="button-Advanced" class="ng-hide">')
    page = FakePage(html=html, url=SITE.search_url)
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    with pytest.raises(SearchSetupError):
        await scraper.crawl(FakeSession(page), CRITERIA)
    assert page.clicked("#button-Advanced") == 0


async def test_open_ended_search_leaves_end_date_blank():
    page = portal([results_page([])])
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    records = await scraper.crawl(FakeSession(page), SearchCriteria(start_date="01/01/2025"))

    assert records == []
    assert "#ApplyDateTo" not in page.field_values


async def test_pages_are_followed_and_deduplicated():
    page = portal([
        results_page([result_row("B-1"), result_row("B-2")], has_next=True),
        results_page([result_row("B-2"), result_row("B-3")], has_next=True, next_disabled=True),
    ])
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    records = await scraper.crawl(FakeSession(page), CRITERIA)

    assert [r.permit_number for r in records] == ["B-1", "B-2", "B-3"]
    assert scraper.pages_parsed == 2


async def test_page_that_never_changes_ends_pagination():
    page = portal([results_page([result_row("B-1")], has_next=True)])
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    records = await scraper.crawl(FakeSession(page), CRITERIA)

    assert [r.permit_number for r in records] == ["B-1"]
    assert scraper.pages_parsed == 1


async def test_pagination_ceiling():
    page = portal([results_page([result_row("B-0")], has_next=True)])
    counter = {"n": 0}

    def endless(p: FakePage) -> None:
        counter["n"] += 1
        p.html = results_page([result_row(f"B-{counter['n']}")], has_next=True)

    page.on_click["#link-NextPage"] = endless
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING.model_copy(update={"max_pages": 3}))

    records = await scraper.crawl(FakeSession(page), CRITERIA)

    assert scraper.pages_parsed == 3
    assert len(records) == 3


async def test_record_limit_stops_harvest():
    page = portal([
        results_page([result_row("B-1"), result_row("B-2"), result_row("B-3")], has_next=True),
        results_page([result_row("B-4")]),
    ])
    session = FakeSession(page, detail_pages={detail_url(n): DETAIL_HTML for n in ("B-1", "B-2", "B-3")})
    scraper = EnerGovPermitScraper(
        site=SITE,
        timing=FAST_TIMING,
        enricher=EnerGovPermitDetailsScraper(site=SITE, timing=FAST_TIMING),
    )

    records = await scraper.crawl(session, CRITERIA.model_copy(update={"record_limit": 2}))

    assert [r.permit_number for r in records] == ["B-1", "B-2"]
    assert len(session.tabs) == 2
    assert page.clicked("#link-NextPage") == 0


async def test_page_size_is_raised_when_selector_present():
    page_size = """
    <select id="pageSizeList">
      <option value="number:10">10</option>
      <option value="number:100">100</option>
    </select>
    <span id="startAndEndCount">1 - 2 of 2</span>
    """
    page = portal([results_page([result_row("B-1"), result_row("B-2")], extra=page_size)])
    page.select_option_result = True
    scraper = EnerGovPermitScraper(site=SITE, timing=FAST_TIMING)

    records = await scraper.crawl(FakeSession(page), CRITERIA)

    assert page.field_values["#pageSizeList"] == "number:100"
    assert len(records) == 2


async def test_progress_callback_counts_records():
    calls = []
    page = portal([results_page([result_row("B-1"), result_row("B-2")])])
    scraper = EnerGovPermitScraper(
        site=SITE,
        timing=FAST_TIMING,
        progress_callback=lambda kept, dropped, total: calls.append((kept, dropped)),
    )

    await scraper.crawl(FakeSession(page), CRITERIA)

    assert calls == [(1, 0), (1, 0)]


def test_find_permit_option_prefers_exact_label():
    html = """
    <select id="SearchModule">
      <option value="number:5">Permit Application</option>
      <option value="number:2">Permit</option>
    </select>
    """
    assert find_permit_option(html) == ("number:2", "Permit")
    assert option_model_value("number:2") == 2
    assert option_model_value("string:abc") == "abc"


def test_parse_result_rows_skips_rows_without_number():
    html = results_page([result_row("B-1", status="Issued"), result_row("")])
    rows = parse_result_rows(html)
    assert [r.permit_number for r in rows] == ["B-1"]
    assert rows[0].status == "Issued"
    assert rows[0].detail_href == "#/permit/b-1"


def test_find_next_page_control_prefers_numbered_link():
    html = """
    <ul>
      <li><a id="link-Page2">2</a></li>
      <li class="disabled"><a id="link-NextPage">Next</a></li>
    </ul>
    """
    control = find_next_page_control(html, 1)
    assert control.selector == "#link-Page2"
    assert not control.disabled
    assert find_next_page_control(html, 2).disabled
    assert find_next_page_control("<div></div>", 1) is None


@pytest.mark.parametrize(
    "text,expected",
    [
        ("1 - 17 of 17", (1, 17, 17)),
        ("Showing 11 - 20 of 245", (11, 20, 245)),
        ("", None),
        ("no results", None),
    ],
)
def test_parse_result_count(text, expected):
    assert parse_result_count(text) == expected


def test_invalid_record_is_dropped_and_counted():
    calls = []
    scraper = EnerGovPermitScraper(
        site=SITE,
        timing=FAST_TIMING,
        progress_callback=lambda kept, dropped, total: calls.append((kept, dropped)),
    )

    assert scraper._build_record(permit_number="   ") is None
    assert scraper._build_record(permit_number="B-1", value=-5.0) is None
    assert scraper._build_record(permit_number="B-2").city == "Testville"
    assert calls == [(0, 1), (0, 1), (1, 0)]
