"""Accela Citizen Access permit list scraper.

Accela portals are server-rendered ASP.NET pages. Field ids differ between
deployments, so the date inputs are found through their ``<label>`` text,
and the "Next" pagination link is found by its text alone.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from permits_crawler.exceptions import SearchSetupError
from permits_crawler.normalizers.address import split_street_city_state_zip
from permits_crawler.normalizers.dates import parse_date
from permits_crawler.normalizers.status import ACCELA_STATUS_VOCABULARY, StatusVocabulary
from permits_crawler.schemas.permit_record import ExtractedPermitRecord
from permits_crawler.schemas.search import SearchCriteria
from permits_crawler.scrapers.base import scripts
from permits_crawler.scrapers.base.page_commands import PageCommands
from permits_crawler.scrapers.base.permit_list import PermitListBaseScraper
from permits_crawler.scrapers.base.playwright import BrowserSession
from permits_crawler.scrapers.base.waits import wait_for_selector


START_DATE_LABEL = "Start Date:"
END_DATE_LABEL = "end date"

SEARCH_CONTROLS = [
    "#ctl00_PlaceHolderMain_btnNewSearch",
    'a[title="Search"]',
    'input[type="submit"][value*="Search"]',
    'input[type="button"][value*="Search"]',
    'button[type="submit"]',
    'input[name*="search"]',
    "#searchButton",
]

RESULTS_TABLE = "table tbody tr"
RESULT_ROWS = "tr.ACA_TabRow_Odd, tr.ACA_TabRow_Even"
PAGINATION_LINKS = "a.aca_pagination_PrevNext, a.aca_simple_text"


class AccelaRow(BaseModel):
    """Raw fields of one Accela result row."""

    permit_number: str
    description: Optional[str] = None
    permit_type: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None
    updated_date: Optional[str] = None


# ------------------------
# HTML parsing
# ------------------------
def _input_selector(field_id: str) -> str:
    return f'[id="{field_id}"], [name="{field_id}"]'


def find_date_inputs(html: str) -> Tuple[Optional[str], Optional[str]]:
    """Selectors of the start and end date inputs, found through their labels.

    The start label must read exactly ``"Start Date:"``; the end label only
    has to mention "end date". A label without a ``for`` attribute, or whose
    target is missing, counts as not found.
    """
    soup = BeautifulSoup(html, "html.parser")
    labels = soup.find_all("label")

    def resolve(label: Optional[Tag]) -> Optional[str]:
        if label is None or not label.get("for"):
            return None
        selector = _input_selector(label["for"])
        return selector if soup.select_one(selector) is not None else None

    start = next((l for l in labels if l.get_text().strip() == START_DATE_LABEL), None)
    end = next((l for l in labels if END_DATE_LABEL in l.get_text().lower()), None)
    return resolve(start), resolve(end)


def find_search_control(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    for selector in SEARCH_CONTROLS:
        if soup.select_one(selector) is not None:
            return selector
    return None


def _span_text(row: Tag, id_fragment: str) -> Optional[str]:
    el = row.select_one(f'span[id*="{id_fragment}"]')
    if el is None:
        return None
    return el.get_text(strip=True) or None


def parse_accela_rows(html: str) -> List[AccelaRow]:
    """Parse the result rows of the current page."""
    soup = BeautifulSoup(html, "html.parser")
    rows: List[AccelaRow] = []
    for tr in soup.select(RESULT_ROWS):
        permit_number = _span_text(tr, "lblPermitNumber")
        if not permit_number:
            continue
        rows.append(
            AccelaRow(
                permit_number=permit_number,
                description=_span_text(tr, "lblDescription"),
                permit_type=_span_text(tr, "lblType"),
                address=_span_text(tr, "lblAddress"),
                status=_span_text(tr, "lblStatus"),
                updated_date=_span_text(tr, "lblUpdatedTime"),
            )
        )
    return rows


def find_detail_links(html: str, page_url: str, permit_numbers: List[str]) -> Dict[str, str]:
    """Map permit numbers to absolute detail URLs.

    The first anchor whose text or ``href`` contains the permit number wins.
    """
    soup = BeautifulSoup(html, "html.parser")
    anchors = soup.find_all("a")
    links: Dict[str, str] = {}
    for permit_number in permit_numbers:
        for a in anchors:
            href = a.get("href") or ""
            if permit_number in a.get_text() or permit_number in href:
                if href and not href.lower().startswith("javascript:"):
                    links[permit_number] = urljoin(page_url, href)
                break
    return links


def has_next_page(html: str) -> bool:
    """Whether a pagination anchor says "Next" without "Prev"."""
    soup = BeautifulSoup(html, "html.parser")
    for a in soup.select(PAGINATION_LINKS):
        text = a.get_text()
        if "Next" in text and "Prev" not in text:
            return True
    return False


class AccelaPermitScraper(PermitListBaseScraper):
    """List scraper for Accela Citizen Access portals.

    Notes
    -----
    A missing start date field raises :class:`SearchSetupError`. A results
    page without a table ends the crawl normally.
    """

    vocabulary: ClassVar[StatusVocabulary] = ACCELA_STATUS_VOCABULARY

    async def crawl(self, session: BrowserSession, criteria: SearchCriteria) -> List[ExtractedPermitRecord]:
        self._reset()
        commands = session.commands
        logging.info(
            "%s crawl started (%s to %s, limit=%s)",
            self.site.site_id,
            criteria.start_date,
            criteria.end_date or "open",
            criteria.record_limit,
        )

        await commands.goto(self.site.search_url, timeout_ms=self.timing.navigation_timeout_ms)
        await commands.pause(self.timing.settle_ms)
        await self._set_dates(commands, criteria)
        await self._search(commands)
        records = await self._harvest_pages(session, criteria)

        logging.info("%s crawl finished: %s permits from %s page(s)", self.site.site_id, len(records), self._pages_parsed)
        return records

    async def _set_dates(self, commands: PageCommands, criteria: SearchCriteria) -> None:
        start_selector, end_selector = find_date_inputs(await commands.content())
        if start_selector is None:
            raise SearchSetupError(f"Could not find the {START_DATE_LABEL!r} field")
        if not await commands.set_field_value(start_selector, criteria.start_date):
            raise SearchSetupError(f"Could not fill the start date field {start_selector}")
        logging.info("%s filled start date %s", self.site.site_id, criteria.start_date)

        if not criteria.end_date:
            return
        if end_selector is None or not await commands.set_field_value(end_selector, criteria.end_date):
            logging.warning("%s could not fill the end date field", self.site.site_id)
            return
        logging.info("%s filled end date %s", self.site.site_id, criteria.end_date)

    async def _search(self, commands: PageCommands) -> None:
        selector = find_search_control(await commands.content())
        if selector is None:
            raise SearchSetupError("Could not find a search control")
        outcome = await commands.click_element(selector)
        if not outcome.triggered:
            raise SearchSetupError(f"Search control {selector} could not be clicked")
        logging.info("%s clicked search control %s", self.site.site_id, selector)
        await commands.pause(self.timing.settle_ms)

    async def _harvest_pages(self, session: BrowserSession, criteria: SearchCriteria) -> List[ExtractedPermitRecord]:
        commands = session.commands
        records: List[ExtractedPermitRecord] = []
        seen: Set[str] = set()
        page_number = 1

        while True:
            if not await wait_for_selector(commands, RESULTS_TABLE, self.timing.results_timeout_ms):
                logging.info("%s no results table on page %s", self.site.site_id, page_number)
                break

            html = await commands.content()
            rows = [r for r in parse_accela_rows(html) if r.permit_number not in seen]
            self._pages_parsed += 1
            logging.info("%s page %s: %s row(s)", self.site.site_id, page_number, len(rows))

            if criteria.record_limit is not None:
                rows = rows[: max(0, criteria.record_limit - len(records))]
            links = find_detail_links(html, commands.url, [r.permit_number for r in rows])

            for row in rows:
                seen.add(row.permit_number)
                record = await self._finalize_row(session, row, links.get(row.permit_number))
                if record is not None:
                    records.append(record)

            if criteria.limit_reached(len(records)):
                logging.info("%s record limit %s reached", self.site.site_id, criteria.record_limit)
                break
            if page_number >= self.timing.max_pages:
                logging.warning("%s stopped at the %s page ceiling", self.site.site_id, self.timing.max_pages)
                break
            if not has_next_page(html):
                break
            if not await commands.evaluate_script(scripts.CLICK_NEXT_PAGE_LINK, PAGINATION_LINKS):
                logging.warning("%s next page link could not be clicked", self.site.site_id)
                break
            await commands.pause(self.timing.settle_ms)
            page_number += 1

        return records

    async def _finalize_row(
        self,
        session: BrowserSession,
        row: AccelaRow,
        detail_url: Optional[str],
    ) -> Optional[ExtractedPermitRecord]:
        try:
            address = split_street_city_state_zip(row.address)
            if detail_url is None:
                logging.info("%s no detail link for %s", self.site.site_id, row.permit_number)
            enrichment = await self._enrich(session, detail_url)
            return self._build_record(
                permit_number=row.permit_number,
                title=row.permit_type,
                description=row.description,
                address=address.address,
                zip_code=address.zip_code,
                permit_type=row.permit_type,
                status=self._resolve_status(row.status),
                value=enrichment.value,
                applied_date=parse_date(row.updated_date),
                applied_date_string=row.updated_date,
                source_url=detail_url or self.site.search_url,
                licensed_professional_text=enrichment.licensed_professional_text,
            )
        except Exception as e:
            logging.exception("%s failed to build record %s: %s", self.site.site_id, row.permit_number, e)
            self.process_progress_callback(0, 1)
            return None
