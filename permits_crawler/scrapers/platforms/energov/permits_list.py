"""EnerGov (Tyler SelfService) permit list scraper.

EnerGov portals are AngularJS single-page applications. Form controls are
bound to scope models, conditionally rendered, and only partially observe
native DOM events, so every interaction goes through
:class:`PageCommands` with a :class:`FrameworkBinding` first and a native
event or click second.

Crawl states
------------
NAVIGATE -> SELECT_CATEGORY -> EXPAND_ADVANCED -> AWAIT_FILTER_PANEL ->
SET_DATES -> SEARCH -> PAGE_LOOP
"""

from __future__ import annotations

import logging
import re
from typing import ClassVar, List, Optional, Set, Tuple

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from permits_crawler.exceptions import SearchSetupError
from permits_crawler.normalizers.address import parse_address
from permits_crawler.normalizers.dates import parse_date
from permits_crawler.normalizers.status import ENERGOV_STATUS_VOCABULARY, StatusVocabulary
from permits_crawler.schemas.permit_record import ExtractedPermitRecord
from permits_crawler.schemas.search import SearchCriteria
from permits_crawler.scrapers.base.page_commands import FrameworkBinding, PageCommands, ScopeCall
from permits_crawler.scrapers.base.permit_details import resolve_detail_url
from permits_crawler.scrapers.base.permit_list import PermitListBaseScraper
from permits_crawler.scrapers.base.playwright import BrowserSession
from permits_crawler.scrapers.base.waits import (
    poll_until,
    retry_until_found,
    wait_for_framework_ready,
    wait_for_selector,
    wait_until_visible,
)


SEARCH_FORM = 'form[name="energovSearchForm"]'
CATEGORY_SELECT = "#SearchModule"
ADVANCED_TOGGLE = "#button-Advanced"
FILTER_PANEL = "#collapseFilter, #ApplyDateFrom"
DATE_FROM = "#ApplyDateFrom"
DATE_TO = "#ApplyDateTo"
SEARCH_BUTTON = "#button-Search"
PAGE_SIZE_SELECT = "#pageSizeList"
RESULT_COUNT = "#startAndEndCount"
NEXT_PAGE_LINK = "#link-NextPage"

RESULT_ROWS = 'div[name="label-SearchResult"][ng-repeat*="record"], div[ng-repeat*="getEntityRecords"]'
ROW_PERMIT_NUMBER = 'div[name="label-CaseNumber"] a, div[id*="entityRecord"] a[href*="permit"]'
ROW_APPLIED_DATE = 'div[name="label-ApplyDate"] span, div[label*="Applied Date"] span'
ROW_STATUS = 'div[name="label-Status"] tyler-highlight, div[label*="Status"] tyler-highlight'
ROW_ISSUED_DATE = 'div[name="label-IssuedDate"] span, div[label*="Issued Date"] span'
ROW_TYPE = 'div[name="label-CaseType"] tyler-highlight, div[label*="Type"] tyler-highlight'
ROW_ADDRESS = 'div[name="label-Address"] tyler-highlight, div[label*="Address"] tyler-highlight'
ROW_DESCRIPTION = 'div[name="label-Description"] tyler-highlight, div[label*="Description"] tyler-highlight'
ROW_EXPIRATION_DATE = 'div[name="label-ExpiredDate"] span, div[label*="Expiration Date"] span'

PREFERRED_PAGE_SIZE = 100

_RESULT_COUNT_RE = re.compile(r"(\d+)\s*-\s*(\d+)\s+of\s+(\d+)")


class ResultRow(BaseModel):
    """Raw fields of one EnerGov search result."""

    permit_number: str
    applied_date: Optional[str] = None
    status: Optional[str] = None
    issued_date: Optional[str] = None
    permit_type: Optional[str] = None
    address: Optional[str] = None
    description: Optional[str] = None
    expiration_date: Optional[str] = None
    detail_href: Optional[str] = None


class NextPageControl(BaseModel):
    """Pagination link for the page after the current one."""

    selector: str
    disabled: bool


# ------------------------
# HTML parsing
# ------------------------
def _text(node: Tag, selector: str) -> Optional[str]:
    el = node.select_one(selector)
    if el is None:
        return None
    text = " ".join(el.get_text(" ", strip=True).split())
    return text or None


def find_permit_option(html: str) -> Optional[Tuple[str, str]]:
    """Locate the "Permit" option of the search category dropdown.

    Options are matched on visible text; their order differs between
    deployments. An exact "permit" label wins over labels merely containing it.

    Returns
    -------
    Optional[Tuple[str, str]]
        ``(option value, option text)`` or ``None``.
    """
    soup = BeautifulSoup(html, "html.parser")
    candidates: List[Tuple[str, str]] = []
    for option in soup.select(f"{CATEGORY_SELECT} option"):
        text = option.get_text(" ", strip=True)
        value = option.get("value", "")
        if text.lower() == "permit":
            return value, text
        if "permit" in text.lower():
            candidates.append((value, text))
    return candidates[0] if candidates else None


def option_model_value(option_value: str) -> object:
    """Scope model value behind an AngularJS option value (``"number:2"`` -> ``2``)."""
    raw = option_value.split(":", 1)[1] if ":" in option_value else option_value
    try:
        return int(raw)
    except ValueError:
        return raw


def parse_result_rows(html: str) -> List[ResultRow]:
    """Parse every result row on the current page, skipping rows without a permit number."""
    soup = BeautifulSoup(html, "html.parser")
    rows: List[ResultRow] = []
    for node in soup.select(RESULT_ROWS):
        link = node.select_one(ROW_PERMIT_NUMBER)
        permit_number = link.get_text(strip=True) if link is not None else ""
        if not permit_number:
            continue
        href = link.get("href") if link is not None else None
        rows.append(
            ResultRow(
                permit_number=permit_number,
                applied_date=_text(node, ROW_APPLIED_DATE),
                status=_text(node, ROW_STATUS),
                issued_date=_text(node, ROW_ISSUED_DATE),
                permit_type=_text(node, ROW_TYPE),
                address=_text(node, ROW_ADDRESS),
                description=_text(node, ROW_DESCRIPTION),
                expiration_date=_text(node, ROW_EXPIRATION_DATE),
                detail_href=href or None,
            )
        )
    return rows


def first_permit_number(html: str) -> Optional[str]:
    rows = parse_result_rows(html)
    return rows[0].permit_number if rows else None


def find_next_page_control(html: str, current_page: int) -> Optional[NextPageControl]:
    """Find the link to ``current_page + 1``, falling back to the "next" arrow.

    A link is disabled when its ``<li>`` carries the ``disabled`` class.
    """
    soup = BeautifulSoup(html, "html.parser")
    for selector in (f"#link-Page{current_page + 1}", NEXT_PAGE_LINK):
        el = soup.select_one(selector)
        if el is None:
            continue
        li = el if el.name == "li" else el.find_parent("li")
        disabled = li is not None and "disabled" in (li.get("class") or [])
        return NextPageControl(selector=selector, disabled=disabled)
    return None


def parse_result_count(text: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """Parse ``"1 - 17 of 17"`` into ``(1, 17, 17)``."""
    if not text:
        return None
    m = _RESULT_COUNT_RE.search(text)
    if not m:
        return None
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def find_page_size_option(html: str, size: int) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    for option in soup.select(f"{PAGE_SIZE_SELECT} option"):
        value = option.get("value", "")
        if option.get_text(strip=True) == str(size) or option_model_value(value) == size:
            return value
    return None


class EnerGovPermitScraper(PermitListBaseScraper):
    """List scraper for EnerGov SelfService portals.

    Notes
    -----
    Missing search controls raise :class:`SearchSetupError`. A missing or
    unclickable pagination control ends the crawl normally.

    Examples
    --------
    >>> from permits_crawler.sites.registry import get_site
    >>> scraper = EnerGovPermitScraper(site=get_site("sunnyvale"))
    >>> scraper.vocabulary.name
    'energov'
    """

    vocabulary: ClassVar[StatusVocabulary] = ENERGOV_STATUS_VOCABULARY

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

        await self._navigate(commands)
        await self._select_permit_category(commands)
        await self._expand_advanced_filters(commands)
        await self._set_dates(commands, criteria)
        await self._search(commands)
        await self._set_page_size(commands, PREFERRED_PAGE_SIZE)
        records = await self._harvest_pages(session, criteria)

        logging.info("%s crawl finished: %s permits from %s page(s)", self.site.site_id, len(records), self._pages_parsed)
        return records

    # ------------------------
    # Search setup
    # ------------------------
    async def _navigate(self, commands: PageCommands) -> None:
        await commands.goto(self.site.search_url, timeout_ms=self.timing.navigation_timeout_ms)
        await wait_for_framework_ready(
            commands,
            timeout_ms=self.timing.framework_timeout_ms,
            fallback_ms=self.timing.framework_fallback_ms,
            interval_ms=self.timing.poll_interval_ms,
            backoff=self.timing.poll_backoff,
        )

    async def _select_permit_category(self, commands: PageCommands) -> None:
        if not await wait_for_selector(commands, CATEGORY_SELECT, self.timing.element_timeout_ms):
            raise SearchSetupError(f"Search category dropdown {CATEGORY_SELECT} not found")
        await self._settle(commands, self.timing.settle_ms // 2)

        option = find_permit_option(await commands.content())
        if option is None:
            raise SearchSetupError("Could not find a 'Permit' option in the search category dropdown")
        option_value, option_text = option

        await commands.set_field_value(
            CATEGORY_SELECT,
            option_value,
            binding=FrameworkBinding(
                model_paths=["vm.model.SearchModule"],
                calls=[ScopeCall(path="vm.changeSearchModule")],
            ),
            model_value=option_model_value(option_value),
        )
        logging.info("%s selected search category %r (%s)", self.site.site_id, option_text, option_value)
        await self._settle(commands)

    async def _expand_advanced_filters(self, commands: PageCommands) -> None:
        visible = await wait_until_visible(
            commands,
            ADVANCED_TOGGLE,
            self.timing.element_timeout_ms,
            self.timing.poll_interval_ms,
            self.timing.poll_backoff,
        )
        if not visible:
            raise SearchSetupError("Advanced filter toggle never became visible after selecting Permit")

        binding = FrameworkBinding(
            scope_selectors=[SEARCH_FORM, ADVANCED_TOGGLE],
            model_paths=["vm.expandStatus"],
            calls=[ScopeCall(path="vm.setExpandStatus")],
        )
        attempts = 1 + self.timing.filter_panel_attempts
        for attempt in range(1, attempts + 1):
            outcome = await commands.click_element(ADVANCED_TOGGLE, binding=binding, fallback_value=True)
            if not outcome.triggered:
                logging.warning("%s advanced toggle click had no effect (attempt %s)", self.site.site_id, attempt)
            await self._settle(commands)
            if await wait_for_selector(commands, FILTER_PANEL, self.timing.element_timeout_ms):
                return
            logging.warning("%s filter panel missing after attempt %s/%s", self.site.site_id, attempt, attempts)
        raise SearchSetupError(f"Date filter panel did not appear after {attempts} attempts")

    async def _set_dates(self, commands: PageCommands, criteria: SearchCriteria) -> None:
        await self._set_date_field(commands, DATE_FROM, "ApplyDateFrom", criteria.start_date)
        # No "to" value means an open-ended search from the start date.
        if criteria.end_date:
            await self._set_date_field(commands, DATE_TO, "ApplyDateTo", criteria.end_date)

    async def _set_date_field(self, commands: PageCommands, selector: str, field: str, value: str) -> None:
        if not await wait_for_selector(commands, selector, self.timing.element_timeout_ms):
            raise SearchSetupError(f"Date field {selector} not found")
        applied = await commands.set_field_value(
            selector,
            value,
            binding=FrameworkBinding(
                scope_selectors=[SEARCH_FORM, selector],
                model_paths=[f"vm.model.PermitCriteria.{field}", f"vm.model.{field}"],
            ),
        )
        if not applied:
            raise SearchSetupError(f"Could not set date field {selector}")
        await self._settle(commands, self.timing.settle_ms // 2)

    async def _search(self, commands: PageCommands) -> None:
        outcome = await commands.click_element(
            SEARCH_BUTTON,
            binding=FrameworkBinding(calls=[ScopeCall(path="vm.search")]),
        )
        if not outcome.triggered:
            raise SearchSetupError(f"Search button {SEARCH_BUTTON} not found")
        await self._settle(commands)
        if not await wait_for_selector(commands, RESULT_ROWS, self.timing.results_timeout_ms):
            logging.info("%s search returned no result rows", self.site.site_id)

    async def _set_page_size(self, commands: PageCommands, size: int) -> None:
        """Show ``size`` results per page; failure keeps the portal default."""
        try:
            if not await wait_for_selector(commands, PAGE_SIZE_SELECT, self.timing.element_timeout_ms // 2):
                return
            html = await commands.content()
            option_value = find_page_size_option(html, size)
            if option_value is None:
                return
            count_before = await commands.read_selector_text(RESULT_COUNT)

            if not await commands.select_option(PAGE_SIZE_SELECT, option_value, self.timing.element_timeout_ms):
                await commands.set_field_value(
                    PAGE_SIZE_SELECT,
                    option_value,
                    binding=FrameworkBinding(
                        model_paths=["vm.pageSize"],
                        calls=[
                            ScopeCall(path="vm.changePageSize", args=[size]),
                            ScopeCall(path="vm.setPageSize", args=[size]),
                        ],
                    ),
                    model_value=size,
                )
            await self._settle(commands, self.timing.settle_ms // 2)

            async def reloaded() -> bool:
                text = await commands.read_selector_text(RESULT_COUNT)
                counts = parse_result_count(text)
                shows_all = counts is not None and counts[0] == 1 and counts[1] == counts[2]
                return text != count_before or shows_all

            refreshed = await poll_until(
                reloaded, self.timing.results_timeout_ms, self.timing.poll_interval_ms, self.timing.poll_backoff
            )
            if not refreshed:
                logging.warning("%s result count did not refresh after page size change", self.site.site_id)
        except Exception as e:
            logging.warning("%s could not set page size to %s: %s", self.site.site_id, size, e)

    # ------------------------
    # Page loop
    # ------------------------
    async def _harvest_pages(self, session: BrowserSession, criteria: SearchCriteria) -> List[ExtractedPermitRecord]:
        commands = session.commands
        records: List[ExtractedPermitRecord] = []
        seen: Set[str] = set()
        page_number = 1

        while True:
            html = await commands.content()
            rows = parse_result_rows(html)
            self._pages_parsed += 1
            logging.info("%s page %s: %s row(s)", self.site.site_id, page_number, len(rows))

            for row in rows:
                if criteria.limit_reached(len(records)):
                    break
                if row.permit_number in seen:
                    continue
                seen.add(row.permit_number)
                record = await self._finalize_row(session, row)
                if record is not None:
                    records.append(record)

            if criteria.limit_reached(len(records)):
                logging.info("%s record limit %s reached", self.site.site_id, criteria.record_limit)
                break
            if page_number >= self.timing.max_pages:
                logging.warning("%s stopped at the %s page ceiling", self.site.site_id, self.timing.max_pages)
                break
            if not await self._advance_page(commands, html, page_number):
                break
            page_number += 1

        return records

    async def _finalize_row(self, session: BrowserSession, row: ResultRow) -> Optional[ExtractedPermitRecord]:
        try:
            address = parse_address(row.address)
            source_url = (
                resolve_detail_url(row.detail_href, self.site.base_url, self.site.app_path_prefix)
                if row.detail_href
                else None
            )
            enrichment = await self._enrich(session, source_url)
            return self._build_record(
                permit_number=row.permit_number,
                title=row.permit_type,
                description=row.description,
                address=address.address,
                zip_code=address.zip_code,
                permit_type=row.permit_type,
                status=self._resolve_status(row.status, row.issued_date),
                value=enrichment.value,
                applied_date=parse_date(row.applied_date),
                applied_date_string=row.applied_date,
                expiration_date=parse_date(row.expiration_date),
                source_url=source_url,
                licensed_professional_text=enrichment.licensed_professional_text,
            )
        except Exception as e:
            logging.exception("%s failed to build record %s: %s", self.site.site_id, row.permit_number, e)
            self.process_progress_callback(0, 1)
            return None

    async def _advance_page(self, commands: PageCommands, html: str, page_number: int) -> bool:
        """Move to ``page_number + 1``; ``False`` means pagination is over."""
        control = find_next_page_control(html, page_number)
        if control is None or control.disabled:
            return False

        before = first_permit_number(html)
        target = page_number + 1
        outcome = await commands.click_element(
            control.selector,
            binding=FrameworkBinding(
                calls=[
                    ScopeCall(path="vm.goToPage", args=[target]),
                    ScopeCall(path="vm.setPage", args=[target]),
                    ScopeCall(path="vm.nextPage"),
                ],
            ),
        )
        if not outcome.triggered:
            logging.warning("%s could not locate a handler for page %s", self.site.site_id, target)
            return False

        async def page_changed() -> Optional[bool]:
            await wait_for_framework_ready(
                commands,
                timeout_ms=self.timing.framework_timeout_ms,
                fallback_ms=self.timing.framework_fallback_ms,
                interval_ms=self.timing.poll_interval_ms,
                backoff=self.timing.poll_backoff,
            )
            after = first_permit_number(await commands.content())
            return True if after and after != before else None

        await commands.pause(self.timing.settle_ms)
        if await retry_until_found(page_changed, self.timing.page_change_attempts, self.timing.settle_ms // 2):
            return True
        logging.warning("%s page %s never rendered new results; stopping", self.site.site_id, target)
        return False
