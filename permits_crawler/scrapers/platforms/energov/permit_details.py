"""EnerGov permit detail enricher.

The detail page renders a "No records to display" placeholder until its
data arrives, then fills the valuation field. Contractor licenses live on
the separate "More Info" tab.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from permits_crawler.normalizers.currency import parse_currency
from permits_crawler.schemas.enrichment import DetailEnrichment
from permits_crawler.scrapers.base.page_commands import FrameworkBinding, PageCommands, ScopeCall
from permits_crawler.scrapers.base.permit_details import PermitDetailsBaseScraper
from permits_crawler.scrapers.base.waits import poll_until, retry_until_found, wait_for_framework_ready


NO_RECORDS_PLACEHOLDER = "no records to display"
MORE_INFO_TAB = "#button-TabButton-MoreInfo"

VALUATION_SELECTORS = [
    "#label-PermitDetail-Valuation p.form-control-static",
    "#label-PermitDetail-Valuation p.ng-binding",
    "#label-PermitDetail-Valuation p",
    'div[id="label-PermitDetail-Valuation"] p.form-control-static',
    'div[id*="Valuation"] p.form-control-static',
    'div[id*="Valuation"] p.ng-binding',
    'div[name="label-Valuation"] span',
    'div[label*="Valuation"] span',
    'input[name*="Valuation"]',
    '[name*="Valuation"]',
]

CONTRACTOR_LICENSE_SELECTORS = [
    "#NUM_ContractorLicense",
    'span[name="NUM_ContractorLicense"]',
    'span[id="NUM_ContractorLicense"]',
    'div[id="NUM_ContractorLicense"] span',
]

_VALUATION_TEXT_RE = re.compile(r"valuation[^$]*(\$[\d,]+)", re.IGNORECASE)
_LICENSE_RE = re.compile(r"^\d{6,8}$")
_LICENSE_TEXT_RE = re.compile(r"Contractor License\s*#?\s*:?\s*(\d{6,8})\b", re.IGNORECASE)


def _element_value(el: Tag) -> str:
    if el.name == "input":
        return str(el.get("value") or "").strip()
    return el.get_text(" ", strip=True)


def _usable_amount(text: str) -> Optional[float]:
    lowered = text.lower()
    if not text or "no records" in lowered or "loading" in lowered:
        return None
    return parse_currency(text, positive_only=True)


def _scan_label_neighbours(label: Tag) -> Iterable[Tag]:
    parent = label.parent
    if parent is not None:
        yield from parent.find_all(True)
    for sibling in label.find_next_siblings(True, limit=10):
        yield sibling
    if parent is not None:
        nxt = parent.find_next_sibling(True)
        if nxt is not None:
            yield nxt


def find_valuation(html: str) -> Optional[float]:
    """Extract the project valuation from a detail page.

    Tries the known field selectors first, then any label mentioning
    "valuation" (but not "total"), then a plain-text pattern over the page.
    Placeholders such as "No records" or "Loading" and non-positive amounts
    are ignored.
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in VALUATION_SELECTORS:
        for el in soup.select(selector):
            amount = _usable_amount(_element_value(el))
            if amount is not None:
                return amount

    for label in soup.select('label, div[name*="label"]'):
        label_text = label.get_text(" ", strip=True).lower()
        if "valuation" not in label_text or "total" in label_text:
            continue
        for candidate in _scan_label_neighbours(label):
            if candidate is label:
                continue
            amount = _usable_amount(_element_value(candidate))
            if amount is not None:
                return amount

    for tag in soup(["script", "style"]):
        tag.decompose()
    m = _VALUATION_TEXT_RE.search(soup.get_text(" ", strip=True))
    if m:
        return parse_currency(m.group(1), positive_only=True)
    return None


def find_contractor_license(html: str) -> Optional[str]:
    """Extract a 6-8 digit contractor license number from the More Info tab."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in CONTRACTOR_LICENSE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text(strip=True)
        if _LICENSE_RE.match(text):
            return text
    m = _LICENSE_TEXT_RE.search(soup.get_text(" ", strip=True))
    return m.group(1) if m else None


class EnerGovPermitDetailsScraper(PermitDetailsBaseScraper):
    """Valuation and contractor license from EnerGov detail pages."""

    async def _extract(self, tab: PageCommands, url: str) -> DetailEnrichment:
        await self._open(tab, url)
        await self._raise_if_forbidden(tab, url)
        await self._wait_for_framework(tab)
        await self._wait_for_details(tab)

        async def read_valuation() -> Optional[float]:
            return find_valuation(await tab.content())

        value = await retry_until_found(
            read_valuation,
            self.timing.enrichment_attempts,
            self.timing.enrichment_retry_ms,
        )
        if value is None:
            logging.info("%s no valuation found at %s", self.site.site_id, url)

        license_text = None
        if self.site.contractor_info_accessible:
            license_text = await self._read_contractor_license(tab)

        return DetailEnrichment(value=value, licensed_professional_text=license_text)

    async def _wait_for_framework(self, tab: PageCommands) -> None:
        await wait_for_framework_ready(
            tab,
            timeout_ms=self.timing.framework_timeout_ms,
            fallback_ms=self.timing.framework_fallback_ms,
            interval_ms=self.timing.poll_interval_ms,
            backoff=self.timing.poll_backoff,
        )

    async def _wait_for_details(self, tab: PageCommands) -> None:
        async def placeholder_gone() -> bool:
            return NO_RECORDS_PLACEHOLDER not in (await tab.body_text()).lower()

        gone = await poll_until(
            placeholder_gone, self.timing.results_timeout_ms, self.timing.poll_interval_ms, self.timing.poll_backoff
        )
        if not gone:
            logging.info("%s detail placeholder still shown after %sms", self.site.site_id, self.timing.results_timeout_ms)
        await tab.pause(self.timing.detail_settle_ms)

    async def _read_contractor_license(self, tab: PageCommands) -> Optional[str]:
        outcome = await tab.click_element(
            MORE_INFO_TAB,
            binding=FrameworkBinding(
                calls=[
                    ScopeCall(
                        path="vm.tabNavigatorService.navigate",
                        arg_paths=["vm.tabNavigatorService.tabConstant.Moreinfo"],
                    )
                ],
            ),
        )
        if not outcome.triggered:
            logging.info("%s has no More Info tab", self.site.site_id)
            return None
        await tab.pause(self.timing.settle_ms)
        await self._wait_for_framework(tab)
        return find_contractor_license(await tab.content())
