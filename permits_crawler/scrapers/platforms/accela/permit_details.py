"""Accela permit detail enricher.

Job value and licensed professional sit in collapsible sections of the
"Record Details" panel which have to be expanded before the text is read.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from permits_crawler.normalizers.currency import parse_currency
from permits_crawler.schemas.enrichment import DetailEnrichment
from permits_crawler.scrapers.base.page_commands import PageCommands
from permits_crawler.scrapers.base.permit_details import PermitDetailsBaseScraper


# (toggle link, collapsible row)
COLLAPSIBLE_SECTIONS: List[Tuple[str, str]] = [
    ("#lnkMoreDetail", "#TRMoreDetail"),
    ("#lnkAddtional", "#trADIList"),
    ("#lnkASI", "#trASIList"),
]

LICENSED_PROFESSIONAL_TABLE = "#tbl_licensedps"

JOB_VALUE_PATTERNS = [
    re.compile(r"Job Value.*?\$\s*([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Job Value\(?\$?\)?:?\s*\$?\s*([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Job Value.*?(\d{1,3}(?:,\d{3})*(?:\.\d{2})?)", re.IGNORECASE),
    re.compile(r"Estimated value of work.*?:\s*([\d,]+\.?\d*)", re.IGNORECASE),
    re.compile(r"Valuation.*?:\s*([\d,]+\.?\d*)", re.IGNORECASE),
]

_LICENSED_PROFESSIONAL_RE = re.compile(r"Licensed Professional:.*?\n([^\n]+)", re.IGNORECASE)


def find_job_value(text: str) -> Optional[float]:
    """First amount matched by the job value patterns, in order."""
    for pattern in JOB_VALUE_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        amount = parse_currency(m.group(1))
        if amount is not None:
            return amount
    return None


def find_licensed_professional(table_text: Optional[str], body_text: str) -> Optional[str]:
    """Licensed professional block, whitespace collapsed.

    The structured table wins; the line following a "Licensed Professional:"
    heading in the page text is the fallback.
    """
    if table_text:
        collapsed = " ".join(table_text.split())
        if collapsed:
            return collapsed
    m = _LICENSED_PROFESSIONAL_RE.search(body_text)
    if m:
        return m.group(1).strip() or None
    return None


def collapsed_sections(html: str) -> List[str]:
    """Toggle links of the sections currently hidden with ``display:none``."""
    soup = BeautifulSoup(html, "html.parser")
    toggles: List[str] = []
    for link, row in COLLAPSIBLE_SECTIONS:
        el = soup.select_one(row)
        if el is None:
            continue
        style = (el.get("style") or "").replace(" ", "").lower()
        if "display:none" in style:
            toggles.append(link)
    return toggles


class AccelaPermitDetailsScraper(PermitDetailsBaseScraper):
    """Job value and licensed professional from Accela record details."""

    async def _extract(self, tab: PageCommands, url: str) -> DetailEnrichment:
        await self._open(tab, url)
        await tab.pause(self.timing.detail_settle_ms)
        await self._raise_if_forbidden(tab, url)

        for toggle in collapsed_sections(await tab.content()):
            outcome = await tab.click_element(toggle)
            if not outcome.triggered:
                logging.debug("%s section toggle %s missing", self.site.site_id, toggle)
            await tab.pause(self.timing.section_expand_ms)

        body = await tab.body_text()
        value = find_job_value(body)

        professional = None
        if self.site.contractor_info_accessible:
            table_text = await tab.read_selector_text(LICENSED_PROFESSIONAL_TABLE)
            professional = find_licensed_professional(table_text, body)
        return DetailEnrichment(value=value, licensed_professional_text=professional)
