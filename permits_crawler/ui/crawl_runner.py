"""Crawl runner: concurrent site crawls with progress bars."""

from __future__ import annotations

import asyncio
from datetime import date
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from permits_crawler.configs.settings import app_config
from permits_crawler.orchestrator import CrawlOrchestrator
from permits_crawler.persistence import CsvPermitSink, JsonPermitSink, PermitSink
from permits_crawler.schemas.search import ScrapeResult
from permits_crawler.schemas.site import SiteConfig
from permits_crawler.ui.utils import BOLD, GREEN, RED, RESET


async def _crawl_worker(
    site: SiteConfig,
    start_date: Optional[date],
    end_date: Optional[date],
    record_limit: Optional[int],
    headless: bool,
    sinks: List[PermitSink],
    per_bar: tqdm,
    overall_bar: tqdm,
) -> Tuple[str, ScrapeResult, Dict[str, int]]:
    kept_total = 0
    dropped_total = 0

    def on_progress(kept_inc: int, dropped_inc: int, total: Optional[int] = None) -> None:
        nonlocal kept_total, dropped_total
        kept_total += kept_inc
        dropped_total += dropped_inc
        per_bar.update(kept_inc + dropped_inc)
        overall_bar.update(kept_inc + dropped_inc)
        per_bar.set_postfix(kept=kept_total, dropped=dropped_total)
        if total is not None:
            per_bar.total = total
            per_bar.refresh()

    orchestrator = CrawlOrchestrator(progress_callback=on_progress)
    orchestrator.set_headless(headless)
    result = await orchestrator.scrape(site, record_limit, start_date, end_date)

    written: Dict[str, int] = {}
    if result.success:
        for sink in sinks:
            written[sink.name] = sink.write(result.permits)
    else:
        per_bar.set_postfix(error=(result.error or "")[:40])
    return site.site_id, result, written


def run_crawls(
    sites: List[SiteConfig],
    start_date: Optional[date],
    end_date: Optional[date],
    record_limit: Optional[int] = None,
    headless: bool = True,
    out_dir: Optional[Path] = None,
) -> List[Tuple[str, ScrapeResult, Dict[str, int]]]:
    """Crawl ``sites`` concurrently, one browser per site, and persist the results.

    Parameters
    ----------
    sites : List[SiteConfig]
        Sites to crawl.
    start_date, end_date : Optional[date]
        Search window; ``None`` defaults are resolved per site.
    record_limit : Optional[int], default=None
        Per-site record limit.
    headless : bool, default=True
        Launch browsers without a window.
    out_dir : Optional[Path], default=None
        Output root; defaults to ``DATA_DIR/permits``. Every record is
        written as JSON under it and upserted into ``permits.csv`` there.

    Returns
    -------
    List[Tuple[str, ScrapeResult, Dict[str, int]]]
        ``(site_id, result, records written per sink)`` per site.
    """
    root = out_dir or app_config.DATA_DIR / "permits"
    sinks: List[PermitSink] = [JsonPermitSink(root), CsvPermitSink(root / "permits.csv")]
    overall_bar = tqdm(total=None, position=0, desc="Overall", leave=True)
    per_bars = [
        tqdm(total=None, position=i + 1, desc=site.site_id, leave=True)
        for i, site in enumerate(sites)
    ]

    async def runner() -> List[Tuple[str, ScrapeResult, Dict[str, int]]]:
        tasks = [
            _crawl_worker(site, start_date, end_date, record_limit, headless, sinks, per_bars[i], overall_bar)
            for i, site in enumerate(sites)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        summary: List[Tuple[str, ScrapeResult, Dict[str, int]]] = []
        for site, res in zip(sites, results):
            if isinstance(res, BaseException):
                logging.error("Crawl worker for %s failed: %s", site.site_id, res)
                summary.append((site.site_id, ScrapeResult.failed(str(res)), {}))
            else:
                summary.append(res)
        return summary

    try:
        summary = asyncio.run(runner())
    finally:
        for b in per_bars:
            b.close()
        overall_bar.close()

    for site_id, result, written in summary:
        if result.success:
            counts = ", ".join(f"{count} to {name}" for name, count in written.items())
            print(f"{GREEN}{site_id}{RESET}: {len(result.permits)} permits, written {counts or 'nothing'}")
        else:
            print(f"{RED}{site_id}{RESET}: failed ({result.error})")
    ok = sum(1 for _, r, _ in summary if r.success)
    print(f"\n{GREEN}Succeeded: {ok}{RESET} | {RED}Failed: {len(summary) - ok}{RESET} | Output: {BOLD}{root}{RESET}")
    return summary
