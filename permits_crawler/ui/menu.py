"""CLI menu entrypoint and shared flows."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple
from datetime import date

from permits_crawler.configs.settings import app_config
from permits_crawler.schemas.site import SiteConfig
from permits_crawler.sites.registry import enabled_sites, get_site, list_sites
from permits_crawler.ui.crawl_runner import run_crawls
from permits_crawler.ui.utils import (
    BOLD,
    CYAN,
    GREEN,
    RED,
    RESET,
    YELLOW,
    check_connection,
    connection_status_text,
    convert_json_folder_to_csv,
    parse_date_flexible,
    parse_optional_int,
    setup_file_logging,
)


def print_banner() -> None:
    banner = f"""
{BOLD}{CYAN}===================================
   Building Permits Crawler
==================================={RESET}
"""
    print(banner)


def prompt_menu() -> str:
    print("1. List configured sites")
    print("2. Crawl one site")
    print("3. Crawl all enabled sites")
    print("4. Convert JSON results to CSV")
    print("5. Check site connections")
    print("6. Exit")
    return input(f"\n{BOLD}Select an option [1-6]: {RESET}").strip()


def print_sites(sites: List[SiteConfig]) -> None:
    for site in sites:
        state = f"{GREEN}enabled{RESET}" if site.enabled else f"{YELLOW}disabled{RESET}"
        window = "date search" if site.supports_date_search else f"last {site.rolling_window_days} days only"
        print(f"- {BOLD}{site.site_id}{RESET} ({site.label}) [{site.platform.value}, {window}] {state}")


def prompt_crawl_inputs() -> Tuple[Optional[date], Optional[date], Optional[int], bool]:
    """Ask for the search window, the record limit and the headless flag.

    Raises
    ------
    ValueError
        On malformed input.
    """
    start_d = parse_date_flexible(input("Start date (YYYY-MM-DD or MM/DD/YYYY, blank = today): "))
    end_d = parse_date_flexible(input("End date (blank = open-ended, or today when no start date): "))
    limit = parse_optional_int(input("Record limit per site (blank = no limit): "))
    headless_raw = input(f"Run headless? [Y/n] (default: {'y' if app_config.HEADLESS else 'n'}): ").strip().lower()
    headless = app_config.HEADLESS if not headless_raw else headless_raw in {"y", "yes", "true", "1"}
    return start_d, end_d, limit, headless


def _pause() -> None:
    input(f"\n{BOLD}Press Enter to return to menu...{RESET}")


def main() -> None:
    setup_file_logging(app_config.LOG_FILE)
    while True:
        print_banner()
        choice = prompt_menu()
        print()

        if choice == "1":
            print_sites(list_sites())
            _pause()
            continue

        if choice in {"2", "3"}:
            try:
                if choice == "2":
                    sites = [get_site(input("Enter site id (e.g., sunnyvale): "))]
                else:
                    sites = enabled_sites()
                start_d, end_d, limit, headless = prompt_crawl_inputs()
            except ValueError as e:
                print(f"{RED}{e}{RESET}")
                _pause()
                continue
            print(f"\n{BOLD}Crawling {len(sites)} site(s)...{RESET}")
            try:
                run_crawls(sites, start_d, end_d, limit, headless)
            except Exception as e:
                print(f"{RED}Crawl failed: {e}{RESET}")
            _pause()
            continue

        if choice == "4":
            default_folder = app_config.DATA_DIR / "permits"
            folder_str = input(f"Folder with JSON files (default: {default_folder}): ").strip()
            out_csv_str = input("Output CSV file path (e.g., permits.csv): ").strip() or "permits.csv"
            folder = Path(folder_str).expanduser().resolve() if folder_str else default_folder
            out_csv = Path(out_csv_str).expanduser().resolve()
            try:
                count = convert_json_folder_to_csv(folder, out_csv)
                print(f"Converted {count} JSON files into: {BOLD}{out_csv}{RESET}")
            except Exception as e:
                print(f"{RED}Conversion failed: {e}{RESET}")
            _pause()
            continue

        if choice == "5":
            for site in list_sites():
                print(connection_status_text(site.base_url, check_connection(site.base_url)))
            _pause()
            continue

        if choice == "6":
            print("Goodbye!")
            break

        print(f"{RED}Invalid option. Please select 1-6.{RESET}\n")

