"""Configuration module for the Permits Crawler.

This module defines application settings using Pydantic's settings management.
It loads environment variables via ``python-dotenv`` to simplify local development.
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv(override=True)


class Settings(BaseSettings):
    """
    Settings class for the Permits Crawler.

    Parameters
    ----------
    HEADLESS : bool, default=True
        Launch Chromium without a visible window.
    BLOCK_RESOURCES : bool, default=True
        Abort image, media, font and stylesheet requests on the browser context.
    DATA_DIR : Path
        Root directory for persisted crawl results.
    LOG_FILE : Path
        File the CLI writes its log lines to.
    NAVIGATION_TIMEOUT_MS : int, default=60000
        Upper bound for a single ``page.goto``.
    ELEMENT_TIMEOUT_MS : int, default=10000
        Upper bound for a selector wait.
    RESULTS_TIMEOUT_MS : int, default=15000
        Upper bound for the first result row to render after a search.
    FRAMEWORK_TIMEOUT_MS : int, default=10000
        How long to poll for client framework readiness.
    FRAMEWORK_FALLBACK_MS : int, default=2000
        Sleep used when framework readiness never reports idle.
    SETTLE_MS : int, default=2000
        Fixed delay after state-changing interactions.
    DETAIL_SETTLE_MS : int, default=3000
        Fixed delay after a detail page loads.
    MAX_PAGES : int, default=100
        Upper bound on pagination iterations.

    Returns
    -------
    Settings
        A validated settings object.

    See Also
    --------
    BaseSettings : Pydantic settings base class for environment variable loading.

    Examples
    --------
    >>> from permits_crawler.configs.settings import Settings
    >>> settings = Settings()
    >>> settings.MAX_PAGES
    100
    """

    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BLOCK_RESOURCES: bool = Field(default=True, description="Block images, media, fonts and stylesheets")
    DATA_DIR: Path = Field(
        default=Path(__file__).resolve().parents[1] / "data",
        description="Root directory for persisted crawl results",
    )
    LOG_FILE: Path = Field(
        default=Path(__file__).resolve().parents[2] / "logs.txt",
        description="Log file used by the CLI",
    )

    NAVIGATION_TIMEOUT_MS: int = Field(default=60000, description="Navigation timeout in milliseconds")
    ELEMENT_TIMEOUT_MS: int = Field(default=10000, description="Selector wait timeout in milliseconds")
    RESULTS_TIMEOUT_MS: int = Field(default=15000, description="Search results wait timeout in milliseconds")
    FRAMEWORK_TIMEOUT_MS: int = Field(default=10000, description="Framework readiness timeout in milliseconds")
    FRAMEWORK_FALLBACK_MS: int = Field(default=2000, description="Sleep when framework readiness times out")
    SETTLE_MS: int = Field(default=2000, description="Settle delay after interactions in milliseconds")
    DETAIL_SETTLE_MS: int = Field(default=3000, description="Settle delay after a detail page loads")
    MAX_PAGES: int = Field(default=100, description="Pagination iteration ceiling")


class CrawlTiming(BaseModel):
    """Timeouts, delays and retry counts used by one crawl.

    Adapters receive this object instead of reading the global settings so a
    test can run the same state machine with near-zero delays.

    Parameters
    ----------
    navigation_timeout_ms : int
        Upper bound for navigation.
    element_timeout_ms : int
        Upper bound for a selector wait.
    results_timeout_ms : int
        Upper bound for the first result row after a search.
    framework_timeout_ms : int
        Framework readiness polling window.
    framework_fallback_ms : int
        Sleep used when readiness polling times out.
    poll_interval_ms : int
        First interval between polls.
    poll_backoff : float
        Multiplier applied to the poll interval after every attempt.
    settle_ms : int
        Fixed delay after state-changing interactions.
    detail_settle_ms : int
        Fixed delay after a detail page loads.
    section_expand_ms : int
        Delay after expanding one collapsible detail section.
    max_pages : int
        Upper bound on pagination iterations.
    filter_panel_attempts : int
        Times the advanced toggle is re-triggered when the filter panel is missing.
    page_change_attempts : int
        Times a page transition is re-checked before giving up.
    enrichment_attempts : int
        Times the valuation extraction is retried on a detail page.
    enrichment_retry_ms : int
        Base delay between valuation extraction attempts; grows per attempt.
    """

    navigation_timeout_ms: int = 60000
    element_timeout_ms: int = 10000
    results_timeout_ms: int = 15000
    framework_timeout_ms: int = 10000
    framework_fallback_ms: int = 2000
    poll_interval_ms: int = 250
    poll_backoff: float = 1.5
    settle_ms: int = 2000
    detail_settle_ms: int = 3000
    section_expand_ms: int = 1000
    max_pages: int = 100
    filter_panel_attempts: int = 3
    page_change_attempts: int = 5
    enrichment_attempts: int = 3
    enrichment_retry_ms: int = 2000

    @classmethod
    def from_settings(cls, settings: Settings) -> "CrawlTiming":
        """Build the timing profile from application settings."""
        return cls(
            navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS,
            element_timeout_ms=settings.ELEMENT_TIMEOUT_MS,
            results_timeout_ms=settings.RESULTS_TIMEOUT_MS,
            framework_timeout_ms=settings.FRAMEWORK_TIMEOUT_MS,
            framework_fallback_ms=settings.FRAMEWORK_FALLBACK_MS,
            settle_ms=settings.SETTLE_MS,
            detail_settle_ms=settings.DETAIL_SETTLE_MS,
            max_pages=settings.MAX_PAGES,
        )


# Create a global instance of the settings
app_config = Settings()
