"""Exceptions raised by the crawl engine."""


class CrawlError(Exception):
    """Base class for crawl failures."""


class BrowserLaunchError(CrawlError):
    """The browser process could not be started."""


class SearchSetupError(CrawlError):
    """A control required to build the search never became usable.

    Raised for a missing category option, an advanced-filter toggle that never
    shows up, a filter panel that never mounts, or a missing date field.
    """


class DetailPageBlockedError(CrawlError):
    """The portal refused to serve a detail page (HTTP 403 or forbidden body)."""
