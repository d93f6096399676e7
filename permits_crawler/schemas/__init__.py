"""Schema package for permits crawler.

Exposes commonly used models for convenient imports.
"""

from .enrichment import DetailEnrichment
from .permit_record import ExtractedPermitRecord, PermitStatus
from .search import ScrapeResult, SearchCriteria
from .site import PlatformType, SiteConfig

__all__ = [
    "DetailEnrichment",
    "ExtractedPermitRecord",
    "PermitStatus",
    "PlatformType",
    "ScrapeResult",
    "SearchCriteria",
    "SiteConfig",
]
