"""Permit record schemas.

This module defines the unit of crawl output, ``ExtractedPermitRecord``, and
the closed set of normalized permit statuses.

Records are frozen: adapters assemble every field before construction and
hand the finished batch to a persistence sink.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PermitStatus(str, Enum):
    """Normalized permit lifecycle bucket."""

    UNKNOWN = "UNKNOWN"
    IN_REVIEW = "IN_REVIEW"
    ISSUED = "ISSUED"
    INACTIVE = "INACTIVE"


class ExtractedPermitRecord(BaseModel):
    """Permit harvested from a portal result list (optionally enriched).

    Parameters
    ----------
    permit_number : str
        Natural permit identifier as shown by the portal.
    city : str
        Jurisdiction city, supplied by the site configuration.
    state : str
        Jurisdiction state, supplied by the site configuration.
    title : Optional[str], default=None
        Human-readable category.
    description : Optional[str], default=None
        Free-text work description.
    address : Optional[str], default=None
        Address string as scraped.
    zip_code : Optional[str], default=None
        Postal code isolated from the address.
    permit_type : Optional[str], default=None
        Raw classification from the portal.
    status : PermitStatus, default=PermitStatus.UNKNOWN
        Normalized status.
    value : Optional[float], default=None
        Monetary valuation, never negative.
    applied_date : Optional[date], default=None
        Parsed application date.
    applied_date_string : Optional[str], default=None
        Application date exactly as the portal rendered it.
    expiration_date : Optional[date], default=None
        Parsed expiration date.
    source_url : Optional[str], default=None
        Link to the permit detail page.
    licensed_professional_text : Optional[str], default=None
        Contractor license number or licensed-professional block.

    Examples
    --------
    >>> ExtractedPermitRecord(permit_number="BLD-2025-0001", city="Sunnyvale", state="CA").natural_key
    ('BLD-2025-0001', 'Sunnyvale', 'CA')
    """

    permit_number: str = Field(description="Permit number")
    city: str = Field(description="Jurisdiction city")
    state: str = Field(description="Jurisdiction state")
    title: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    permit_type: Optional[str] = None
    status: PermitStatus = PermitStatus.UNKNOWN
    value: Optional[float] = Field(default=None, ge=0)
    applied_date: Optional[date] = None
    applied_date_string: Optional[str] = None
    expiration_date: Optional[date] = None
    source_url: Optional[str] = None
    licensed_professional_text: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("permit_number", "city", "state")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def natural_key(self) -> Tuple[str, str, str]:
        """Upsert key used by persistence sinks."""
        return self.permit_number, self.city, self.state
