"""Detail page enrichment result."""

from typing import Optional

from pydantic import BaseModel, Field


class DetailEnrichment(BaseModel):
    """Supplementary fields scraped from a permit detail page.

    Parameters
    ----------
    value : Optional[float], default=None
        Valuation / job value.
    licensed_professional_text : Optional[str], default=None
        Contractor license number or licensed-professional block.

    Examples
    --------
    >>> DetailEnrichment().is_empty
    True
    """

    value: Optional[float] = Field(default=None, ge=0)
    licensed_professional_text: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.value is None and self.licensed_professional_text is None
