"""Status normalization.

Portals describe permit lifecycles with free text that overlaps between
buckets ("Active - Issued" and "Active - Pending Review" both say "active").
A :class:`StatusVocabulary` resolves such text in a fixed stage order:

1. exact, case-insensitive matches;
2. specific keyword patterns, in declared order;
3. the generic ``"active"`` substring, mapped to ``IN_REVIEW``;
4. ``UNKNOWN``.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Dict, List, Optional, Pattern, Tuple, Union

from pydantic import BaseModel, ConfigDict

from permits_crawler.schemas.permit_record import PermitStatus


class StatusVocabulary(BaseModel):
    """Ordered mapping from raw status text to :class:`PermitStatus`.

    Parameters
    ----------
    name : str
        Vocabulary label used in logs.
    exact : Dict[str, PermitStatus]
        Lower-cased status strings matched verbatim.
    patterns : List[Tuple[PermitStatus, Pattern]]
        Regular expressions tried in order against the lower-cased text.
    generic_keyword : str, default="active"
        Substring that maps otherwise unmapped text to ``generic_status``.
    generic_status : PermitStatus, default=PermitStatus.IN_REVIEW
        Bucket for the generic keyword.
    """

    name: str
    exact: Dict[str, PermitStatus]
    patterns: List[Tuple[PermitStatus, Pattern]]
    generic_keyword: str = "active"
    generic_status: PermitStatus = PermitStatus.IN_REVIEW

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def normalize(self, raw: Optional[str]) -> PermitStatus:
        """Map raw status text to a bucket.

        Examples
        --------
        >>> ENERGOV_STATUS_VOCABULARY.normalize("Active - Issued")
        <PermitStatus.ISSUED: 'ISSUED'>
        >>> ENERGOV_STATUS_VOCABULARY.normalize("")
        <PermitStatus.UNKNOWN: 'UNKNOWN'>
        """
        if not raw:
            return PermitStatus.UNKNOWN
        text = " ".join(raw.split()).lower()
        if not text:
            return PermitStatus.UNKNOWN

        if text in self.exact:
            return self.exact[text]

        for status, pattern in self.patterns:
            if pattern.search(text):
                return status

        if self.generic_keyword in text:
            return self.generic_status

        return PermitStatus.UNKNOWN


def _rules(*rules: Tuple[PermitStatus, str]) -> List[Tuple[PermitStatus, Pattern]]:
    return [(status, re.compile(expr)) for status, expr in rules]


ENERGOV_STATUS_VOCABULARY = StatusVocabulary(
    name="energov",
    exact={
        "active - issued": PermitStatus.ISSUED,
        "approved": PermitStatus.ISSUED,
        "finaled": PermitStatus.ISSUED,
        "active - pending review": PermitStatus.IN_REVIEW,
        "active - returned to applicant": PermitStatus.IN_REVIEW,
        "submitted": PermitStatus.IN_REVIEW,
        "submitted - online": PermitStatus.IN_REVIEW,
        "incomplete": PermitStatus.IN_REVIEW,
        "void": PermitStatus.INACTIVE,
        "cancelled": PermitStatus.INACTIVE,
        "canceled": PermitStatus.INACTIVE,
    },
    patterns=_rules(
        (PermitStatus.ISSUED, r"^(?!.*pending).*final"),
        (PermitStatus.IN_REVIEW, r"pending|review|(?=.*returned)(?=.*applicant)"),
        (PermitStatus.INACTIVE, r"expired|revoked|withdrawn|closed"),
    ),
)

ACCELA_STATUS_VOCABULARY = StatusVocabulary(
    name="accela",
    exact={
        **{s: PermitStatus.INACTIVE for s in ("void", "expired", "revoked", "cancelled", "canceled", "withdrawn", "closed")},
        **{s: PermitStatus.ISSUED for s in ("issued", "active", "finaled", "final", "permit issued")},
        **{
            s: PermitStatus.IN_REVIEW
            for s in (
                "pending",
                "processing",
                "plan check",
                "in plan check",
                "ready to issue",
                "plan review",
                "submitted",
                "pending resubmittal",
                "incomplete",
                "received",
                "accepted",
            )
        },
    },
    patterns=_rules(
        (PermitStatus.ISSUED, r"\b(issued|active|finaled|final|permit issued|certificate of occupancy|co issued)\b"),
        (PermitStatus.INACTIVE, r"\b(void|expired|revoked|cancelled|canceled|withdrawn|closed)\b"),
        (PermitStatus.IN_REVIEW, r"ready to issue|ready-to-issue|ready for issuance"),
        (
            PermitStatus.IN_REVIEW,
            r"pending|plan\s*check|processing|pre-?\s*application accepted|review|intake"
            r"|application received|submitted|incomplete",
        ),
    ),
)


def resolve_status(
    raw_status: Optional[str],
    vocabulary: StatusVocabulary,
    issued_date: Union[str, date, None] = None,
    issued_date_overrides: bool = True,
    unknown_fallback: Optional[PermitStatus] = None,
) -> PermitStatus:
    """Resolve the final status of a result row.

    Parameters
    ----------
    raw_status : Optional[str]
        Status column text.
    vocabulary : StatusVocabulary
        Platform vocabulary.
    issued_date : Union[str, date, None], default=None
        Issued-date column; any non-blank value counts as issued.
    issued_date_overrides : bool, default=True
        Apply the issued-date rule. Portals keep stale status labels after
        issuance, so the date is authoritative when the rule is on.
    unknown_fallback : Optional[PermitStatus], default=None
        Replacement for ``UNKNOWN``.

    Returns
    -------
    PermitStatus
        Normalized status.

    Examples
    --------
    >>> resolve_status("Active - Pending Review", ENERGOV_STATUS_VOCABULARY, issued_date="01/15/2025")
    <PermitStatus.ISSUED: 'ISSUED'>
    """
    if issued_date_overrides and issued_date is not None and str(issued_date).strip():
        return PermitStatus.ISSUED

    status = vocabulary.normalize(raw_status)
    if status is PermitStatus.UNKNOWN and unknown_fallback is not None:
        return unknown_fallback
    return status
