"""
Display helpers shared by the table and timeline views.

Status values are free text in the database. `parse_status` maps them onto
the known keys and returns a tagged result instead of mutating the string.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple, Optional, Union

from tracker.models import Opportunity


class KnownStatus(NamedTuple):
    value: str

    @property
    def label(self) -> str:
        return Opportunity.STATUS_LABELS[self.value]


class UnknownStatus(NamedTuple):
    raw: str

    @property
    def label(self) -> str:
        return self.raw or "Unknown"


StatusResult = Union[KnownStatus, UnknownStatus]


def parse_status(raw: Optional[str]) -> StatusResult:
    """Match a stored status against the known keys.

    "In Progress", "in-progress" and "IN_PROGRESS" all parse to
    KnownStatus("in_progress"); anything else is kept verbatim.
    """
    if not raw:
        return UnknownStatus("")
    normalized = re.sub(r"[^a-z_]", "_", raw.lower())
    if normalized in Opportunity.STATUS_LABELS:
        return KnownStatus(normalized)
    return UnknownStatus(raw)


def indicator_value(raw: Optional[str]) -> str:
    """Indicators without a recognised value display as red."""
    if raw in Opportunity.INDICATORS:
        return raw
    return "red"


def phase_info(phase: Optional[int]) -> dict:
    """Return number, short name, name and duration for a phase.

    Unknown phases fall back to Phase 0.
    """
    for number, short_name, name, duration in Opportunity.PHASES:
        if number == phase:
            break
    else:
        number, short_name, name, duration = Opportunity.PHASES[0]
    return {
        "number": number,
        "short_name": short_name,
        "name": name,
        "duration": duration,
    }


def format_som(value) -> str:
    """Format a SOM estimate in thousands: 150000 -> "$150k", None -> "-"."""
    if not value:
        return "-"
    try:
        number = Decimal(str(value))
        if not number.is_finite():
            return "-"
        thousands = (number / 1000).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return "-"
    return f"${thousands}k"


def som_edit_value(value) -> str:
    """Plain-number representation used to seed the SOM editor."""
    if value is None:
        return ""
    number = Decimal(str(value))
    if not number.is_finite():
        return ""
    if number == number.to_integral_value():
        return str(int(number))
    return str(number.normalize())


def format_short_date(value: Optional[str]) -> str:
    """Format an ISO date string as "Mar 1"; missing or bad dates show "-"."""
    if not value:
        return "-"
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return "-"
    return f"{parsed.strftime('%b')} {parsed.day}"
