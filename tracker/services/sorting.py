"""
Sort/Filter Engine

Sorting:
- One active field at a time; toggling the same field flips direction,
  choosing a new field resets to ascending
- Text fields compare case-insensitively, numbers by value (missing = 0),
  target dates lexicographically as ISO strings (missing = "")
- Descending is the exact reverse of ascending; no secondary tie-break

Filtering:
- Opportunity and company selections from the sidebar; "all" shows
  everything, "select" shows only the selected ids
"""

from functools import cmp_to_key
from typing import Callable, Dict, List, Optional, Sequence

from tracker.services.records import OpportunityRecord

ASC = "asc"
DESC = "desc"

DEFAULT_SORT_FIELD = "phase"


def _compare_text(a: str, b: str) -> int:
    folded_a, folded_b = a.casefold(), b.casefold()
    if folded_a != folded_b:
        return -1 if folded_a < folded_b else 1
    if a != b:
        return -1 if a < b else 1
    return 0


def _compare_number(a, b) -> int:
    diff = (a or 0) - (b or 0)
    if diff < 0:
        return -1
    if diff > 0:
        return 1
    return 0


def _compare_iso(a: str, b: str) -> int:
    if a == b:
        return 0
    return -1 if a < b else 1


COMPARATORS: Dict[str, Callable[[OpportunityRecord, OpportunityRecord], int]] = {
    "name": lambda a, b: _compare_text(a.name or "", b.name or ""),
    "company": lambda a, b: _compare_text(a.display_company, b.display_company),
    "estimated_som": lambda a, b: _compare_number(a.estimated_som, b.estimated_som),
    "status": lambda a, b: _compare_text(str(a.status or ""), str(b.status or "")),
    "phase": lambda a, b: _compare_number(a.phase, b.phase),
    "target_date": lambda a, b: _compare_iso(a.target_date or "", b.target_date or ""),
}

SORT_FIELDS = list(COMPARATORS)


class SortState:
    """The active sort field and direction."""

    def __init__(self, field: str = DEFAULT_SORT_FIELD, direction: str = ASC):
        if field not in COMPARATORS:
            raise ValueError(f"Cannot sort by '{field}'")
        if direction not in (ASC, DESC):
            raise ValueError(f"Unknown sort direction '{direction}'")
        self.field = field
        self.direction = direction

    def toggle(self, field: str) -> "SortState":
        """Return the state after clicking the header for `field`."""
        if field == self.field:
            return SortState(field, DESC if self.direction == ASC else ASC)
        return SortState(field, ASC)

    def to_dict(self) -> dict:
        return {"field": self.field, "direction": self.direction}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SortState":
        if not data:
            return cls()
        try:
            return cls(data.get("field", DEFAULT_SORT_FIELD), data.get("direction", ASC))
        except ValueError:
            return cls()

    def __eq__(self, other):
        return (
            isinstance(other, SortState)
            and self.field == other.field
            and self.direction == other.direction
        )

    def __repr__(self):
        return f"<SortState {self.field} {self.direction}>"


def sort_records(
    records: Sequence[OpportunityRecord], state: SortState
) -> List[OpportunityRecord]:
    """Return records ordered by the active field and direction."""
    ordered = sorted(records, key=cmp_to_key(COMPARATORS[state.field]))
    if state.direction == DESC:
        ordered.reverse()
    return ordered


def filter_records(
    records: Sequence[OpportunityRecord],
    opportunity_mode: str = "all",
    selected_opportunity_ids: Sequence[str] = (),
    company_mode: str = "all",
    selected_company_ids: Sequence[str] = (),
) -> List[OpportunityRecord]:
    """Apply the sidebar opportunity/company selections."""
    result = list(records)
    if opportunity_mode == "select":
        wanted = set(selected_opportunity_ids)
        result = [r for r in result if r.id in wanted]
    if company_mode == "select":
        wanted = set(selected_company_ids)
        result = [r for r in result if r.company_id in wanted]
    return result


def group_by_phase(
    records: Sequence[OpportunityRecord], phases: Sequence[int]
) -> Dict[int, List[OpportunityRecord]]:
    """Bucket records into timeline columns, one per phase."""
    columns: Dict[int, List[OpportunityRecord]] = {phase: [] for phase in phases}
    for record in records:
        if record.phase in columns:
            columns[record.phase].append(record)
    return columns
