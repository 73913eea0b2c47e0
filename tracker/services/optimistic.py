"""
Optimistic update reducer.

Rules:
1. A patch replaces exactly one field on the record with the matching id
2. Every other record is returned as the same object, in the same order
3. A fresh authoritative list replaces everything; pending patches are dropped
4. A failed write rolls back its patch, restoring the authoritative value
"""

from typing import Any, List, NamedTuple, Sequence

from tracker.services.records import OpportunityRecord


class Patch(NamedTuple):
    """A single-field edit: (record id, field name, new value)."""
    record_id: str
    field: str
    value: Any


def apply_patch(
    records: Sequence[OpportunityRecord], patch: Patch
) -> List[OpportunityRecord]:
    """
    Return a new list with `patch` applied.

    Args:
        records: Current record list
        patch: The edit to apply

    Returns:
        A new list; only the record matching patch.record_id is copied
    """
    return [
        record.model_copy(update={patch.field: patch.value})
        if record.id == patch.record_id
        else record
        for record in records
    ]


def apply_patches(
    records: Sequence[OpportunityRecord], patches: Sequence[Patch]
) -> List[OpportunityRecord]:
    """Fold patches over records in order."""
    result = list(records)
    for patch in patches:
        result = apply_patch(result, patch)
    return result


class OptimisticList:
    """Last authoritative record list plus edits not yet confirmed."""

    def __init__(self, records: Sequence[OpportunityRecord]):
        self.authoritative: List[OpportunityRecord] = list(records)
        self.pending: List[Patch] = []

    @property
    def displayed(self) -> List[OpportunityRecord]:
        return apply_patches(self.authoritative, self.pending)

    def apply(self, patch: Patch) -> List[OpportunityRecord]:
        """Add a pending patch and return the list the view should show."""
        self.pending.append(patch)
        return self.displayed

    def rollback(self, patch: Patch) -> List[OpportunityRecord]:
        """Drop a pending patch after its write failed."""
        if patch in self.pending:
            self.pending.remove(patch)
        return self.displayed

    def reconcile(self, records: Sequence[OpportunityRecord]) -> List[OpportunityRecord]:
        """Replace with a fresh authoritative list. Replace wins; no merge."""
        self.authoritative = list(records)
        self.pending = []
        return self.displayed
