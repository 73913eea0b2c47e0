"""
Inline Edit Controller

One controller per table view. States:
- Idle
- Editing(record_id, field, draft)

Text-like fields go through Editing: activate seeds a draft, commit
validates it and yields a Patch, cancel discards it. Select-type fields
skip the draft and yield one-shot patches. Only one cell is ever in
Editing; activating another cell cancels the prior edit.
"""

import logging
from typing import Iterable, List, Optional

from tracker.services.display import som_edit_value
from tracker.services.optimistic import Patch
from tracker.services.records import CompanyRecord, OpportunityRecord
from tracker.services.validators import FieldValidationError, coerce_field

logger = logging.getLogger(__name__)

IDLE = "idle"
EDITING = "editing"

ACCEPT_KEY = "Enter"
CANCEL_KEY = "Escape"

# Fields edited through a draft
DRAFT_FIELDS = {"name", "description", "estimated_som", "next_steps"}

# Fields that commit as soon as a value is picked
SELECT_FIELDS = {
    "phase",
    "status",
    "messaging_indicator",
    "campaign_indicator",
    "pricing_indicator",
    "sales_alignment_indicator",
    "company_id",
    "target_date",
}


class EditStateError(Exception):
    """An edit action that is not valid in the controller's current state."""


def edit_representation(record: OpportunityRecord, field: str) -> str:
    """The string a cell editor starts from."""
    value = getattr(record, field)
    if field == "estimated_som":
        return som_edit_value(value)
    if value is None:
        return ""
    return str(value)


class EditController:
    def __init__(
        self,
        record_id: Optional[str] = None,
        field: Optional[str] = None,
        draft: str = "",
        error: Optional[str] = None,
    ):
        self.record_id = record_id
        self.field = field
        self.draft = draft
        self.error = error

    @property
    def state(self) -> str:
        return EDITING if self.record_id is not None else IDLE

    def is_editing(self, record_id: str, field: Optional[str] = None) -> bool:
        if self.record_id != record_id:
            return False
        return field is None or self.field == field

    def _reset(self):
        self.record_id = None
        self.field = None
        self.draft = ""
        self.error = None

    def activate(self, record: OpportunityRecord, field: str) -> "EditController":
        """Idle -> Editing for a cell. A different cell in Editing is cancelled first."""
        if field not in DRAFT_FIELDS:
            raise EditStateError(f"'{field}' is not edited inline")
        if self.is_editing(record.id, field):
            return self
        if self.state == EDITING:
            logger.info(
                "Discarding unsaved edit of %s on %s", self.field, self.record_id
            )
            self._reset()
        self.record_id = record.id
        self.field = field
        self.draft = edit_representation(record, field)
        self.error = None
        return self

    def commit(self, draft: Optional[str] = None) -> Patch:
        """
        Editing -> Idle, returning the patch to apply and write.

        On a validation failure the controller stays in Editing with the
        rejected draft and the error message, and the error propagates.
        """
        if self.state != EDITING:
            raise EditStateError("No edit in progress")
        if draft is not None:
            self.draft = draft
        try:
            value = coerce_field(self.field, self.draft)
        except FieldValidationError as e:
            self.error = e.message
            logger.debug("Rejected draft for %s on %s: %s", self.field, self.record_id, e.message)
            raise
        patch = Patch(self.record_id, self.field, value)
        self._reset()
        return patch

    def cancel(self) -> None:
        """Editing -> Idle, discarding the draft."""
        self._reset()

    def handle_key(self, key: str, draft: Optional[str] = None) -> Optional[Patch]:
        """Enter commits, Escape cancels; any other key just updates the draft."""
        if key == ACCEPT_KEY:
            return self.commit(draft)
        if key == CANCEL_KEY:
            self.cancel()
            return None
        if draft is not None and self.state == EDITING:
            self.draft = draft
        return None

    def select(
        self,
        record: OpportunityRecord,
        field: str,
        value,
        companies: Iterable[CompanyRecord] = (),
    ) -> List[Patch]:
        """
        One-shot commit for a select-type field.

        Any text edit in progress is cancelled. Picking a company yields two
        patches: company_id, then the denormalized company name.
        """
        if field not in SELECT_FIELDS:
            raise EditStateError(f"'{field}' is not a select field")
        if self.state == EDITING:
            logger.info(
                "Discarding unsaved edit of %s on %s", self.field, self.record_id
            )
            self._reset()

        if field == "company_id":
            if not value:
                return [Patch(record.id, "company_id", None)]
            company = next((c for c in companies if c.id == value), None)
            if company is None:
                raise FieldValidationError(field, "Unknown company")
            return [
                Patch(record.id, "company_id", company.id),
                Patch(record.id, "company", company.name),
            ]

        return [Patch(record.id, field, coerce_field(field, value))]

    def to_dict(self) -> dict:
        if self.state == IDLE:
            return {}
        return {
            "record_id": self.record_id,
            "field": self.field,
            "draft": self.draft,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "EditController":
        if not data or not data.get("record_id") or data.get("field") not in DRAFT_FIELDS:
            return cls()
        return cls(
            record_id=data["record_id"],
            field=data["field"],
            draft=data.get("draft") or "",
            error=data.get("error"),
        )

    def __repr__(self):
        if self.state == IDLE:
            return "<EditController idle>"
        return f"<EditController editing {self.record_id}.{self.field}>"
