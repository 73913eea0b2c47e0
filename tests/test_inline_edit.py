"""
Unit tests for the inline edit controller.

Tests the rules:
1. Activating a cell seeds the draft from the record
2. Activating a second cell cancels the first; only one cell edits at a time
3. Enter commits, Escape cancels
4. A rejected draft keeps the cell in edit mode with the error
5. Select fields commit immediately; a company pick yields two patches
"""

import pytest

from tracker.services.inline_edit import (
    EDITING,
    IDLE,
    EditController,
    EditStateError,
)
from tracker.services.optimistic import Patch
from tracker.services.validators import FieldValidationError

from factories import make_company, make_record


class TestActivate:
    """Tests for entering edit mode."""

    def test_activate_seeds_draft(self):
        """Activating a cell copies its value into the draft."""
        editor = EditController()
        editor.activate(make_record("a", name="Claims triage"), "name")
        assert editor.state == EDITING
        assert editor.draft == "Claims triage"
        assert editor.is_editing("a", "name")

    def test_som_draft_is_plain_number(self):
        """The SOM editor starts from the plain amount, not $150k."""
        editor = EditController()
        editor.activate(make_record("a", estimated_som=150000.0), "estimated_som")
        assert editor.draft == "150000"

    def test_missing_value_seeds_empty_draft(self):
        """An empty field starts an empty draft."""
        editor = EditController()
        editor.activate(make_record("a"), "next_steps")
        assert editor.draft == ""

    def test_second_cell_cancels_first(self):
        """Activating B while A is editing discards A's draft."""
        editor = EditController()
        editor.activate(make_record("a", name="A"), "name")
        editor.draft = "A edited"
        editor.activate(make_record("b", name="B"), "name")
        assert editor.is_editing("b", "name")
        assert not editor.is_editing("a")
        assert editor.draft == "B"

    def test_reactivating_same_cell_keeps_draft(self):
        """Clicking the cell being edited keeps what was typed."""
        editor = EditController()
        record = make_record("a", name="A")
        editor.activate(record, "name")
        editor.draft = "typing"
        editor.activate(record, "name")
        assert editor.draft == "typing"

    def test_select_field_cannot_be_activated(self):
        """Select fields never enter edit mode."""
        with pytest.raises(EditStateError):
            EditController().activate(make_record("a"), "phase")


class TestCommitAndCancel:
    """Tests for leaving edit mode."""

    def test_commit_returns_patch(self):
        """Commit yields a one-field patch and returns to idle."""
        editor = EditController()
        editor.activate(make_record("a", name="Old"), "name")
        patch = editor.commit("New")
        assert patch == Patch("a", "name", "New")
        assert editor.state == IDLE

    def test_commit_coerces_som(self):
        """The patch holds the coerced value."""
        editor = EditController()
        editor.activate(make_record("a"), "estimated_som")
        assert editor.commit("$2,500").value == 2500.0

    def test_empty_name_stays_editing(self):
        """A rejected draft raises and leaves the error on the cell."""
        editor = EditController()
        editor.activate(make_record("a", name="Old"), "name")
        with pytest.raises(FieldValidationError):
            editor.commit("")
        assert editor.state == EDITING
        assert editor.draft == ""
        assert editor.error == "Opportunity name is required"

    def test_commit_when_idle(self):
        """Nothing to commit without an edit."""
        with pytest.raises(EditStateError):
            EditController().commit("x")

    def test_enter_commits(self):
        """Enter commits the draft."""
        editor = EditController()
        editor.activate(make_record("a"), "next_steps")
        patch = editor.handle_key("Enter", "Call back")
        assert patch == Patch("a", "next_steps", "Call back")
        assert editor.state == IDLE

    def test_escape_cancels(self):
        """Escape discards the draft."""
        editor = EditController()
        editor.activate(make_record("a"), "next_steps")
        assert editor.handle_key("Escape", "ignored") is None
        assert editor.state == IDLE
        assert editor.draft == ""

    def test_other_keys_update_draft(self):
        """Other keys keep editing with the new draft."""
        editor = EditController()
        editor.activate(make_record("a"), "name")
        assert editor.handle_key("a", "Draf") is None
        assert editor.draft == "Draf"
        assert editor.state == EDITING


class TestSelect:
    """Tests for one-shot select commits."""

    def test_phase_select(self):
        """A phase pick is a single patch."""
        patches = EditController().select(make_record("a"), "phase", "3")
        assert patches == [Patch("a", "phase", 3)]

    def test_select_cancels_text_edit(self):
        """Picking a value ends any text edit."""
        editor = EditController()
        editor.activate(make_record("a"), "name")
        editor.select(make_record("b"), "status", "done")
        assert editor.state == IDLE

    def test_company_pick_yields_two_patches(self):
        """Company id and company name are patched separately."""
        company = make_company("c1", "Contoso Health")
        patches = EditController().select(make_record("a"), "company_id", "c1", [company])
        assert patches == [
            Patch("a", "company_id", "c1"),
            Patch("a", "company", "Contoso Health"),
        ]

    def test_company_cleared(self):
        """Choosing no company clears only the id."""
        patches = EditController().select(make_record("a", company_id="c1"), "company_id", "")
        assert patches == [Patch("a", "company_id", None)]

    def test_unknown_company(self):
        """Ids that match no company are rejected."""
        with pytest.raises(FieldValidationError, match="Unknown company"):
            EditController().select(make_record("a"), "company_id", "nope", [make_company()])

    def test_invalid_indicator(self):
        """Indicator picks are validated."""
        with pytest.raises(FieldValidationError):
            EditController().select(make_record("a"), "pricing_indicator", "purple")

    def test_text_field_is_not_a_select(self):
        """Text fields must go through the draft."""
        with pytest.raises(EditStateError):
            EditController().select(make_record("a"), "name", "X")


class TestSerialization:
    """Tests for round-tripping through the view-state cookie."""

    def test_idle_serializes_empty(self):
        """Idle state is an empty dict."""
        assert EditController().to_dict() == {}
        assert EditController.from_dict({}).state == IDLE

    def test_editing_survives(self):
        """An edit in progress survives a round trip."""
        editor = EditController()
        editor.activate(make_record("a", name="A"), "name")
        restored = EditController.from_dict(editor.to_dict())
        assert restored.is_editing("a", "name")
        assert restored.draft == "A"

    def test_bad_field_restores_idle(self):
        """Saved state for a select field is ignored."""
        assert EditController.from_dict({"record_id": "a", "field": "phase"}).state == IDLE
