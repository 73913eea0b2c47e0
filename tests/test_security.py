"""Unit tests for delete confirmations."""

import pytest

from tracker.security import (
    ConfirmationError,
    DeleteConfirmation,
    confirm_delete,
    create_delete_token,
)


class TestDeleteConfirmation:
    """Tests for the delete confirmation gate."""

    def test_valid_token(self):
        """A fresh token for the record confirms the delete."""
        confirmation = confirm_delete(create_delete_token("abc"), "abc")
        assert isinstance(confirmation, DeleteConfirmation)
        assert confirmation.record_id == "abc"

    def test_missing_token(self):
        """No token means no delete."""
        with pytest.raises(ConfirmationError, match="must be confirmed"):
            confirm_delete(None, "abc")

    def test_token_for_other_record(self):
        """A token only confirms the record it was issued for."""
        with pytest.raises(ConfirmationError, match="does not match"):
            confirm_delete(create_delete_token("other"), "abc")

    def test_tampered_token(self):
        """A modified token is rejected."""
        with pytest.raises(ConfirmationError, match="Invalid"):
            confirm_delete(create_delete_token("abc") + "x", "abc")

    def test_cannot_construct_directly(self):
        """Only confirm_delete can produce a confirmation."""
        with pytest.raises(ConfirmationError):
            DeleteConfirmation("abc")

    def test_expired_token(self, monkeypatch):
        """A token older than the allowed age must be confirmed again."""
        token = create_delete_token("abc")
        monkeypatch.setattr("tracker.security.DELETE_TOKEN_MAX_AGE", -1)
        with pytest.raises(ConfirmationError, match="expired"):
            confirm_delete(token, "abc")
