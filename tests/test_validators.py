"""
Unit tests for field coercion and create validation.

Tests the rules:
1. Name cannot be empty
2. SOM must be a finite, non-negative number that fits the column; empty clears it
3. Select fields only accept their listed values
4. Target dates are ISO YYYY-MM-DD
5. Values of the wrong type are rejected, never passed through
"""

import pytest

from tracker.services.validators import (
    MAX_TEXT_LENGTH,
    FieldValidationError,
    clean_opportunity_data,
    coerce_field,
    validate_opportunity_create,
)


class TestCoerceName:
    """Tests for name coercion."""

    def test_empty_name_rejected(self):
        """Empty and whitespace-only names are rejected."""
        with pytest.raises(FieldValidationError) as exc:
            coerce_field("name", "   ")
        assert exc.value.message == "Opportunity name is required"
        assert exc.value.field == "name"

    def test_name_trimmed(self):
        """Surrounding whitespace is removed."""
        assert coerce_field("name", "  Claims triage ") == "Claims triage"

    def test_name_too_long(self):
        """Names longer than the column are rejected."""
        with pytest.raises(FieldValidationError, match="at most 255 characters"):
            coerce_field("name", "x" * 256)

    def test_name_must_be_text(self):
        """A list is not a name."""
        with pytest.raises(FieldValidationError, match="must be text"):
            coerce_field("name", ["Claims triage"])


class TestCoerceSom:
    """Tests for SOM coercion."""

    def test_plain_number(self):
        """Digits parse to a float."""
        assert coerce_field("estimated_som", "150000") == 150000.0

    def test_currency_formatting_stripped(self):
        """Dollar signs and thousands separators are ignored."""
        assert coerce_field("estimated_som", "$1,250,000") == 1250000.0

    def test_json_number(self):
        """Numbers from the API are accepted as-is."""
        assert coerce_field("estimated_som", 42000) == 42000.0

    def test_empty_clears(self):
        """An empty draft clears the estimate."""
        assert coerce_field("estimated_som", "") is None

    def test_not_a_number(self):
        """Words are rejected."""
        with pytest.raises(FieldValidationError, match="valid number"):
            coerce_field("estimated_som", "lots")

    def test_negative_rejected(self):
        """Negative estimates are rejected."""
        with pytest.raises(FieldValidationError, match="cannot be negative"):
            coerce_field("estimated_som", "-5")

    def test_huge_exponent_rejected(self):
        """1e400 is finite as a Decimal but must never be stored."""
        with pytest.raises(FieldValidationError, match="too large"):
            coerce_field("estimated_som", "1e400")

    def test_infinity_rejected(self):
        """Infinity and NaN are not numbers for SOM."""
        with pytest.raises(FieldValidationError, match="valid number"):
            coerce_field("estimated_som", "Infinity")
        with pytest.raises(FieldValidationError, match="valid number"):
            coerce_field("estimated_som", float("nan"))

    def test_column_limit(self):
        """Values that do not fit Numeric(15, 2) are rejected."""
        assert coerce_field("estimated_som", "9999999999999") == 9999999999999.0
        with pytest.raises(FieldValidationError, match="too large"):
            coerce_field("estimated_som", "10000000000000")

    def test_boolean_rejected(self):
        """True is not an amount."""
        with pytest.raises(FieldValidationError):
            coerce_field("estimated_som", True)


class TestCoerceSelectFields:
    """Tests for phase, status, indicators and dates."""

    def test_phase_from_form_string(self):
        """Form strings parse to the phase number."""
        assert coerce_field("phase", "3") == 3

    def test_phase_out_of_range(self):
        """Phases outside 0-4 are rejected."""
        with pytest.raises(FieldValidationError):
            coerce_field("phase", "7")

    def test_phase_wrong_type(self):
        """Lists and booleans are not phases."""
        with pytest.raises(FieldValidationError):
            coerce_field("phase", [2])
        with pytest.raises(FieldValidationError):
            coerce_field("phase", True)

    def test_status_known(self):
        """Known status keys are accepted."""
        assert coerce_field("status", "paused") == "paused"

    def test_status_unknown(self):
        """Free text is rejected for writes."""
        with pytest.raises(FieldValidationError, match="Status must be one of"):
            coerce_field("status", "someday")

    def test_status_list_rejected(self):
        """A list holding a valid key is still rejected."""
        with pytest.raises(FieldValidationError, match="Status must be one of"):
            coerce_field("status", ["done"])

    def test_indicator(self):
        """Only green, amber and red are indicators."""
        assert coerce_field("pricing_indicator", "amber") == "amber"
        with pytest.raises(FieldValidationError):
            coerce_field("pricing_indicator", "yellow")

    def test_indicator_can_be_cleared(self):
        """An empty indicator is stored as not set."""
        assert coerce_field("campaign_indicator", "") is None

    def test_indicator_wrong_type(self):
        """A dict is not an indicator."""
        with pytest.raises(FieldValidationError):
            coerce_field("campaign_indicator", {"value": "green"})

    def test_target_date(self):
        """ISO dates pass, empty clears, other formats fail."""
        assert coerce_field("target_date", "2024-03-01") == "2024-03-01"
        assert coerce_field("target_date", "") is None
        with pytest.raises(FieldValidationError):
            coerce_field("target_date", "03/01/2024")

    def test_target_date_wrong_type(self):
        """Numbers are not dates."""
        with pytest.raises(FieldValidationError):
            coerce_field("target_date", 20240301)

    def test_non_editable_field(self):
        """Timestamps cannot be written through the edit flow."""
        with pytest.raises(FieldValidationError, match="cannot be edited"):
            coerce_field("created_at", "2024-01-01")


class TestCoerceCollections:
    """Tests for links, attachments and optional text."""

    def test_links_from_text(self):
        """One link per line; blank lines are dropped."""
        assert coerce_field("demo_links", "https://a.example\n\nhttps://b.example ") == [
            "https://a.example",
            "https://b.example",
        ]

    def test_links_from_list(self):
        """A list of strings is accepted."""
        assert coerce_field("demo_links", ["https://a.example"]) == ["https://a.example"]

    def test_links_wrong_type(self):
        """A number is not a list of links."""
        with pytest.raises(FieldValidationError, match="Links must be"):
            coerce_field("demo_links", 5)

    def test_attachment_requires_path(self):
        """Attachments without a stored path are rejected."""
        with pytest.raises(FieldValidationError):
            coerce_field("attachments", [{"name": "deck.pdf"}])

    def test_attachment_name_defaults_to_path(self):
        """A missing name falls back to the path."""
        assert coerce_field("attachments", [{"path": "files/deck.pdf"}]) == [
            {"name": "files/deck.pdf", "path": "files/deck.pdf"}
        ]

    def test_attachments_wrong_type(self):
        """A number is not a list of attachments."""
        with pytest.raises(FieldValidationError, match="list of files"):
            coerce_field("attachments", 7)

    def test_blank_text_becomes_none(self):
        """Whitespace-only text clears the field."""
        assert coerce_field("next_steps", "  ") is None

    def test_long_text_rejected(self):
        """Text past the limit is rejected with the field's label."""
        with pytest.raises(FieldValidationError, match="Next steps must be at most"):
            coerce_field("next_steps", "x" * (MAX_TEXT_LENGTH + 1))

    def test_text_wrong_type(self):
        """A list is not a description."""
        with pytest.raises(FieldValidationError, match="Description must be text"):
            coerce_field("description", ["a", "b"])


class TestValidateCreate:
    """Tests for validate_opportunity_create."""

    def test_valid(self):
        """A named opportunity with a company has no errors or warnings."""
        result = validate_opportunity_create({"name": "Claims triage", "company_id": "c1"})
        assert result.is_valid
        assert result.warnings == []

    def test_missing_name(self):
        """Name is required."""
        result = validate_opportunity_create({"phase": 1})
        assert not result.is_valid
        assert "Opportunity name is required" in result.errors

    def test_blank_name(self):
        """A blank name reports the error once."""
        result = validate_opportunity_create({"name": "  ", "company_id": "c1"})
        assert result.errors == ["Opportunity name is required"]

    def test_unknown_field(self):
        """Fields outside the editable set are reported."""
        result = validate_opportunity_create({"name": "X", "owner": "someone"})
        assert "Unknown field 'owner'" in result.errors

    def test_field_errors_collected(self):
        """Every bad field is reported, not just the first."""
        result = validate_opportunity_create({"name": "X", "phase": 9, "status": "nope"})
        assert len(result.errors) == 2

    def test_no_company_warns(self):
        """A missing company warns but does not block."""
        result = validate_opportunity_create({"name": "X"})
        assert result.is_valid
        assert "No company is linked to this opportunity" in result.warnings

    def test_clean_coerces_values(self):
        """Clean data holds the coerced values."""
        cleaned = clean_opportunity_data({"name": " X ", "phase": "2", "estimated_som": "1,000"})
        assert cleaned == {"name": "X", "phase": 2, "estimated_som": 1000.0}
