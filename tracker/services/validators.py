"""
Data Quality Validators

Field-level coercion for inline edits and record-level validation for new
opportunities. Coercion raises FieldValidationError (a ValueError) with a
human-readable message; nothing is silently coerced into a valid value.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from tracker.models import Opportunity

MAX_NAME_LENGTH = 255
MAX_TEXT_LENGTH = 2000
MAX_SOM = Decimal(10) ** 13

FIELD_LABELS = {
    "name": "Opportunity name",
    "description": "Description",
    "next_steps": "Next steps",
    "company": "Company",
    "company_id": "Company",
    "parent_id": "Parent",
    "som_currency": "Currency",
    "estimated_som": "SOM",
}


class FieldValidationError(ValueError):
    """A draft value that cannot be written to its field."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class ValidationResult:
    """Container for validation results including warnings."""
    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def add_error(self, msg: str):
        self.errors.append(msg)

    def add_warning(self, msg: str):
        self.warnings.append(msg)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


def _is_empty(value: Any) -> bool:
    """Check if value is None or empty string."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    return False


def _optional_text(value: Any) -> Optional[str]:
    if _is_empty(value):
        return None
    return str(value).strip()


def _parse_links(field: str, value: Any) -> List[str]:
    """Accept a list of strings or newline-separated text."""
    if _is_empty(value):
        return []
    if isinstance(value, str):
        lines = value.splitlines()
    elif isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        lines = list(value)
    else:
        raise FieldValidationError(field, "Links must be text or a list of URLs")
    return [line.strip() for line in lines if line.strip()]


def _text(field: str, value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise FieldValidationError(field, f"{FIELD_LABELS.get(field, field)} must be text")
    return str(value).strip()


def _check_length(field: str, text: Optional[str], limit: int) -> Optional[str]:
    if text is not None and len(text) > limit:
        raise FieldValidationError(
            field, f"{FIELD_LABELS.get(field, field)} must be at most {limit} characters"
        )
    return text


# ============================================================
# FIELD COERCION
# ============================================================

def coerce_field(field: str, value: Any) -> Any:
    """
    Validate and coerce a draft value for a single opportunity field.

    Args:
        field: Column name being edited
        value: Raw draft (usually a string from a form, any JSON value from the API)

    Returns:
        The value to write

    Raises:
        FieldValidationError: if the draft is not acceptable for the field
    """
    if field not in Opportunity.EDITABLE_FIELDS:
        raise FieldValidationError(field, f"'{field}' cannot be edited")

    if field == "name":
        if _is_empty(value):
            raise FieldValidationError(field, "Opportunity name is required")
        return _check_length(field, _text(field, value), MAX_NAME_LENGTH)

    if field == "estimated_som":
        if _is_empty(value):
            return None
        text = _text(field, value).replace(",", "").replace("$", "")
        try:
            number = Decimal(text)
        except (InvalidOperation, ValueError):
            raise FieldValidationError(field, "SOM must be a valid number")
        if not number.is_finite():
            raise FieldValidationError(field, "SOM must be a valid number")
        if number < 0:
            raise FieldValidationError(field, "SOM cannot be negative")
        # Numeric(15, 2)
        if number >= MAX_SOM:
            raise FieldValidationError(field, "SOM is too large")
        return float(number)

    if field == "phase":
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise FieldValidationError(field, "Phase must be a number from 0 to 4")
        try:
            phase = int(str(value).strip())
        except ValueError:
            raise FieldValidationError(field, "Phase must be a number from 0 to 4")
        if phase not in Opportunity.PHASE_NUMBERS:
            raise FieldValidationError(field, "Phase must be a number from 0 to 4")
        return phase

    if field == "status":
        if not isinstance(value, str) or value not in Opportunity.STATUS_LABELS:
            allowed = ", ".join(key for key, _ in Opportunity.STATUSES)
            raise FieldValidationError(field, f"Status must be one of: {allowed}")
        return value

    if field.endswith("_indicator"):
        if _is_empty(value):
            return None
        if not isinstance(value, str) or value not in Opportunity.INDICATORS:
            raise FieldValidationError(field, "Indicator must be green, amber or red")
        return value

    if field == "target_date":
        if _is_empty(value):
            return None
        if not isinstance(value, str):
            raise FieldValidationError(field, "Target date must be YYYY-MM-DD")
        try:
            return date.fromisoformat(value.strip()).isoformat()
        except ValueError:
            raise FieldValidationError(field, "Target date must be YYYY-MM-DD")

    if field == "som_currency":
        if _is_empty(value):
            return None
        currency = _text(field, value).upper()
        if len(currency) != 3 or not currency.isalpha():
            raise FieldValidationError(field, "Currency must be a 3-letter code")
        return currency

    if field == "demo_links":
        return _parse_links(field, value)

    if field == "attachments":
        if _is_empty(value):
            return []
        if not isinstance(value, (list, tuple)):
            raise FieldValidationError(field, "Attachments must be a list of files")
        refs = []
        for item in value:
            if not isinstance(item, dict) or _is_empty(item.get("path")):
                raise FieldValidationError(field, "Attachments must reference a stored file path")
            refs.append({"name": item.get("name") or item["path"], "path": item["path"]})
        return refs

    if field == "sort_order":
        if isinstance(value, bool):
            raise FieldValidationError(field, "Sort order must be a whole number")
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            raise FieldValidationError(field, "Sort order must be a whole number")

    # description, next_steps, company, company_id, parent_id
    if _is_empty(value):
        return None
    return _check_length(field, _text(field, value), MAX_TEXT_LENGTH)


# ============================================================
# OPPORTUNITY VALIDATION
# ============================================================

def validate_opportunity_create(data: Dict[str, Any]) -> ValidationResult:
    """
    Validate data for a new opportunity.

    Required: name
    Optional fields are validated with the same rules as inline edits.
    Warn (not block) when no company is linked.

    Args:
        data: Dict with opportunity fields

    Returns:
        ValidationResult with errors and warnings
    """
    result = ValidationResult()

    if data.get("name") is None:
        result.add_error("Opportunity name is required")

    for field, value in data.items():
        if field == "id":
            continue
        if field not in Opportunity.EDITABLE_FIELDS:
            result.add_error(f"Unknown field '{field}'")
            continue
        if value is None:
            continue
        try:
            coerce_field(field, value)
        except FieldValidationError as e:
            result.add_error(e.message)

    if _is_empty(data.get("company_id")) and _is_empty(data.get("company")):
        result.add_warning("No company is linked to this opportunity")

    return result


def clean_opportunity_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce every provided field of a validated create payload."""
    cleaned = {}
    for field, value in data.items():
        if field == "id":
            cleaned[field] = _optional_text(value)
        elif value is not None:
            cleaned[field] = coerce_field(field, value)
    return cleaned
