"""Centralized Jinja2 template configuration with display filters."""
import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fastapi.templating import Jinja2Templates

from tracker.models import Opportunity
from tracker.services.display import (
    KnownStatus,
    format_som,
    format_short_date,
    indicator_value,
    parse_status,
    phase_info,
)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")

# App timezone setting - defaults to UTC
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "UTC")


def get_app_tz() -> ZoneInfo:
    """Get the application timezone."""
    return ZoneInfo(APP_TIMEZONE)


def localdate(dt: datetime, fmt: str = None) -> str:
    """Jinja filter to convert a UTC datetime to a local date string.

    Usage in templates:
        {{ opportunity.updated_at | localdate }}
        {{ opportunity.updated_at | localdate('%B %d, %Y') }}
    """
    if dt is None:
        return ""

    # Naive datetimes are stored as UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    local_dt = dt.astimezone(get_app_tz())

    # Default format: "Jan 15, 2025"
    return local_dt.strftime(fmt or "%b %d, %Y")


def status_label(raw: str) -> str:
    return parse_status(raw).label


def status_key(raw: str) -> str:
    """Known status key for CSS and select defaults; empty for unknown text."""
    result = parse_status(raw)
    return result.value if isinstance(result, KnownStatus) else ""


def create_templates() -> Jinja2Templates:
    """Create a Jinja2Templates instance with custom filters."""
    templates = Jinja2Templates(directory=TEMPLATE_DIR)

    templates.env.filters["localdate"] = localdate
    templates.env.filters["som"] = format_som
    templates.env.filters["short_date"] = format_short_date
    templates.env.filters["status_label"] = status_label
    templates.env.filters["status_key"] = status_key
    templates.env.filters["indicator"] = indicator_value

    templates.env.globals["phase_info"] = phase_info
    templates.env.globals["parse_status"] = parse_status
    templates.env.globals["PHASES"] = Opportunity.PHASES
    templates.env.globals["PHASE_OPTIONS"] = [(p[0], p[1]) for p in Opportunity.PHASES]
    templates.env.globals["STATUSES"] = Opportunity.STATUSES
    templates.env.globals["INDICATOR_OPTIONS"] = [(i, i.capitalize()) for i in Opportunity.INDICATORS]
    templates.env.globals["INDICATOR_FIELDS"] = Opportunity.INDICATOR_FIELDS
    templates.env.globals["COLUMN_DESCRIPTIONS"] = Opportunity.COLUMN_DESCRIPTIONS

    return templates


# Singleton template instance - import this in route files
templates = create_templates()
