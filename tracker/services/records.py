"""
Immutable record types handed to the view layer.

ORM rows are converted once per fetch; everything downstream (optimistic
patches, sorting, rendering) works on these frozen copies so a patched
record is always a new object and untouched records keep their identity.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CompanyRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    slug: str


class OpportunityRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    parent_id: Optional[str] = None
    company_id: Optional[str] = None
    company: Optional[str] = None
    # Name from the joined company row, if any
    company_name: Optional[str] = None
    name: str
    description: Optional[str] = None
    phase: int = 0
    status: str = "planned"
    estimated_som: Optional[float] = None
    som_currency: Optional[str] = None
    next_steps: Optional[str] = None
    target_date: Optional[str] = None
    messaging_indicator: Optional[str] = None
    campaign_indicator: Optional[str] = None
    pricing_indicator: Optional[str] = None
    sales_alignment_indicator: Optional[str] = None
    demo_links: List[str] = []
    attachments: List[Dict[str, Any]] = []
    sort_order: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("demo_links", "attachments", mode="before")
    @classmethod
    def _none_to_list(cls, value):
        return value or []

    @property
    def display_company(self) -> str:
        """Company shown in the table: joined name, then the denormalized copy."""
        return self.company_name or self.company or ""
