"""
Data access for opportunities and companies.

Thin wrapper over a SQLAlchemy session. Writes are single-record and
single-field; there is no concurrency token, so the last write wins. Every
failure raises StoreError; nothing is reported as success unless the
commit went through.
"""

import logging
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from tracker.models import Company, Opportunity
from tracker.models.company import new_id, slugify
from tracker.security import ConfirmationError, DeleteConfirmation
from tracker.services.records import CompanyRecord, OpportunityRecord

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A read or write against the store failed."""


class RecordNotFound(StoreError):
    pass


class InvalidField(StoreError):
    pass


class OpportunityStore:
    def __init__(self, db: Session):
        self.db = db

    def _fail(self, action: str, exc: Exception):
        self.db.rollback()
        logger.error("Store %s failed: %s", action, exc)
        raise StoreError(f"Could not {action}: {exc}") from exc

    def _get(self, record_id: str) -> Opportunity:
        opportunity = self.db.get(Opportunity, record_id)
        if opportunity is None:
            raise RecordNotFound(f"Opportunity {record_id} not found")
        return opportunity

    # -----------------------------
    # Reads
    # -----------------------------
    def list_all(self) -> List[OpportunityRecord]:
        """All opportunities with their company joined, in sort_order."""
        try:
            rows = (
                self.db.query(Opportunity)
                .options(selectinload(Opportunity.company_ref))
                .order_by(Opportunity.sort_order, Opportunity.created_at)
                .all()
            )
            return [OpportunityRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            self._fail("load opportunities", e)

    def list_companies(self) -> List[CompanyRecord]:
        try:
            rows = self.db.query(Company).order_by(Company.name).all()
            return [CompanyRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            self._fail("load companies", e)

    def get(self, record_id: str) -> OpportunityRecord:
        try:
            return OpportunityRecord.model_validate(self._get(record_id))
        except SQLAlchemyError as e:
            self._fail("load opportunity", e)

    # -----------------------------
    # Writes
    # -----------------------------
    def update_field(self, record_id: str, field: str, value: Any) -> None:
        """Partial update of exactly one field on one record."""
        if field not in Opportunity.EDITABLE_FIELDS:
            raise InvalidField(f"'{field}' cannot be updated")
        try:
            opportunity = self._get(record_id)
            setattr(opportunity, field, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail(f"update {field}", e)
        logger.info("Updated %s on opportunity %s", field, record_id)

    def delete_record(self, record_id: str, confirmation: DeleteConfirmation) -> None:
        """Delete one opportunity. Requires a confirmation for this record."""
        if not isinstance(confirmation, DeleteConfirmation) or confirmation.record_id != record_id:
            raise ConfirmationError("Delete must be confirmed")
        try:
            opportunity = self._get(record_id)
            self.db.delete(opportunity)
            self.db.commit()
        except SQLAlchemyError as e:
            self._fail("delete opportunity", e)
        logger.info("Deleted opportunity %s", record_id)

    def insert(self, data: Dict[str, Any]) -> OpportunityRecord:
        """Insert a new opportunity from already-validated data."""
        values = dict(data)
        values["id"] = values.get("id") or new_id()
        try:
            if "sort_order" not in values:
                current_max = self.db.query(func.max(Opportunity.sort_order)).scalar()
                values["sort_order"] = (current_max or 0) + 1
            if values.get("company_id") and not values.get("company"):
                company = self.db.get(Company, values["company_id"])
                if company is None:
                    raise RecordNotFound(f"Company {values['company_id']} not found")
                values["company"] = company.name
            opportunity = Opportunity(**values)
            self.db.add(opportunity)
            self.db.commit()
            self.db.refresh(opportunity)
            record = OpportunityRecord.model_validate(opportunity)
        except SQLAlchemyError as e:
            self._fail("create opportunity", e)
        logger.info("Created opportunity %s", record.id)
        return record

    def create_company(self, name: str) -> CompanyRecord:
        """Insert a company; the slug is made unique with a numeric suffix."""
        name = (name or "").strip()
        if not name:
            raise InvalidField("Company name is required")
        try:
            base = slugify(name)
            slug = base
            suffix = 2
            while self.db.query(Company).filter(Company.slug == slug).first():
                slug = f"{base}-{suffix}"
                suffix += 1
            company = Company(name=name, slug=slug)
            self.db.add(company)
            self.db.commit()
            self.db.refresh(company)
            record = CompanyRecord.model_validate(company)
        except SQLAlchemyError as e:
            self._fail("create company", e)
        logger.info("Created company %s", record.slug)
        return record
