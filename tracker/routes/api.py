from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from tracker.database import get_db
from tracker.security import ConfirmationError, confirm_delete, create_delete_token
from tracker.services.inline_edit import EditController
from tracker.services.optimistic import Patch
from tracker.services.records import CompanyRecord, OpportunityRecord
from tracker.services.store import InvalidField, OpportunityStore, RecordNotFound, StoreError
from tracker.services.validators import (
    FieldValidationError,
    clean_opportunity_data,
    coerce_field,
    validate_opportunity_create,
)

router = APIRouter(prefix="/api", tags=["api"])


class FieldUpdateRequest(BaseModel):
    field: str
    value: Any = None


class CreateOpportunityRequest(BaseModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    phase: Optional[int] = None
    status: Optional[str] = None
    estimated_som: Optional[float] = None
    som_currency: Optional[str] = None
    next_steps: Optional[str] = None
    target_date: Optional[str] = None
    company_id: Optional[str] = None
    messaging_indicator: Optional[str] = None
    campaign_indicator: Optional[str] = None
    pricing_indicator: Optional[str] = None
    sales_alignment_indicator: Optional[str] = None
    demo_links: Optional[List[str]] = None
    parent_id: Optional[str] = None


class CreateCompanyRequest(BaseModel):
    name: str


# -----------------------------
# Opportunities
# -----------------------------
@router.get("/opportunities", response_model=List[OpportunityRecord])
async def api_list_opportunities(db: Session = Depends(get_db)):
    """API: All opportunities with their company (JSON response)."""
    try:
        return OpportunityStore(db).list_all()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/opportunities", response_model=OpportunityRecord, status_code=201)
async def api_create_opportunity(
    data: CreateOpportunityRequest, db: Session = Depends(get_db)
):
    """API: Explicit insert of a new opportunity."""
    payload = data.model_dump(exclude_none=True)
    result = validate_opportunity_create(payload)
    if not result.is_valid:
        raise HTTPException(status_code=422, detail="; ".join(result.errors))
    try:
        return OpportunityStore(db).insert(clean_opportunity_data(payload))
    except RecordNotFound as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.patch("/opportunities/{opp_id}", response_model=OpportunityRecord)
async def api_update_field(
    opp_id: str, data: FieldUpdateRequest, db: Session = Depends(get_db)
):
    """API: Update one field and return the stored record.

    Picking a company also writes the company name as a second update, the
    same as the table's company select. A failed write answers with an
    error; nothing is reported as saved.
    """
    store = OpportunityStore(db)
    try:
        record = store.get(opp_id)
        if data.field == "company_id":
            patches = EditController().select(
                record, data.field, data.value, store.list_companies()
            )
        else:
            patches = [Patch(opp_id, data.field, coerce_field(data.field, data.value))]
        for patch in patches:
            store.update_field(patch.record_id, patch.field, patch.value)
        return store.get(opp_id)
    except FieldValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    except InvalidField as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/opportunities/{opp_id}/delete-token")
async def api_delete_token(opp_id: str, db: Session = Depends(get_db)):
    """API: Issue the confirmation token a client must send back to delete."""
    try:
        record = OpportunityStore(db).get(opp_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return {
        "token": create_delete_token(record.id),
        "prompt": f"Are you sure you want to delete '{record.name}'?",
    }


@router.delete("/opportunities/{opp_id}")
async def api_delete_opportunity(
    opp_id: str, token: Optional[str] = None, db: Session = Depends(get_db)
):
    """API: Delete an opportunity. Requires a token from delete-token."""
    try:
        confirmation = confirm_delete(token, opp_id)
    except ConfirmationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    try:
        OpportunityStore(db).delete_record(opp_id, confirmation)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"ok": True, "id": opp_id}


# -----------------------------
# Companies
# -----------------------------
@router.get("/companies", response_model=List[CompanyRecord])
async def api_list_companies(db: Session = Depends(get_db)):
    try:
        return OpportunityStore(db).list_companies()
    except StoreError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/companies", response_model=CompanyRecord, status_code=201)
async def api_create_company(data: CreateCompanyRequest, db: Session = Depends(get_db)):
    try:
        return OpportunityStore(db).create_company(data.name)
    except InvalidField as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
