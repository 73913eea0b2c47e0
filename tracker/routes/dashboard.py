import logging
from typing import List, Optional

from fastapi import APIRouter, Request, Depends, Form, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from tracker.database import get_db
from tracker.models import Opportunity
from tracker.security import ConfirmationError, confirm_delete, create_delete_token
from tracker.services.display import som_edit_value
from tracker.services.inline_edit import ACCEPT_KEY, CANCEL_KEY, IDLE, EditController, EditStateError
from tracker.services.optimistic import OptimisticList, Patch
from tracker.services.records import OpportunityRecord
from tracker.services.sorting import filter_records, group_by_phase, sort_records
from tracker.services.store import OpportunityStore, RecordNotFound, StoreError
from tracker.services.validators import (
    FieldValidationError,
    clean_opportunity_data,
    coerce_field,
    validate_opportunity_create,
)
from tracker.services.view_state import ViewState
from tracker.template_config import templates
from tracker.utils.safe_redirect import safe_view_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


# -----------------------------
# Helpers
# -----------------------------
def redirect_with_state(state: ViewState, url: str = "/dashboard/table"):
    return state.save(RedirectResponse(url=url, status_code=303))


def render_load_error(request: Request, retry_url: str, message: str):
    """Full-page error with a retry link, used when the initial read fails."""
    return templates.TemplateResponse(
        request,
        "dashboard/error.html",
        {"error": message, "retry_url": retry_url},
        status_code=503,
    )


def visible_records(state: ViewState, records):
    return filter_records(
        records,
        opportunity_mode=state.opportunity_mode,
        selected_opportunity_ids=state.selected_opportunity_ids,
        company_mode=state.company_mode,
        selected_company_ids=state.selected_company_ids,
    )


def render_table(
    request: Request,
    state: ViewState,
    store: OpportunityStore,
    optimistic: Optional[OptimisticList] = None,
):
    try:
        records = optimistic.displayed if optimistic else store.list_all()
        companies = store.list_companies()
    except StoreError as e:
        logger.warning("Table view failed to load: %s", e)
        return render_load_error(request, "/dashboard/table", str(e))

    rows = sort_records(visible_records(state, records), state.sort)
    flash = state.pop_flash()

    response = templates.TemplateResponse(
        request,
        "dashboard/table.html",
        {
            "state": state,
            "rows": rows,
            "all_records": records,
            "companies": companies,
            "editor": state.editor,
            "flash": flash,
            "return_to": request.url.path,
        },
    )
    return state.save(response)


def write_patches(
    store: OpportunityStore,
    state: ViewState,
    optimistic: OptimisticList,
    patches: List[Patch],
):
    """Apply patches optimistically, write them one field at a time, then refetch.

    A failed write rolls back its patch and every patch after it, and the
    failure is flashed to the user.
    """
    for patch in patches:
        optimistic.apply(patch)

    for index, patch in enumerate(patches):
        try:
            store.update_field(patch.record_id, patch.field, patch.value)
        except StoreError as e:
            for unwritten in patches[index:]:
                optimistic.rollback(unwritten)
            state.flash = f"Could not save {patch.field}: {e}"
            break

    try:
        optimistic.reconcile(store.list_all())
    except StoreError as e:
        logger.warning("Refetch after write failed: %s", e)
        state.flash = state.flash or "Saved, but the table could not be refreshed"


# -----------------------------
# Table View
# -----------------------------
@router.get("/table", response_class=HTMLResponse)
async def table_view(request: Request, db: Session = Depends(get_db)):
    state = ViewState.load(request)
    return render_table(request, state, OpportunityStore(db))


@router.post("/table/sort")
async def sort_table(request: Request, field: str = Form(...)):
    state = ViewState.load(request)
    try:
        state.sort = state.sort.toggle(field)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return redirect_with_state(state)


@router.post("/table/{opp_id}/edit")
async def start_edit(
    request: Request, opp_id: str, field: str = Form(...), db: Session = Depends(get_db)
):
    """Put one cell into edit mode. Any other cell being edited is cancelled."""
    state = ViewState.load(request)
    store = OpportunityStore(db)
    try:
        record = store.get(opp_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    try:
        state.editor.activate(record, field)
    except EditStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return redirect_with_state(state)


@router.post("/table/commit")
async def commit_edit(
    request: Request,
    draft: Optional[str] = Form(None),
    action: Optional[str] = Form(None),
    key: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Resolve the active edit: save (button or Enter) or cancel (button or Escape)."""
    state = ViewState.load(request)
    editor = state.editor
    if editor.state == IDLE:
        return redirect_with_state(state)

    if action == "cancel":
        key = CANCEL_KEY
    elif action == "commit" or not key:
        key = ACCEPT_KEY

    if key != ACCEPT_KEY:
        # Escape cancels; any other key only keeps the draft
        editor.handle_key(key, draft)
        return redirect_with_state(state)

    store = OpportunityStore(db)
    try:
        records = store.list_all()
    except StoreError as e:
        logger.warning("Table view failed to load: %s", e)
        return render_load_error(request, "/dashboard/table", str(e))

    try:
        patch = editor.handle_key(key, draft)
    except FieldValidationError:
        # Cell stays in edit mode with the error shown
        return redirect_with_state(state)

    optimistic = OptimisticList(records)
    write_patches(store, state, optimistic, [patch])
    return render_table(request, state, store, optimistic)


@router.post("/table/{opp_id}/select")
async def select_value(
    request: Request,
    opp_id: str,
    field: str = Form(...),
    value: str = Form(""),
    db: Session = Depends(get_db),
):
    """Commit a select-type field immediately."""
    state = ViewState.load(request)
    store = OpportunityStore(db)
    try:
        records = store.list_all()
        companies = store.list_companies()
    except StoreError as e:
        logger.warning("Table view failed to load: %s", e)
        return render_load_error(request, "/dashboard/table", str(e))

    record = next((r for r in records if r.id == opp_id), None)
    if record is None:
        raise HTTPException(status_code=404, detail="Opportunity not found")

    try:
        patches = state.editor.select(record, field, value, companies)
    except EditStateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FieldValidationError as e:
        state.flash = e.message
        return redirect_with_state(state)

    optimistic = OptimisticList(records)
    write_patches(store, state, optimistic, patches)
    return render_table(request, state, store, optimistic)


# -----------------------------
# Delete (with confirmation)
# -----------------------------
@router.get("/table/{opp_id}/delete", response_class=HTMLResponse)
async def confirm_delete_form(request: Request, opp_id: str, db: Session = Depends(get_db)):
    store = OpportunityStore(db)
    try:
        record = store.get(opp_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return templates.TemplateResponse(
        request,
        "dashboard/confirm_delete.html",
        {
            "opportunity": record,
            "token": create_delete_token(record.id),
        },
    )


@router.post("/table/{opp_id}/delete")
async def delete_opportunity(
    request: Request,
    opp_id: str,
    token: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    state = ViewState.load(request)
    try:
        confirmation = confirm_delete(token, opp_id)
    except ConfirmationError as e:
        raise HTTPException(status_code=403, detail=str(e))

    store = OpportunityStore(db)
    try:
        store.delete_record(opp_id, confirmation)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    except StoreError as e:
        state.flash = f"Could not delete opportunity: {e}"
        return redirect_with_state(state)

    if state.editor.is_editing(opp_id):
        state.editor.cancel()
    state.selected_opportunity_ids = [i for i in state.selected_opportunity_ids if i != opp_id]
    return redirect_with_state(state)


# -----------------------------
# Timeline View
# -----------------------------
@router.get("/timeline", response_class=HTMLResponse)
async def timeline_view(request: Request, db: Session = Depends(get_db)):
    state = ViewState.load(request)
    store = OpportunityStore(db)
    try:
        records = store.list_all()
        companies = store.list_companies()
    except StoreError as e:
        logger.warning("Timeline view failed to load: %s", e)
        return render_load_error(request, "/dashboard/timeline", str(e))

    columns = group_by_phase(visible_records(state, records), Opportunity.PHASE_NUMBERS)
    flash = state.pop_flash()

    response = templates.TemplateResponse(
        request,
        "dashboard/timeline.html",
        {
            "state": state,
            "columns": columns,
            "all_records": records,
            "companies": companies,
            "flash": flash,
            "return_to": request.url.path,
        },
    )
    return state.save(response)


# -----------------------------
# Sidebar, Filters & Columns
# -----------------------------
@router.post("/sidebar/toggle")
async def toggle_sidebar(request: Request, return_to: Optional[str] = Form(None)):
    state = ViewState.load(request)
    state.toggle_sidebar()
    return redirect_with_state(state, safe_view_url(return_to))


@router.post("/filters")
async def update_filters(
    request: Request,
    opportunity_mode: str = Form("all"),
    company_mode: str = Form("all"),
    opportunity_ids: List[str] = Form(default=[]),
    company_ids: List[str] = Form(default=[]),
    return_to: Optional[str] = Form(None),
):
    state = ViewState.load(request)
    try:
        state.set_opportunity_mode(opportunity_mode)
        state.set_company_mode(company_mode)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    state.selected_opportunity_ids = [i for i in opportunity_ids if i]
    state.selected_company_ids = [i for i in company_ids if i]
    return redirect_with_state(state, safe_view_url(return_to))


@router.post("/filters/opportunities/{opp_id}/toggle")
async def toggle_opportunity_filter(
    request: Request, opp_id: str, return_to: Optional[str] = Form(None)
):
    state = ViewState.load(request)
    state.toggle_opportunity(opp_id)
    return redirect_with_state(state, safe_view_url(return_to))


@router.post("/filters/companies/{company_id}/toggle")
async def toggle_company_filter(
    request: Request, company_id: str, return_to: Optional[str] = Form(None)
):
    state = ViewState.load(request)
    state.toggle_company(company_id)
    return redirect_with_state(state, safe_view_url(return_to))


@router.post("/filters/clear")
async def clear_filters(request: Request, return_to: Optional[str] = Form(None)):
    state = ViewState.load(request)
    state.clear_filters()
    return redirect_with_state(state, safe_view_url(return_to))


@router.post("/columns")
async def set_column_width(
    request: Request, column: str = Form(...), width: int = Form(...)
):
    state = ViewState.load(request)
    state.set_column_width(column, width)
    return redirect_with_state(state)


@router.post("/columns/reset")
async def reset_column_widths(request: Request):
    state = ViewState.load(request)
    state.reset_column_widths()
    return redirect_with_state(state)


# -----------------------------
# Opportunity Form (create / edit details)
# -----------------------------
INDICATOR_COLUMNS = [field for field, _, _ in Opportunity.INDICATOR_FIELDS]


def form_from_record(record: Optional[OpportunityRecord]) -> dict:
    """String values for every form input, seeded from a record or defaults."""
    if record is None:
        values = {"phase": "0", "status": "planned"}
        values.update({f: "" for f in INDICATOR_COLUMNS})
        return values
    values = {
        "name": record.name,
        "company_id": record.company_id or "",
        "phase": str(record.phase),
        "status": record.status,
        "estimated_som": som_edit_value(record.estimated_som),
        "target_date": record.target_date or "",
        "description": record.description or "",
        "next_steps": record.next_steps or "",
        "demo_links": "\n".join(record.demo_links),
    }
    for field in INDICATOR_COLUMNS:
        values[field] = getattr(record, field) or ""
    return values


def render_form(
    request: Request,
    store: OpportunityStore,
    form: dict,
    opportunity: Optional[OpportunityRecord] = None,
    errors: Optional[List[str]] = None,
    warnings: Optional[List[str]] = None,
    return_to: str = "/dashboard/table",
    status_code: int = 200,
):
    try:
        companies = store.list_companies()
    except StoreError as e:
        logger.warning("Opportunity form failed to load: %s", e)
        return render_load_error(request, return_to, str(e))
    return templates.TemplateResponse(
        request,
        "dashboard/opportunity_form.html",
        {
            "opportunity": opportunity,
            "form": form,
            "companies": companies,
            "errors": errors or [],
            "warnings": warnings or [],
            "return_to": return_to,
        },
        status_code=status_code,
    )


@router.get("/opportunities/new", response_class=HTMLResponse)
async def new_opportunity_form(
    request: Request, return_to: Optional[str] = None, db: Session = Depends(get_db)
):
    return render_form(
        request, OpportunityStore(db), form_from_record(None),
        return_to=safe_view_url(return_to),
    )


@router.post("/opportunities/new")
async def create_opportunity(
    request: Request,
    name: str = Form(""),
    company_id: str = Form(""),
    phase: str = Form("0"),
    status: str = Form("planned"),
    estimated_som: str = Form(""),
    target_date: str = Form(""),
    description: str = Form(""),
    next_steps: str = Form(""),
    demo_links: str = Form(""),
    messaging_indicator: str = Form(""),
    campaign_indicator: str = Form(""),
    pricing_indicator: str = Form(""),
    sales_alignment_indicator: str = Form(""),
    confirm_warnings: bool = Form(False),
    return_to: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Insert a new opportunity from the form. Warnings need a confirmation."""
    state = ViewState.load(request)
    store = OpportunityStore(db)
    return_to = safe_view_url(return_to)
    form = {
        "name": name,
        "company_id": company_id,
        "phase": phase,
        "status": status,
        "estimated_som": estimated_som,
        "target_date": target_date,
        "description": description,
        "next_steps": next_steps,
        "demo_links": demo_links,
        "messaging_indicator": messaging_indicator,
        "campaign_indicator": campaign_indicator,
        "pricing_indicator": pricing_indicator,
        "sales_alignment_indicator": sales_alignment_indicator,
    }

    # Blank inputs mean "not set"
    data = {field: value for field, value in form.items() if value.strip()}
    result = validate_opportunity_create(data)

    if not result.is_valid:
        return render_form(
            request, store, form, errors=result.errors, return_to=return_to, status_code=422
        )

    if result.warnings and not confirm_warnings:
        return render_form(request, store, form, warnings=result.warnings, return_to=return_to)

    try:
        record = store.insert(clean_opportunity_data(data))
    except RecordNotFound:
        return render_form(
            request, store, form, errors=["Unknown company"], return_to=return_to, status_code=422
        )
    except StoreError as e:
        return render_form(
            request, store, form, errors=[f"Could not save: {e}"], return_to=return_to, status_code=502
        )

    state.flash = f"Created '{record.name}'"
    return redirect_with_state(state, return_to)


@router.get("/opportunities/{opp_id}", response_class=HTMLResponse)
async def edit_opportunity_form(
    request: Request, opp_id: str, return_to: Optional[str] = None, db: Session = Depends(get_db)
):
    store = OpportunityStore(db)
    try:
        record = store.get(opp_id)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Opportunity not found")
    return render_form(
        request, store, form_from_record(record), opportunity=record,
        return_to=safe_view_url(return_to),
    )


@router.post("/opportunities/{opp_id}")
async def update_opportunity(
    request: Request,
    opp_id: str,
    name: str = Form(""),
    company_id: str = Form(""),
    phase: str = Form("0"),
    status: str = Form("planned"),
    estimated_som: str = Form(""),
    target_date: str = Form(""),
    description: str = Form(""),
    next_steps: str = Form(""),
    demo_links: str = Form(""),
    messaging_indicator: str = Form(""),
    campaign_indicator: str = Form(""),
    pricing_indicator: str = Form(""),
    sales_alignment_indicator: str = Form(""),
    return_to: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Save the details form. Each changed field is written as its own update."""
    state = ViewState.load(request)
    store = OpportunityStore(db)
    return_to = safe_view_url(return_to)
    form = {
        "name": name,
        "company_id": company_id,
        "phase": phase,
        "status": status,
        "estimated_som": estimated_som,
        "target_date": target_date,
        "description": description,
        "next_steps": next_steps,
        "demo_links": demo_links,
        "messaging_indicator": messaging_indicator,
        "campaign_indicator": campaign_indicator,
        "pricing_indicator": pricing_indicator,
        "sales_alignment_indicator": sales_alignment_indicator,
    }

    try:
        records = store.list_all()
        companies = store.list_companies()
    except StoreError as e:
        logger.warning("Opportunity form failed to load: %s", e)
        return render_load_error(request, f"/dashboard/opportunities/{opp_id}", str(e))

    record = next((r for r in records if r.id == opp_id), None)
    if record is None:
        raise HTTPException(status_code=404, detail="Opportunity not found")

    errors = []
    patches = []
    for field, raw in form.items():
        try:
            if field == "company_id":
                if raw != (record.company_id or ""):
                    patches.extend(EditController().select(record, field, raw, companies))
                continue
            if field == "status" and raw == record.status:
                # Free-text statuses are kept until a known one is picked
                continue
            value = coerce_field(field, raw)
        except FieldValidationError as e:
            errors.append(e.message)
            continue
        if getattr(record, field) != value:
            patches.append(Patch(record.id, field, value))

    if errors:
        return render_form(
            request, store, form, opportunity=record, errors=errors,
            return_to=return_to, status_code=422,
        )

    if patches:
        write_patches(store, state, OptimisticList(records), patches)
    state.flash = state.flash or f"Saved '{form['name'].strip()}'"
    return redirect_with_state(state, return_to)
