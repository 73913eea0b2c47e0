from tracker.services.optimistic import Patch, apply_patch, OptimisticList
from tracker.services.inline_edit import EditController, EditStateError
from tracker.services.sorting import SortState, sort_records, filter_records
from tracker.services.store import OpportunityStore, StoreError, RecordNotFound, InvalidField
from tracker.services.validators import FieldValidationError, coerce_field
from tracker.services.view_state import ViewState

__all__ = [
    'Patch',
    'apply_patch',
    'OptimisticList',
    'EditController',
    'EditStateError',
    'SortState',
    'sort_records',
    'filter_records',
    'OpportunityStore',
    'StoreError',
    'RecordNotFound',
    'InvalidField',
    'FieldValidationError',
    'coerce_field',
    'ViewState',
]
