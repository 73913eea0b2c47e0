"""
Per-browser view state.

Sidebar, filter selections, column widths, the active sort and the inline
edit in progress live in one serializable object. Routes load it from a
signed cookie at the start of a request and save it on the response.
"""

import logging
import os
from typing import Dict, List, Optional

from tracker.security import load_view_state, sign_view_state
from tracker.services.inline_edit import EDITING, EditController
from tracker.services.sorting import SortState

logger = logging.getLogger(__name__)

VIEW_STATE_COOKIE = os.getenv("VIEW_STATE_COOKIE", "tracker_view")

# Browsers drop cookies over 4096 bytes including the name
MAX_COOKIE_BYTES = 3800

MIN_COLUMN_WIDTH = 20

DEFAULT_COLUMN_WIDTHS: Dict[str, int] = {
    "expand": 24,
    "phase": 55,
    "company": 70,
    "name": 120,
    "som": 50,
    "status": 85,
    "m": 45,
    "c": 50,
    "p": 48,
    "s": 48,
    "nextSteps": 100,
    "demo": 50,
    "files": 50,
    "target": 55,
    "delete": 28,
}

MODES = ("all", "select")


def _toggle(ids: List[str], item_id: str) -> List[str]:
    if item_id in ids:
        return [i for i in ids if i != item_id]
    return ids + [item_id]


class ViewState:
    def __init__(
        self,
        sidebar_collapsed: bool = False,
        opportunity_mode: str = "all",
        selected_opportunity_ids: Optional[List[str]] = None,
        company_mode: str = "all",
        selected_company_ids: Optional[List[str]] = None,
        column_widths: Optional[Dict[str, int]] = None,
        sort: Optional[SortState] = None,
        editor: Optional[EditController] = None,
        flash: Optional[str] = None,
    ):
        self.sidebar_collapsed = sidebar_collapsed
        self.opportunity_mode = opportunity_mode if opportunity_mode in MODES else "all"
        self.selected_opportunity_ids = list(selected_opportunity_ids or [])
        self.company_mode = company_mode if company_mode in MODES else "all"
        self.selected_company_ids = list(selected_company_ids or [])
        self.column_widths = dict(DEFAULT_COLUMN_WIDTHS)
        self.column_widths.update(column_widths or {})
        self.sort = sort or SortState()
        self.editor = editor or EditController()
        self.flash = flash

    # -----------------------------
    # Sidebar / filters
    # -----------------------------
    def toggle_sidebar(self):
        self.sidebar_collapsed = not self.sidebar_collapsed

    def set_opportunity_mode(self, mode: str):
        if mode not in MODES:
            raise ValueError(f"Unknown filter mode '{mode}'")
        self.opportunity_mode = mode

    def toggle_opportunity(self, opportunity_id: str):
        self.selected_opportunity_ids = _toggle(self.selected_opportunity_ids, opportunity_id)

    def set_company_mode(self, mode: str):
        if mode not in MODES:
            raise ValueError(f"Unknown filter mode '{mode}'")
        self.company_mode = mode

    def toggle_company(self, company_id: str):
        self.selected_company_ids = _toggle(self.selected_company_ids, company_id)

    def clear_filters(self):
        self.opportunity_mode = "all"
        self.selected_opportunity_ids = []
        self.company_mode = "all"
        self.selected_company_ids = []

    # -----------------------------
    # Columns
    # -----------------------------
    def set_column_width(self, column: str, width: int):
        self.column_widths[column] = max(MIN_COLUMN_WIDTH, int(width))

    def reset_column_widths(self):
        self.column_widths = dict(DEFAULT_COLUMN_WIDTHS)

    def pop_flash(self) -> Optional[str]:
        message, self.flash = self.flash, None
        return message

    # -----------------------------
    # Serialization
    # -----------------------------
    def to_dict(self) -> dict:
        return {
            "sidebar_collapsed": self.sidebar_collapsed,
            "opportunity_mode": self.opportunity_mode,
            "selected_opportunity_ids": self.selected_opportunity_ids,
            "company_mode": self.company_mode,
            "selected_company_ids": self.selected_company_ids,
            "column_widths": self.column_widths,
            "sort": self.sort.to_dict(),
            "editor": self.editor.to_dict(),
            "flash": self.flash,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ViewState":
        if not data:
            return cls()
        widths = data.get("column_widths") or {}
        try:
            widths = {str(k): max(MIN_COLUMN_WIDTH, int(v)) for k, v in widths.items()}
        except (TypeError, ValueError, AttributeError):
            widths = {}
        return cls(
            sidebar_collapsed=bool(data.get("sidebar_collapsed", False)),
            opportunity_mode=data.get("opportunity_mode", "all"),
            selected_opportunity_ids=[str(i) for i in data.get("selected_opportunity_ids") or []],
            company_mode=data.get("company_mode", "all"),
            selected_company_ids=[str(i) for i in data.get("selected_company_ids") or []],
            column_widths=widths,
            sort=SortState.from_dict(data.get("sort")),
            editor=EditController.from_dict(data.get("editor")),
            flash=data.get("flash"),
        )

    # -----------------------------
    # Cookie load/save
    # -----------------------------
    @classmethod
    def load(cls, request) -> "ViewState":
        """Read state from the request cookie; defaults when missing or tampered."""
        return cls.from_dict(load_view_state(request.cookies.get(VIEW_STATE_COOKIE)))

    def cookie_value(self) -> str:
        """Signed cookie payload.

        A draft too large for a cookie is discarded with a flash message
        instead of letting the browser drop the whole cookie.
        """
        value = sign_view_state(self.to_dict())
        if len(value) > MAX_COOKIE_BYTES and self.editor.state == EDITING:
            logger.warning(
                "Discarding %d-character draft of %s on %s", len(self.editor.draft),
                self.editor.field, self.editor.record_id,
            )
            self.editor.cancel()
            self.flash = "That edit was too long to keep open and was discarded"
            value = sign_view_state(self.to_dict())
        return value

    def save(self, response):
        """Write state onto the response cookie."""
        response.set_cookie(
            VIEW_STATE_COOKIE,
            self.cookie_value(),
            httponly=True,
            samesite="lax",
        )
        return response
