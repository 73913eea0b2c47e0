from tracker.routes.dashboard import router as dashboard_router
from tracker.routes.api import router as api_router

__all__ = [
    'dashboard_router',
    'api_router',
]
