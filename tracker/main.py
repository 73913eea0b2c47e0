import os
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from tracker.routes import dashboard_router, api_router
from tracker.database import init_db, DATABASE_URL
from tracker.template_config import templates

# Create FastAPI app
app = FastAPI(
    title="Innovation Tracker",
    description="Opportunity pipeline tracker",
    version="1.0.0"
)

# Include routers
app.include_router(dashboard_router)
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    """Ensure the database is reachable and tables exist. If initialization
    fails the app raises and stops with a clear error message.
    """
    try:
        init_db()
    except Exception as e:
        raise RuntimeError(
            f"Database initialization failed for DATABASE_URL={DATABASE_URL}: {e}"
        ) from e


@app.get("/")
async def index():
    return RedirectResponse(url="/dashboard/timeline", status_code=303)


def _error_response(request: Request, exc, status_code: int, template: str):
    """JSON for API calls, an error page for the browser views."""
    detail = getattr(exc, "detail", None) or "Something went wrong"
    if request.url.path.startswith("/api"):
        return JSONResponse({"detail": detail}, status_code=status_code)
    return templates.TemplateResponse(
        request,
        template,
        {"detail": detail, "status_code": status_code},
        status_code=status_code
    )


# Error handlers
@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    """Handle 404 errors."""
    return _error_response(request, exc, 404, "errors/404.html")


@app.exception_handler(403)
async def forbidden_handler(request: Request, exc):
    """Handle 403 errors (unconfirmed deletes)."""
    return _error_response(request, exc, 403, "errors/403.html")


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    """Handle 500 errors."""
    logger.error("Unhandled error on %s: %s", request.url.path, exc)
    return _error_response(request, exc, 500, "errors/500.html")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tracker.main:app", host="0.0.0.0", port=8000, reload=True)
