"""
RentScout Web API
FastAPI over the listing search and enrichment services
"""
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.web.routers import api, financials
from rentscout import __version__
from rentscout.browser.session import BrowserSessionManager
from rentscout.config import load_settings
from rentscout.errors import RentScoutError
from rentscout.services.enrichment_service import EnrichmentService
from rentscout.services.enrichment_worker import EnrichmentWorker
from rentscout.services.listing_search_service import ListingSearchService
from rentscout.services.result_cache import ResultCache
from rentscout.utils.logging_config import setup_default_logging

# Configure loguru
setup_default_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("RentScout Web starting up...")
    settings = load_settings()
    sessions = BrowserSessionManager(settings)
    cache = ResultCache(default_ttl=settings.cache_ttl_seconds)
    worker = EnrichmentWorker(EnrichmentService(settings, sessions, cache=cache))
    await worker.start()

    app.state.settings = settings
    app.state.sessions = sessions
    app.state.cache = cache
    app.state.worker = worker
    app.state.search_service = ListingSearchService(settings, sessions, cache, worker=worker)
    try:
        yield
    finally:
        logger.info("RentScout Web shutting down...")
        await worker.stop()
        await sessions.close_all()


# Create FastAPI app
app = FastAPI(
    title="RentScout",
    description="Redfin listing search with AirDNA rental projections",
    version=__version__,
    lifespan=lifespan,
)

# Include routers
app.include_router(api.router, prefix="/api")
app.include_router(financials.router, prefix="/listings")


# =============================================================================
# Error Handlers
# =============================================================================

def _generate_error_id() -> str:
    """Generate a short error ID for tracking."""
    return str(uuid.uuid4())[:8].upper()


def _error_response(status_code: int, error: str, message: str, error_id: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "status": status_code,
            "error_id": error_id,
        },
        headers=headers,
    )


@app.exception_handler(RentScoutError)
async def rentscout_error_handler(request: Request, exc: RentScoutError):
    """Typed pipeline failures map to their own status codes."""
    error_id = _generate_error_id()
    log_fn = logger.warning if exc.http_status < 500 else logger.error
    log_fn(f"{type(exc).__name__} [ID: {error_id}]: {exc} - {request.method} {request.url}")
    return _error_response(exc.http_status, exc.error_code, str(exc), error_id)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    error_id = _generate_error_id()
    logger.warning(f"Validation error [ID: {error_id}]: {exc.errors()} - {request.method} {request.url}")
    return _error_response(422, "validation_error", str(exc.errors()), error_id)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with detailed output."""
    error_id = _generate_error_id()

    # Log 4xx and 5xx errors
    if exc.status_code >= 400:
        log_fn = logger.warning if exc.status_code < 500 else logger.error
        log_fn(f"HTTP {exc.status_code} [ID: {error_id}]: {exc.detail} - {request.method} {request.url}")

    return _error_response(exc.status_code, "http_error", str(exc.detail), error_id, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with detailed logging."""
    error_id = _generate_error_id()

    # Get full traceback for logging
    tb = traceback.format_exc()
    logger.error(
        f"Unhandled exception [ID: {error_id}]\n"
        f"Request: {request.method} {request.url}\n"
        f"Exception: {type(exc).__name__}: {exc}\n"
        f"Traceback:\n{tb}"
    )
    return _error_response(
        500, "internal_error", f"An unexpected error occurred: {type(exc).__name__}", error_id
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    worker = getattr(app.state, "worker", None)
    sessions = getattr(app.state, "sessions", None)
    return {
        "status": "ok" if worker is not None and worker.running else "degraded",
        "service": "RentScout",
        "version": __version__,
        "enrichment": {
            "running": bool(worker and worker.running),
            "pending": worker.queue.qsize() if worker else 0,
            "completed": worker.completed if worker else 0,
            "failed": worker.failed if worker else 0,
        },
        "open_sessions": sessions.open_sessions if sessions else 0,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.web.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True
    )
