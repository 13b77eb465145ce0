"""
FastAPI application entry point.

Run with: uvicorn prefrec.main:app --reload
"""

from contextlib import asynccontextmanager
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from prefrec import __version__
from prefrec.core.config import recommender_config, settings
from prefrec.core.logging import configure_logging, get_logger, bind_context, clear_context
from prefrec.persistence.database import init_database
from prefrec.api.routes import health, preferences, users
from prefrec.api.exception_handlers import setup_exception_handlers

# Configure logging before anything else
configure_logging()
log = get_logger(__name__)


# =============================================================================
# Correlation ID Middleware
# =============================================================================


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique correlation ID to each request.

    - Generates a UUID4 request_id for each incoming request
    - Binds it to structlog context for all logs in that request
    - Adds X-Request-ID header to responses
    """

    async def dispatch(self, request: Request, call_next):
        """Process request and add correlation ID."""
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    log.info(
        "application_starting",
        debug=settings.debug,
        database_path=str(settings.database_path),
        batch_size=recommender_config.recommendation.batch_size,
    )

    await init_database()

    log.info("application_started")

    yield

    log.info("application_shutting_down")


# Create FastAPI application
app = FastAPI(
    title="Preference Recommender",
    description="Recommends preferences from a shared weighted correlation graph",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS middleware for development
if settings.debug:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Correlation ID middleware (added after CORS, before exception handlers)
app.add_middleware(CorrelationIDMiddleware)

setup_exception_handlers(app)

app.include_router(health.router, tags=["system"])
app.include_router(users.router)
app.include_router(preferences.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {"name": "Preference Recommender", "version": __version__, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prefrec.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
