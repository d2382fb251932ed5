"""
Viral Hub API

FastAPI application that:
1. Serves the viral opportunity pipeline (signals, opportunities, briefs, content)
2. Runs Shopify and Google Ads anomaly checks and manages alerts
3. Maps domain errors to JSON responses with their HTTP status

Run with:
    uvicorn api.main:app --reload
"""

import logging
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from viralhub import __version__
from viralhub.database import check_db_connection, init_db
from viralhub.exceptions import AuthenticationError, RateLimitError, ViralHubError
from viralhub.utils import get_settings, utcnow

from . import briefs, monitoring, opportunities

load_dotenv()

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("anthropic").setLevel(logging.WARNING)

app = FastAPI(
    title="Viral Hub",
    description="Trend signals to scored content opportunities, briefs and channel content",
    version=__version__,
)

app.include_router(opportunities.router)
app.include_router(briefs.router)
app.include_router(monitoring.router)


# ============================================================================
# ERROR HANDLING
# ============================================================================

@app.exception_handler(ViralHubError)
async def viral_hub_error_handler(request: Request, exc: ViralHubError):
    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"

    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} {exc.details}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers or None)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {"status": "ok", "service": "Viral Hub"}


@app.get("/health")
async def health():
    """Health check including database status."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__,
        "database": "connected" if check_db_connection() else "disconnected",
    }
