"""FastAPI application factory and main entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

import config
import logging_config
from api import router as api_router
from db import close_db, init_db
from errors import DashboardError

# Setup logging
logging_config.setup_logging(config.settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    await init_db()
    yield
    # Shutdown
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Payment Dashboard Backend",
    description="FastAPI backend for agency/client payment and project tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    """Map domain errors to JSON responses with their HTTP status and code."""
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


# Include API router
app.include_router(api_router.api_router, prefix=config.settings.API_PREFIX)

# Public URLs of stored blobs resolve here in the local-disk setup
app.mount("/files", StaticFiles(directory=config.settings.STORAGE_DIR, check_dir=False), name="files")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Payment Dashboard Backend API",
        "version": "0.1.0",
    }
