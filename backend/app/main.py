"""
Tubely — FastAPI Application

This is the entry point for the backend. It:
1. Creates the FastAPI app instance
2. Configures logging and CORS
3. Registers route handlers and the /assets static mount
4. Sets up startup/shutdown lifecycle events

Run with:
    uvicorn app.main:app --reload --port 8091
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import init_db
from app.routers import admin, users, videos

# IMPORTANT: Import models so SQLAlchemy registers them with Base.metadata
# before init_db() calls create_all(). Without this, no tables get created.
import app.models  # noqa: F401

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic.

    Code before 'yield' runs on startup.
    Code after 'yield' runs on shutdown.
    """
    # --- Startup ---
    logger.info("Starting Tubely API...")
    await init_db()  # Create tables if they don't exist
    logger.info("Database tables created/verified")

    yield  # App is running, handling requests

    # --- Shutdown ---
    logger.info("Shutting down...")


app = FastAPI(
    title="Tubely API",
    description="Video records with thumbnail and video uploads",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router)
app.include_router(videos.router)
app.include_router(admin.router)

# Disk-stored thumbnails. The directory must exist before StaticFiles mounts it.
Path(settings.ASSETS_ROOT).mkdir(parents=True, exist_ok=True)
app.mount("/assets", StaticFiles(directory=settings.ASSETS_ROOT), name="assets")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed or incomplete request bodies are a 400, with the offending fields listed."""
    errors = []
    for err in exc.errors():
        location_parts = [str(part) for part in err.get("loc", []) if part != "body"]
        errors.append(
            {
                "field": "body" if not location_parts else ".".join(location_parts),
                "message": err.get("msg"),
            }
        )

    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request payload", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Log unhandled errors and hide the details from the client."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


# --- Health Check Endpoints ---

@app.get("/", tags=["health"])
async def root():
    """Root endpoint — confirms the API is alive."""
    return {
        "service": "Tubely",
        "status": "running",
        "version": VERSION,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Detailed health check — verifies database connectivity."""
    from sqlalchemy import text

    from app.database import AsyncSessionLocal

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "database": db_status,
        "platform": settings.PLATFORM,
    }
