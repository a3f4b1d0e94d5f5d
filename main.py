"""FastAPI application factory and main entry point."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import config
import logging_config
from api import router as api_router
from api.responses import register_exception_handlers
from db import AsyncSessionLocal, close_db, init_db
from services import expense_categories_service, users_service
from services.storage import PUBLIC_URL_PREFIX

# Setup logging
logging_config.setup_logging(config.settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Creates missing tables, then seeds the default administrator and the
    expense category catalogue when they are absent.
    """
    # Startup
    await init_db()
    async with AsyncSessionLocal() as session:
        await users_service.seed_default_admin(session)
        await expense_categories_service.seed_default_categories(session)
    yield
    # Shutdown
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Field Service Backend",
    description="FastAPI backend for field service projects, requests and renditions",
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

register_exception_handlers(app)

# Uploaded files
Path(config.settings.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
app.mount(PUBLIC_URL_PREFIX, StaticFiles(directory=config.settings.UPLOADS_DIR), name="uploads")

# Include API router
app.include_router(api_router.api_router, prefix=config.settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Field Service Backend API",
        "version": "0.1.0",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
