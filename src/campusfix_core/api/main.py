"""CampusFix Core FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_settings
from ..database import create_store
from ..kv_store import KeyValueStore
from .routers import admin, gamification, issues, users

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("campusfix-core")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the key-value store unless one was injected."""
    logger.info("Starting CampusFix Core API...")
    if getattr(app.state, "store", None) is None:
        app.state.store = create_store(settings.database_url)
        logger.info("Key-value store ready")

    yield

    logger.info("Shutting down CampusFix Core API...")


def create_app(store: Optional[KeyValueStore] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Key-value store to serve from (opened from DATABASE_URL at startup if omitted)
    """
    app = FastAPI(
        title="CampusFix Core API",
        description="Campus facility issue reporting, gamification and maintenance analytics",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Business logic routers with /api/v1 prefix
    app.include_router(issues.router, prefix="/api/v1/issues")
    app.include_router(gamification.router, prefix="/api/v1/gamification")
    app.include_router(admin.router, prefix="/api/v1/admin")
    app.include_router(users.router, prefix="/api/v1/users")

    @app.get("/")
    def root():
        """Root endpoint with server info."""
        return {
            "name": "CampusFix Core API",
            "version": "1.0.0",
            "docs": "/docs",
            "description": "Campus facility issue reporting and maintenance analytics",
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
