"""
Discubot FastAPI Application.

Accepts parsed discussions from webhook handlers and exposes their
processing results.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from discubot.api.routes import discussions
from discubot.config import settings
from discubot.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Configures logging and, for SQLite databases, creates the tables.
    """
    setup_logging(context="api")

    if settings.database_url.startswith("sqlite"):
        from discubot.db.connection import init_db

        init_db()
        logger.info("✓ SQLite tables created")

    logger.info(f"Application startup complete ({settings.environment})")

    yield

    discussions.close_shared_services()
    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="Discubot API",
    description="Turns discussion threads into routed Notion tasks",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    from discubot.db.connection import check_connection

    db_status = "healthy" if check_connection() else "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
    }


app.include_router(discussions.router, prefix="/api/discussions", tags=["discussions"])
