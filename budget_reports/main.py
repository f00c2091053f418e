"""
FastAPI Production Application

Main entry point for the Budget Reports API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from budget_reports.config import get_settings
from budget_reports.config.logging import configure_logging
from budget_reports.database.connection import close_database, init_database
from budget_reports.serving.api.main import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Budget Reports API")

    try:
        await init_database()
    except Exception as e:
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


app = create_api_app(lifespan=lifespan)


def run() -> None:
    """Console entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
