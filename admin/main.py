"""
Site Publisher - Admin Application

FastAPI application exposing the publishing API:
- Preview deployments to a temporary channel
- Live deployments
- File listing of the generated site
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from config.settings import get_settings
from config.logging import setup_logging, get_logger


logger = get_logger(__name__)


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        logger.info("=" * 60)
        logger.info("Site Publisher - Admin Starting")
        logger.info("=" * 60)

        if not settings.is_hosting_configured:
            logger.warning("Hosting is not configured; publish requests will fail")

        yield

        logger.info("Admin shutting down")

    app = FastAPI(
        title="Site Publisher Admin",
        description="Preview and deploy the generated static site",
        version="1.0.0",
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    from admin.api import router as api_router

    app.include_router(api_router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint for container orchestration."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "site-publisher",
            "hosting_configured": settings.is_hosting_configured,
        }

    return app


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    setup_logging()
    settings = get_settings()

    uvicorn.run(
        create_app(),
        host="0.0.0.0",
        port=7410,
        log_level=settings.log_level.lower(),
    )
