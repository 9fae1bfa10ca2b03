"""
Main FastAPI Application

API server for the brand recommendation engine.
"""

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from config.settings import settings

from src.routes import health_routes, recommendation_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="API for generating competitor-safe brand recommendations from AI visibility telemetry"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_routes.router)
    app.include_router(recommendation_routes.router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize application resources on startup."""
        from storage.telemetry_store import get_telemetry_store

        store = get_telemetry_store()
        logger.info(f"Backend chain: {' → '.join(settings.RECOMMENDATION_BACKEND_CHAIN)}")

        if settings.TELEMETRY_STORE_BACKEND == "redis" or settings.CACHE_GENERATION_SUMMARY:
            from config.database import check_connections

            status = check_connections()
            if status["redis"]["connected"]:
                logger.info("✅ Redis: Connected")
            else:
                logger.warning(f"⚠️  Redis: Not connected - {status['redis']['error']}")
                logger.warning(f"Application will continue but {type(store).__name__} may not work")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Release connections on shutdown."""
        from config.database import close_connections
        close_connections()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
