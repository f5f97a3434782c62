"""
FastAPI Application

Main entry point for the Custom Dimensions API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
import structlog

from custom_dimensions.config import get_settings
from custom_dimensions.database.connection import init_database, close_database, create_schema
from custom_dimensions.dimensions.exceptions import CustomDimensionsError
from custom_dimensions.serving.cache import init_redis, close_redis
from custom_dimensions.serving.api.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from custom_dimensions.serving.api.routes import (
    health_router,
    custom_dimensions_router,
    site_custom_dimensions_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    from custom_dimensions.config.logging import configure_logging
    configure_logging()
    
    settings = get_settings()
    logger.info("Starting Custom Dimensions API", environment=settings.app_env)
    
    await init_database()
    if not settings.is_production:
        await create_schema()
    
    # The tracker cache is optional; without it invalidations are logged and skipped
    try:
        await init_redis()
    except (RedisError, OSError) as e:
        logger.warning("Redis init failed, tracker caches disabled", error=str(e))
    
    yield
    
    logger.info("Shutting down...")
    await close_database()
    await close_redis()


async def custom_dimensions_error_handler(request: Request, exc: CustomDimensionsError) -> JSONResponse:
    """Render domain errors with their stable code"""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
    )
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()},
        headers=headers,
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()
    
    app = FastAPI(
        title="Custom Dimensions API",
        description="Configure Custom Dimensions, their slots and extractions, and fetch their reports",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    
    app.add_exception_handler(CustomDimensionsError, custom_dimensions_error_handler)
    
    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(
        site_custom_dimensions_router,
        prefix="/api/v1/sites/{site_id}/custom-dimensions",
        tags=["Custom Dimensions"],
    )
    app.include_router(
        custom_dimensions_router,
        prefix="/api/v1/custom-dimensions",
        tags=["Custom Dimensions"],
    )
    
    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Custom Dimensions API",
            "version": settings.version,
            "environment": settings.app_env,
        }
    
    return app


app = create_app()


def run() -> None:
    """Console entry point"""
    import uvicorn
    
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
