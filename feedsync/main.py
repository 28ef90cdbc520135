"""
FeedSync FastAPI Application Entry Point

This module initializes and configures the FastAPI application that bridges
rendering surfaces to the post components.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from feedsync import __version__
from feedsync.api import feed
from feedsync.config.database import get_post_store
from feedsync.config.settings import get_settings
from feedsync.integrations.image_picker import ImagePicker, UnavailableImagePicker
from feedsync.integrations.store import PostStore
from feedsync.models.schemas.common import ErrorResponse, HealthCheckResponse
from feedsync.services.feed_session import SessionRegistry
from feedsync.utils.error_handling import FeedSyncError
from feedsync.utils.logger import setup_logging


def create_application(
    store: Optional[PostStore] = None,
    image_picker: Optional[ImagePicker] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Args:
        store: Remote post store; defaults to the configured backend
        image_picker: Image selection collaborator; defaults to unavailable
    """
    settings = get_settings()
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager for startup and shutdown events."""
        setup_logging()
        logger = structlog.get_logger(__name__)
        
        app.state.sessions = SessionRegistry(
            store or get_post_store(),
            image_picker or UnavailableImagePicker()
        )
        logger.info("FeedSync application starting up")
        
        yield
        
        # Release every live subscription before the loop goes away
        await app.state.sessions.close_all()
        logger.info("FeedSync application shutting down")
    
    app = FastAPI(
        title="FeedSync API",
        description="Post synchronization bridge for social feed rendering surfaces",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    
    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(feed.router, prefix="/api/v1/feed", tags=["feed"])
    
    @app.get("/")
    async def root():
        """Root endpoint with basic application information."""
        return {
            "name": "FeedSync API",
            "version": __version__,
            "status": "operational"
        }
    
    @app.get("/health", response_model=HealthCheckResponse)
    async def health_check(request: Request) -> HealthCheckResponse:
        """Liveness probe reporting the store backend and mounted sessions."""
        sessions: SessionRegistry = request.app.state.sessions
        return HealthCheckResponse(
            status="healthy",
            service="feedsync-api",
            version=__version__,
            timestamp=datetime.now(timezone.utc),
            store=type(sessions.store).__name__,
            open_sessions=len(sessions),
        )
    
    @app.exception_handler(FeedSyncError)
    async def feedsync_exception_handler(request: Request, exc: FeedSyncError):
        """Store failures that escaped a component boundary."""
        logger = structlog.get_logger(__name__)
        logger.warning(
            "FeedSync error reached the API layer",
            path=request.url.path,
            category=exc.category.value,
            error=exc.message
        )
        return JSONResponse(
            status_code=503 if exc.recoverable else 400,
            content=ErrorResponse(
                error=type(exc).__name__,
                message=exc.message,
                category=exc.category.value
            ).model_dump()
        )
    
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger = structlog.get_logger(__name__)
        logger.error(
            "Unhandled exception occurred",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True
        )
        
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                message="An unexpected error occurred. Please try again later."
            ).model_dump()
        )
    
    return app


# Create the application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn
    
    settings = get_settings()
    uvicorn.run(
        "feedsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
