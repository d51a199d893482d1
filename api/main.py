"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.post_commit import drain_pending
from database.engine import init_db, close_db
from api.routes import health
from api.routes.v1 import (
    applicants,
    events,
    interviews,
    jobs,
    subscriptions,
)

from core.middleware import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    StructuredLoggingMiddleware,
    setup_logging,
    AuthenticationMiddleware,
)

# Setup structured logging (do this first, before anything else)
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    # Let inline notification fan-out finish before the engine goes away
    await drain_pending()
    await close_db()


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        session_factory: Session factory the authentication middleware loads
            users with. Defaults to the application engine.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.app_name,
        description="Applicant tracking with scoped access and subscription notifications",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Setup error handlers (before middleware)
    setup_error_handlers(app, debug=settings.debug)

    # Add middleware (order matters - the last one added wraps all the others)
    # 1. Error handling middleware (innermost - catches errors raised by routes)
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)

    # 2. Structured logging middleware (logs all requests/responses)
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
    )

    # 3. Authentication middleware (validates JWT tokens, loads user and scope)
    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret_key,
        jwt_algorithm=settings.jwt_algorithm,
        session_factory=session_factory,
    )

    # 4. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    app.include_router(
        jobs.router,
        prefix=f"{settings.api_v1_prefix}/jobs",
        tags=["Jobs"],
    )
    app.include_router(
        events.router,
        prefix=f"{settings.api_v1_prefix}/events",
        tags=["Events"],
    )
    app.include_router(
        applicants.router,
        prefix=f"{settings.api_v1_prefix}/applicants",
        tags=["Applicants"],
    )
    app.include_router(
        interviews.router,
        prefix=f"{settings.api_v1_prefix}/interviews",
        tags=["Interviews"],
    )
    app.include_router(
        subscriptions.router,
        prefix=settings.api_v1_prefix,
        tags=["Subscriptions"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
