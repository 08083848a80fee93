"""
FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException

from bazaar.api.router import api_router
from bazaar.core.config import settings
from bazaar.core.errors import (
    AppError,
    app_exception_handler,
    database_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from bazaar.core.logging import RequestIDMiddleware, RequestLoggingMiddleware, get_logger, setup_logging
from bazaar.infra.db import close_db_connection

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info("app.startup", env=settings.env, follow_columns=settings.follow_columns or "probe")

    yield

    # Shutdown
    await close_db_connection()
    logger.info("app.shutdown")


tags_metadata = [
    {
        "name": "social",
        "description": "Follow / friend-request relationships, direct-message hand-off and profile cards.",
    },
    {
        "name": "health",
        "description": "System health check.",
    },
]


def create_app() -> FastAPI:
    app = FastAPI(
        title="Bazaar Social Core",
        description="""
Relationship & conversation resolution for the Bazaar community marketplace.

## Features
* **Relationships**: follow, friend requests and their acceptance.
* **Direct messages**: find-or-create the conversation between two members.
* **Profile cards**: public profile with relationship and follower counts.
""",
        version="0.1.0",
        openapi_tags=tags_metadata,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        swagger_ui_parameters={
            "persistAuthorization": True,
            "displayRequestDuration": True
        },
        lifespan=lifespan,
    )

    # Middleware
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    # Routes
    app.include_router(api_router, prefix=settings.api_prefix)

    # Exception Handlers
    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DBAPIError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


app = create_app()
