"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS,
request context, request tracing), registers the exception handlers and
includes all API routers. It serves as the root of the web server.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from omnicrm.core.database import async_session_maker, init_db
from omnicrm.core.logging_config import get_logger, setup_logging
from omnicrm.core.monitoring import initialize_logfire

from .api.v1 import (
    contacts,
    dashboard,
    errors,
    google,
    health,
    inbox,
    notes,
    onboarding,
    projects,
    tasks,
    zones,
)
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware, RequestContextMiddleware
from .services.momentum import seed_default_zones

# Initialize logging
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Creates missing tables and seeds the default zones on startup.
    """
    # Startup
    try:
        logger.info("Starting up OmniCRM Server...")
        await init_db()
        await seed_default_zones(async_session_maker)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    yield

    # Shutdown
    logger.info("Shutting down OmniCRM Server...")


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    OmniCRM Server API

    Backend of the wellness-practitioner CRM: contacts and notes, OmniMomentum
    zones, projects, tasks and inbox with AI processing, client onboarding and
    Gmail/Calendar sync.
    """,
    version=constant.VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=settings.cors.allow_methods,
    allow_headers=settings.cors.allow_headers,
)
app.add_middleware(LogfireMiddleware)
app.add_middleware(RequestContextMiddleware)

setup_exception_handlers(app)
initialize_logfire(app)


app.include_router(health.router, tags=["health"])
app.include_router(contacts.router, prefix=f"{constant.API_V1_STR}/contacts", tags=["contacts"])
app.include_router(notes.router, prefix=f"{constant.API_V1_STR}/notes", tags=["notes"])
app.include_router(zones.router, prefix=f"{constant.API_V1_STR}/zones", tags=["zones"])
app.include_router(projects.router, prefix=f"{constant.API_V1_STR}/projects", tags=["projects"])
app.include_router(tasks.router, prefix=f"{constant.API_V1_STR}/tasks", tags=["tasks"])
app.include_router(inbox.router, prefix=f"{constant.API_V1_STR}/inbox", tags=["inbox"])
app.include_router(onboarding.router, prefix=f"{constant.API_V1_STR}/onboarding", tags=["onboarding"])
app.include_router(
    onboarding.public_router, prefix=f"{constant.API_V1_STR}/public/onboarding", tags=["onboarding"]
)
app.include_router(google.router, prefix=f"{constant.API_V1_STR}/google", tags=["google"])
app.include_router(errors.router, prefix=f"{constant.API_V1_STR}/errors", tags=["errors"])
app.include_router(dashboard.router, prefix=f"{constant.API_V1_STR}/dashboard", tags=["dashboard"])
