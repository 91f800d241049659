"""
Main FastAPI application.

WHY: This is the entry point for the application. It configures logging,
middleware, routes, exception handlers and the SLA scheduler.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from arsenal.core.config import settings
from arsenal.core.exceptions import AppException
from arsenal.core.exception_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    generic_exception_handler,
)
from arsenal.core.logging import setup_logging
from arsenal.middleware import RequestContextMiddleware
from arsenal.api import alerts, auth, notifications, realtime, system_config, tickets, users
from arsenal.db.session import AsyncSessionLocal
from arsenal.services.user_service import UserService
from arsenal.services.scheduler import start_scheduler, shutdown_scheduler, get_scheduler_status


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    WHY: Factory pattern allows easier testing with different configurations.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Alert escalation and ticket SLA API for telecom site operations",
        version=settings.VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Register exception handlers
    # WHY: Consistent error responses across the API
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Request id for every log line of a request
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """
        Health check endpoint.

        WHY: Lets load balancers verify the service and shows whether the
        SLA sweep is scheduled.
        """
        return {
            "status": "healthy",
            "version": settings.VERSION,
            "scheduler": get_scheduler_status(),
        }

    @app.on_event("startup")
    async def startup_event():
        """Seed the first admin if configured, then start the SLA sweep."""
        if settings.FIRST_ADMIN_EMAIL and settings.FIRST_ADMIN_PASSWORD:
            async with AsyncSessionLocal() as session:
                await UserService(session).ensure_first_admin(
                    email=settings.FIRST_ADMIN_EMAIL,
                    password=settings.FIRST_ADMIN_PASSWORD,
                    name=settings.FIRST_ADMIN_NAME,
                )
        if settings.SLA_SCHEDULER_ENABLED:
            await start_scheduler()

    @app.on_event("shutdown")
    async def shutdown_event():
        await shutdown_scheduler()

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/api/docs",
        }

    # Register API routers
    for module in (auth, users, alerts, tickets, notifications, system_config, realtime):
        app.include_router(module.router, prefix=settings.API_V1_PREFIX)

    return app


# Create app instance
# WHY: Allows `uvicorn arsenal.main:app`
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "arsenal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if settings.DEBUG else "warning",
    )
