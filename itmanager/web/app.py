"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from itmanager.config.logging import setup_logging
from itmanager.config.settings import get_settings
from itmanager.exceptions import (
    AuthError,
    InvalidCredentials,
    ITManagerError,
    NoTenantAssigned,
    NotAuthenticated,
    RemoteCallError,
    StaleTenantContext,
    TenantNotAvailable,
    TenantNotReady,
)
from itmanager.web.dependencies import get_registry
from itmanager.web.health import check_health
from itmanager.web.middleware import RequestIDMiddleware
from itmanager.web.routes.auth import router as auth_router
from itmanager.web.routes.entities import ROUTERS as entity_routers
from itmanager.web.routes.navigation import router as navigation_router
from itmanager.web.routes.tenants import router as tenants_router
from itmanager.web.routes.timesheet import router as timesheet_router
from itmanager.web.workspaces import WorkspaceRegistry

logger = structlog.get_logger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_MAP: tuple[tuple[type[ITManagerError], int], ...] = (
    (NotAuthenticated, 401),
    (InvalidCredentials, 401),
    (AuthError, 403),
    (NoTenantAssigned, 403),
    (TenantNotAvailable, 403),
    (TenantNotReady, 409),
    (StaleTenantContext, 409),
    (RemoteCallError, 502),
)


def status_for(exc: ITManagerError) -> int:
    for exc_type, status in _STATUS_MAP:
        if isinstance(exc, exc_type):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    registry_factory = app.dependency_overrides.get(get_registry, get_registry)
    registry: WorkspaceRegistry = registry_factory()
    await registry.close_all()
    logger.info("workspaces_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="IT Manager",
        description="Multi-tenant project management API",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(ITManagerError)
    async def domain_error_handler(request: Request, exc: ITManagerError) -> JSONResponse:
        status = status_for(exc)
        content: dict[str, object] = {"detail": str(exc), "error": exc.__class__.__name__}
        if isinstance(exc, RemoteCallError):
            content.update(code=exc.code, details=exc.details, hint=exc.hint)
        log = logger.error if status >= 500 else logger.info
        log("request_failed", path=request.url.path, status=status, error=content["error"])
        return JSONResponse(status_code=status, content=content)

    # Middleware (order matters: last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check(
        registry: WorkspaceRegistry = Depends(get_registry),
    ) -> dict[str, object]:
        return await check_health(registry)

    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(navigation_router)
    # Registered before the generic time-log routes so /permissions is not read as an id.
    app.include_router(timesheet_router)
    for router in entity_routers:
        app.include_router(router)

    logger.info("app_created")
    return app
