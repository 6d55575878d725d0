"""Authentication routes: password login, signup (disabled), logout, me."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from itmanager.exceptions import ITManagerError
from itmanager.web.auth.session import COOKIE_NAME
from itmanager.web.dependencies import get_registry, get_workspace
from itmanager.web.workspaces import WorkspaceRegistry
from itmanager.workspace import Workspace

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    email: str
    password: str
    full_name: str = ""


def describe(workspace: Workspace) -> dict[str, Any]:
    """Public view of a workspace's principal and tenant state."""
    session = workspace.auth.session
    current = workspace.tenants.current_tenant
    return {
        "user": session.principal.model_dump() if session else None,
        "profile": session.profile if session else None,
        "tenant_state": workspace.tenants.state.value,
        "current_tenant": current.model_dump() if current else None,
        "last_error": workspace.tenants.last_error,
    }


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """Authenticate and open a workspace bound to a new session cookie."""
    token, workspace = await registry.create()
    try:
        await workspace.sign_in(body.email, body.password)
    except ITManagerError:
        await registry.discard(token)
        raise

    settings = registry.settings
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.cookie_max_age,
    )
    logger.info("user_logged_in", email=body.email)
    return {"status": "ok", **describe(workspace)}


@router.post("/signup")
async def signup(
    body: SignupRequest,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> dict[str, Any]:
    token, workspace = await registry.create()
    try:
        await workspace.auth.sign_up(body.email, body.password, body.full_name)
    finally:
        await registry.discard(token)
    return {"status": "ok"}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    registry: WorkspaceRegistry = Depends(get_registry),
) -> dict[str, str]:
    token = request.cookies.get(COOKIE_NAME)
    workspace = registry.peek(token)
    if workspace is not None and workspace.auth.is_authenticated:
        await workspace.sign_out()
    await registry.discard(token)
    response.delete_cookie(COOKIE_NAME)
    return {"status": "ok"}


@router.get("/me")
async def me(workspace: Workspace = Depends(get_workspace)) -> dict[str, Any]:
    await workspace.ensure_tenant()
    return describe(workspace)
