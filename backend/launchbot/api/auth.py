"""Web session login for the settings API.

Uses the same credential verifier as the chatbot login and keeps the user id
in the signed Starlette session cookie.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from launchbot.core.app_context import get_app_context
from launchbot.services.project_directory import UserRecord

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

SESSION_USER_KEY = "user_id"


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


def _public_user(user: UserRecord) -> dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "role": user.role,
    }


async def require_user(request: Request) -> UserRecord:
    """Dependency: the logged-in user, or 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")

    ctx = get_app_context(request.app)
    user = await ctx.directory.get_user(int(user_id))
    if user is None:
        request.session.clear()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário não encontrado"
        )
    return user


@router.post("/login")
async def login(payload: LoginRequest, request: Request) -> dict[str, Any]:
    ctx = get_app_context(request.app)
    result = await ctx.verifier.verify_credentials(payload.username, payload.password)
    if not result.ok or result.user is None:
        logger.info("Web login failed: %s", result.status)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciais inválidas")

    request.session[SESSION_USER_KEY] = result.user.id
    logger.info("Web login succeeded for user %s", result.user.id)
    return _public_user(result.user)


@router.post("/logout")
async def logout(request: Request) -> dict[str, str]:
    request.session.clear()
    return {"message": "Logout efetuado com sucesso"}


@router.get("/me")
async def me(user: UserRecord = Depends(require_user)) -> dict[str, Any]:
    return _public_user(user)
