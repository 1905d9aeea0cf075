from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from launchbot.api.auth import require_user
from launchbot.chatbot.errors import MessageDeliveryError
from launchbot.core.app_context import get_app_context
from launchbot.core.logging import mask_phone
from launchbot.services.chatbot_settings import (
    TEST_MESSAGE_TEXT,
    ChatbotSettings,
    SendTestMessageRequest,
    default_settings_payload,
)
from launchbot.services.project_directory import UserRecord
from launchbot.whatsapp.router import router as whatsapp_router

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chatbot", tags=["chatbot"])


@router.get("/settings")
async def get_chatbot_settings(
    request: Request, user: UserRecord = Depends(require_user)
) -> dict[str, Any]:
    ctx = get_app_context(request.app)
    settings = ctx.chatbot_settings.get(user.id)
    if settings is None:
        return default_settings_payload()
    return settings.model_dump(by_alias=True)


@router.put("/settings")
async def update_chatbot_settings(
    payload: ChatbotSettings, request: Request, user: UserRecord = Depends(require_user)
) -> dict[str, Any]:
    ctx = get_app_context(request.app)
    ctx.chatbot_settings.save(user.id, payload)
    return {"success": True, "message": "Configurações atualizadas com sucesso"}


@router.post("/test-message")
async def send_test_message(
    payload: SendTestMessageRequest, request: Request, user: UserRecord = Depends(require_user)
) -> dict[str, Any]:
    ctx = get_app_context(request.app)
    text = payload.message or TEST_MESSAGE_TEXT
    logger.info("Sending test message to %s for user %s", mask_phone(payload.phone_number), user.id)
    try:
        await asyncio.to_thread(ctx.sender.send, payload.phone_number, text)
    except MessageDeliveryError as e:
        logger.error("Test message delivery failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Falha ao enviar mensagem de teste"
        ) from e
    return {"success": True, "message": "Mensagem de teste enviada com sucesso."}


# Cloud API webhook lives under /api/chatbot/webhook as well as /webhook
router.include_router(whatsapp_router)
