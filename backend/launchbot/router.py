from __future__ import annotations

from fastapi import APIRouter

from launchbot.api.auth import router as auth_router
from launchbot.api.chatbot import router as chatbot_router

api_router = APIRouter(prefix="/api")

api_router.include_router(auth_router)
api_router.include_router(chatbot_router)  # settings, test message and the webhook
