from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from fastapi import FastAPI

    from launchbot.chatbot.processor import ChatbotProcessor
    from launchbot.core.auth import CredentialVerifier
    from launchbot.core.state import ChatSessionStore
    from launchbot.services.chatbot_settings import ChatbotSettingsStore
    from launchbot.services.deduplication_service import MessageDeduplicationService
    from launchbot.services.notification_service import (
        NotificationPreferenceStore,
        NotificationService,
    )
    from launchbot.services.project_directory import ProjectDirectory
    from launchbot.whatsapp.adapter import MessageSender


@dataclass(slots=True)
class AppContext:
    store: ChatSessionStore
    directory: ProjectDirectory
    verifier: CredentialVerifier
    processor: ChatbotProcessor
    sender: MessageSender
    deduplicator: MessageDeduplicationService
    preferences: NotificationPreferenceStore
    chatbot_settings: ChatbotSettingsStore
    notifications: NotificationService | None = None


def set_app_context(app: FastAPI, ctx: AppContext) -> None:
    # Store one typed context object under app.state
    app.state.ctx = ctx


def get_app_context(app: FastAPI) -> AppContext:
    # Retrieve and cast from app.state
    return cast("AppContext", app.state.ctx)
