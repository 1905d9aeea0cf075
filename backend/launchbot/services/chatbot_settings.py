from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from launchbot.services.notification_service import NotificationPreferenceStore

logger = logging.getLogger(__name__)

PHONE_PATTERN = r"^\+?[0-9]+$"
TEST_MESSAGE_TEXT = "Olá! Esta é uma mensagem de teste do LaunchRocket."


class ChatbotPreferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_updates: bool = Field(default=True, alias="projectUpdates")
    task_updates: bool = Field(default=True, alias="taskUpdates")
    daily_summary: bool = Field(default=False, alias="dailySummary")
    active_hours: bool = Field(default=False, alias="activeHours")


class ChatbotSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber", min_length=10, max_length=15, pattern=PHONE_PATTERN)
    enabled: bool = False
    preferences: ChatbotPreferences = Field(default_factory=ChatbotPreferences)


class SendTestMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(alias="phoneNumber", min_length=10, max_length=15, pattern=PHONE_PATTERN)
    message: str | None = None


def default_settings_payload() -> dict[str, object]:
    """Settings shown to a user who never saved any (phone not yet chosen)."""
    return {
        "phoneNumber": "",
        "enabled": False,
        "preferences": ChatbotPreferences().model_dump(by_alias=True),
    }


class ChatbotSettingsStore:
    """Per-user chatbot settings, kept in sync with notification preferences."""

    def __init__(self, preferences: NotificationPreferenceStore) -> None:
        self._settings: dict[int, ChatbotSettings] = {}
        self._preferences = preferences

    def get(self, user_id: int) -> ChatbotSettings | None:
        return self._settings.get(user_id)

    def save(self, user_id: int, settings: ChatbotSettings) -> None:
        self._settings[user_id] = settings
        if settings.enabled:
            prefs = settings.preferences
            flags = {
                "project_updates": prefs.project_updates,
                "task_updates": prefs.task_updates,
                "daily_summary": prefs.daily_summary,
            }
            # Keep last_notified and last_summary_date of an existing preference
            if not self._preferences.update(user_id, phone_number=settings.phone_number, **flags):
                self._preferences.add(user_id, settings.phone_number, **flags)
            logger.info("Chatbot notifications enabled for user %s", user_id)
        elif self._preferences.remove(user_id):
            logger.info("Chatbot notifications disabled for user %s", user_id)
