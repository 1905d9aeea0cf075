from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class ConversationState(str, Enum):
    initial = "initial"
    awaiting_username = "awaiting_username"
    awaiting_password = "awaiting_password"
    authenticated = "authenticated"
    viewing_project = "viewing_project"
    viewing_task = "viewing_task"


PRE_LOGIN_STATES = frozenset(
    {
        ConversationState.initial,
        ConversationState.awaiting_username,
        ConversationState.awaiting_password,
    }
)
POST_LOGIN_STATES = frozenset(
    {
        ConversationState.authenticated,
        ConversationState.viewing_project,
        ConversationState.viewing_task,
    }
)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class ChatSession:
    """Conversation state of one WhatsApp phone number."""

    phone_number: str
    conversation_state: ConversationState = ConversationState.initial
    authenticated: bool = False
    user_id: int | None = None
    pending_username: str | None = None
    current_project_id: int | None = None
    current_task_id: int | None = None
    last_activity: datetime = field(default_factory=utc_now)

    def login(self, user_id: int) -> None:
        self.authenticated = True
        self.user_id = user_id
        self.pending_username = None
        self.conversation_state = ConversationState.authenticated

    def logout(self) -> None:
        self.authenticated = False
        self.user_id = None
        self.pending_username = None
        self.current_project_id = None
        self.current_task_id = None
        self.conversation_state = ConversationState.initial

    def clear_focus(self) -> None:
        self.current_project_id = None
        self.current_task_id = None
        self.conversation_state = ConversationState.authenticated

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "conversation_state": self.conversation_state.value,
            "authenticated": self.authenticated,
            "user_id": self.user_id,
            "pending_username": self.pending_username,
            "current_project_id": self.current_project_id,
            "current_task_id": self.current_task_id,
            "last_activity": self.last_activity.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSession:
        last_activity = data.get("last_activity")
        return cls(
            phone_number=str(data["phone_number"]),
            conversation_state=ConversationState(
                data.get("conversation_state", ConversationState.initial.value)
            ),
            authenticated=bool(data.get("authenticated", False)),
            user_id=data.get("user_id"),
            pending_username=data.get("pending_username"),
            current_project_id=data.get("current_project_id"),
            current_task_id=data.get("current_task_id"),
            last_activity=(
                datetime.fromisoformat(last_activity) if last_activity else utc_now()
            ),
        )
