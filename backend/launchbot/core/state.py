from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, Protocol

import redis

from launchbot.chatbot.session import ChatSession, utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_SESSION_TIMEOUT = timedelta(minutes=30)


class ChatSessionStore(Protocol):
    def get_or_create(self, phone_number: str) -> ChatSession: ...

    def get(self, phone_number: str) -> ChatSession | None: ...

    def save(self, session: ChatSession) -> None: ...

    def delete(self, phone_number: str) -> None: ...

    def sweep(self) -> int: ...


class InMemorySessionStore:
    """Process-local chat sessions keyed by phone number.

    Sessions idle for longer than ``timeout`` are treated as gone even before the
    periodic sweep physically removes them.
    """

    def __init__(
        self, *, timeout: timedelta = DEFAULT_SESSION_TIMEOUT, clock: Clock = utc_now
    ) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._timeout = timeout
        self._clock = clock

    def _expired(self, session: ChatSession, now: datetime) -> bool:
        return now - session.last_activity > self._timeout

    def get(self, phone_number: str) -> ChatSession | None:
        session = self._sessions.get(phone_number)
        if session is None or self._expired(session, self._clock()):
            return None
        return session

    def get_or_create(self, phone_number: str) -> ChatSession:
        now = self._clock()
        session = self._sessions.get(phone_number)
        if session is None or self._expired(session, now):
            session = ChatSession(phone_number=phone_number, last_activity=now)
            self._sessions[phone_number] = session
            logger.debug("Created chat session")
        session.last_activity = now
        return session

    def save(self, session: ChatSession) -> None:
        self._sessions[session.phone_number] = session

    def delete(self, phone_number: str) -> None:
        self._sessions.pop(phone_number, None)

    def sweep(self) -> int:
        now = self._clock()
        expired = [
            phone for phone, session in self._sessions.items() if self._expired(session, now)
        ]
        for phone in expired:
            del self._sessions[phone]
        if expired:
            logger.info("Swept %d expired chat sessions", len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


class RedisSessionStore:
    """Chat sessions stored in Redis as JSON.

    Each write renews the key TTL, so Redis itself evicts idle sessions and
    ``sweep`` has nothing to do.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        namespace: str = "launchbot",
        timeout: timedelta = DEFAULT_SESSION_TIMEOUT,
        clock: Clock = utc_now,
        client: Any = None,
    ) -> None:
        if client is None:
            if not redis_url:
                msg = "redis_url is required when no client is given"
                raise ValueError(msg)
            client = redis.from_url(redis_url)
        self._r = client
        self._ns = namespace.rstrip(":")
        self._ttl = max(int(timeout.total_seconds()), 1)
        self._clock = clock

    def _key(self, phone_number: str) -> str:
        return f"{self._ns}:chat_session:{phone_number}"

    def get(self, phone_number: str) -> ChatSession | None:
        raw = self._r.get(self._key(phone_number))
        if not raw:
            return None
        try:
            body = raw.decode("utf-8") if isinstance(raw, bytes | bytearray) else raw
            return ChatSession.from_dict(json.loads(body))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to decode chat session, starting fresh: %s", e)
            return None

    def get_or_create(self, phone_number: str) -> ChatSession:
        session = self.get(phone_number) or ChatSession(phone_number=phone_number)
        session.last_activity = self._clock()
        self.save(session)
        return session

    def save(self, session: ChatSession) -> None:
        self._r.setex(self._key(session.phone_number), self._ttl, json.dumps(session.to_dict()))

    def delete(self, phone_number: str) -> None:
        self._r.delete(self._key(phone_number))

    def sweep(self) -> int:
        return 0
