"""Message deduplication for provider webhook retries."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from launchbot.services.rate_limiter import RateLimiterBackend

logger = logging.getLogger(__name__)


class MessageDeduplicationService:
    """Remember recently processed WhatsApp message ids.

    The Cloud API redelivers a webhook when the acknowledgement is slow, so the
    same message id can arrive more than once. Counting backends from the rate
    limiter double as the seen-set: the first increment inside the TTL wins.
    """

    # TTL for message ID based deduplication (5 minutes)
    MESSAGE_ID_TTL_SECONDS = 300

    def __init__(self, backend: RateLimiterBackend, *, ttl_seconds: int = MESSAGE_ID_TTL_SECONDS) -> None:
        self._backend = backend
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(message_id: str) -> str:
        return f"webhook_processed:{message_id}"

    def is_duplicate_message(self, message_id: str | None) -> bool:
        """Mark ``message_id`` as processed and report whether it was seen before.

        Messages without an id are never treated as duplicates.
        """
        if not message_id:
            return False
        seen = self._backend.incr_with_ttl(self._key(message_id), self.ttl_seconds)
        if seen > 1:
            logger.info("Skipping duplicate webhook for message_id=%s", message_id)
            return True
        return False

    def forget(self, message_id: str | None) -> None:
        """Drop the processed mark so a redelivery of ``message_id`` is handled again."""
        if message_id:
            self._backend.reset(self._key(message_id))
