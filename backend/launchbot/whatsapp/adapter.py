from __future__ import annotations

from typing import Protocol


class MessageSender(Protocol):
    """Outbound boundary for WhatsApp text messages.

    Shared by webhook replies, the settings test message and the
    notification scheduler.
    """

    def send(self, to: str, message: str) -> None:
        """Deliver ``message`` to the ``to`` phone number.

        Raises MessageDeliveryError when the provider rejects the message.
        """
