from __future__ import annotations

from .webhook import (
    CloudApiChange,
    CloudApiEntry,
    CloudApiMessage,
    CloudApiValue,
    InboundTextMessage,
    WhatsAppCloudAPIWebhook,
)

__all__ = [
    "CloudApiChange",
    "CloudApiEntry",
    "CloudApiMessage",
    "CloudApiValue",
    "InboundTextMessage",
    "WhatsAppCloudAPIWebhook",
]
