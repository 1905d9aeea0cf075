from __future__ import annotations


class ChatbotError(Exception):
    """Base class for chatbot service errors."""


class WebhookPayloadError(ChatbotError):
    """The provider payload could not be parsed at all."""


class MessageDeliveryError(ChatbotError):
    """The outbound provider rejected a reply."""
