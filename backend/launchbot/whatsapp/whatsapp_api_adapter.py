from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any, Protocol

import requests

from launchbot.chatbot.errors import MessageDeliveryError, WebhookPayloadError
from launchbot.core.logging import mask_phone
from launchbot.whatsapp.types import InboundTextMessage

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"
# Cloud API error code for "recipient phone number not in allowed list"
RECIPIENT_NOT_ALLOWED = "131030"


class WhatsAppApiSettings(Protocol):
    """Protocol for settings needed by the Cloud API adapter."""

    whatsapp_verify_token: str
    whatsapp_access_token: str | None
    whatsapp_phone_number_id: str | None
    whatsapp_api_version: str


def verify_webhook(mode: str | None, token: str | None, challenge: str | None, expected_token: str) -> str | None:
    """Return the challenge to echo back, or None when verification fails."""
    token_valid = token is not None and token == expected_token
    if mode == "subscribe" and token_valid and challenge is not None:
        logger.info("WhatsApp webhook verified successfully")
        return challenge
    logger.warning(
        "WhatsApp webhook verification failed: mode=%s, token_valid=%s", mode, token_valid
    )
    return None


def parse_webhook_body(body: bytes) -> Any:
    """Decode a webhook body. Empty bodies decode to an empty envelope."""
    if not body:
        return {}
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise WebhookPayloadError("Webhook body is not valid JSON") from e


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _iter_messages(payload: Any) -> Iterable[dict[str, Any]]:
    # {"object": ..., "entry": [{"changes": [{"value": {"messages": [...]}}]}]}
    if not isinstance(payload, dict):
        return
    for entry in _as_list(payload.get("entry")):
        if not isinstance(entry, dict):
            continue
        for change in _as_list(entry.get("changes")):
            if not isinstance(change, dict):
                continue
            value = change.get("value")
            if not isinstance(value, dict):
                continue
            for message in _as_list(value.get("messages")):
                if isinstance(message, dict):
                    yield message


def extract_text_messages(payload: Any) -> list[InboundTextMessage]:
    """Pull every text message out of a Cloud API envelope, in delivery order.

    Statuses, media messages and structurally broken items are skipped.
    """
    if not isinstance(payload, dict) or payload.get("object") != "whatsapp_business_account":
        return []

    extracted: list[InboundTextMessage] = []
    for message in _iter_messages(payload):
        if message.get("type") != "text":
            logger.debug("Ignoring WhatsApp message of type %s", message.get("type"))
            continue
        sender = message.get("from")
        text = message.get("text")
        body = text.get("body") if isinstance(text, dict) else None
        if not isinstance(sender, str) or not sender or not isinstance(body, str):
            logger.warning("Skipping malformed WhatsApp text message")
            continue
        message_id = message.get("id")
        extracted.append(
            InboundTextMessage(
                sender=sender,
                text=body,
                message_id=message_id if isinstance(message_id, str) and message_id else None,
            )
        )
    return extracted


def brazilian_mobile_variant(phone: str) -> str | None:
    """Return the 9-digit form of an old 8-digit Brazilian mobile number.

    Webhooks may report ``55 AA XXXXXXXX`` while the send API expects
    ``55 AA 9XXXXXXXX``.
    """
    if phone.startswith("55") and len(phone) == 12:
        area_code = phone[2:4]
        if area_code.isdigit() and 11 <= int(area_code) <= 99:
            return phone[:4] + "9" + phone[4:]
    return None


class CloudApiSender:
    """Send text messages through the WhatsApp Cloud (Graph) API."""

    def __init__(self, settings: WhatsAppApiSettings, *, session: requests.Session | None = None) -> None:
        if not settings.whatsapp_access_token or not settings.whatsapp_phone_number_id:
            raise ValueError("CloudApiSender requires an access token and a phone number id")
        self._settings = settings
        self._http = session or requests.Session()

    @property
    def url(self) -> str:
        return (
            f"{GRAPH_API_BASE_URL}/{self._settings.whatsapp_api_version}/"
            f"{self._settings.whatsapp_phone_number_id}/messages"
        )

    def _post(self, to: str, message: str) -> requests.Response:
        headers = {
            "Authorization": f"Bearer {self._settings.whatsapp_access_token}",
            "Content-Type": "application/json",
        }
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": message},
        }
        return self._http.post(self.url, headers=headers, json=payload, timeout=10)

    def send(self, to: str, message: str) -> None:
        to = to.lstrip("+")
        converted = brazilian_mobile_variant(to)
        target = converted or to
        logger.debug("Sending WhatsApp message to %s", mask_phone(target))
        try:
            response = self._post(target, message)
            if response.status_code == 400 and converted and RECIPIENT_NOT_ALLOWED in response.text:
                logger.warning("9-digit format rejected, retrying original number format")
                response = self._post(to, message)
        except requests.RequestException as e:
            raise MessageDeliveryError(f"WhatsApp API request failed: {e}") from e

        if response.status_code != 200:
            raise MessageDeliveryError(
                f"WhatsApp API rejected message: {response.status_code} {response.text}"
            )
        logger.debug("Successfully sent WhatsApp message to %s", mask_phone(target))


class LoggingSender:
    """Sender used when no Cloud API credentials are configured."""

    def send(self, to: str, message: str) -> None:
        logger.info("[whatsapp disabled] message to %s: %r", mask_phone(to), message)
