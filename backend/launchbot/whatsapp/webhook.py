"""WhatsApp Cloud API webhook handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import BackgroundTasks, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse

from launchbot.chatbot.errors import MessageDeliveryError, WebhookPayloadError
from launchbot.chatbot.formatting import PROCESSING_ERROR
from launchbot.core.app_context import get_app_context
from launchbot.core.logging import mask_phone
from launchbot.settings import get_settings
from launchbot.whatsapp.whatsapp_api_adapter import (
    extract_text_messages,
    parse_webhook_body,
    verify_webhook,
)

if TYPE_CHECKING:
    from launchbot.core.app_context import AppContext
    from launchbot.whatsapp.adapter import MessageSender
    from launchbot.whatsapp.types import InboundTextMessage

logger = logging.getLogger(__name__)


def deliver_replies(sender: MessageSender, replies: list[tuple[str, str]]) -> None:
    """Send replies in order. Failures are logged per message."""
    for to, text in replies:
        try:
            sender.send(to, text)
        except MessageDeliveryError as e:
            logger.error("Failed to deliver WhatsApp reply to %s: %s", mask_phone(to), e)
        except Exception:
            logger.exception("Unexpected error delivering WhatsApp reply to %s", mask_phone(to))


def _client_ip(request: Request) -> str:
    return request.headers.get(
        "x-forwarded-for", request.client.host if request.client else "unknown"
    )


async def _process_message(ctx: AppContext, message: InboundTextMessage) -> str | None:
    """Run one message through the processor. None means it was a duplicate."""
    try:
        if ctx.deduplicator.is_duplicate_message(message.message_id):
            return None
    except Exception:
        logger.exception("Deduplication check failed, processing message anyway")

    try:
        return await ctx.processor.handle_message(message.sender, message.text)
    except Exception:
        logger.exception("Failed to process WhatsApp message from %s", mask_phone(message.sender))

    try:
        ctx.deduplicator.forget(message.message_id)
    except Exception:
        logger.exception("Could not clear processed mark for message %s", message.message_id)
    return PROCESSING_ERROR


async def handle_whatsapp_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
    """Process every text message in the envelope, then acknowledge.

    Replies go out after the response so the provider sees a fast 200. A parsed
    envelope is always acknowledged; a message whose processing fails gets a
    generic error reply and is not marked as seen.
    """
    ctx = get_app_context(request.app)
    try:
        payload = parse_webhook_body(await request.body())
        messages = extract_text_messages(payload)
        if not messages:
            logger.debug("Webhook carried no text messages")
            return PlainTextResponse("ok")

        replies: list[tuple[str, str]] = []
        for message in messages:
            reply = await _process_message(ctx, message)
            if reply is not None:
                replies.append((message.sender, reply))

        if replies:
            background_tasks.add_task(deliver_replies, ctx.sender, replies)
        return PlainTextResponse("ok")

    except WebhookPayloadError as e:
        logger.warning("Rejected WhatsApp webhook from IP %s: %s", _client_ip(request), e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        ) from e
    except Exception as e:
        logger.exception("Unexpected error processing WhatsApp webhook from IP %s", _client_ip(request))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
        ) from e


async def handle_whatsapp_webhook_verification(
    hub_mode: str | None, hub_challenge: str | None, hub_verify_token: str | None
) -> Response:
    """Answer the Cloud API subscription handshake."""
    settings = get_settings()
    challenge = verify_webhook(hub_mode, hub_verify_token, hub_challenge, settings.whatsapp_verify_token)
    if challenge is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")
    return PlainTextResponse(challenge, status_code=200)
