from __future__ import annotations

from dataclasses import dataclass
from typing import NotRequired, Required, TypedDict


class CloudApiTextBody(TypedDict):
    body: Required[str]


class CloudApiMessage(TypedDict):
    id: NotRequired[str]
    type: Required[str]
    timestamp: NotRequired[str]
    text: NotRequired[CloudApiTextBody]


class CloudApiValue(TypedDict):
    messaging_product: NotRequired[str]
    metadata: NotRequired[dict[str, str]]
    messages: NotRequired[list[CloudApiMessage]]


class CloudApiChange(TypedDict):
    field: NotRequired[str]
    value: Required[CloudApiValue]


class CloudApiEntry(TypedDict):
    id: NotRequired[str]
    changes: Required[list[CloudApiChange]]


class WhatsAppCloudAPIWebhook(TypedDict):
    object: Required[str]
    entry: Required[list[CloudApiEntry]]


@dataclass(frozen=True, slots=True)
class InboundTextMessage:
    """One text message lifted out of a Cloud API envelope."""

    sender: str
    text: str
    message_id: str | None = None
