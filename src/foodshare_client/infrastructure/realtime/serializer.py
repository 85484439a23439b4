"""Decoding of the push envelope ``{"event": ..., "data": {...}}``."""
from __future__ import annotations

import json
from typing import Any

from foodshare_client.domain.entities.message import Message
from foodshare_client.infrastructure.http.mappers import message_from_payload
from foodshare_client.infrastructure.http.schemas import MessagePayload

MESSAGE_CREATED = "message.created"


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    data = json.loads(raw)
    return data["event"], data["data"]


def decode_message(raw: str | bytes) -> Message | None:
    """The inserted message, or None for any other event type."""
    event_type, data = deserialize_event(raw)
    if event_type != MESSAGE_CREATED:
        return None
    return message_from_payload(MessagePayload.model_validate(data))
