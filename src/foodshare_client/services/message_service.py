from __future__ import annotations

from foodshare_client.application.exceptions import SendFailed, ValidationError
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.domain.entities.message import Message
from foodshare_client.services._failures import surface_as


async def send_message(
    conversation_id: str,
    content: str,
    backend: MarketplaceBackend,
) -> Message:
    """Write one message and return it as stored.

    Nothing is echoed locally before the write succeeds.
    """
    text = content.strip()
    if not text:
        raise ValidationError("Message cannot be empty")

    with surface_as(SendFailed, "Sending message"):
        return await backend.send_message(conversation_id, text)


async def list_messages(
    conversation_id: str,
    backend: MarketplaceBackend,
) -> list[Message]:
    messages = await backend.list_messages(conversation_id)
    return sorted(messages, key=lambda m: m.sort_key)
