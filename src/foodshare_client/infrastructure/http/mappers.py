from __future__ import annotations

from datetime import datetime, timezone

from foodshare_client.application.dto.listing import ListingDraft
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Coordinates, Listing
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.entities.request import DonationRequest
from foodshare_client.infrastructure.http.schemas import (
    ConversationPayload,
    CreateDonationRequest,
    DonationPayload,
    DonationRequestPayload,
    MessagePayload,
)

PREVIEW_LENGTH = 100


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def preview(content: str) -> str:
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def listing_from_payload(payload: DonationPayload) -> Listing:
    location = None
    if payload.location_lat is not None and payload.location_lng is not None:
        location = Coordinates(lat=payload.location_lat, lng=payload.location_lng)
    return Listing(
        id=payload.id,
        owner_id=payload.user_id,
        title=payload.title,
        description=payload.description,
        quantity=payload.quantity,
        unit=payload.unit,
        category=payload.donation_type,
        location=location,
        pickup_instructions=payload.pickup_instructions,
        available_from=_utc(payload.available_from),
        expires_at=_utc(payload.expires_at),
        status=payload.status,
        created_at=_utc(payload.created_at),
    )


def draft_to_body(draft: ListingDraft) -> CreateDonationRequest:
    return CreateDonationRequest(
        title=draft.title.strip(),
        description=draft.description,
        quantity=draft.quantity,
        unit=draft.unit,
        pickup_instructions=draft.pickup_instructions,
        location_lat=draft.location.lat,
        location_lng=draft.location.lng,
        available_from=draft.available_from,
        expires_at=draft.expires_at,
        donation_type=str(draft.category),
    )


def request_from_payload(payload: DonationRequestPayload) -> DonationRequest:
    return DonationRequest(
        id=payload.id,
        listing_id=payload.donation_id,
        requester_id=payload.user_id,
        message=payload.message,
        status=payload.status,
        created_at=_utc(payload.created_at),
    )


def conversation_from_payload(payload: ConversationPayload) -> Conversation:
    messages = sorted(payload.messages or (), key=lambda m: (m.created_at, m.id))
    last = messages[-1] if messages else payload.last_message

    last_activity = payload.last_activity or payload.updated_at
    if last is not None:
        last_activity = last.created_at

    return Conversation(
        id=payload.id,
        listing_id=payload.donation_id,
        participants=frozenset(payload.participants),
        created_at=_utc(payload.created_at),
        last_activity_at=_utc(last_activity),
        message_count=len(messages) if payload.messages is not None else int(last is not None),
        last_sender_id=last.author_id if last is not None else None,
        last_message_preview=preview(last.content) if last is not None else None,
    )


def message_from_payload(payload: MessagePayload) -> Message:
    return Message(
        id=payload.id,
        conversation_id=payload.conversation_id,
        sender_id=payload.author_id or "",
        content=payload.content,
        created_at=_utc(payload.created_at),
    )
