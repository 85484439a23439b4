"""Wire payloads of the marketplace REST API."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class UserRef(_Payload):
    id: str
    full_name: str | None = None


class DonationPayload(_Payload):
    id: str
    user_id: str
    title: str
    description: str | None = None
    quantity: float = 0
    unit: str = ""
    pickup_instructions: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    available_from: datetime | None = None
    expires_at: datetime | None = None
    donation_type: str = "human"
    status: str = "available"
    created_at: datetime | None = None

    @field_validator(
        "description",
        "pickup_instructions",
        "location_lat",
        "location_lng",
        "available_from",
        "expires_at",
        "created_at",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        # the API sends "" for unset optional columns
        if isinstance(value, str) and not value.strip():
            return None
        return value


class DonationRequestPayload(_Payload):
    id: str
    donation_id: str
    user_id: str
    message: str | None = None
    status: str = "pending"
    created_at: datetime


class MessageSummaryPayload(_Payload):
    """Message as embedded in a conversation listing."""

    id: str
    content: str = ""
    created_at: datetime
    sender_id: str | None = None
    sender: UserRef | None = None

    @property
    def author_id(self) -> str | None:
        if self.sender_id is not None:
            return self.sender_id
        return self.sender.id if self.sender is not None else None


class MessagePayload(MessageSummaryPayload):
    conversation_id: str


class ConversationPayload(_Payload):
    id: str
    donation_id: str | None = None
    participants: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None
    messages: list[MessageSummaryPayload] | None = None
    last_message: MessageSummaryPayload | None = Field(default=None, alias="lastMessage")
    last_activity: datetime | None = Field(default=None, alias="lastActivity")


class MyRequestPayload(DonationRequestPayload):
    conversation: ConversationPayload | None = Field(default=None, alias="conversations")


class DonationListResponse(_Payload):
    donations: list[DonationPayload]


class DonationResponse(_Payload):
    donation: DonationPayload


class RequestListResponse(_Payload):
    requests: list[DonationRequestPayload]


class MyRequestListResponse(_Payload):
    requests: list[MyRequestPayload]


class CreateRequestResponse(_Payload):
    request: DonationRequestPayload
    conversation: ConversationPayload | None = None


class DecisionResponse(_Payload):
    request: DonationRequestPayload


class ConversationListResponse(_Payload):
    conversations: list[ConversationPayload]


class ConversationResponse(_Payload):
    conversation: ConversationPayload


class MessageListResponse(_Payload):
    messages: list[MessagePayload]


class SendMessageResponse(_Payload):
    data: MessagePayload


class CreateDonationRequest(BaseModel):
    title: str
    description: str | None = None
    quantity: float
    unit: str
    pickup_instructions: str | None = None
    location_lat: float
    location_lng: float
    available_from: datetime | None = None
    expires_at: datetime | None = None
    donation_type: str


class CreateRequestBody(BaseModel):
    message: str


class SendMessageBody(BaseModel):
    conversation_id: str
    content: str


class CreateConversationBody(BaseModel):
    participants: list[str]
    donation_id: str | None = None
