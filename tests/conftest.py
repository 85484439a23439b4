"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import pytest

from foodshare_client.application.dto.listing import ListingDraft
from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.dto.request import RequestResult
from foodshare_client.application.exceptions import AppError, ConflictError, NotFoundError
from foodshare_client.application.ports.realtime import OnLostCallback, OnMessageCallback
from foodshare_client.application.ports.scheduler import TickCallback
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Coordinates, Listing
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.entities.request import DonationRequest
from foodshare_client.domain.value_objects.enums import (
    ListingCategory,
    ListingStatus,
    RequestStatus,
)
from foodshare_client.services.conversation_cache import pair_key

ME = "user-me"
OWNER = "user-owner"
OTHER = "user-other"

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id=ME, token="token-me")


@pytest.fixture
def owner_principal() -> Principal:
    return Principal(user_id=OWNER, token="token-owner")


def make_listing(
    *,
    listing_id: str | None = None,
    owner_id: str = OWNER,
    title: str = "Rice",
    lat: float | None = 23.81,
    lng: float | None = 90.41,
    category: str = ListingCategory.HUMAN,
    status: str = ListingStatus.AVAILABLE,
    created_at: datetime | None = BASE_TIME,
    available_from: datetime | None = None,
    expires_at: datetime | None = None,
) -> Listing:
    location = Coordinates(lat=lat, lng=lng) if lat is not None and lng is not None else None
    return Listing(
        id=listing_id or _next_id("listing"),
        owner_id=owner_id,
        title=title,
        description=None,
        quantity=2,
        unit="kg",
        category=category,
        location=location,
        pickup_instructions=None,
        available_from=available_from,
        expires_at=expires_at,
        status=status,
        created_at=created_at,
    )


def make_request(
    *,
    request_id: str | None = None,
    listing_id: str = "listing-1",
    requester_id: str = ME,
    status: str = RequestStatus.PENDING,
    created_at: datetime = BASE_TIME,
) -> DonationRequest:
    return DonationRequest(
        id=request_id or _next_id("request"),
        listing_id=listing_id,
        requester_id=requester_id,
        message="I can pick it up today",
        status=status,
        created_at=created_at,
    )


def make_conversation(
    *,
    conversation_id: str | None = None,
    participants: Iterable[str] = (ME, OWNER),
    listing_id: str | None = None,
    created_at: datetime = BASE_TIME,
    last_activity_at: datetime | None = None,
    message_count: int = 0,
    last_sender_id: str | None = None,
) -> Conversation:
    return Conversation(
        id=conversation_id or _next_id("conversation"),
        listing_id=listing_id,
        participants=frozenset(participants),
        created_at=created_at,
        last_activity_at=last_activity_at or created_at,
        message_count=message_count,
        last_sender_id=last_sender_id,
    )


def make_message(
    *,
    message_id: str | None = None,
    conversation_id: str = "conversation-1",
    sender_id: str = OWNER,
    content: str = "hello",
    created_at: datetime | None = None,
    offset_seconds: int = 0,
) -> Message:
    return Message(
        id=message_id or _next_id("message"),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        created_at=created_at or BASE_TIME + timedelta(seconds=offset_seconds),
    )


@dataclass
class FakeClock:
    current: datetime = BASE_TIME

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class FakeBackend:
    """In-memory marketplace acting as ``user_id``."""

    user_id: str = ME
    listings: dict[str, Listing] = field(default_factory=dict)
    requests: dict[str, DonationRequest] = field(default_factory=dict)
    conversations: dict[str, Conversation] = field(default_factory=dict)
    messages: dict[str, list[Message]] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    failures: dict[str, AppError] = field(default_factory=dict)

    def fail(self, method: str, error: AppError) -> None:
        """Make every call to ``method`` raise ``error`` until cleared."""
        self.failures[method] = error

    def clear_failures(self) -> None:
        self.failures.clear()

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        error = self.failures.get(method)
        if error is not None:
            raise error

    def _pair_conversation(self, a: str, b: str) -> Conversation | None:
        key = pair_key(a, b)
        for conversation in self.conversations.values():
            if len(conversation.participants) == 2 and pair_key(*conversation.participants) == key:
                return conversation
        return None

    # -- listings --

    async def list_listings(self, category: str | None = None) -> list[Listing]:
        self._enter("list_listings", category)
        return [
            listing for listing in self.listings.values()
            if category is None or listing.category == category
        ]

    async def create_listing(self, draft: ListingDraft) -> Listing:
        self._enter("create_listing", draft)
        listing = make_listing(
            owner_id=self.user_id,
            title=draft.title,
            lat=draft.location.lat,
            lng=draft.location.lng,
            category=draft.category,
        )
        self.listings[listing.id] = listing
        return listing

    async def delete_listing(self, listing_id: str) -> None:
        self._enter("delete_listing", listing_id)
        if self.listings.pop(listing_id, None) is None:
            raise NotFoundError("Donation not found or access denied")

    # -- requests --

    async def list_my_requests(self) -> list[RequestResult]:
        self._enter("list_my_requests")
        results = []
        for request in self.requests.values():
            if request.requester_id != self.user_id:
                continue
            conversation = next(
                (c for c in self.conversations.values() if c.listing_id == request.listing_id), None,
            )
            results.append(RequestResult(request=request, conversation=conversation))
        return results

    async def list_requests_for_listing(self, listing_id: str) -> list[DonationRequest]:
        self._enter("list_requests_for_listing", listing_id)
        return [r for r in self.requests.values() if r.listing_id == listing_id]

    async def create_request(self, listing_id: str, message: str) -> RequestResult:
        self._enter("create_request", listing_id, message)
        if any(
            r.listing_id == listing_id and r.requester_id == self.user_id
            for r in self.requests.values()
        ):
            raise ConflictError("Request already exists")
        request = make_request(listing_id=listing_id, requester_id=self.user_id)
        self.requests[request.id] = request

        owner = self.listings[listing_id].owner_id if listing_id in self.listings else OWNER
        conversation = self._pair_conversation(self.user_id, owner)
        if conversation is None:
            conversation = make_conversation(participants=(self.user_id, owner), listing_id=listing_id)
            self.conversations[conversation.id] = conversation
        return RequestResult(request=request, conversation=conversation)

    async def _set_status(self, request_id: str, status: str) -> DonationRequest:
        request = self.requests[request_id]
        updated = DonationRequest(
            id=request.id,
            listing_id=request.listing_id,
            requester_id=request.requester_id,
            message=request.message,
            status=status,
            created_at=request.created_at,
        )
        self.requests[request_id] = updated
        return updated

    async def accept_request(self, request_id: str) -> DonationRequest:
        self._enter("accept_request", request_id)
        return await self._set_status(request_id, RequestStatus.ACCEPTED)

    async def decline_request(self, request_id: str) -> DonationRequest:
        self._enter("decline_request", request_id)
        return await self._set_status(request_id, RequestStatus.DECLINED)

    # -- conversations and messages --

    async def list_conversations(self) -> list[Conversation]:
        self._enter("list_conversations")
        return [c for c in self.conversations.values() if self.user_id in c.participants]

    async def list_messages(self, conversation_id: str) -> list[Message]:
        self._enter("list_messages", conversation_id)
        return list(self.messages.get(conversation_id, []))

    async def send_message(self, conversation_id: str, content: str) -> Message:
        self._enter("send_message", conversation_id, content)
        log = self.messages.setdefault(conversation_id, [])
        message = make_message(
            conversation_id=conversation_id,
            sender_id=self.user_id,
            content=content,
            offset_seconds=len(log) + 1000,
        )
        log.append(message)
        return message

    async def mark_read(self, conversation_id: str) -> None:
        self._enter("mark_read", conversation_id)

    async def create_conversation(
        self, participants: Iterable[str], listing_id: str | None = None,
    ) -> Conversation:
        members = tuple(participants)
        self._enter("create_conversation", members, listing_id)
        if self._pair_conversation(*members) is not None:
            raise ConflictError("Conversation already exists")
        conversation = make_conversation(participants=members, listing_id=listing_id)
        self.conversations[conversation.id] = conversation
        return conversation

    # -- test helpers --

    def add_message(self, message: Message) -> Message:
        self.messages.setdefault(message.conversation_id, []).append(message)
        return message


class FakeSubscription:
    def __init__(
        self,
        channel: FakeRealtimeChannel,
        conversation_id: str,
        callback: OnMessageCallback,
        on_lost: OnLostCallback | None = None,
    ) -> None:
        self._channel = channel
        self.conversation_id = conversation_id
        self.callback = callback
        self.on_lost = on_lost
        self.unsubscribed = False

    async def unsubscribe(self) -> None:
        self.unsubscribed = True
        self._channel.active.discard(self)


@dataclass
class FakeRealtimeChannel:
    """Push channel double. ``mode`` is ``ok``, ``raise`` or ``hang``."""

    mode: str = "ok"
    active: set[FakeSubscription] = field(default_factory=set)
    attempts: int = 0

    async def subscribe(
        self,
        conversation_id: str,
        callback: OnMessageCallback,
        *,
        on_lost: OnLostCallback | None = None,
    ) -> FakeSubscription:
        self.attempts += 1
        if self.mode == "raise":
            raise ConnectionError("push service unreachable")
        if self.mode == "hang":
            await asyncio.Event().wait()
        subscription = FakeSubscription(self, conversation_id, callback, on_lost)
        self.active.add(subscription)
        return subscription

    def push(self, message: Message) -> None:
        for subscription in list(self.active):
            if subscription.conversation_id == message.conversation_id:
                subscription.callback(message)

    def drop(self, conversation_id: str, reason: str = "connection reset") -> None:
        """End delivery for ``conversation_id`` the way a dead listener would."""
        for subscription in list(self.active):
            if subscription.conversation_id == conversation_id and subscription.on_lost is not None:
                subscription.on_lost(reason)


class FakeTimer:
    def __init__(self, interval: float, callback: TickCallback, name: str) -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self.cancelled = False

    @property
    def active(self) -> bool:
        return not self.cancelled

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeScheduler:
    """Scheduler whose timers only fire when the test calls :meth:`tick`."""

    timers: list[FakeTimer] = field(default_factory=list)

    def every(self, interval: float, callback: TickCallback, *, name: str) -> FakeTimer:
        timer = FakeTimer(interval, callback, name)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.active]

    def named(self, name: str) -> FakeTimer:
        return next(t for t in self.timers if t.name == name)

    async def tick(self, name: str | None = None) -> None:
        for timer in self.active:
            if name is None or timer.name == name:
                await timer.callback()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def channel() -> FakeRealtimeChannel:
    return FakeRealtimeChannel()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
