"""Process-local knowledge of the user's conversations.

Shared by the request ledger and the conversation resolver. Writes are
last-writer-wins per key and never drop an entry that a later refresh simply
did not include.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping

from foodshare_client.application.ports.clock import Clock, SystemClock, seconds_since
from foodshare_client.domain.entities.conversation import Conversation

PairKey = tuple[str, str]


def pair_key(a: str, b: str) -> PairKey:
    first, second = sorted((a, b))
    return (first, second)


class ConversationCache:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._by_id: dict[str, Conversation] = {}
        self._by_listing: dict[str, Conversation] = {}
        self._by_pair: dict[PairKey, Conversation] = {}
        self._fetched_at: datetime | None = None

    def __len__(self) -> int:
        return len(self._by_id)

    def learn(self, conversation: Conversation, *, listing_id: str | None = None) -> None:
        """Record one conversation, optionally under an explicit listing id."""
        previous = self._by_id.get(conversation.id)
        if previous is not None and _older(conversation, previous):
            conversation = previous
        self._by_id[conversation.id] = conversation

        listing_key = listing_id or conversation.listing_id
        if listing_key:
            self._by_listing[listing_key] = conversation

        if len(conversation.participants) == 2:
            key = pair_key(*conversation.participants)
            existing = self._by_pair.get(key)
            # The oldest conversation for a pair stays canonical.
            if existing is None or existing.id == conversation.id or conversation.created_at < existing.created_at:
                self._by_pair[key] = conversation

    def merge(self, conversations: Iterable[Conversation]) -> None:
        """Merge a full conversation listing and stamp the fetch time."""
        for conversation in conversations:
            self.learn(conversation)
        self._fetched_at = self._clock.now()

    def merge_by_listing(self, mapping: Mapping[str, Conversation]) -> None:
        for listing_id, conversation in mapping.items():
            self.learn(conversation, listing_id=listing_id)

    def for_listing(self, listing_id: str) -> Conversation | None:
        return self._by_listing.get(listing_id)

    def for_pair(self, a: str, b: str) -> Conversation | None:
        return self._by_pair.get(pair_key(a, b))

    def get(self, conversation_id: str) -> Conversation | None:
        return self._by_id.get(conversation_id)

    def all(self) -> list[Conversation]:
        return list(self._by_id.values())

    def age_seconds(self) -> float:
        return seconds_since(self._clock, self._fetched_at)


def _older(candidate: Conversation, current: Conversation) -> bool:
    """True when ``candidate`` carries less recent activity than ``current``."""
    if candidate.last_activity_at is None or current.last_activity_at is None:
        return candidate.last_activity_at is None and current.last_activity_at is not None
    return candidate.last_activity_at < current.last_activity_at
