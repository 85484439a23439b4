"""Badge counts, refreshed on their own timer."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Callable, Iterable

from foodshare_client.application.dto.badges import BadgeCounts
from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import AppError
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.application.ports.clock import Clock, SystemClock
from foodshare_client.application.ports.scheduler import Scheduler, TimerHandle
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.services.conversation_resolver import ConversationResolver
from foodshare_client.services.request_ledger import RequestLedger

logger = logging.getLogger(__name__)

OwnedListingsProvider = Callable[[], Iterable[Listing]]
OnChangeCallback = Callable[[BadgeCounts], None]


class NotificationAggregator:
    def __init__(
        self,
        backend: MarketplaceBackend,
        principal: Principal,
        ledger: RequestLedger,
        resolver: ConversationResolver,
        scheduler: Scheduler,
        *,
        owned_listings: OwnedListingsProvider | None = None,
        interval: float = 30.0,
        clock: Clock | None = None,
        on_change: OnChangeCallback | None = None,
    ) -> None:
        self._backend = backend
        self._principal = principal
        self._ledger = ledger
        self._resolver = resolver
        self._scheduler = scheduler
        self._owned_listings = owned_listings
        self._interval = interval
        self._clock = clock or SystemClock()
        self._on_change = on_change
        self._seen: dict[str, datetime] = {}
        self._timer: TimerHandle | None = None
        self.counts = BadgeCounts()

    @property
    def running(self) -> bool:
        return self._timer is not None and self._timer.active

    async def start(self) -> None:
        if self.running:
            return
        await self.tick()
        self._timer = self._scheduler.every(self._interval, self.tick, name="notification-badges")

    def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    async def mark_seen(self, conversation_id: str, at: datetime | None = None) -> None:
        """Record that the user has looked at a conversation up to ``at``.

        The local mark clears the badge at once; the server read receipt is
        best effort and only logged when it fails.
        """
        self._seen[conversation_id] = at or self._clock.now()
        try:
            await self._backend.mark_read(conversation_id)
        except AppError as exc:
            logger.warning("Marking conversation %s read failed: %s", conversation_id, exc.detail)

    async def tick(self) -> BadgeCounts:
        """Recompute the counts. Failures keep the previous counts, flagged stale."""
        try:
            counts = await self._compute()
        except Exception:
            logger.exception("Badge refresh failed; keeping previous counts")
            counts = dataclasses.replace(self.counts, stale=True)
        self._publish(counts)
        return counts

    async def _compute(self) -> BadgeCounts:
        conversations = await self._resolver.refresh()
        await self._ledger.refresh()
        owned = list(self._owned_listings()) if self._owned_listings else []
        if owned:
            await asyncio.gather(*(self._ledger.list_requests_for_listing(listing) for listing in owned))

        return BadgeCounts(
            conversations_with_messages=sum(1 for c in conversations if c.message_count > 0),
            unread_conversations=sum(1 for c in conversations if self._is_unread(c)),
            outstanding_requests=self._ledger.outstanding_count(),
            pending_incoming=self._ledger.pending_incoming_count(),
            refreshed_at=self._clock.now(),
        )

    def _is_unread(self, conversation: Conversation) -> bool:
        if conversation.message_count == 0 or conversation.last_activity_at is None:
            return False
        if conversation.last_sender_id == self._principal.user_id:
            return False
        seen = self._seen.get(conversation.id)
        return seen is None or conversation.last_activity_at > seen

    def _publish(self, counts: BadgeCounts) -> None:
        previous, self.counts = self.counts, counts
        if self._on_change is None:
            return
        if dataclasses.replace(previous, refreshed_at=None) != dataclasses.replace(counts, refreshed_at=None):
            self._on_change(counts)
