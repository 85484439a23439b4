"""Keep the message log of the open conversation in sync.

A session moves ``idle -> subscribing -> live | polling -> closed``. It
prefers a push subscription and falls back to polling the full log when the
push channel is missing, raises, or does not come up in time. Exactly one
resource (subscription or timer) is held while open and it is released on
every exit path.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from foodshare_client.application.exceptions import AppError, SubscriptionUnavailable
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.application.ports.realtime import RealtimeChannel, Subscription
from foodshare_client.application.ports.scheduler import Scheduler, TimerHandle
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.value_objects.enums import Capability, SyncState
from foodshare_client.services import message_service
from foodshare_client.services.message_log import MessageLog

logger = logging.getLogger(__name__)

OnUpdateCallback = Callable[[list[Message]], None]


class SyncSession:
    def __init__(
        self,
        conversation_id: str,
        backend: MarketplaceBackend,
        scheduler: Scheduler,
        *,
        channel: RealtimeChannel | None = None,
        poll_interval: float = 3.0,
        subscribe_timeout: float = 5.0,
        failure_threshold: int = 3,
        on_update: OnUpdateCallback | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self.log = MessageLog()
        self.degraded = False
        self.last_error: AppError | None = None
        self._backend = backend
        self._scheduler = scheduler
        self._channel = channel
        self._poll_interval = poll_interval
        self._subscribe_timeout = subscribe_timeout
        self._failure_threshold = failure_threshold
        self._on_update = on_update
        self._state = SyncState.IDLE
        self._timer: TimerHandle | None = None
        self._subscription: Subscription | None = None
        self._failures = 0
        self._send_seq = 0
        self._sent: list[tuple[int, Message]] = []
        self._releasing: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == SyncState.CLOSED

    def messages(self) -> list[Message]:
        return self.log.snapshot()

    async def __aenter__(self) -> SyncSession:
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._state != SyncState.IDLE:
            raise RuntimeError(f"Session for {self.conversation_id} already started")

        self._state = SyncState.SUBSCRIBING
        await self._fetch(replace=True)
        if self.closed:
            return

        capability, subscription = await self._probe()
        if self.closed:
            # closed while the handshake was in progress
            if subscription is not None:
                await self._release(subscription)
            return

        if capability == Capability.AVAILABLE:
            self._subscription = subscription
            self._state = SyncState.LIVE
            logger.info("Conversation %s live via push", self.conversation_id)
            # pick up anything written between the first fetch and the handshake
            await self._fetch(replace=False)
        else:
            self._start_polling()

    async def close(self) -> None:
        if self.closed:
            return
        self._state = SyncState.CLOSED
        timer, self._timer = self._timer, None
        subscription, self._subscription = self._subscription, None
        if timer is not None:
            timer.cancel()
        if subscription is not None:
            await self._release(subscription)
        if self._releasing:
            await asyncio.gather(*self._releasing)
        logger.debug("Conversation %s sync closed", self.conversation_id)

    async def send(self, content: str) -> Message:
        message = await message_service.send_message(self.conversation_id, content, self._backend)
        if self._state != SyncState.LIVE:
            # a concurrent poll may replace the log with a snapshot taken before this send
            self._send_seq += 1
            self._sent.append((self._send_seq, message))
        if self.log.merge(message):
            self._notify()
        return message

    async def _probe(self) -> tuple[Capability, Subscription | None]:
        if self._channel is None:
            logger.debug("Push not configured for conversation %s", self.conversation_id)
            return Capability.UNAVAILABLE, None
        try:
            subscription = await asyncio.wait_for(
                self._channel.subscribe(self.conversation_id, self._on_push, on_lost=self._on_lost),
                timeout=self._subscribe_timeout,
            )
        except Exception as exc:  # noqa: BLE001
            reason = exc if isinstance(exc, SubscriptionUnavailable) else SubscriptionUnavailable(
                str(exc) or exc.__class__.__name__
            )
            logger.info(
                "Push unavailable for conversation %s (%s), falling back to polling",
                self.conversation_id,
                reason.detail,
            )
            return Capability.UNAVAILABLE, None
        return Capability.AVAILABLE, subscription

    def _on_push(self, message: Message) -> None:
        if self.closed or message.conversation_id != self.conversation_id:
            return
        if self.log.merge(message):
            logger.debug("Pushed message %s into %s", message.id, self.conversation_id)
            self._notify()

    def _on_lost(self, reason: str) -> None:
        if self._state != SyncState.LIVE:
            return
        logger.warning(
            "Push for conversation %s lost (%s), falling back to polling", self.conversation_id, reason,
        )
        self.last_error = SubscriptionUnavailable(reason)
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            task = asyncio.create_task(self._release(subscription))
            self._releasing.add(task)
            task.add_done_callback(self._releasing.discard)
        self._start_polling()

    def _start_polling(self) -> None:
        self._timer = self._scheduler.every(
            self._poll_interval,
            self._poll_tick,
            name=f"message-poll-{self.conversation_id}",
        )
        self._state = SyncState.POLLING
        logger.info(
            "Conversation %s polling every %.1fs", self.conversation_id, self._poll_interval,
        )

    async def _poll_tick(self) -> None:
        if self.closed:
            return
        await self._fetch(replace=True)

    async def _fetch(self, *, replace: bool) -> None:
        mark = self._send_seq
        try:
            messages = await message_service.list_messages(self.conversation_id, self._backend)
        except AppError as exc:
            self._record_failure(exc)
            return
        if self.closed:
            return
        if replace:
            self.log.replace(messages)
            self._sent = [(seq, m) for seq, m in self._sent if seq > mark]
            self.log.merge_all(m for _, m in self._sent)
        else:
            self.log.merge_all(messages)
        self._record_success()
        self._notify()

    def _record_failure(self, exc: AppError) -> None:
        self._failures += 1
        self.last_error = exc
        if self._failures >= self._failure_threshold and not self.degraded:
            self.degraded = True
            logger.warning(
                "Conversation %s sync degraded after %d failed fetches: %s",
                self.conversation_id,
                self._failures,
                exc.detail,
            )
        else:
            logger.debug("Fetch for %s failed: %s", self.conversation_id, exc.detail)

    def _record_success(self) -> None:
        if self.degraded:
            logger.info("Conversation %s sync recovered", self.conversation_id)
        self._failures = 0
        self.degraded = False
        self.last_error = None

    def _notify(self) -> None:
        if self._on_update is not None:
            self._on_update(self.log.snapshot())

    async def _release(self, subscription: Subscription) -> None:
        try:
            await subscription.unsubscribe()
        except Exception:
            logger.exception("Failed to unsubscribe from conversation %s", self.conversation_id)


class RealtimeSync:
    """Owns the sync session of the currently open conversation."""

    def __init__(
        self,
        backend: MarketplaceBackend,
        scheduler: Scheduler,
        *,
        channel: RealtimeChannel | None = None,
        poll_interval: float = 3.0,
        subscribe_timeout: float = 5.0,
        failure_threshold: int = 3,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler
        self._channel = channel
        self._poll_interval = poll_interval
        self._subscribe_timeout = subscribe_timeout
        self._failure_threshold = failure_threshold
        self._current: SyncSession | None = None

    @property
    def current(self) -> SyncSession | None:
        return self._current

    async def open(
        self,
        conversation_id: str,
        *,
        on_update: OnUpdateCallback | None = None,
    ) -> SyncSession:
        """Close the previous session, then start one for ``conversation_id``."""
        await self.close()
        session = SyncSession(
            conversation_id,
            self._backend,
            self._scheduler,
            channel=self._channel,
            poll_interval=self._poll_interval,
            subscribe_timeout=self._subscribe_timeout,
            failure_threshold=self._failure_threshold,
            on_update=on_update,
        )
        self._current = session
        try:
            await session.start()
        except BaseException:
            await self._discard(session)
            raise
        return session

    @asynccontextmanager
    async def connect(
        self,
        conversation_id: str,
        *,
        on_update: OnUpdateCallback | None = None,
    ) -> AsyncIterator[SyncSession]:
        session = await self.open(conversation_id, on_update=on_update)
        try:
            yield session
        finally:
            await self._discard(session)

    async def close(self) -> None:
        session, self._current = self._current, None
        if session is not None:
            await session.close()

    async def _discard(self, session: SyncSession) -> None:
        if self._current is session:
            self._current = None
        await session.close()
