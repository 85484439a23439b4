"""Composition root: wires the services against real adapters."""
from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis

from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.application.ports.realtime import RealtimeChannel
from foodshare_client.application.ports.scheduler import Scheduler
from foodshare_client.config import Settings, settings
from foodshare_client.infrastructure.auth.token import principal_from_token
from foodshare_client.infrastructure.http.backend import HttpMarketplaceBackend
from foodshare_client.infrastructure.realtime.redis_channel import RedisRealtimeChannel
from foodshare_client.infrastructure.scheduling.asyncio_scheduler import AsyncioScheduler
from foodshare_client.services.conversation_cache import ConversationCache
from foodshare_client.services.conversation_resolver import ConversationResolver
from foodshare_client.services.listing_feed import ListingFeed
from foodshare_client.services.notification_aggregator import (
    NotificationAggregator,
    OnChangeCallback,
)
from foodshare_client.services.realtime_sync import RealtimeSync
from foodshare_client.services.request_ledger import RequestLedger

logger = logging.getLogger(__name__)


@dataclass
class FoodShareClient:
    principal: Principal
    backend: MarketplaceBackend
    cache: ConversationCache
    ledger: RequestLedger
    resolver: ConversationResolver
    feed: ListingFeed
    sync: RealtimeSync
    notifications: NotificationAggregator

    async def aclose(self) -> None:
        self.notifications.stop()
        self.feed.stop()
        await self.sync.close()


def build_http_client(config: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.API_BASE_URL,
        timeout=config.HTTP_TIMEOUT_SECONDS,
        headers={"Accept": "application/json"},
    )


@asynccontextmanager
async def open_client(
    token: str | None = None,
    *,
    config: Settings | None = None,
    backend: MarketplaceBackend | None = None,
    channel: RealtimeChannel | None = None,
    scheduler: Scheduler | None = None,
    on_badges: OnChangeCallback | None = None,
) -> AsyncIterator[FoodShareClient]:
    """Sign in with ``token`` and yield a wired client.

    Timers, the open sync session and the network clients are released in
    reverse order on exit, whether the body returns or raises.
    """
    config = config or settings
    principal = principal_from_token(token if token is not None else config.API_TOKEN)

    async with AsyncExitStack() as stack:
        if backend is None:
            http = build_http_client(config)
            stack.push_async_callback(http.aclose)
            backend = HttpMarketplaceBackend(http, principal)

        if channel is None and config.realtime_enabled:
            redis = aioredis.from_url(
                config.REALTIME_URL,
                password=config.REALTIME_KEY,
                decode_responses=True,
            )
            stack.push_async_callback(redis.aclose)
            channel = RedisRealtimeChannel(redis, config.REALTIME_CHANNEL_PREFIX)
            logger.info("Realtime push enabled")

        if scheduler is None:
            own_scheduler = AsyncioScheduler()
            stack.push_async_callback(own_scheduler.shutdown)
            scheduler = own_scheduler

        cache = ConversationCache()
        ledger = RequestLedger(backend, principal, cache)
        resolver = ConversationResolver(
            backend, principal, cache, max_cache_age=config.FEED_REFRESH_SECONDS,
        )
        feed = ListingFeed(
            backend,
            scheduler,
            principal=principal,
            ledger=ledger,
            interval=config.FEED_REFRESH_SECONDS,
        )
        sync = RealtimeSync(
            backend,
            scheduler,
            channel=channel,
            poll_interval=config.MESSAGE_POLL_SECONDS,
            subscribe_timeout=config.SUBSCRIBE_TIMEOUT_SECONDS,
            failure_threshold=config.POLL_FAILURE_THRESHOLD,
        )
        notifications = NotificationAggregator(
            backend,
            principal,
            ledger,
            resolver,
            scheduler,
            owned_listings=feed.owned,
            interval=config.NOTIFICATION_REFRESH_SECONDS,
            on_change=on_badges,
        )
        client = FoodShareClient(
            principal=principal,
            backend=backend,
            cache=cache,
            ledger=ledger,
            resolver=resolver,
            feed=feed,
            sync=sync,
            notifications=notifications,
        )
        stack.push_async_callback(client.aclose)
        logger.info("Signed in as %s", principal.user_id)
        yield client
