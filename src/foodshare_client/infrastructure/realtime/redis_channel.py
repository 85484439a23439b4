"""Push delivery of new messages over Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub
from redis.exceptions import RedisError

from foodshare_client.application.exceptions import SubscriptionUnavailable
from foodshare_client.application.ports.realtime import OnLostCallback, OnMessageCallback
from foodshare_client.infrastructure.realtime.serializer import decode_message

logger = logging.getLogger(__name__)


class RedisSubscription:
    """One live channel subscription and the task draining it.

    Owns the Pub/Sub connection: :meth:`unsubscribe` closes it whatever state
    the listener task ended in.
    """

    def __init__(self, pubsub: PubSub, channel: str) -> None:
        self._pubsub = pubsub
        self._channel = channel
        self._task: asyncio.Task[None] | None = None

    def attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def unsubscribe(self) -> None:
        task, self._task = self._task, None
        try:
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception:
                    logger.exception("Redis Pub/Sub listener on channel=%s had failed", self._channel)
            try:
                await self._pubsub.unsubscribe(self._channel)
            except (RedisError, OSError) as exc:
                logger.warning("Redis Pub/Sub unsubscribe from channel=%s failed: %s", self._channel, exc)
        finally:
            await self._pubsub.aclose()
        logger.info("Redis Pub/Sub unsubscribed from channel=%s", self._channel)


class RedisRealtimeChannel:
    """Implements application.ports.realtime.RealtimeChannel."""

    def __init__(self, redis: aioredis.Redis, prefix: str = "chat.messages.") -> None:
        self._redis = redis
        self._prefix = prefix

    def channel_for(self, conversation_id: str) -> str:
        return f"{self._prefix}{conversation_id}"

    async def subscribe(
        self,
        conversation_id: str,
        callback: OnMessageCallback,
        *,
        on_lost: OnLostCallback | None = None,
    ) -> RedisSubscription:
        channel = self.channel_for(conversation_id)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except (RedisError, OSError) as exc:
            await pubsub.aclose()
            raise SubscriptionUnavailable(f"Cannot subscribe to {channel}: {exc}") from exc
        except asyncio.CancelledError:
            # handshake timed out or the caller went away
            await pubsub.aclose()
            raise

        subscription = RedisSubscription(pubsub, channel)
        subscription.attach(
            asyncio.create_task(
                self._listen(pubsub, channel, callback, on_lost),
                name=f"redis-pubsub-{conversation_id}",
            )
        )
        logger.info("Redis Pub/Sub subscribed on channel=%s", channel)
        return subscription

    async def _listen(
        self,
        pubsub: PubSub,
        channel: str,
        callback: OnMessageCallback,
        on_lost: OnLostCallback | None,
    ) -> None:
        reason = "stream ended"
        try:
            async for raw in pubsub.listen():
                if raw["type"] != "message":
                    continue
                try:
                    message = decode_message(raw["data"])
                    if message is not None:
                        callback(message)
                except Exception:
                    logger.exception("Error processing pubsub message")
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            reason = str(exc) or exc.__class__.__name__
        logger.warning("Redis Pub/Sub listener on channel=%s stopped: %s", channel, reason)
        if on_lost is not None:
            on_lost(reason)
