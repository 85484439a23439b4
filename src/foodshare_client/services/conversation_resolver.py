"""Find-or-create the single conversation between the user and a counterpart.

Conversations are keyed by the unordered participant pair only; a listing id
passed to :meth:`ConversationResolver.resolve` is stored as context when a
new conversation is created and is not part of the match.
"""
from __future__ import annotations

import asyncio
import logging

from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import (
    ConflictError,
    RequestFailed,
    ValidationError,
)
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.services._failures import surface_as
from foodshare_client.services.conversation_cache import ConversationCache, PairKey, pair_key

logger = logging.getLogger(__name__)


class ConversationResolver:
    def __init__(
        self,
        backend: MarketplaceBackend,
        principal: Principal,
        cache: ConversationCache,
        *,
        max_cache_age: float = 90.0,
    ) -> None:
        self._backend = backend
        self._principal = principal
        self._cache = cache
        self._max_cache_age = max_cache_age
        self._in_flight: dict[PairKey, asyncio.Task[Conversation]] = {}

    def conversations(self) -> list[Conversation]:
        return self._cache.all()

    async def refresh(self) -> list[Conversation]:
        with surface_as(RequestFailed, "Loading conversations"):
            conversations = await self._backend.list_conversations()
        self._cache.merge(conversations)
        return conversations

    async def resolve(self, counterpart_id: str, listing_id: str | None = None) -> Conversation:
        me = self._principal.user_id
        if counterpart_id == me:
            raise ValidationError("Cannot open a conversation with yourself")

        key = pair_key(me, counterpart_id)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._resolve(counterpart_id, listing_id), name=f"resolve-{key[0]}-{key[1]}",
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda _t: self._in_flight.pop(key, None))
        # shield: one caller being cancelled must not cancel the shared lookup
        return await asyncio.shield(task)

    async def _resolve(self, counterpart_id: str, listing_id: str | None) -> Conversation:
        me = self._principal.user_id

        existing = self._cache.for_pair(me, counterpart_id)
        if existing is not None:
            return existing

        if self._cache.age_seconds() > self._max_cache_age:
            await self.refresh()
            existing = self._cache.for_pair(me, counterpart_id)
            if existing is not None:
                return existing

        try:
            with surface_as(RequestFailed, "Creating conversation"):
                created = await self._backend.create_conversation((me, counterpart_id), listing_id)
        except ConflictError:
            # The store enforces one conversation per pair; someone else won.
            logger.info("Conversation with %s already exists remotely, reloading", counterpart_id)
            await self.refresh()
            existing = self._cache.for_pair(me, counterpart_id)
            if existing is None:
                raise RequestFailed("Conversation reported as existing but not found") from None
            return existing

        self._cache.learn(created)
        logger.info("Created conversation %s with %s", created.id, counterpart_id)
        return created
