from __future__ import annotations

from typing import Callable, Protocol

from foodshare_client.domain.entities.message import Message

OnMessageCallback = Callable[[Message], None]
# Called once with a reason when the channel stops delivering on its own.
OnLostCallback = Callable[[str], None]


class Subscription(Protocol):
    async def unsubscribe(self) -> None: ...


class RealtimeChannel(Protocol):
    async def subscribe(
        self,
        conversation_id: str,
        callback: OnMessageCallback,
        *,
        on_lost: OnLostCallback | None = None,
    ) -> Subscription:
        """Start receiving messages inserted into one conversation.

        Raises if the push service cannot be reached. ``on_lost`` fires if
        delivery later ends without ``unsubscribe`` being called.
        """
        ...
