from __future__ import annotations

import bisect
from typing import Iterable

from foodshare_client.domain.entities.message import Message


class MessageLog:
    """Messages of one conversation, unique by id, ascending by creation time."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = []
        self._keys: list[tuple] = []
        self._ids: set[str] = set()
        self.replace(messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def merge(self, message: Message) -> bool:
        """Insert ``message`` at its ordered position. False if already present."""
        if message.id in self._ids:
            return False
        key = message.sort_key
        index = bisect.bisect_right(self._keys, key)
        self._keys.insert(index, key)
        self._messages.insert(index, message)
        self._ids.add(message.id)
        return True

    def merge_all(self, messages: Iterable[Message]) -> int:
        return sum(1 for message in messages if self.merge(message))

    def replace(self, messages: Iterable[Message]) -> None:
        """Swap in a freshly fetched full log."""
        unique: dict[str, Message] = {}
        for message in messages:
            unique.setdefault(message.id, message)
        ordered = sorted(unique.values(), key=lambda m: m.sort_key)
        self._messages = ordered
        self._keys = [m.sort_key for m in ordered]
        self._ids = set(unique)

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None
