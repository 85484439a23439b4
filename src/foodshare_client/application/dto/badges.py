from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class BadgeCounts:
    conversations_with_messages: int = 0
    unread_conversations: int = 0
    outstanding_requests: int = 0
    pending_incoming: int = 0
    refreshed_at: datetime | None = None
    stale: bool = False

    @property
    def total(self) -> int:
        return self.unread_conversations + self.pending_incoming
