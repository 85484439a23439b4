from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    listing_id: str | None
    participants: frozenset[str]
    created_at: datetime
    last_activity_at: datetime | None
    message_count: int = 0
    last_sender_id: str | None = None
    last_message_preview: str | None = None

    def involves(self, *user_ids: str) -> bool:
        return all(uid in self.participants for uid in user_ids)
