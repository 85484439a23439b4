from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    conversation_id: str
    sender_id: str
    content: str
    created_at: datetime

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)
