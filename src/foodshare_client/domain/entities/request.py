from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class DonationRequest:
    id: str
    listing_id: str
    requester_id: str
    message: str | None
    status: str
    created_at: datetime
