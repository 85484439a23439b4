from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from foodshare_client.domain.value_objects.enums import ListingStatus


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class Listing:
    id: str
    owner_id: str
    title: str
    description: str | None
    quantity: float
    unit: str
    category: str
    location: Coordinates | None
    pickup_instructions: str | None
    available_from: datetime | None
    expires_at: datetime | None
    status: str
    created_at: datetime | None

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    @property
    def claimed(self) -> bool:
        return self.status == ListingStatus.CLAIMED
