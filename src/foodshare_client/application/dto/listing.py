from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from foodshare_client.domain.entities.listing import Coordinates
from foodshare_client.domain.value_objects.enums import ListingCategory


@dataclass(frozen=True, slots=True)
class ListingCriteria:
    category: ListingCategory | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None
    max_distance_km: float | None = None
    origin: Coordinates | None = None


@dataclass(frozen=True, slots=True)
class ListingDraft:
    title: str
    quantity: float
    unit: str
    location: Coordinates
    category: ListingCategory = ListingCategory.HUMAN
    description: str | None = None
    pickup_instructions: str | None = None
    available_from: datetime | None = None
    expires_at: datetime | None = None
