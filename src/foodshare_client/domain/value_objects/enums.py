from __future__ import annotations

from enum import StrEnum


class ListingCategory(StrEnum):
    HUMAN = "human"
    ANIMAL = "animal"


class ListingStatus(StrEnum):
    AVAILABLE = "available"
    CLAIMED = "claimed"


class RequestStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class LedgerState(StrEnum):
    """Current user's standing on a listing."""

    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class SortKey(StrEnum):
    DISTANCE = "distance"
    RECENCY = "recency"
    TITLE = "title"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class SyncState(StrEnum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    POLLING = "polling"
    CLOSED = "closed"


class Capability(StrEnum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
