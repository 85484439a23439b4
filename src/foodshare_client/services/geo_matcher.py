"""Proximity filtering and ordering of listings.

Everything here is pure: inputs are never mutated and results are lazy
projections that re-read their source on every iteration.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Callable, Generic, Iterable, Iterator, TypeVar

from foodshare_client.application.dto.listing import ListingCriteria
from foodshare_client.domain.entities.listing import Coordinates, Listing
from foodshare_client.domain.value_objects.enums import SortDirection, SortKey

EARTH_RADIUS_KM = 6371.0

T = TypeVar("T")


class Projection(Generic[T]):
    """Re-iterable lazy view over a source collection."""

    def __init__(self, build: Callable[[], Iterator[T]]) -> None:
        self._build = build

    def __iter__(self) -> Iterator[T]:
        return self._build()


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Haversine great-circle distance in kilometers."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_to(origin: Coordinates | None, listing: Listing) -> float | None:
    if origin is None or listing.location is None:
        return None
    return distance_km(origin, listing.location)


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def matches(listing: Listing, criteria: ListingCriteria) -> bool:
    if criteria.category is not None and listing.category != criteria.category:
        return False

    if criteria.available_from is not None and listing.available_from is not None:
        if _as_utc(listing.available_from) < _as_utc(criteria.available_from):
            return False
    if criteria.available_until is not None and listing.expires_at is not None:
        if _as_utc(listing.expires_at) > _as_utc(criteria.available_until):
            return False

    if criteria.max_distance_km is not None:
        distance = distance_to(criteria.origin, listing)
        if distance is not None and distance > criteria.max_distance_km:
            return False

    return True


def filter_listings(
    listings: Iterable[Listing],
    criteria: ListingCriteria,
) -> Projection[Listing]:
    return Projection(lambda: (item for item in listings if matches(item, criteria)))


def _recency(listing: Listing) -> datetime:
    ts = listing.created_at or listing.available_from
    if ts is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return _as_utc(ts)


def _ordered(
    listings: Iterable[Listing],
    key: SortKey,
    direction: SortDirection,
    origin: Coordinates | None,
) -> Iterator[Listing]:
    items = list(listings)
    reverse = direction == SortDirection.DESC

    if key == SortKey.DISTANCE:
        if origin is None:
            # No reference point: every distance compares equal.
            return iter(items)
        located = [item for item in items if item.location is not None]
        unlocated = [item for item in items if item.location is None]
        located.sort(key=lambda item: distance_km(origin, item.location), reverse=reverse)  # type: ignore[arg-type]
        return iter(located + unlocated)

    if key == SortKey.TITLE:
        return iter(sorted(items, key=lambda item: item.title.casefold(), reverse=reverse))

    return iter(sorted(items, key=_recency, reverse=reverse))


def sort_listings(
    listings: Iterable[Listing],
    key: SortKey = SortKey.RECENCY,
    direction: SortDirection = SortDirection.DESC,
    origin: Coordinates | None = None,
) -> Projection[Listing]:
    return Projection(lambda: _ordered(listings, key, direction, origin))


def project_feed(
    listings: Iterable[Listing],
    criteria: ListingCriteria,
    key: SortKey = SortKey.RECENCY,
    direction: SortDirection = SortDirection.DESC,
) -> Projection[Listing]:
    """Filter then sort, measuring distance from ``criteria.origin``."""
    return sort_listings(filter_listings(listings, criteria), key, direction, criteria.origin)
