"""Cached listing feed with a periodic refresh."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from foodshare_client.application.dto.listing import ListingCriteria, ListingDraft
from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import AppError, NotFoundError, RequestFailed
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.application.ports.clock import Clock, SystemClock
from foodshare_client.application.ports.scheduler import Scheduler, TimerHandle
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.domain.value_objects.enums import ListingCategory, SortDirection, SortKey
from foodshare_client.services import geo_matcher, listing_service
from foodshare_client.services._failures import surface_as
from foodshare_client.services.request_ledger import RequestLedger

logger = logging.getLogger(__name__)


class ListingFeed:
    def __init__(
        self,
        backend: MarketplaceBackend,
        scheduler: Scheduler,
        *,
        principal: Principal | None = None,
        ledger: RequestLedger | None = None,
        interval: float = 90.0,
        clock: Clock | None = None,
    ) -> None:
        self._backend = backend
        self._scheduler = scheduler
        self._principal = principal
        self._ledger = ledger
        self._interval = interval
        self._clock = clock or SystemClock()
        self._listings: dict[str, Listing] = {}
        self._timer: TimerHandle | None = None
        self.refreshed_at: datetime | None = None

    def listings(self) -> list[Listing]:
        return list(self._listings.values())

    def get(self, listing_id: str) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not in feed")
        return listing

    def owned(self) -> list[Listing]:
        if self._principal is None:
            return []
        user_id = self._principal.user_id
        return [listing for listing in self._listings.values() if listing.is_owned_by(user_id)]

    def view(
        self,
        criteria: ListingCriteria | None = None,
        key: SortKey = SortKey.RECENCY,
        direction: SortDirection = SortDirection.DESC,
    ) -> geo_matcher.Projection[Listing]:
        """Filtered, ordered projection over whatever the feed holds when iterated."""
        return geo_matcher.project_feed(
            self._listings.values(), criteria or ListingCriteria(), key, direction,
        )

    async def refresh(self) -> list[Listing]:
        with surface_as(RequestFailed, "Loading donations"):
            batches = await asyncio.gather(
                *(self._backend.list_listings(category) for category in ListingCategory)
            )
        # mutate in place so projections handed out earlier see the new data
        self._listings.clear()
        self._listings.update((listing.id, listing) for batch in batches for listing in batch)
        self.refreshed_at = self._clock.now()
        logger.debug("Feed refreshed with %d listings", len(self._listings))

        if self._ledger is not None:
            try:
                await self._ledger.refresh()
            except AppError as exc:
                logger.warning("Could not refresh own requests: %s", exc.detail)
        return self.listings()

    async def start(self) -> None:
        if self._timer is not None and self._timer.active:
            return
        await self.refresh()
        self._timer = self._scheduler.every(self._interval, self.refresh, name="listing-feed")

    def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    async def publish(self, draft: ListingDraft) -> Listing:
        listing = await listing_service.create_listing(draft, self._principal, self._backend)
        self._listings[listing.id] = listing
        return listing

    async def withdraw(self, listing_id: str) -> None:
        listing = self.get(listing_id)
        await listing_service.delete_listing(listing, self._principal, self._backend)
        self._listings.pop(listing_id, None)
