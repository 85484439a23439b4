"""Request state for the signed-in user, per listing.

Own requests move ``none -> pending -> accepted | declined`` and never back.
The ledger also keeps the owner-side view of requests against the user's own
listings so they can be accepted or declined.
"""
from __future__ import annotations

import dataclasses
import logging

from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import (
    AlreadyRequested,
    ConflictError,
    ForbiddenError,
    InvalidTransition,
    NotFoundError,
    RequestFailed,
)
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.domain.entities.request import DonationRequest
from foodshare_client.domain.value_objects.enums import LedgerState, RequestStatus
from foodshare_client.services._failures import surface_as
from foodshare_client.services.conversation_cache import ConversationCache

logger = logging.getLogger(__name__)

_RANK: dict[LedgerState, int] = {
    LedgerState.NONE: 0,
    LedgerState.PENDING: 1,
    LedgerState.ACCEPTED: 2,
    LedgerState.DECLINED: 2,
}
_TERMINAL = frozenset({LedgerState.ACCEPTED, LedgerState.DECLINED})


def _state_of(request: DonationRequest) -> LedgerState:
    try:
        return LedgerState(request.status)
    except ValueError:
        logger.warning("Unknown request status %r on %s", request.status, request.id)
        return LedgerState.PENDING


class RequestLedger:
    def __init__(
        self,
        backend: MarketplaceBackend,
        principal: Principal,
        cache: ConversationCache,
    ) -> None:
        self._backend = backend
        self._principal = principal
        self._cache = cache
        self._states: dict[str, LedgerState] = {}
        self._requests: dict[str, DonationRequest] = {}
        self._in_flight: set[str] = set()
        # owner side: listing id -> requests against it
        self._incoming: dict[str, list[DonationRequest]] = {}

    # -- own requests -------------------------------------------------------

    def state(self, listing_id: str) -> LedgerState:
        return self._states.get(listing_id, LedgerState.NONE)

    def request_for(self, listing_id: str) -> DonationRequest | None:
        return self._requests.get(listing_id)

    def conversation_for(self, listing_id: str) -> Conversation | None:
        return self._cache.for_listing(listing_id)

    def requested_listing_ids(self) -> set[str]:
        return {lid for lid, state in self._states.items() if state != LedgerState.NONE}

    def outstanding_count(self) -> int:
        return sum(1 for state in self._states.values() if state == LedgerState.PENDING)

    async def submit_request(self, listing_id: str, message: str) -> DonationRequest:
        if self.state(listing_id) != LedgerState.NONE or listing_id in self._in_flight:
            raise AlreadyRequested(f"Listing {listing_id} already requested")

        self._in_flight.add(listing_id)
        try:
            with surface_as(RequestFailed, "Request submission"):
                try:
                    result = await self._backend.create_request(listing_id, message)
                except ConflictError as exc:
                    raise AlreadyRequested(exc.detail or f"Listing {listing_id} already requested") from exc
        finally:
            self._in_flight.discard(listing_id)

        self._record(listing_id, result.request)
        if result.conversation is not None:
            self._cache.learn(result.conversation, listing_id=listing_id)
        logger.info("Requested listing %s (request %s)", listing_id, result.request.id)
        return result.request

    async def refresh(self) -> None:
        """Rebuild own-request state from the backend, merging with what is known."""
        with surface_as(RequestFailed, "Request list refresh"):
            results = await self._backend.list_my_requests()

        learned: dict[str, Conversation] = {}
        for result in results:
            self._record(result.request.listing_id, result.request)
            if result.conversation is not None:
                learned[result.request.listing_id] = result.conversation
        self._cache.merge_by_listing(learned)
        logger.debug("Ledger refreshed: %d requests, %d conversations", len(results), len(learned))

    def _record(self, listing_id: str, request: DonationRequest) -> None:
        new_state = _state_of(request)
        current = self.state(listing_id)
        if _RANK[new_state] < _RANK[current]:
            return
        if current in _TERMINAL and new_state != current:
            logger.warning(
                "Ignoring %s for listing %s, already %s", new_state, listing_id, current,
            )
            return
        self._states[listing_id] = new_state
        self._requests[listing_id] = request

    # -- owner side ---------------------------------------------------------

    async def list_requests_for_listing(self, listing: Listing) -> list[DonationRequest]:
        """All requests against one of the user's listings, oldest first."""
        if not listing.is_owned_by(self._principal.user_id):
            raise ForbiddenError("Only the listing owner can view its requests")

        with surface_as(RequestFailed, "Loading requests"):
            requests = await self._backend.list_requests_for_listing(listing.id)

        ordered = sorted(requests, key=lambda r: r.created_at)
        self._incoming[listing.id] = ordered
        return list(ordered)

    def pending_incoming_count(self) -> int:
        return sum(
            1
            for requests in self._incoming.values()
            for request in requests
            if request.status == RequestStatus.PENDING
        )

    async def accept_request(self, request_id: str) -> DonationRequest:
        return await self._decide(request_id, RequestStatus.ACCEPTED)

    async def decline_request(self, request_id: str) -> DonationRequest:
        return await self._decide(request_id, RequestStatus.DECLINED)

    async def _decide(self, request_id: str, target: RequestStatus) -> DonationRequest:
        # Only owners can load incoming requests, so a hit here implies ownership.
        listing_id, request = self._find_incoming(request_id)
        if request.status != RequestStatus.PENDING:
            raise InvalidTransition(f"Request {request_id} is {request.status}, not pending")

        with surface_as(RequestFailed, f"Marking request {target}"):
            if target == RequestStatus.ACCEPTED:
                updated = await self._backend.accept_request(request_id)
            else:
                updated = await self._backend.decline_request(request_id)

        if updated.status != target:
            updated = dataclasses.replace(updated, status=target.value)
        self._incoming[listing_id] = [
            updated if r.id == request_id else r for r in self._incoming[listing_id]
        ]
        logger.info("Request %s on listing %s %s", request_id, listing_id, target)
        return updated

    def _find_incoming(self, request_id: str) -> tuple[str, DonationRequest]:
        for listing_id, requests in self._incoming.items():
            for request in requests:
                if request.id == request_id:
                    return listing_id, request
        if any(r.id == request_id for r in self._requests.values()):
            raise ForbiddenError(f"Only the listing owner can decide request {request_id}")
        raise NotFoundError(f"Request {request_id} not loaded for any owned listing")
