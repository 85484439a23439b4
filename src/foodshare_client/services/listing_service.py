from __future__ import annotations

import logging

from foodshare_client.application.dto.listing import ListingDraft
from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.exceptions import (
    ForbiddenError,
    RequestFailed,
    Unauthorized,
    ValidationError,
)
from foodshare_client.application.ports.backend import MarketplaceBackend
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.domain.value_objects.enums import ListingCategory
from foodshare_client.services._failures import surface_as

logger = logging.getLogger(__name__)


def validate_draft(draft: ListingDraft) -> None:
    if not draft.title.strip():
        raise ValidationError("Title is required")
    if draft.quantity <= 0:
        raise ValidationError("Quantity must be positive")
    if draft.category not in ListingCategory.__members__.values():
        raise ValidationError('Invalid donation type. Must be "human" or "animal"')
    if not (-90 <= draft.location.lat <= 90 and -180 <= draft.location.lng <= 180):
        raise ValidationError("Coordinates out of range")
    if draft.available_from and draft.expires_at and draft.expires_at < draft.available_from:
        raise ValidationError("Expiry is before availability start")


async def create_listing(
    draft: ListingDraft,
    principal: Principal | None,
    backend: MarketplaceBackend,
) -> Listing:
    if principal is None:
        raise Unauthorized("Sign in to post a donation")
    validate_draft(draft)
    with surface_as(RequestFailed, "Posting donation"):
        listing = await backend.create_listing(draft)
    logger.info("Posted listing %s (%s)", listing.id, listing.title)
    return listing


async def delete_listing(
    listing: Listing,
    principal: Principal | None,
    backend: MarketplaceBackend,
) -> None:
    if principal is None:
        raise Unauthorized("Sign in to withdraw a donation")
    if not listing.is_owned_by(principal.user_id):
        raise ForbiddenError("Only the owner can withdraw a donation")
    with surface_as(RequestFailed, "Withdrawing donation"):
        await backend.delete_listing(listing.id)
    logger.info("Withdrew listing %s", listing.id)
