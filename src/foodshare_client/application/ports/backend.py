from __future__ import annotations

from typing import Iterable, Protocol

from foodshare_client.application.dto.listing import ListingDraft
from foodshare_client.application.dto.request import RequestResult
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.entities.request import DonationRequest


class MarketplaceBackend(Protocol):
    """Remote store, reached through request/response calls only."""

    async def list_listings(self, category: str | None = None) -> list[Listing]: ...

    async def create_listing(self, draft: ListingDraft) -> Listing: ...

    async def delete_listing(self, listing_id: str) -> None: ...

    async def list_my_requests(self) -> list[RequestResult]:
        """Own requests, each with its conversation when the backend knows it."""
        ...

    async def list_requests_for_listing(self, listing_id: str) -> list[DonationRequest]: ...

    async def create_request(self, listing_id: str, message: str) -> RequestResult: ...

    async def accept_request(self, request_id: str) -> DonationRequest: ...

    async def decline_request(self, request_id: str) -> DonationRequest: ...

    async def list_conversations(self) -> list[Conversation]: ...

    async def list_messages(self, conversation_id: str) -> list[Message]: ...

    async def send_message(self, conversation_id: str, content: str) -> Message: ...

    async def mark_read(self, conversation_id: str) -> None: ...

    async def create_conversation(
        self, participants: Iterable[str], listing_id: str | None = None,
    ) -> Conversation: ...
