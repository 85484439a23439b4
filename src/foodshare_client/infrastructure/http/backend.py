"""httpx adapter for the marketplace REST API."""
from __future__ import annotations

import logging
from typing import Any, Iterable, TypeVar

import httpx
import pydantic

from foodshare_client.application.dto.listing import ListingDraft
from foodshare_client.application.dto.principal import Principal
from foodshare_client.application.dto.request import RequestResult
from foodshare_client.application.exceptions import (
    AppError,
    ConflictError,
    ForbiddenError,
    NetworkFailure,
    NotFoundError,
    RemoteError,
    Unauthorized,
    ValidationError,
)
from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.listing import Listing
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.entities.request import DonationRequest
from foodshare_client.infrastructure.http import mappers
from foodshare_client.infrastructure.http.schemas import (
    ConversationListResponse,
    ConversationResponse,
    CreateConversationBody,
    CreateRequestBody,
    CreateRequestResponse,
    DecisionResponse,
    DonationListResponse,
    DonationResponse,
    MessageListResponse,
    MyRequestListResponse,
    RequestListResponse,
    SendMessageBody,
    SendMessageResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=pydantic.BaseModel)

_STATUS_ERRORS: dict[int, type[AppError]] = {
    400: ValidationError,
    401: Unauthorized,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if isinstance(body.get(key), str):
                return body[key]
    return response.reason_phrase


def raise_for_status(response: httpx.Response) -> None:
    """Translate a non-2xx response into the matching application error."""
    if response.is_success:
        return
    detail = _detail(response)
    status = response.status_code
    if status >= 500:
        raise NetworkFailure(f"{status} {detail}")
    error_cls = _STATUS_ERRORS.get(status)
    if error_cls is not None:
        raise error_cls(detail)
    raise RemoteError(detail, status_code=status)


class HttpMarketplaceBackend:
    """Implements application.ports.backend.MarketplaceBackend."""

    def __init__(self, http: httpx.AsyncClient, principal: Principal | None = None) -> None:
        self._http = http
        self._principal = principal

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: pydantic.BaseModel | None = None,
    ) -> httpx.Response:
        headers = self._principal.auth_header if self._principal else {}
        json = body.model_dump(mode="json") if body is not None else None
        try:
            response = await self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as exc:
            raise NetworkFailure(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise NetworkFailure(f"{method} {path}: {exc}") from exc
        logger.debug("%s %s -> %d", method, path, response.status_code)
        raise_for_status(response)
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: type[ResponseT]) -> ResponseT:
        try:
            return model.model_validate(response.json())
        except (ValueError, pydantic.ValidationError) as exc:
            logger.warning("Unexpected payload from %s: %s", response.request.url, exc)
            raise RemoteError(
                f"Malformed response from {response.request.url.path}",
                status_code=response.status_code,
            ) from exc

    # -- listings --

    async def list_listings(self, category: str | None = None) -> list[Listing]:
        params = {"type": str(category)} if category else None
        response = await self._call("GET", "/api/donations", params=params)
        payload = self._parse(response, DonationListResponse)
        return [mappers.listing_from_payload(d) for d in payload.donations]

    async def create_listing(self, draft: ListingDraft) -> Listing:
        response = await self._call("POST", "/api/donations", body=mappers.draft_to_body(draft))
        return mappers.listing_from_payload(self._parse(response, DonationResponse).donation)

    async def delete_listing(self, listing_id: str) -> None:
        await self._call("DELETE", f"/api/donations/{listing_id}")

    # -- requests --

    async def list_my_requests(self) -> list[RequestResult]:
        response = await self._call("GET", "/api/donations/requests/my")
        payload = self._parse(response, MyRequestListResponse)
        return [
            RequestResult(
                request=mappers.request_from_payload(item),
                conversation=(
                    mappers.conversation_from_payload(item.conversation)
                    if item.conversation is not None
                    else None
                ),
            )
            for item in payload.requests
        ]

    async def list_requests_for_listing(self, listing_id: str) -> list[DonationRequest]:
        response = await self._call("GET", f"/api/donations/{listing_id}/requests")
        payload = self._parse(response, RequestListResponse)
        return [mappers.request_from_payload(r) for r in payload.requests]

    async def create_request(self, listing_id: str, message: str) -> RequestResult:
        response = await self._call(
            "POST", f"/api/donations/{listing_id}/request", body=CreateRequestBody(message=message),
        )
        payload = self._parse(response, CreateRequestResponse)
        conversation = None
        if payload.conversation is not None:
            conversation = mappers.conversation_from_payload(payload.conversation)
        return RequestResult(request=mappers.request_from_payload(payload.request), conversation=conversation)

    async def accept_request(self, request_id: str) -> DonationRequest:
        response = await self._call("POST", f"/api/donations/requests/{request_id}/accept")
        return mappers.request_from_payload(self._parse(response, DecisionResponse).request)

    async def decline_request(self, request_id: str) -> DonationRequest:
        response = await self._call("POST", f"/api/donations/requests/{request_id}/decline")
        return mappers.request_from_payload(self._parse(response, DecisionResponse).request)

    # -- conversations and messages --

    async def list_conversations(self) -> list[Conversation]:
        response = await self._call("GET", "/api/messages/conversations")
        payload = self._parse(response, ConversationListResponse)
        return [mappers.conversation_from_payload(c) for c in payload.conversations]

    async def list_messages(self, conversation_id: str) -> list[Message]:
        response = await self._call("GET", f"/api/messages/conversations/{conversation_id}/messages")
        payload = self._parse(response, MessageListResponse)
        return [mappers.message_from_payload(m) for m in payload.messages]

    async def send_message(self, conversation_id: str, content: str) -> Message:
        response = await self._call(
            "POST",
            "/api/messages",
            body=SendMessageBody(conversation_id=conversation_id, content=content),
        )
        return mappers.message_from_payload(self._parse(response, SendMessageResponse).data)

    async def mark_read(self, conversation_id: str) -> None:
        await self._call("PUT", f"/api/messages/conversations/{conversation_id}/read")

    async def create_conversation(
        self, participants: Iterable[str], listing_id: str | None = None,
    ) -> Conversation:
        body = CreateConversationBody(participants=sorted(participants), donation_id=listing_id)
        response = await self._call("POST", "/api/messages/conversations", body=body)
        return mappers.conversation_from_payload(self._parse(response, ConversationResponse).conversation)
