from __future__ import annotations

from dataclasses import dataclass

from foodshare_client.domain.entities.conversation import Conversation
from foodshare_client.domain.entities.request import DonationRequest


@dataclass(frozen=True, slots=True)
class RequestResult:
    """A request plus the conversation the backend associated with it, if any."""

    request: DonationRequest
    conversation: Conversation | None = None
