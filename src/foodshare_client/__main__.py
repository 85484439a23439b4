"""Entrypoint: python -m foodshare_client"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from foodshare_client.application.dto.listing import ListingCriteria
from foodshare_client.application.exceptions import AppError
from foodshare_client.client import build_http_client, open_client
from foodshare_client.config import settings
from foodshare_client.domain.entities.listing import Coordinates
from foodshare_client.domain.entities.message import Message
from foodshare_client.domain.value_objects.enums import ListingCategory, SortDirection, SortKey
from foodshare_client.infrastructure.auth.token import principal_from_token
from foodshare_client.infrastructure.http.backend import HttpMarketplaceBackend
from foodshare_client.infrastructure.scheduling.asyncio_scheduler import AsyncioScheduler
from foodshare_client.services import geo_matcher
from foodshare_client.services.listing_feed import ListingFeed

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="foodshare_client",
        description="Browse food donations and follow conversations",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    feed = sub.add_parser("feed", help="List donations, nearest or newest first")
    feed.add_argument("--lat", type=float, help="Your latitude")
    feed.add_argument("--lng", type=float, help="Your longitude")
    feed.add_argument("--max-km", type=float, help="Only donations within this distance")
    feed.add_argument("--category", choices=[c.value for c in ListingCategory])
    feed.add_argument("--sort", choices=[k.value for k in SortKey], default=SortKey.RECENCY.value)
    feed.add_argument(
        "--direction", choices=[d.value for d in SortDirection], default=SortDirection.DESC.value,
    )

    chat = sub.add_parser("chat", help="Follow a conversation")
    chat.add_argument("conversation_id")
    chat.add_argument("--seconds", type=float, default=60.0, help="How long to follow (default: 60)")
    chat.add_argument("--send", metavar="TEXT", help="Send one message after connecting")
    return parser


def _criteria(args: argparse.Namespace) -> ListingCriteria:
    origin = None
    if args.lat is not None and args.lng is not None:
        origin = Coordinates(lat=args.lat, lng=args.lng)
    return ListingCriteria(
        category=ListingCategory(args.category) if args.category else None,
        max_distance_km=args.max_km,
        origin=origin,
    )


async def run_feed(args: argparse.Namespace) -> None:
    principal = principal_from_token(settings.API_TOKEN) if settings.API_TOKEN else None
    criteria = _criteria(args)
    scheduler = AsyncioScheduler()
    async with build_http_client(settings) as http:
        feed = ListingFeed(HttpMarketplaceBackend(http, principal), scheduler, principal=principal)
        await feed.refresh()
        for listing in feed.view(criteria, SortKey(args.sort), SortDirection(args.direction)):
            distance = geo_matcher.distance_to(criteria.origin, listing)
            where = f"{distance:6.2f} km" if distance is not None else "     ? km"
            claimed = " (claimed)" if listing.claimed else ""
            print(f"{where}  [{listing.category}] {listing.title} ({listing.quantity:g} {listing.unit}){claimed}")
    await scheduler.shutdown()


async def run_chat(args: argparse.Namespace) -> None:
    printed: set[str] = set()

    def show(messages: list[Message]) -> None:
        for message in messages:
            if message.id in printed:
                continue
            printed.add(message.id)
            print(f"{message.created_at:%H:%M:%S} {message.sender_id}: {message.content}")

    async with open_client() as client:
        async with client.sync.connect(args.conversation_id, on_update=show) as session:
            logger.info("Following %s (%s)", args.conversation_id, session.state.value)
            if args.send:
                await session.send(args.send)
            await asyncio.sleep(args.seconds)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    runner = run_feed if args.command == "feed" else run_chat
    try:
        asyncio.run(runner(args))
    except AppError as exc:
        logger.error("%s: %s", exc.__class__.__name__, exc.detail)
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
