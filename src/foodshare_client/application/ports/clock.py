from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def seconds_since(clock: Clock, then: datetime | None) -> float:
    """Age of ``then`` in seconds; infinite when it never happened."""
    if then is None:
        return float("inf")
    return (clock.now() - then).total_seconds()
