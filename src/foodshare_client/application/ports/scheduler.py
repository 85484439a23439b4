from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

TickCallback = Callable[[], Awaitable[Any]]


class TimerHandle(Protocol):
    @property
    def active(self) -> bool: ...

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def every(self, interval: float, callback: TickCallback, *, name: str) -> TimerHandle: ...
