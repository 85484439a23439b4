"""Map backend errors onto the terminal error of the calling operation."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from foodshare_client.application.exceptions import (
    AppError,
    NetworkFailure,
    RemoteError,
)


@contextmanager
def surface_as(error_cls: type[AppError], action: str) -> Iterator[None]:
    """Re-raise transport and unexpected remote errors as ``error_cls``.

    Domain errors (unauthorized, forbidden, not found, conflict, validation)
    pass through unchanged.
    """
    try:
        yield
    except (NetworkFailure, RemoteError) as exc:
        raise error_cls(f"{action} failed: {exc.detail or exc.__class__.__name__}") from exc
