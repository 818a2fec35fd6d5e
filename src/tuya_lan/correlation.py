"""
Request ids carried through contextvars.

``ConnectionManager.send()`` opens a ``correlation_context`` around the whole
retry loop, so every attempt, the router line that resolves it and the final
``RequestFailedError`` carry the same id. Ids are UUIDv7 hex: sortable by
creation time, which makes interleaved request logs easy to order.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager

from uuid_extensions import uuid7

__all__ = [
    "correlation_context",
    "generate_correlation_id",
    "get_correlation_id",
]

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("tuya_request_id", default=None)


def generate_correlation_id() -> str:
    return uuid7().hex


def get_correlation_id() -> str | None:
    """Id of the request running in this task, if any."""
    return _request_id.get()


@contextmanager
def correlation_context(correlation_id: str | None = None, *, auto_generate: bool = True) -> Iterator[str | None]:
    """
    Bind a request id for the duration of the block.

    Args:
        correlation_id: Id to bind; a fresh UUIDv7 when None and auto_generate is set
        auto_generate: Leave the id unset instead of generating one

    Yields:
        The bound id (None only when auto_generate is False and no id was given)
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()
    token = _request_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _request_id.reset(token)
