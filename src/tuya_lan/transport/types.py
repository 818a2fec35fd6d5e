"""Dataclasses for request correlation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any


@dataclass
class PendingRequest:
    """Tracks one request attempt awaiting its response.

    Attributes:
        sequence: Sequence number stamped on the outgoing frame
        future: Resolved with the matched response payload
        correlation_id: UUID v7 shared by every attempt of one request
        sent_at: time.perf_counter() when the frame was written
        attempt: 1-based attempt number
    """

    sequence: int
    future: asyncio.Future[Any]
    correlation_id: str
    sent_at: float
    attempt: int = 1

    def resolve(self, payload: Any) -> bool:
        """Complete the future once; returns False if it was already done."""
        if self.future.done():
            return False
        self.future.set_result(payload)
        return True
