"""Retry policy and timeout configuration for the request layer.

Defaults come from TUYA_* environment variables (see tuya_lan.const).
"""

from __future__ import annotations

import random

from tuya_lan import const


class TimeoutConfig:
    """Timeouts governing one device connection."""

    def __init__(
        self,
        connect_timeout_seconds: float | None = None,
        response_timeout_seconds: float | None = None,
        heartbeat_interval_seconds: float | None = None,
    ):
        """Initialize timeout configuration.

        Args:
            connect_timeout_seconds: TCP connect deadline (default: TUYA_CONNECT_TIMEOUT, 5s)
            response_timeout_seconds: Per-attempt response deadline (default: TUYA_RESPONSE_TIMEOUT, 5s)
            heartbeat_interval_seconds: Period between HEART_BEAT frames (default: TUYA_HEARTBEAT_INTERVAL, 10s)
        """
        self.connect_timeout_seconds = (
            const.TUYA_CONNECT_TIMEOUT if connect_timeout_seconds is None else connect_timeout_seconds
        )
        self.response_timeout_seconds = (
            const.TUYA_RESPONSE_TIMEOUT if response_timeout_seconds is None else response_timeout_seconds
        )
        self.heartbeat_interval_seconds = (
            const.TUYA_HEARTBEAT_INTERVAL if heartbeat_interval_seconds is None else heartbeat_interval_seconds
        )
        # Socket writes share the response deadline
        self.send_timeout_seconds = self.response_timeout_seconds

    def __repr__(self) -> str:
        return (
            f"TimeoutConfig(connect={self.connect_timeout_seconds:.3f}s, "
            f"response={self.response_timeout_seconds:.3f}s, "
            f"heartbeat={self.heartbeat_interval_seconds:.1f}s)"
        )


class RetryPolicy:
    """Bounded attempts with exponential backoff and jitter between them."""

    def __init__(
        self,
        max_attempts: int | None = None,
        base_delay_seconds: float = 0.1,
        max_delay_seconds: float = 5.0,
        jitter_factor: float = 0.1,
    ):
        """Initialize retry policy.

        Args:
            max_attempts: Total attempts per request, first one included (default: TUYA_MAX_ATTEMPTS, 5)
            base_delay_seconds: Base delay before the first retry (default: 0.1s)
            max_delay_seconds: Maximum delay cap (default: 5.0s)
            jitter_factor: Jitter as fraction of delay (default: 0.1 = 10%)
        """
        self.max_attempts = const.TUYA_MAX_ATTEMPTS if max_attempts is None else max_attempts
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.jitter_factor = jitter_factor

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before retry number ``attempt`` (0-indexed).

        Formula: min(base_delay * 2**attempt, max_delay) + uniform(0, delay * jitter_factor)
        """
        delay = min(self.base_delay_seconds * (2**attempt), self.max_delay_seconds)
        jitter = random.uniform(0, delay * self.jitter_factor)  # noqa: S311
        return delay + jitter

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, "
            f"base_delay={self.base_delay_seconds}s, "
            f"max_delay={self.max_delay_seconds}s, "
            f"jitter_factor={self.jitter_factor})"
        )
