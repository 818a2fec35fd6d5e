"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from tests.helpers.fakes import FakeConnection
from tuya_lan.protocol.tuya_protocol import TuyaProtocol
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig

LOCAL_KEY = "0123456789abcdef"
DEVICE_ID = "bf1234567890abcdefgh"


@pytest.fixture
def codec() -> TuyaProtocol:
    """Protocol 3.3 codec (binary AES bodies)."""
    return TuyaProtocol(LOCAL_KEY, "3.3", device_id="test")


@pytest.fixture
def codec_v31() -> TuyaProtocol:
    """Protocol 3.1 codec (plaintext queries, base64 envelope for CONTROL)."""
    return TuyaProtocol(LOCAL_KEY, "3.1", device_id="test")


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fast_timeouts() -> TimeoutConfig:
    """Short deadlines so retry paths finish quickly; heartbeat effectively off."""
    return TimeoutConfig(
        connect_timeout_seconds=0.5,
        response_timeout_seconds=0.05,
        heartbeat_interval_seconds=60.0,
    )


@pytest.fixture
def no_backoff() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_seconds=0.0, jitter_factor=0.0)
