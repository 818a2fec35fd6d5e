"""Fixtures for integration tests."""

from collections.abc import AsyncGenerator, Callable

import pytest

from tests.helpers.mock_device import MockTuyaDevice
from tuya_lan.device import TuyaDevice
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig

LOCAL_KEY = "0123456789abcdef"
DEVICE_ID = "bf1234567890abcdefgh"


@pytest.fixture
async def mock_device() -> AsyncGenerator[MockTuyaDevice]:
    """Mock protocol 3.3 plug with a relay (dps 1) and a countdown (dps 2)."""
    device = MockTuyaDevice(LOCAL_KEY, DEVICE_ID, version="3.3", dps={"1": False, "2": 10})
    await device.start()
    yield device
    await device.stop()


@pytest.fixture
def device_factory() -> Callable[..., TuyaDevice]:
    """Build a TuyaDevice with short deadlines pointed at a mock device."""

    def build(mock: MockTuyaDevice, **overrides: object) -> TuyaDevice:
        params: dict[str, object] = {
            "ip": mock.host,
            "port": mock.port,
            "id": mock.device_id,
            "key": LOCAL_KEY,
            "version": mock.codec.version,
            "timeout_config": TimeoutConfig(
                connect_timeout_seconds=1.0,
                response_timeout_seconds=0.2,
                heartbeat_interval_seconds=60.0,
            ),
            "retry_policy": RetryPolicy(max_attempts=2, base_delay_seconds=0.01, jitter_factor=0.0),
        }
        params.update(overrides)
        return TuyaDevice(**params)  # type: ignore[arg-type]

    return build
