"""Unit tests for DeviceConfig validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tests.helpers.expectations import expect_exception
from tuya_lan.config import ConfigError, DeviceConfig
from tuya_lan.device import TuyaDevice
from tuya_lan.discovery.listener import DiscoveredDevice

LOCAL_KEY = "0123456789abcdef"
DEVICE_ID = "bf1234567890abcdefgh"
DEVICE_IP = "192.0.2.20"


class TestDeviceConfigValidation:
    """Field checks applied at construction."""

    def test_defaults(self) -> None:
        config = DeviceConfig.create(id=DEVICE_ID, key=LOCAL_KEY)
        assert config.port == 6668
        assert config.version == "3.1"
        assert config.gw_id == DEVICE_ID
        assert config.ip is None

    def test_explicit_gateway_kept(self) -> None:
        assert DeviceConfig.create(id=DEVICE_ID, gw_id="gateway", key=LOCAL_KEY).gw_id == "gateway"

    def test_requires_id_or_ip(self) -> None:
        error = expect_exception(DeviceConfig.create, ConfigError, key=LOCAL_KEY)
        assert "ID and IP are missing" in error.reason

    def test_empty_strings_count_as_missing(self) -> None:
        expect_exception(DeviceConfig.create, ConfigError, id="", ip=" ", key=LOCAL_KEY)

    @pytest.mark.parametrize("key", ["", "short", LOCAL_KEY + "x", "€" * 16])
    def test_key_length(self, key: str) -> None:
        error = expect_exception(DeviceConfig.create, ConfigError, id=DEVICE_ID, key=key)
        assert "key" in error.reason

    def test_non_latin1_key_rejected_by_device(self) -> None:
        """Test a 16-character key the cipher cannot encode fails as ConfigError."""
        error = expect_exception(TuyaDevice, ConfigError, id=DEVICE_ID, ip=DEVICE_IP, key="€" * 16)
        assert "latin-1" in error.reason

    def test_invalid_ip(self) -> None:
        error = expect_exception(DeviceConfig.create, ConfigError, ip="not-an-ip", key=LOCAL_KEY)
        assert error.reason.startswith("ip")

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_range(self, port: int) -> None:
        expect_exception(DeviceConfig.create, ConfigError, ip=DEVICE_IP, port=port, key=LOCAL_KEY)

    @pytest.mark.parametrize(("version", "expected"), [(3.3, "3.3"), ("3.4", "3.4"), (3.2, "3.2")])
    def test_version_normalized(self, version: object, expected: str) -> None:
        assert DeviceConfig.create(ip=DEVICE_IP, key=LOCAL_KEY, version=version).version == expected

    @pytest.mark.parametrize("version", ["3.5", "2.0", 3])
    def test_unsupported_version(self, version: object) -> None:
        error = expect_exception(DeviceConfig.create, ConfigError, ip=DEVICE_IP, key=LOCAL_KEY, version=version)
        assert "unsupported protocol version" in error.reason

    def test_direct_construction_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            DeviceConfig(key=LOCAL_KEY)

    def test_immutable(self) -> None:
        config = DeviceConfig.create(id=DEVICE_ID, key=LOCAL_KEY)
        with pytest.raises(ValidationError):
            config.ip = DEVICE_IP  # type: ignore[misc]


class TestAdopt:
    """Applying discovery results."""

    def test_adopts_broadcast_fields(self) -> None:
        config = DeviceConfig.create(id=DEVICE_ID, key=LOCAL_KEY, port=7000)
        device = DiscoveredDevice(id=DEVICE_ID, ip=DEVICE_IP, product_key="keyabc", version="3.3")

        updated = config.adopt(device)

        assert updated.ip == DEVICE_IP
        assert updated.version == "3.3"
        assert updated.product_key == "keyabc"
        assert updated.port == 7000
        assert updated.key == LOCAL_KEY
        assert config.ip is None

    def test_unsupported_broadcast_version_ignored(self) -> None:
        config = DeviceConfig.create(ip=DEVICE_IP, key=LOCAL_KEY, version="3.3")
        device = DiscoveredDevice(id=DEVICE_ID, ip=DEVICE_IP, version="3.5")

        updated = config.adopt(device)

        assert updated.version == "3.3"
        assert updated.id == DEVICE_ID
        assert updated.gw_id == DEVICE_ID

    def test_keeps_product_key_when_broadcast_has_none(self) -> None:
        config = DeviceConfig.create(ip=DEVICE_IP, key=LOCAL_KEY, product_key="configured")
        updated = config.adopt(DiscoveredDevice(id=DEVICE_ID, ip=DEVICE_IP))
        assert updated.product_key == "configured"
        assert updated.version == "3.1"
