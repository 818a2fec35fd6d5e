"""Unit tests for the TuyaDevice facade over an in-memory connection."""

from __future__ import annotations

import time
from typing import Any

import pytest

from tests.helpers.expectations import expect_async_exception
from tests.helpers.fakes import FakeConnection
from tuya_lan.config import ConfigError, DeviceConfig
from tuya_lan.device import TuyaDevice
from tuya_lan.discovery.exceptions import DiscoveryTimeoutError
from tuya_lan.discovery.listener import DiscoveredDevice, DiscoveryListener, DiscoverySession
from tuya_lan.protocol.packet_types import Command
from tuya_lan.protocol.tuya_protocol import TuyaProtocol
from tuya_lan.transport.events import DeviceEvent, EventType
from tuya_lan.transport.exceptions import ConnectError
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig

# Test constants
LOCAL_KEY = "0123456789abcdef"
DEVICE_ID = "bf1234567890abcdefgh"
DEVICE_IP = "192.0.2.10"
OTHER_DEVICE = DiscoveredDevice(id="bf0000000000otherdev", ip="192.0.2.99", version="3.1")


class ScriptedDevice:
    """Answers DP_QUERY with the current dps and applies CONTROL writes."""

    def __init__(self, conn: FakeConnection, codec: TuyaProtocol, dps: dict[str, Any]) -> None:
        self.conn = conn
        self.codec = codec
        self.dps = dict(dps)
        self.controls: list[dict[str, Any]] = []
        self.query_reply: Any = None
        conn.on_send = self.handle

    def handle(self, frame: bytes) -> None:
        packet = self.codec.decode_frame(frame)
        if packet.command == Command.CONTROL:
            self.controls.append(packet.payload)
            self.dps.update(packet.payload["dps"])
            self.conn.feed(self.codec.encode(None, Command.CONTROL, sequence=packet.sequence, return_code=0))
        elif packet.command == Command.DP_QUERY:
            reply = self.query_reply if self.query_reply is not None else {"devId": DEVICE_ID, "dps": self.dps}
            self.conn.feed(self.codec.encode(reply, Command.DP_QUERY, sequence=packet.sequence, return_code=0))


class StubListener(DiscoveryListener):
    """Discovery listener that reports a fixed set of broadcasts."""

    def __init__(self, devices: list[DiscoveredDevice]) -> None:
        super().__init__(port=0)
        self.devices = devices
        self.calls = 0

    async def find(
        self,
        config: DeviceConfig,
        timeout: float | None = None,
        all_devices: bool = False,
        session: DiscoverySession | None = None,
    ) -> DeviceConfig | list[DiscoveredDevice]:
        self.calls += 1
        if config.id and config.ip:
            return config
        session = session if session is not None else DiscoverySession()
        for device in self.devices:
            session.add(device)
        if all_devices:
            return session.devices
        for device in self.devices:
            if device.matches(config):
                return config.adopt(device)
        raise DiscoveryTimeoutError(timeout or 0.0)


def make_device(**overrides: Any) -> tuple[TuyaDevice, FakeConnection]:
    params: dict[str, Any] = {"ip": DEVICE_IP, "id": DEVICE_ID, "key": LOCAL_KEY, "version": "3.3"}
    params.update(overrides)
    device = TuyaDevice(
        **params,
        timeout_config=TimeoutConfig(response_timeout_seconds=0.1, heartbeat_interval_seconds=60.0),
        retry_policy=RetryPolicy(max_attempts=2, base_delay_seconds=0.0, jitter_factor=0.0),
    )
    conn = FakeConnection(host=device.config.ip or "", port=device.config.port)
    device.connection.conn = conn
    return device, conn


class TestConstruction:
    def test_invalid_config_raises(self) -> None:
        with pytest.raises(ConfigError):
            TuyaDevice(key=LOCAL_KEY)

    def test_float_version_accepted(self) -> None:
        device, _ = make_device(version=3.3)
        assert device.config.version == "3.3"
        assert device.codec.version == "3.3"

    def test_repr(self) -> None:
        device, _ = make_device()
        assert repr(device) == f"TuyaDevice(id={DEVICE_ID}, ip={DEVICE_IP}, version=3.3)"


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_requires_ip(self) -> None:
        device, _ = make_device(ip=None)

        error = await expect_async_exception(device.connect, ConnectError)

        assert "find()" in error.reason

    @pytest.mark.asyncio
    async def test_connect_primes_state(self) -> None:
        device, conn = make_device()
        ScriptedDevice(conn, device.codec, {"1": True})
        events: list[DeviceEvent] = []
        device.subscribe(events.append)

        assert await device.connect() is True

        assert device.is_connected()
        assert [e.type for e in events] == [EventType.CONNECTED, EventType.DATA]
        assert events[1].payload["dps"] == {"1": True}
        query = device.codec.decode_frame(conn.sent[0]).payload
        assert query == {"gwId": DEVICE_ID, "devId": DEVICE_ID}
        await device.disconnect()
        assert not device.is_connected()


class TestGetSet:
    """get()/set()/toggle() over a scripted device."""

    @pytest.mark.asyncio
    async def test_get_default_and_numbered_dps(self) -> None:
        device, conn = make_device()
        ScriptedDevice(conn, device.codec, {"1": True, "2": 42})
        await device.connect()

        assert await device.get() is True
        assert await device.get(dps=2) == 42
        assert await device.get(dps="9") is None
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_get_schema_returns_document(self) -> None:
        device, conn = make_device()
        ScriptedDevice(conn, device.codec, {"1": False})
        await device.connect()

        assert await device.get(schema=True) == {"devId": DEVICE_ID, "dps": {"1": False}}
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_get_non_document_reply(self) -> None:
        device, conn = make_device()
        scripted = ScriptedDevice(conn, device.codec, {"1": True})
        await device.connect()

        scripted.query_reply = "json obj data unvalid"
        assert await device.get() is None
        scripted.query_reply = {"devId": DEVICE_ID}
        assert await device.get() is None
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_set_writes_control_document(self) -> None:
        device, conn = make_device()
        scripted = ScriptedDevice(conn, device.codec, {"1": True})
        await device.connect()
        before = int(time.time())

        assert await device.set(False) == b""

        [control] = scripted.controls
        assert control["devId"] == DEVICE_ID
        assert control["gwId"] == DEVICE_ID
        assert control["uid"] == ""
        assert control["dps"] == {"1": False}
        assert before <= control["t"] <= int(time.time())
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_set_multiple_dps(self) -> None:
        device, conn = make_device()
        scripted = ScriptedDevice(conn, device.codec, {})
        await device.connect()

        await device.set(data={1: True, "3": 255})

        assert scripted.controls[0]["dps"] == {"1": True, "3": 255}
        assert scripted.dps == {"1": True, "3": 255}
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_data_point_zero_is_not_the_default(self) -> None:
        device, conn = make_device()
        scripted = ScriptedDevice(conn, device.codec, {"0": "zero", "1": True})
        await device.connect()

        assert await device.get(dps=0) == "zero"
        await device.set(7, dps=0)

        assert scripted.controls[-1]["dps"] == {"0": 7}
        assert scripted.dps == {"0": 7, "1": True}
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_set_requires_value(self) -> None:
        device, _ = make_device()
        with pytest.raises(ValueError, match="value or data"):
            await device.set()

    @pytest.mark.asyncio
    async def test_set_on_v31_uses_base64_envelope(self) -> None:
        device, conn = make_device(version="3.1")
        scripted = ScriptedDevice(conn, device.codec, {"1": True})
        await device.connect()

        await device.set(False, dps=1)

        control_frame = next(f for f in conn.sent if device.codec.decode_frame(f).command == Command.CONTROL)
        assert control_frame[16:19] == b"3.1"
        assert scripted.dps == {"1": False}
        await device.disconnect()

    @pytest.mark.asyncio
    async def test_toggle_inverts_value(self) -> None:
        device, conn = make_device()
        scripted = ScriptedDevice(conn, device.codec, {"1": True})
        await device.connect()

        assert await device.toggle() is False
        assert scripted.dps["1"] is False
        assert await device.toggle() is True
        await device.disconnect()


class TestFind:
    """find() applying discovery results."""

    @pytest.mark.asyncio
    async def test_find_resolves_ip_and_version(self) -> None:
        broadcast = DiscoveredDevice(id=DEVICE_ID, ip="192.0.2.55", version="3.4")
        device, _ = make_device(ip=None, version="3.3")
        device.discovery = StubListener([OTHER_DEVICE, broadcast])
        old_codec = device.codec

        assert await device.find() is True

        assert device.config.ip == "192.0.2.55"
        assert device.config.version == "3.4"
        assert device.codec is not old_codec
        assert device.connection.protocol is device.codec
        assert device.connection.conn.host == "192.0.2.55"
        assert device.found_devices == [OTHER_DEVICE, broadcast]

    @pytest.mark.asyncio
    async def test_find_keeps_codec_when_version_unchanged(self) -> None:
        device, _ = make_device(ip=None, version="3.3")
        device.discovery = StubListener([DiscoveredDevice(id=DEVICE_ID, ip="192.0.2.55", version="3.3")])
        old_codec = device.codec

        await device.find()

        assert device.codec is old_codec

    @pytest.mark.asyncio
    async def test_find_all_devices(self) -> None:
        device, _ = make_device(ip=None)
        device.discovery = StubListener([OTHER_DEVICE])

        assert await device.find(all_devices=True) == [OTHER_DEVICE]
        assert device.config.ip is None

    @pytest.mark.asyncio
    async def test_find_timeout_still_records_devices(self) -> None:
        device, _ = make_device(ip=None)
        device.discovery = StubListener([OTHER_DEVICE])

        await expect_async_exception(device.find, DiscoveryTimeoutError, timeout=0.01)

        assert device.found_devices == [OTHER_DEVICE]

    @pytest.mark.asyncio
    async def test_find_when_resolved_returns_true(self) -> None:
        device, _ = make_device()
        listener = StubListener([])
        device.discovery = listener

        assert await device.find() is True
        assert listener.calls == 1
