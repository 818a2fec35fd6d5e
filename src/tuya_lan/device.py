"""High-level device API: get/set/toggle over one connection, plus discovery."""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import Any

from tuya_lan.config import DeviceConfig
from tuya_lan.const import DEFAULT_PORT, DEFAULT_VERSION
from tuya_lan.discovery.listener import DiscoveredDevice, DiscoveryListener, DiscoverySession
from tuya_lan.instrumentation import timed_async
from tuya_lan.logging_abstraction import get_logger
from tuya_lan.protocol.packet_types import Command
from tuya_lan.protocol.tuya_protocol import TuyaProtocol
from tuya_lan.transport.connection_manager import ConnectionManager
from tuya_lan.transport.events import EventHandler, EventStream
from tuya_lan.transport.exceptions import ConnectError
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig
from tuya_lan.transport.socket_abstraction import TCPConnection

logger = get_logger(__name__)

DEFAULT_DPS = "1"


class TuyaDevice:
    """One Tuya device reachable on the local network.

    Example:
        device = TuyaDevice(id="bf0123456789abcdef", key="0123456789abcdef", version="3.3")
        await device.find()
        await device.connect()
        print(await device.get(schema=True))
        await device.set(True)
        await device.disconnect()

    Events (``subscribe()`` or ``events.listen()``): CONNECTED, DISCONNECTED,
    DATA (payload, command, sequence) and ERROR (error).
    """

    def __init__(
        self,
        ip: str | None = None,
        port: int = DEFAULT_PORT,
        id: str | None = None,  # noqa: A002
        gw_id: str | None = None,
        key: str = "",
        product_key: str | None = None,
        version: str | float = DEFAULT_VERSION,
        *,
        timeout_config: TimeoutConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        discovery: DiscoveryListener | None = None,
    ) -> None:
        """Validate configuration and prepare (but do not open) the connection.

        Raises:
            ConfigError: id and ip both missing, key not 16 characters, bad ip or version

        """
        self.config: DeviceConfig = DeviceConfig.create(
            ip=ip,
            port=port,
            id=id,
            gw_id=gw_id,
            key=key,
            product_key=product_key,
            version=version,
        )
        self.events: EventStream = EventStream()
        self.found_devices: list[DiscoveredDevice] = []
        self.discovery: DiscoveryListener = discovery or DiscoveryListener()

        self.codec: TuyaProtocol = self._build_codec()
        self.connection: ConnectionManager = ConnectionManager(
            TCPConnection(self.config.ip or "", self.config.port),
            self.codec,
            device_id=self._label,
            timeout_config=timeout_config,
            retry_policy=retry_policy,
            events=self.events,
            priming_request=self._query_frame,
        )

    @property
    def _label(self) -> str:
        return self.config.id or self.config.ip or "unknown"

    def _build_codec(self) -> TuyaProtocol:
        return TuyaProtocol(self.config.key, self.config.version, device_id=self._label)

    def _query_frame(self) -> bytes:
        return self.codec.encode({"gwId": self.config.gw_id, "devId": self.config.id}, Command.DP_QUERY)

    def _apply_config(self, config: DeviceConfig) -> None:
        previous = self.config
        self.config = config
        self.connection.conn.host = config.ip or ""
        self.connection.device_id = self._label
        if config.version != previous.version:
            logger.info(
                "Protocol version changed from %s to %s",
                previous.version,
                config.version,
                extra={"device_id": self._label},
            )
            self.codec = self._build_codec()
            self.connection.protocol = self.codec

    def _merge_found(self, devices: list[DiscoveredDevice]) -> None:
        for device in devices:
            if device not in self.found_devices:
                self.found_devices.append(device)

    async def connect(self) -> bool:
        """Connect (no-op when already connected) and query current state.

        Raises:
            ConnectError: IP unknown, connection refused or unreachable
            ConnectTimeoutError: Connect timed out

        """
        if self.config.ip is None:
            raise ConnectError("", self.config.port, "IP unknown, call find() first")
        return await self.connection.connect()

    async def disconnect(self) -> None:
        await self.connection.disconnect()

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register an event handler; returns a callable that unsubscribes it."""
        return self.events.subscribe(handler)

    @timed_async("tuya_get")
    async def get(self, dps: int | str | None = None, schema: bool = False) -> Any:
        """Query device state.

        Args:
            dps: Data point to return (default "1")
            schema: Return the whole status document instead of one data point

        Returns:
            The data point value, the whole document with ``schema``, or None when
            the device replied with something other than a status document

        """
        payload = await self.connection.send(self._query_frame())
        if not isinstance(payload, dict):
            logger.warning(
                "Status reply is not a document",
                extra={"device_id": self._label, "payload_type": type(payload).__name__},
            )
            return None
        if schema:
            return payload
        dps_map = payload.get("dps")
        if not isinstance(dps_map, dict):
            logger.warning("Status reply has no dps", extra={"device_id": self._label})
            return None
        return dps_map.get(DEFAULT_DPS if dps is None else str(dps))

    @timed_async("tuya_set")
    async def set(
        self,
        value: Any = None,
        dps: int | str | None = None,
        data: Mapping[int | str, Any] | None = None,
    ) -> Any:
        """Write one data point, or several at once with ``data``.

        Returns:
            The device's reply payload (often empty for a plain acknowledgement)

        Raises:
            ValueError: Neither value nor data given

        """
        if value is None and not data:
            msg = "set() needs a value or data"
            raise ValueError(msg)

        if data:
            dps_map = {str(k): v for k, v in data.items()}
        else:
            dps_map = {DEFAULT_DPS if dps is None else str(dps): value}
        payload = {
            "devId": self.config.id,
            "gwId": self.config.gw_id,
            "uid": "",
            "t": int(time.time()),
            "dps": dps_map,
        }
        logger.debug("Setting %s", dps_map, extra={"device_id": self._label})
        return await self.connection.send(self.codec.encode(payload, Command.CONTROL, encrypted=True))

    @timed_async("tuya_toggle")
    async def toggle(self, dps: int | str = DEFAULT_DPS) -> Any:
        """Invert a boolean data point and return its new value.

        Not atomic: another client may change the value between the read and the write.
        """
        current = await self.get(dps=dps)
        await self.set(value=not current, dps=dps)
        return await self.get(dps=dps)

    @timed_async("tuya_find")
    async def find(self, timeout: float | None = None, all_devices: bool = False) -> bool | list[DiscoveredDevice]:
        """Resolve a missing id or ip from UDP broadcasts.

        Returns:
            True once the device is resolved (immediately when id and ip are known),
            or with ``all_devices`` every device seen so far

        Raises:
            DiscoveryTimeoutError: Timeout without a match (only without all_devices)

        """
        session = DiscoverySession()
        try:
            result = await self.discovery.find(self.config, timeout=timeout, all_devices=all_devices, session=session)
        finally:
            self._merge_found(session.devices)

        if isinstance(result, list):
            return list(self.found_devices)
        if result != self.config:
            self._apply_config(result)
        return True

    def __repr__(self) -> str:
        return f"TuyaDevice(id={self.config.id}, ip={self.config.ip}, version={self.config.version})"
