"""Passive UDP discovery of Tuya devices.

Devices broadcast a status frame on UDP 6666 (plaintext, protocol 3.1) or
6667 (encrypted with the shared UDP key, 3.3+). The listener decodes each
datagram with the discovery codec and collects the advertised devices.
"""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import socket
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tuya_lan import const
from tuya_lan.discovery.exceptions import DiscoveryTimeoutError
from tuya_lan.logging_abstraction import get_logger
from tuya_lan.metrics import registry
from tuya_lan.protocol.tuya_protocol import TuyaProtocol

if TYPE_CHECKING:
    from tuya_lan.config import DeviceConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscoveredDevice:
    """A device seen on the network; identity is (id, ip)."""

    id: str
    ip: str
    product_key: str | None = field(default=None, compare=False)
    version: str | None = field(default=None, compare=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DiscoveredDevice | None:
        """Build from a broadcast document; None when gwId or ip is missing or ip is malformed."""
        device_id = payload.get("gwId")
        ip = payload.get("ip")
        if not isinstance(device_id, str) or not isinstance(ip, str) or not device_id or not ip:
            return None
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            return None
        version = payload.get("version")
        product_key = payload.get("productKey")
        return cls(
            id=device_id,
            ip=ip,
            product_key=product_key if isinstance(product_key, str) else None,
            version=str(version) if version is not None else None,
        )

    def matches(self, config: DeviceConfig) -> bool:
        return (config.id is not None and config.id == self.id) or (config.ip is not None and config.ip == self.ip)


class DiscoverySession:
    """Deduplicated set of devices seen during one discovery run, in arrival order."""

    def __init__(self) -> None:
        self._devices: dict[DiscoveredDevice, DiscoveredDevice] = {}

    def add(self, device: DiscoveredDevice) -> bool:
        """Record a device; returns False if (id, ip) was already seen."""
        if device in self._devices:
            return False
        self._devices[device] = device
        return True

    @property
    def devices(self) -> list[DiscoveredDevice]:
        return list(self._devices)

    def __len__(self) -> int:
        return len(self._devices)


class DiscoveryProtocol(asyncio.DatagramProtocol):
    """Decodes broadcasts and reports every advertised device."""

    def __init__(
        self,
        codec: TuyaProtocol,
        on_device: Callable[[DiscoveredDevice], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        self.codec = codec
        self.on_device = on_device
        self.on_error = on_error

    def datagram_received(self, data: bytes, addr: tuple[str | Any, int]) -> None:
        packets = self.codec.decode(data)
        if not packets:
            registry.record_discovery_datagram("undecodable")
            logger.debug("Ignoring undecodable datagram from %s", addr[0], extra={"size": len(data)})
            return

        for packet in packets:
            device = DiscoveredDevice.from_payload(packet.payload) if packet.is_document else None
            if device is None:
                registry.record_discovery_datagram("ignored")
                logger.debug("Ignoring broadcast without gwId/ip from %s", addr[0])
                continue
            registry.record_discovery_datagram("device")
            self.on_device(device)

    def error_received(self, exc: Exception) -> None:
        logger.warning("Discovery socket error: %s", exc, extra={"error_type": type(exc).__name__})
        self.on_error(exc)


class DiscoveryListener:
    """Listens for device broadcasts to resolve a missing id or ip.

    Example:
        listener = DiscoveryListener()
        config = await listener.find(DeviceConfig(id="bf...", key="0123456789abcdef"))
        print(config.ip)

    """

    def __init__(self, port: int | None = None, host: str = "0.0.0.0", codec: TuyaProtocol | None = None) -> None:  # noqa: S104
        """Initialize listener.

        Args:
            port: UDP port to bind (default: TUYA_DISCOVERY_PORT, 6666)
            host: Local address to bind
            codec: Datagram codec (default: TuyaProtocol.for_discovery())

        """
        self.port = const.DISCOVERY_PORT if port is None else port
        self.host = host
        self.codec = codec or TuyaProtocol.for_discovery()

    def _open_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                with contextlib.suppress(OSError):
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            sock.bind((self.host, self.port))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        return sock

    async def find(
        self,
        config: DeviceConfig,
        timeout: float | None = None,
        all_devices: bool = False,
        session: DiscoverySession | None = None,
    ) -> DeviceConfig | list[DiscoveredDevice]:
        """Listen for broadcasts until the configured device is heard.

        Args:
            config: Device whose id or ip is being resolved
            timeout: Listening window in seconds (default: TUYA_DISCOVERY_TIMEOUT, 10s)
            all_devices: Keep listening for the whole window and return every device seen
            session: Collects every device seen (a fresh one if None)

        Returns:
            The config with the broadcast's ip/id/product key/version adopted (the
            config itself when id and ip are already known), or with
            ``all_devices`` the list of devices seen

        Raises:
            DiscoveryTimeoutError: Timeout without a match (only without all_devices)
            OSError: Socket could not be bound or failed while listening

        """
        if config.id and config.ip:
            logger.debug("IP and ID are already both resolved", extra={"device_id": config.id})
            return config

        timeout = const.TUYA_DISCOVERY_TIMEOUT if timeout is None else timeout
        session = session if session is not None else DiscoverySession()
        loop = asyncio.get_running_loop()
        matched: asyncio.Future[DiscoveredDevice] = loop.create_future()

        def on_device(device: DiscoveredDevice) -> None:
            if session.add(device):
                logger.info(
                    "Discovered device %s at %s",
                    device.id,
                    device.ip,
                    extra={"device_id": device.id, "ip": device.ip, "version": device.version},
                )
            if not all_devices and not matched.done() and device.matches(config):
                matched.set_result(device)

        def on_error(exc: Exception) -> None:
            if not matched.done():
                matched.set_exception(exc)

        logger.info(
            "Listening for broadcasts on UDP %d (timeout: %.1fs)",
            self.port,
            timeout,
            extra={"port": self.port, "all_devices": all_devices},
        )
        sock = self._open_socket()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: DiscoveryProtocol(self.codec, on_device, on_error),
                sock=sock,
            )
        except OSError:
            sock.close()
            raise

        try:
            device = await asyncio.wait_for(matched, timeout=timeout)
        except TimeoutError:
            if all_devices:
                return session.devices
            raise DiscoveryTimeoutError(timeout) from None
        finally:
            transport.close()

        return config.adopt(device)
