"""Asyncio client for the Tuya local network protocol."""

__version__ = "0.3.0"

from tuya_lan.config import ConfigError, DeviceConfig  # noqa: E402
from tuya_lan.device import TuyaDevice  # noqa: E402
from tuya_lan.discovery import DiscoveredDevice, DiscoveryTimeoutError  # noqa: E402
from tuya_lan.protocol import CipherError, Command, CorruptPacketError, Packet, TuyaProtocol, TuyaProtocolError  # noqa: E402
from tuya_lan.transport import (  # noqa: E402
    ConnectError,
    ConnectTimeoutError,
    DeviceEvent,
    EventType,
    NotConnectedError,
    RequestFailedError,
)

__all__ = [
    "CipherError",
    "Command",
    "ConfigError",
    "ConnectError",
    "ConnectTimeoutError",
    "CorruptPacketError",
    "DeviceConfig",
    "DeviceEvent",
    "DiscoveredDevice",
    "DiscoveryTimeoutError",
    "EventType",
    "NotConnectedError",
    "Packet",
    "RequestFailedError",
    "TuyaDevice",
    "TuyaProtocol",
    "TuyaProtocolError",
    "__version__",
]
