"""Device discovery for Tuya devices on the local network."""

from tuya_lan.discovery.exceptions import DiscoveryTimeoutError
from tuya_lan.discovery.listener import DiscoveredDevice, DiscoveryListener, DiscoveryProtocol, DiscoverySession

__all__ = [
    "DiscoveredDevice",
    "DiscoveryListener",
    "DiscoveryProtocol",
    "DiscoverySession",
    "DiscoveryTimeoutError",
]
