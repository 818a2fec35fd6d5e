"""TCP transport: connection lifecycle, request correlation and events."""

from tuya_lan.transport.connection_manager import ConnectionManager, ConnectionState
from tuya_lan.transport.events import DeviceEvent, EventStream, EventType
from tuya_lan.transport.exceptions import ConnectError, ConnectTimeoutError, NotConnectedError, RequestFailedError
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig
from tuya_lan.transport.socket_abstraction import TCPConnection

__all__ = [
    "ConnectError",
    "ConnectTimeoutError",
    "ConnectionManager",
    "ConnectionState",
    "DeviceEvent",
    "EventStream",
    "EventType",
    "NotConnectedError",
    "RequestFailedError",
    "RetryPolicy",
    "TCPConnection",
    "TimeoutConfig",
]
