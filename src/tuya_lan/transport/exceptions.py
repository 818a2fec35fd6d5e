"""Custom exception types for transport layer errors.

This module defines the exception hierarchy for connection and request
errors, extending the protocol exceptions.
"""

from __future__ import annotations

from tuya_lan.protocol.exceptions import TuyaProtocolError


class ConnectError(TuyaProtocolError):
    """TCP connection to the device could not be established.

    Raised when the socket is refused, the host is unreachable, or the
    connect attempt times out (see ConnectTimeoutError).

    Attributes:
        host: Device address
        port: Device TCP port
        reason: Specific failure reason
    """

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Connection to {host}:{port} failed: {reason}")


class ConnectTimeoutError(ConnectError):
    """Connect attempt exceeded the connect timeout.

    Attributes:
        timeout_seconds: Timeout value that was exceeded
    """

    def __init__(self, host: str, port: int, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(host, port, f"timeout after {timeout_seconds}s")


class NotConnectedError(TuyaProtocolError):
    """Request issued while the connection is not CONNECTED.

    Note: Named NotConnectedError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        state: Connection state when error occurred
    """

    def __init__(self, state: str = "unknown"):
        self.state = state
        super().__init__(f"Not connected (state: {state})")


class RequestFailedError(TuyaProtocolError):
    """No response arrived within any of the allowed attempts.

    Attributes:
        attempts: Number of attempts made
        correlation_id: Correlation ID for observability
    """

    def __init__(self, attempts: int, correlation_id: str = ""):
        self.attempts = attempts
        self.correlation_id = correlation_id
        super().__init__(f"No response after {attempts} attempts")
