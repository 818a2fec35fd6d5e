"""Discovery errors."""

from __future__ import annotations

from tuya_lan.protocol.exceptions import TuyaProtocolError


class DiscoveryTimeoutError(TuyaProtocolError):
    """No matching broadcast was heard before the timeout.

    Attributes:
        timeout_seconds: Listening window that elapsed
    """

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"find() timed out after {timeout_seconds}s. Is the device powered on and the ID or IP correct?",
        )
