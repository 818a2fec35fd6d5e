"""Unit tests for transport exception types."""

from tuya_lan.protocol.exceptions import TuyaProtocolError
from tuya_lan.transport.exceptions import (
    ConnectError,
    ConnectTimeoutError,
    NotConnectedError,
    RequestFailedError,
)

HOST = "192.0.2.10"
PORT = 6668


class TestConnectError:
    def test_attributes_and_message(self) -> None:
        error = ConnectError(HOST, PORT, "refused")
        assert (error.host, error.port, error.reason) == (HOST, PORT, "refused")
        assert str(error) == f"Connection to {HOST}:{PORT} failed: refused"
        assert isinstance(error, TuyaProtocolError)

    def test_timeout_is_connect_error(self) -> None:
        """ConnectTimeoutError can be caught as ConnectError."""
        error = ConnectTimeoutError(HOST, PORT, 2.5)
        assert isinstance(error, ConnectError)
        assert error.timeout_seconds == 2.5
        assert "timeout after 2.5s" in str(error)


class TestRequestErrors:
    def test_not_connected_state(self) -> None:
        error = NotConnectedError("connecting")
        assert error.state == "connecting"
        assert "connecting" in str(error)

    def test_not_connected_default_state(self) -> None:
        assert NotConnectedError().state == "unknown"

    def test_request_failed_attributes(self) -> None:
        error = RequestFailedError(5, "0190abcd")
        assert error.attempts == 5
        assert error.correlation_id == "0190abcd"
        assert str(error) == "No response after 5 attempts"
        assert not isinstance(error, TimeoutError)
