"""Asyncio TCP socket abstraction with deadlines and instrumentation."""

from __future__ import annotations

import asyncio
import time

from tuya_lan.logging_abstraction import get_logger
from tuya_lan.transport.exceptions import ConnectError, ConnectTimeoutError

logger = get_logger(__name__)


class TCPConnection:
    """Async TCP connection with timeouts and instrumentation."""

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        io_timeout: float = 5.0,
        max_read_size: int = 65536,
    ):
        """
        Initialize TCP connection parameters.

        Args:
            host: Device address
            port: Device TCP port
            connect_timeout: Connection timeout in seconds
            io_timeout: Write (drain) timeout in seconds
            max_read_size: Maximum bytes to read in one operation
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.max_read_size = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected = False

    def _log_extra(self, start_time: float, **context: object) -> dict[str, object]:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        return {"host": self.host, "port": self.port, "elapsed_ms": round(elapsed_ms, 1), **context}

    async def connect(self) -> None:
        """
        Establish TCP connection with timeout.

        Raises:
            ConnectTimeoutError: Connect did not complete within connect_timeout
            ConnectError: Connection refused or host unreachable
        """
        start_time = time.perf_counter()
        logger.info(
            "Connecting to %s:%d (timeout: %.1fs)",
            self.host,
            self.port,
            self.connect_timeout,
            extra={"host": self.host, "port": self.port, "timeout": self.connect_timeout},
        )
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except TimeoutError as e:
            logger.warning(
                "Connection to %s:%d timed out",
                self.host,
                self.port,
                extra=self._log_extra(start_time, error="timeout"),
            )
            raise ConnectTimeoutError(self.host, self.port, self.connect_timeout) from e
        except OSError as e:
            logger.warning(
                "Connection to %s:%d failed: %s",
                self.host,
                self.port,
                e,
                extra=self._log_extra(start_time, error=str(e)),
            )
            raise ConnectError(self.host, self.port, str(e) or type(e).__name__) from e

        self._connected = True
        logger.info(
            "Connected to %s:%d",
            self.host,
            self.port,
            extra=self._log_extra(start_time),
        )

    async def send(self, data: bytes) -> bool:
        """
        Write data and wait for the buffer to drain.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._connected or not self.writer:
            logger.error(
                "Cannot send: not connected",
                extra={"host": self.host, "port": self.port},
            )
            return False

        start_time = time.perf_counter()
        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
        except TimeoutError:
            logger.warning(
                "Send to %s:%d timed out",
                self.host,
                self.port,
                extra=self._log_extra(start_time, error="timeout", bytes=len(data)),
            )
            return False
        except OSError as e:
            logger.warning(
                "Send to %s:%d failed: %s",
                self.host,
                self.port,
                e,
                extra=self._log_extra(start_time, error=str(e), bytes=len(data)),
            )
            return False

        logger.debug(
            "Sent %d bytes to %s:%d",
            len(data),
            self.host,
            self.port,
            extra=self._log_extra(start_time, bytes=len(data)),
        )
        return True

    async def recv(self, max_bytes: int | None = None) -> bytes:
        """
        Wait for inbound bytes (no deadline; devices may stay idle).

        Returns:
            Received bytes, or b"" once the peer closed the connection

        Raises:
            OSError: Socket error while reading
        """
        if not self._connected or not self.reader:
            return b""

        data = await self.reader.read(max_bytes or self.max_read_size)
        if not data:
            logger.info(
                "Connection closed by %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            self._connected = False
            return b""
        logger.debug(
            "Received %d bytes from %s:%d",
            len(data),
            self.host,
            self.port,
            extra={"bytes": len(data), "host": self.host, "port": self.port},
        )
        return data

    def abort(self) -> None:
        """Drop the connection immediately without flushing."""
        if self.writer is not None:
            self.writer.transport.abort()
        self._connected = False

    async def close(self) -> None:
        """Close the connection."""
        if self.writer is None:
            return
        logger.info(
            "Closing connection to %s:%d",
            self.host,
            self.port,
            extra={"host": self.host, "port": self.port},
        )
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError as e:
            logger.warning(
                "Error closing connection: %s",
                e,
                extra={"host": self.host, "port": self.port, "error_type": type(e).__name__},
            )
        finally:
            self._connected = False
            self.writer = None
            self.reader = None

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
