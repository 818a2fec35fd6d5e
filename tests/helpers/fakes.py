"""In-memory stand-ins for the TCP connection used by ConnectionManager tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from tuya_lan.transport.exceptions import ConnectError


class FakeConnection:
    """Mimics TCPConnection: records sent frames, replays queued inbound bytes.

    ``feed()`` queues bytes for the packet router; ``close_from_peer()``
    simulates the device closing the socket and ``reset_from_peer()`` a
    transport error surfacing from ``recv()``.
    """

    def __init__(self, host: str = "192.0.2.10", port: int = 6668) -> None:
        self.host = host
        self.port = port
        self.connect_timeout = 5.0
        self.io_timeout = 5.0
        self.sent: list[bytes] = []
        self.connect_calls = 0
        self.connect_error: ConnectError | None = None
        self.connect_delay = 0.0
        self.fail_sends = False
        self.recv_error: OSError | None = None
        self.on_send: Callable[[bytes], None] | None = None
        self._inbound: asyncio.Queue[bytes] = asyncio.Queue()
        self._connected = False

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.recv_error = None
        self._inbound = asyncio.Queue()
        self._connected = True

    async def send(self, data: bytes) -> bool:
        if not self._connected or self.fail_sends:
            return False
        self.sent.append(data)
        if self.on_send is not None:
            self.on_send(data)
        return True

    async def recv(self, max_bytes: int | None = None) -> bytes:
        if not self._connected:
            return b""
        data = await self._inbound.get()
        if self.recv_error is not None:
            self._connected = False
            raise self.recv_error
        if not data:
            self._connected = False
        return data

    def feed(self, data: bytes) -> None:
        self._inbound.put_nowait(data)

    def close_from_peer(self) -> None:
        self._inbound.put_nowait(b"")

    def reset_from_peer(self, error: OSError) -> None:
        self.recv_error = error
        self._inbound.put_nowait(b"")

    def abort(self) -> None:
        if self._connected:
            self._connected = False
            self._inbound.put_nowait(b"")

    async def close(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected
