"""Connection management with state machine, request correlation and heartbeat.

This module implements the ConnectionManager class which owns one TCP
connection to a device: the connect/disconnect lifecycle, the packet router
that turns inbound bytes into events and resolved requests, the heartbeat
task, and the bounded retry loop behind ``send()``.
"""

from __future__ import annotations

import asyncio
import contextlib
import struct
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from tuya_lan import const
from tuya_lan.correlation import correlation_context
from tuya_lan.logging_abstraction import get_logger
from tuya_lan.metrics import registry
from tuya_lan.protocol.exceptions import (
    CipherError,
    CorruptPacketError,
    PacketFramingError,
    TuyaProtocolError,
)
from tuya_lan.protocol.packet_framer import PacketFramer
from tuya_lan.protocol.packet_types import (
    MAX_SEQUENCE,
    SET_ACK_COMMANDS,
    UNSOLICITED_SEQUENCE,
    Command,
    Packet,
    command_name,
)
from tuya_lan.protocol.tuya_protocol import TuyaProtocol
from tuya_lan.transport.events import DeviceEvent, EventStream, EventType
from tuya_lan.transport.exceptions import ConnectError, NotConnectedError, RequestFailedError
from tuya_lan.transport.retry_policy import RetryPolicy, TimeoutConfig
from tuya_lan.transport.socket_abstraction import TCPConnection
from tuya_lan.transport.types import PendingRequest

logger = get_logger(__name__)


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionManager:
    """Manages connection lifecycle, request correlation, heartbeat, and packet routing.

    **Correlation**: every attempt of ``send()`` stamps a fresh sequence on the
    frame and registers a single-use future under it. The packet router
    resolves the future when a response with that sequence arrives. Replies
    with sequence 0 (firmware that does not echo sequences) resolve the
    oldest pending request instead; this is best-effort and may pair an
    unsolicited status push with an unrelated request.

    **Concurrency**: the pending table and sequence counter are only touched
    from the event loop that owns this manager, so they need no lock.
    ``connect()`` is serialized by ``_connect_lock``; in-flight requests are
    bounded by a semaphore so sequence wraparound can never reach a pending
    entry.

    **Task Lifecycle**:
    - The packet router and heartbeat tasks start when the connection reaches CONNECTED
    - Both end on transport close, transport error or ``disconnect()``
    - ``DISCONNECTED`` is emitted exactly once per established connection
    """

    def __init__(
        self,
        connection: TCPConnection,
        protocol: TuyaProtocol,
        *,
        device_id: str = "unknown",
        timeout_config: TimeoutConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        events: EventStream | None = None,
        priming_request: Callable[[], bytes] | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        """Initialize connection manager.

        Args:
            connection: TCP connection abstraction
            protocol: Frame codec for the device's key and version
            device_id: Label for logs and metrics
            timeout_config: Timeout configuration (defaults to TimeoutConfig() if None)
            retry_policy: Attempts and backoff for send() (defaults to RetryPolicy() if None)
            events: Event stream to emit on (a new one if None)
            priming_request: Builds the status query sent right after connecting
            max_in_flight: Maximum concurrent send() calls awaiting a response (default: TUYA_MAX_IN_FLIGHT)

        """
        self.conn: TCPConnection = connection
        self.protocol: TuyaProtocol = protocol
        self.device_id: str = device_id
        self.timeout_config: TimeoutConfig = timeout_config or TimeoutConfig()
        self.retry_policy: RetryPolicy = retry_policy or RetryPolicy()
        self.events: EventStream = events or EventStream()
        self.priming_request: Callable[[], bytes] | None = priming_request

        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self._connect_lock: asyncio.Lock = asyncio.Lock()
        self._in_flight: asyncio.Semaphore = asyncio.Semaphore(
            const.TUYA_MAX_IN_FLIGHT if max_in_flight is None else max_in_flight,
        )
        self.packet_router_task: asyncio.Task[None] | None = None
        self.heartbeat_task: asyncio.Task[None] | None = None

        self.pending: dict[int, PendingRequest] = {}
        self._sequence: int = 0
        self.framer: PacketFramer = PacketFramer()

    def _set_state(self, state: ConnectionState) -> None:
        self.state = state
        registry.record_connection_state(self.device_id, state.value)

    async def connect(self) -> bool:
        """Open the connection, start background tasks and prime device state.

        Returns:
            True once CONNECTED (immediately if already connected)

        Raises:
            ConnectTimeoutError: Connect did not complete within the connect timeout
            ConnectError: Connection refused or host unreachable

        """
        async with self._connect_lock:
            if self.state == ConnectionState.CONNECTED:
                return True

            self._set_state(ConnectionState.CONNECTING)
            self.conn.connect_timeout = self.timeout_config.connect_timeout_seconds
            self.conn.io_timeout = self.timeout_config.send_timeout_seconds
            try:
                await self.conn.connect()
            except ConnectError:
                self.conn.abort()
                self._set_state(ConnectionState.DISCONNECTED)
                raise

            self.framer.reset()
            self._set_state(ConnectionState.CONNECTED)
            logger.info(
                "Connected to device",
                extra={"device_id": self.device_id, "host": self.conn.host, "port": self.conn.port},
            )
            self.events.emit(DeviceEvent(EventType.CONNECTED))
            self.packet_router_task = asyncio.create_task(self._packet_router())
            self.heartbeat_task = asyncio.create_task(self._heartbeat_loop())

        await self._prime()
        return True

    async def _prime(self) -> None:
        """Ask for current state so a DATA event arrives as soon as possible."""
        if self.priming_request is None:
            return
        try:
            await self.send(self.priming_request())
        except TuyaProtocolError as e:
            logger.warning(
                "Initial status query failed: %s",
                e,
                extra={"device_id": self.device_id, "error_type": type(e).__name__},
            )

    def _next_sequence(self) -> int:
        """Allocate the next uint32 sequence, skipping 0 and values still pending."""
        while True:
            self._sequence = (self._sequence + 1) & MAX_SEQUENCE
            if self._sequence != UNSOLICITED_SEQUENCE and self._sequence not in self.pending:
                return self._sequence

    async def send(self, buffer: bytes) -> Any:
        """Send an encoded frame and wait for its correlated response.

        Each attempt restamps the frame with a fresh sequence and waits up to
        the response timeout; attempts are spaced by the retry policy's backoff.

        Args:
            buffer: Frame produced by TuyaProtocol.encode()

        Returns:
            Decoded payload of the matching response

        Raises:
            NotConnectedError: Connection is not CONNECTED
            RequestFailedError: No response within any attempt

        """
        if self.state != ConnectionState.CONNECTED:
            raise NotConnectedError(self.state.value)

        async with self._in_flight:
            with correlation_context() as correlation_id:
                return await self._send_with_retry(buffer, correlation_id or "")

    async def _send_with_retry(self, buffer: bytes, correlation_id: str) -> Any:
        (command,) = struct.unpack_from(">I", buffer, 8)
        command_label = command_name(command)
        max_attempts = self.retry_policy.max_attempts
        response_timeout = self.timeout_config.response_timeout_seconds
        loop = asyncio.get_running_loop()

        for attempt in range(1, max_attempts + 1):
            sequence = self._next_sequence()
            frame = self.protocol.write_sequence(buffer, sequence)
            pending = PendingRequest(
                sequence=sequence,
                future=loop.create_future(),
                correlation_id=correlation_id,
                sent_at=time.perf_counter(),
                attempt=attempt,
            )
            self.pending[sequence] = pending
            log_context = {
                "device_id": self.device_id,
                "command": command_label,
                "sequence": sequence,
                "attempt": attempt,
                "correlation_id": correlation_id,
            }

            try:
                if await self.conn.send(frame):
                    registry.record_packet_sent(self.device_id, command_label, "sent")
                    logger.debug("Request sent", extra=log_context)
                    try:
                        payload = await asyncio.wait_for(pending.future, timeout=response_timeout)
                    except TimeoutError:
                        registry.record_response_timeout(self.device_id)
                        logger.warning(
                            "No response within %.1fs (attempt %d/%d)",
                            response_timeout,
                            attempt,
                            max_attempts,
                            extra=log_context,
                        )
                    else:
                        registry.record_request_latency(self.device_id, time.perf_counter() - pending.sent_at)
                        return payload
                else:
                    registry.record_packet_sent(self.device_id, command_label, "failed")
                    logger.warning("Request write failed (attempt %d/%d)", attempt, max_attempts, extra=log_context)
            finally:
                self.pending.pop(sequence, None)

            if attempt < max_attempts:
                registry.record_retry_attempt(self.device_id, attempt + 1)
                await asyncio.sleep(self.retry_policy.get_delay(attempt - 1))

        registry.record_request_abandoned(self.device_id, "no_response")
        logger.error(
            "Request abandoned after %d attempts",
            max_attempts,
            extra={"device_id": self.device_id, "command": command_label, "correlation_id": correlation_id},
        )
        raise RequestFailedError(max_attempts, correlation_id)

    async def _heartbeat_loop(self) -> None:
        """Send HEART_BEAT on every tick; replies are never awaited."""
        interval = self.timeout_config.heartbeat_interval_seconds
        while self.state == ConnectionState.CONNECTED:
            await asyncio.sleep(interval)
            if self.state != ConnectionState.CONNECTED:
                return
            frame = self.protocol.encode(None, Command.HEART_BEAT, sequence=self._next_sequence())
            if await self.conn.send(frame):
                registry.record_heartbeat(self.device_id, "sent")
                logger.debug("Heartbeat sent", extra={"device_id": self.device_id})
            else:
                registry.record_heartbeat(self.device_id, "send_failed")

    def _emit_error(self, error: BaseException) -> None:
        self.events.emit(DeviceEvent(EventType.ERROR, error=error))

    def _resolve(self, pending: PendingRequest | None, packet: Packet) -> None:
        if pending is None:
            registry.record_unmatched_response(self.device_id)
            logger.debug(
                "No pending request for %s reply",
                command_name(packet.command),
                extra={"device_id": self.device_id, "sequence": packet.sequence},
            )
            return
        pending.resolve(packet.payload)

    def _route_packet(self, packet: Packet) -> None:
        """Dispatch one decoded packet to events and pending requests."""
        registry.record_packet_recv(self.device_id, command_name(packet.command))

        if packet.command == Command.HEART_BEAT:
            registry.record_heartbeat(self.device_id, "ack")
            logger.debug("Heartbeat acknowledged", extra={"device_id": self.device_id})
            return

        if packet.command in SET_ACK_COMMANDS:
            # Write acknowledgement: no data event, exact sequence only
            self._resolve(self.pending.pop(packet.sequence, None), packet)
            return

        self.events.emit(
            DeviceEvent(EventType.DATA, payload=packet.payload, command=packet.command, sequence=packet.sequence),
        )

        pending = self.pending.pop(packet.sequence, None)
        if pending is None and packet.sequence == UNSOLICITED_SEQUENCE and self.pending:
            oldest = next(iter(self.pending))
            pending = self.pending.pop(oldest)
            logger.debug(
                "Sequence 0 reply assigned to oldest pending request",
                extra={"device_id": self.device_id, "sequence": oldest},
            )
        self._resolve(pending, packet)

    def _process_frames(self, frames: list[bytes]) -> None:
        for frame in frames:
            try:
                packet = self.protocol.decode_frame(frame)
            except (CorruptPacketError, CipherError) as e:
                # Skip this frame, keep processing its siblings
                registry.record_decode_error(self.device_id, e.reason)
                logger.warning(
                    "Dropping undecodable frame: %s",
                    e,
                    extra={"device_id": self.device_id, "reason": e.reason, "frame_size": len(frame)},
                )
                self._emit_error(e)
                continue
            self._route_packet(packet)

    async def _packet_router(self) -> None:
        """Read from the socket until it closes, routing every complete frame.

        **Exception Handling**:
        - asyncio.CancelledError: Clean shutdown from disconnect()
        - OSError: Emit ERROR and abort the transport
        - Either way the connection is marked DISCONNECTED on exit
        """
        try:
            while True:
                data = await self.conn.recv()
                if not data:
                    break
                try:
                    frames = self.framer.feed(data)
                except PacketFramingError as e:
                    self._emit_error(e)
                    continue
                self._process_frames(frames)
        except asyncio.CancelledError:
            logger.debug("Packet router cancelled (clean shutdown)")
            raise
        except OSError as e:
            logger.warning(
                "Transport error: %s",
                e,
                extra={"device_id": self.device_id, "error_type": type(e).__name__},
            )
            self._emit_error(e)
        finally:
            self.conn.abort()
            self._mark_disconnected()

    def _mark_disconnected(self) -> None:
        """Transition CONNECTED -> DISCONNECTED once, stopping the heartbeat."""
        if self.state != ConnectionState.CONNECTED:
            return
        self._set_state(ConnectionState.DISCONNECTED)
        if self.heartbeat_task is not None and not self.heartbeat_task.done():
            _ = self.heartbeat_task.cancel()
        logger.info("Disconnected from device", extra={"device_id": self.device_id})
        self.events.emit(DeviceEvent(EventType.DISCONNECTED))

    async def disconnect(self) -> None:
        """Stop background tasks and drop the connection (idempotent)."""
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self.packet_router_task, self.heartbeat_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            _ = task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.packet_router_task = None
        self.heartbeat_task = None

        self.conn.abort()
        self._mark_disconnected()
        await self.conn.close()

    def is_connected(self) -> bool:
        """Check if connection is established (best effort, may be stale)."""
        return self.state == ConnectionState.CONNECTED
