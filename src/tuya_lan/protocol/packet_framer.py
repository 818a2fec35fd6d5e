"""TCP stream packet framing with buffer overflow protection.

This module provides PacketFramer for extracting complete 55AA frames from TCP
byte streams, handling partial frames, multi-frame reads, and protecting
against buffer exhaustion.
"""

from __future__ import annotations

import struct

from tuya_lan.logging_abstraction import get_logger
from tuya_lan.protocol.exceptions import PacketFramingError
from tuya_lan.protocol.packet_types import HEADER_SIZE, MAX_FRAME_SIZE, PREFIX_55AA_BIN, TRAILER_SIZE

logger = get_logger(__name__)


class PacketFramer:
    r"""Extract complete frames from a TCP byte stream.

    TCP reads may return partial frames, multiple frames, or exact boundaries.
    PacketFramer buffers incoming bytes and extracts complete frames based on
    the length field of the 16-byte header.

    Algorithm:

    1. Buffer all incoming bytes
    2. Drop anything before the next 0x000055AA prefix
    3. Once a full header is buffered, read the declared length
    4. Discard the prefix if the length is impossible (< 8 or > MAX_PACKET_SIZE)
    5. If the buffer holds header + length bytes, extract the frame
    6. Repeat until buffer exhausted

    Frames are returned undecoded; CRC and suffix checks belong to the codec.

    Example:
        framer = PacketFramer()
        frames = framer.feed(frame[:10])
        assert frames == []  # Incomplete

        frames = framer.feed(frame[10:])
        assert frames == [frame]

    """

    MAX_PACKET_SIZE: int = MAX_FRAME_SIZE
    # Clear the buffer if this much accumulates without a complete frame
    MAX_BUFFER_SIZE: int = 4 * MAX_FRAME_SIZE

    def __init__(self) -> None:
        """Initialize packet framer with empty buffer."""
        self.buffer: bytearray = bytearray()

    def feed(self, data: bytes) -> list[bytes]:
        """Add data to buffer and return list of complete frames.

        Args:
            data: Incoming bytes from TCP read

        Returns:
            List of complete frame bytes (may be empty if no complete frames)

        Raises:
            PacketFramingError: Buffer overflowed without yielding a frame (buffer is cleared)

        """
        self.buffer.extend(data)
        frames = self._extract_frames()
        if len(self.buffer) > self.MAX_BUFFER_SIZE and not frames:
            buffer_size = len(self.buffer)
            logger.error(
                "Buffer cleared after exceeding %d bytes without a complete frame",
                self.MAX_BUFFER_SIZE,
                extra={"buffer_size": buffer_size},
            )
            self.buffer = bytearray()
            raise PacketFramingError("buffer_overflow", buffer_size)
        return frames

    def reset(self) -> None:
        """Discard any buffered partial frame (e.g. after reconnect)."""
        self.buffer = bytearray()

    def _extract_frames(self) -> list[bytes]:
        frames: list[bytes] = []

        while True:
            start = self.buffer.find(PREFIX_55AA_BIN)
            if start < 0:
                # Keep a possible partial prefix at the tail
                keep = len(PREFIX_55AA_BIN) - 1
                if len(self.buffer) > keep:
                    self.buffer = self.buffer[-keep:]
                break
            if start > 0:
                logger.debug("Dropping %d bytes before frame prefix", start)
                self.buffer = self.buffer[start:]

            if len(self.buffer) < HEADER_SIZE:
                break

            (length,) = struct.unpack_from(">I", self.buffer, 12)
            if length < TRAILER_SIZE or HEADER_SIZE + length > self.MAX_PACKET_SIZE:
                logger.warning(
                    "Invalid frame length: %d (max %d), skipping prefix",
                    length,
                    self.MAX_PACKET_SIZE,
                    extra={"buffer_size": len(self.buffer)},
                )
                self.buffer = self.buffer[len(PREFIX_55AA_BIN) :]
                continue

            total_length = HEADER_SIZE + length
            if len(self.buffer) < total_length:
                break

            frames.append(bytes(self.buffer[:total_length]))
            self.buffer = self.buffer[total_length:]

        return frames
