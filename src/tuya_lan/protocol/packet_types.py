"""Tuya command identifiers, frame constants and the decoded Packet type."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

# Frame layout: prefix(4) + sequence(4) + command(4) + length(4) ... crc32(4) + suffix(4)
PREFIX_55AA: int = 0x000055AA
SUFFIX_55AA: int = 0x0000AA55
PREFIX_55AA_BIN: bytes = PREFIX_55AA.to_bytes(4, "big")
SUFFIX_55AA_BIN: bytes = SUFFIX_55AA.to_bytes(4, "big")

HEADER_SIZE = 16
CRC32_SIZE = 4
SUFFIX_SIZE = 4
TRAILER_SIZE = CRC32_SIZE + SUFFIX_SIZE
RETURN_CODE_SIZE = 4
MIN_FRAME_SIZE = HEADER_SIZE + TRAILER_SIZE
MAX_FRAME_SIZE = 0x10000

MAX_SEQUENCE = 0xFFFFFFFF
# Firmware that does not echo the request sequence replies with 0
UNSOLICITED_SEQUENCE = 0


class Command(IntEnum):
    """Tuya protocol command identifiers."""

    UDP = 0
    AP_CONFIG = 1
    ACTIVE = 2
    BIND = 3
    RENAME_GW = 4
    RENAME_DEVICE = 5
    UNBIND = 6
    CONTROL = 7
    STATUS = 8
    HEART_BEAT = 9
    DP_QUERY = 10
    QUERY_WIFI = 11
    TOKEN_BIND = 12
    CONTROL_NEW = 13
    ENABLE_WIFI = 14
    DP_QUERY_NEW = 16
    SCENE_EXECUTE = 17
    UPDATE_DPS = 18
    UDP_NEW = 19
    AP_CONFIG_NEW = 20


# Commands sent without the 15-byte version header on 3.2+
NO_PROTOCOL_HEADER_COMMANDS: frozenset[int] = frozenset(
    {Command.DP_QUERY, Command.DP_QUERY_NEW, Command.UPDATE_DPS, Command.HEART_BEAT},
)

# Replies that acknowledge a write and carry no document
SET_ACK_COMMANDS: frozenset[int] = frozenset({Command.CONTROL, Command.CONTROL_NEW})


def command_name(command: int) -> str:
    """Return a readable name for a command id, including unknown ones."""
    try:
        return Command(command).name
    except ValueError:
        return f"0x{command:02x}"


@dataclass(frozen=True)
class Packet:
    """One decoded frame.

    Attributes:
        command: Command identifier (Command member, or raw int when unknown)
        sequence: Unsigned 32-bit sequence number (0 = not echoed by firmware)
        payload: Decoded JSON document, or raw bytes when the body is empty or not JSON
        raw_payload: Plaintext body bytes after decryption
        encrypted: Whether the body was encrypted on the wire
        return_code: Device return code, when the frame carried one

    """

    command: int
    sequence: int
    payload: Any = None
    raw_payload: bytes = field(default=b"", repr=False)
    encrypted: bool = False
    return_code: int | None = None

    @property
    def is_document(self) -> bool:
        """True when the payload decoded to a JSON object."""
        return isinstance(self.payload, dict)
