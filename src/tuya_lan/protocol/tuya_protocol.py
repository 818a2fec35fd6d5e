"""Tuya 55AA frame encoder/decoder.

Frame layout (all integers big-endian uint32):

    prefix 0x000055AA | sequence | command | length | [return code] payload | crc32 | suffix 0x0000AA55

``length`` counts everything after the header (return code, payload, CRC and
suffix). The CRC covers every byte before the CRC field. How the payload is
wrapped and whether it is encrypted depends on the protocol version and is
delegated to a PayloadFormat.
"""

from __future__ import annotations

import binascii
import hashlib
import json
import struct
from collections.abc import Iterator
from typing import Any

from tuya_lan.logging_abstraction import get_logger
from tuya_lan.metrics import registry
from tuya_lan.protocol.cipher import UDP_KEY, KeyDerivation, RawKey, TuyaCipher
from tuya_lan.protocol.exceptions import CipherError, CorruptPacketError
from tuya_lan.protocol.packet_types import (
    HEADER_SIZE,
    MAX_FRAME_SIZE,
    MAX_SEQUENCE,
    MIN_FRAME_SIZE,
    NO_PROTOCOL_HEADER_COMMANDS,
    PREFIX_55AA,
    PREFIX_55AA_BIN,
    RETURN_CODE_SIZE,
    SUFFIX_55AA,
    TRAILER_SIZE,
    Command,
    Packet,
    command_name,
)

HEADER_FORMAT = ">4I"
TRAILER_FORMAT = ">2I"
V31_DIGEST_SIZE = 16
VERSION_HEADER_SIZE = 15

logger = get_logger(__name__)


class PayloadFormat:
    """Version-specific payload wrapping.

    Subclasses decide which commands are encrypted by default and how the
    ciphertext is enveloped on the wire.
    """

    version: str = ""

    def should_encrypt(self, command: int) -> bool:
        raise NotImplementedError

    def wrap(self, body: bytes, command: int, cipher: TuyaCipher, *, encrypt: bool) -> bytes:
        raise NotImplementedError

    def unwrap(self, body: bytes, command: int, cipher: TuyaCipher) -> tuple[bytes, bool]:
        """Return (plaintext, was_encrypted) for a received body."""
        raise NotImplementedError


class V31Format(PayloadFormat):
    """Protocol 3.1: only CONTROL is encrypted, as base64 with an MD5 signature.

    Envelope: ``b"3.1" + md5hex(b"data=" + b64 + b"||lpv=3.1||" + key)[8:24] + b64``
    """

    version = "3.1"

    def should_encrypt(self, command: int) -> bool:
        return command == Command.CONTROL

    def wrap(self, body: bytes, command: int, cipher: TuyaCipher, *, encrypt: bool) -> bytes:
        if not encrypt or not body:
            return body
        b64 = cipher.encrypt_base64(body)
        signed = b"data=" + b64 + b"||lpv=" + self.version.encode() + b"||" + cipher.local_key
        digest = hashlib.md5(signed).hexdigest()[8:24].encode()  # noqa: S324 - fixed by device firmware
        return self.version.encode() + digest + b64

    def unwrap(self, body: bytes, command: int, cipher: TuyaCipher) -> tuple[bytes, bool]:
        marker = self.version.encode()
        if not body.startswith(marker):
            return body, False
        return cipher.decrypt_base64(body[len(marker) + V31_DIGEST_SIZE :]), True


class V33Format(PayloadFormat):
    """Protocol 3.2/3.3/3.4: binary ciphertext behind a 15-byte version header.

    Query and heartbeat commands (NO_PROTOCOL_HEADER_COMMANDS) are sent
    without the header. Received bodies starting with ``{`` are plaintext.
    """

    def __init__(self, version: str = "3.3") -> None:
        self.version = version
        self.version_header: bytes = version.encode() + b"\x00" * (VERSION_HEADER_SIZE - len(version))

    def should_encrypt(self, command: int) -> bool:
        return True

    def wrap(self, body: bytes, command: int, cipher: TuyaCipher, *, encrypt: bool) -> bytes:
        if not encrypt or not body:
            return body
        ciphertext = cipher.encrypt(body)
        if command in NO_PROTOCOL_HEADER_COMMANDS:
            return ciphertext
        return self.version_header + ciphertext

    def unwrap(self, body: bytes, command: int, cipher: TuyaCipher) -> tuple[bytes, bool]:
        if body.startswith(self.version.encode()):
            body = body[VERSION_HEADER_SIZE:]
        if not body or body.startswith(b"{"):
            return body, False
        return cipher.decrypt(body), True


def payload_format_for(version: str) -> PayloadFormat:
    if version == "3.1":
        return V31Format()
    if version in ("3.2", "3.3", "3.4"):
        return V33Format(version)
    msg = f"Unsupported protocol version: {version}"
    raise ValueError(msg)


def serialize_payload(payload: Any) -> bytes:
    """Serialize a logical payload to compact JSON bytes."""
    if payload is None:
        return b""
    if isinstance(payload, bytes | bytearray):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def parse_payload(plaintext: bytes) -> Any:
    """Decode JSON when possible, otherwise return the raw bytes."""
    if not plaintext:
        return b""
    try:
        return json.loads(plaintext)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return plaintext


class TuyaProtocol:
    """Tuya frame codec bound to one device key and protocol version.

    Example:
        codec = TuyaProtocol("0123456789abcdef", "3.3")
        frame = codec.encode({"gwId": "abc", "devId": "abc"}, Command.DP_QUERY, sequence=1)
        [packet] = codec.decode(frame)

    """

    def __init__(
        self,
        key: str | bytes,
        version: str = "3.1",
        derivation: KeyDerivation | None = None,
        device_id: str = "unknown",
    ) -> None:
        """Initialize codec.

        Args:
            key: Device local key
            version: Protocol version ("3.1" through "3.4")
            derivation: Key derivation override (defaults to the version's strategy)
            device_id: Label used for decode error metrics

        Raises:
            ValueError: Unsupported protocol version

        """
        self.version = version
        self.device_id = device_id
        self.payload_format: PayloadFormat = payload_format_for(version)
        self.cipher = TuyaCipher(key, version, derivation)

    @classmethod
    def for_discovery(cls) -> TuyaProtocol:
        """Codec for UDP broadcasts (shared UDP key, 3.3 format, plaintext tolerated)."""
        return cls(UDP_KEY, "3.3", derivation=RawKey(), device_id="discovery")

    def encode(
        self,
        payload: Any,
        command: int,
        *,
        sequence: int = 0,
        encrypted: bool | None = None,
        return_code: int | None = None,
    ) -> bytes:
        """Encode a payload into one complete frame.

        Args:
            payload: dict/list (JSON), str, bytes or None (empty body)
            command: Command identifier
            sequence: Sequence number to stamp (usually restamped by write_sequence)
            encrypted: Force encryption on/off (default: per-version rule)
            return_code: Device return code (only written by device-side encoders)

        Returns:
            Encoded frame bytes

        """
        if not 0 <= sequence <= MAX_SEQUENCE:
            msg = f"Sequence out of range: {sequence}"
            raise ValueError(msg)

        body = serialize_payload(payload)
        encrypt = self.payload_format.should_encrypt(command) if encrypted is None else encrypted
        body = self.payload_format.wrap(body, command, self.cipher, encrypt=encrypt)
        if return_code is not None:
            body = struct.pack(">I", return_code) + body

        header = struct.pack(HEADER_FORMAT, PREFIX_55AA, sequence, int(command), len(body) + TRAILER_SIZE)
        frame = header + body
        crc = binascii.crc32(frame) & 0xFFFFFFFF
        frame += struct.pack(TRAILER_FORMAT, crc, SUFFIX_55AA)

        logger.debug(
            "Encoded %s frame: seq=%d, %d bytes, encrypted=%s",
            command_name(command),
            sequence,
            len(frame),
            encrypt and bool(body),
        )
        return frame

    @staticmethod
    def write_sequence(buffer: bytes, sequence: int) -> bytes:
        """Return a copy of an encoded frame with a new sequence and a fresh CRC."""
        if len(buffer) < MIN_FRAME_SIZE:
            raise CorruptPacketError("too_short", buffer)
        if not 0 <= sequence <= MAX_SEQUENCE:
            msg = f"Sequence out of range: {sequence}"
            raise ValueError(msg)

        frame = bytearray(buffer)
        struct.pack_into(">I", frame, 4, sequence)
        crc_offset = len(frame) - TRAILER_SIZE
        struct.pack_into(">I", frame, crc_offset, binascii.crc32(frame[:crc_offset]) & 0xFFFFFFFF)
        return bytes(frame)

    @staticmethod
    def iter_frames(data: bytes) -> Iterator[bytes]:
        """Yield complete candidate frames from a buffer.

        Bytes before a prefix are skipped, as are headers declaring an
        impossible length. A trailing partial frame ends the scan.
        """
        position = 0
        while True:
            start = data.find(PREFIX_55AA_BIN, position)
            if start < 0 or len(data) - start < HEADER_SIZE:
                return
            _, _, _, length = struct.unpack_from(HEADER_FORMAT, data, start)
            if length < TRAILER_SIZE or HEADER_SIZE + length > MAX_FRAME_SIZE:
                logger.debug("Skipping header with impossible length %d at offset %d", length, start)
                position = start + 1
                continue
            end = start + HEADER_SIZE + length
            if end > len(data):
                return
            yield bytes(data[start:end])
            position = end

    def decode_frame(self, frame: bytes) -> Packet:
        """Validate and decode exactly one frame.

        Raises:
            CorruptPacketError: Bad prefix, suffix, length or CRC32
            CipherError: Body could not be decrypted

        """
        if len(frame) < MIN_FRAME_SIZE:
            raise CorruptPacketError("too_short", frame)

        prefix, sequence, command, length = struct.unpack_from(HEADER_FORMAT, frame)
        if prefix != PREFIX_55AA:
            raise CorruptPacketError("bad_prefix", frame)
        if HEADER_SIZE + length != len(frame):
            raise CorruptPacketError("length_mismatch", frame)

        crc_offset = len(frame) - TRAILER_SIZE
        expected_crc, suffix = struct.unpack_from(TRAILER_FORMAT, frame, crc_offset)
        if suffix != SUFFIX_55AA:
            raise CorruptPacketError("bad_suffix", frame)
        if binascii.crc32(frame[:crc_offset]) & 0xFFFFFFFF != expected_crc:
            raise CorruptPacketError("crc_mismatch", frame)

        body = frame[HEADER_SIZE:crc_offset]
        return_code: int | None = None
        if len(body) >= RETURN_CODE_SIZE and body[:3] == b"\x00\x00\x00":
            (return_code,) = struct.unpack_from(">I", body)
            body = body[RETURN_CODE_SIZE:]

        plaintext, encrypted = self.payload_format.unwrap(body, command, self.cipher)

        try:
            parsed_command: int = Command(command)
        except ValueError:
            parsed_command = command

        return Packet(
            command=parsed_command,
            sequence=sequence,
            payload=parse_payload(plaintext),
            raw_payload=plaintext,
            encrypted=encrypted,
            return_code=return_code,
        )

    def decode(self, data: bytes) -> list[Packet]:
        """Decode every frame in a buffer, dropping corrupt ones individually."""
        packets: list[Packet] = []
        for frame in self.iter_frames(data):
            try:
                packets.append(self.decode_frame(frame))
            except (CorruptPacketError, CipherError) as e:
                logger.warning(
                    "Dropping undecodable frame: %s",
                    e,
                    extra={"reason": e.reason, "frame_size": len(frame), "version": self.version},
                )
                registry.record_decode_error(self.device_id, e.reason)
        return packets

    def __repr__(self) -> str:
        return f"TuyaProtocol(version={self.version})"


__all__ = [
    "PayloadFormat",
    "TuyaProtocol",
    "V31Format",
    "V33Format",
    "parse_payload",
    "payload_format_for",
    "serialize_payload",
]
