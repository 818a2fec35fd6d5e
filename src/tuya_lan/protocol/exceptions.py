"""Custom exception types for Tuya protocol errors.

This module defines the exception hierarchy for codec-level errors. Every
error raised by the package derives from TuyaProtocolError so callers can
catch the whole family in one place while still handling specific types.
"""

from __future__ import annotations


class TuyaProtocolError(Exception):
    """Base exception for all Tuya protocol errors."""


class CipherError(TuyaProtocolError):
    """Payload cannot be encrypted or decrypted.

    Raised when ciphertext length is not a multiple of the AES block size,
    when PKCS7 padding is invalid, or when a base64 envelope is malformed.
    Only the affected frame is dropped; the connection is unaffected.

    Attributes:
        reason: Specific failure reason (e.g., "bad_block_length", "bad_padding")

    """

    def __init__(self, reason: str) -> None:
        """Initialize cipher error with reason."""
        self.reason: str = reason
        super().__init__(f"Cipher failure: {reason}")


class CorruptPacketError(TuyaProtocolError):
    """Frame failed structural validation.

    Raised when a frame has a bad prefix/suffix, an inconsistent length
    field, or a CRC32 mismatch.

    Attributes:
        reason: Specific failure reason (e.g., "crc_mismatch", "bad_suffix")
        data_preview: First 16 bytes of frame data (security: prevents key material leaking into logs)

    """

    def __init__(self, reason: str, data: bytes = b"") -> None:
        """Initialize corrupt packet error with reason and a truncated data preview."""
        self.reason: str = reason
        self.data_preview: bytes = data[:16] if data else b""
        super().__init__(f"Corrupt packet: {reason}")


class PacketFramingError(TuyaProtocolError):
    """TCP stream framing error.

    Raised by PacketFramer when the reassembly buffer overflows without
    yielding a complete frame.

    Attributes:
        reason: Specific failure reason (e.g., "buffer_overflow")
        buffer_size: Size of buffer when error occurred

    """

    def __init__(self, reason: str, buffer_size: int = 0) -> None:
        """Initialize framing error with reason and buffer size."""
        self.reason: str = reason
        self.buffer_size: int = buffer_size
        super().__init__(f"Packet framing failed: {reason}")
