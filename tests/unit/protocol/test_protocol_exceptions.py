"""Unit tests for protocol exception types."""

import pytest

from tuya_lan.protocol.exceptions import (
    CipherError,
    CorruptPacketError,
    PacketFramingError,
    TuyaProtocolError,
)

PREVIEW_SIZE = 16


class TestProtocolExceptions:
    """Exception hierarchy and attributes."""

    @pytest.mark.parametrize(
        "error",
        [CipherError("bad_padding"), CorruptPacketError("crc_mismatch"), PacketFramingError("buffer_overflow")],
    )
    def test_all_derive_from_base(self, error: TuyaProtocolError) -> None:
        """Test every protocol error can be caught as TuyaProtocolError."""
        assert isinstance(error, TuyaProtocolError)
        assert error.reason in str(error)

    def test_corrupt_packet_preview_is_truncated(self) -> None:
        """Test only the first bytes of a frame are retained."""
        data = bytes(range(64))
        error = CorruptPacketError("bad_suffix", data)
        assert error.data_preview == data[:PREVIEW_SIZE]

    def test_corrupt_packet_without_data(self) -> None:
        """Test empty preview when no data is supplied."""
        assert CorruptPacketError("too_short").data_preview == b""

    def test_framing_error_buffer_size(self) -> None:
        """Test buffer size is recorded."""
        error = PacketFramingError("buffer_overflow", 4096)
        assert error.buffer_size == 4096
        assert "buffer_overflow" in str(error)
