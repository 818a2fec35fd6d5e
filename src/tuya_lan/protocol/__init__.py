"""Tuya wire protocol: cipher, frame codec and stream framing."""

from tuya_lan.protocol.cipher import UDP_KEY, HashedKey, KeyDerivation, RawKey, TuyaCipher
from tuya_lan.protocol.exceptions import CipherError, CorruptPacketError, PacketFramingError, TuyaProtocolError
from tuya_lan.protocol.packet_framer import PacketFramer
from tuya_lan.protocol.packet_types import Command, Packet
from tuya_lan.protocol.tuya_protocol import TuyaProtocol

__all__ = [
    "UDP_KEY",
    "CipherError",
    "Command",
    "CorruptPacketError",
    "HashedKey",
    "KeyDerivation",
    "Packet",
    "PacketFramer",
    "PacketFramingError",
    "RawKey",
    "TuyaCipher",
    "TuyaProtocol",
    "TuyaProtocolError",
]
