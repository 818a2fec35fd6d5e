"""AES-128-ECB payload cipher with per-version key derivation.

Tuya devices encrypt JSON bodies with the device's 16-character local key.
Protocol 3.4 hashes a salt into the key first, which is modelled here as a
KeyDerivation strategy so the cipher itself stays version-agnostic.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from typing import Final

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from tuya_lan.protocol.exceptions import CipherError

BLOCK_SIZE_BYTES: Final[int] = 16
BLOCK_SIZE_BITS: Final[int] = BLOCK_SIZE_BYTES * 8


class KeyDerivation:
    """Turn a configured device key into the 16-byte AES key."""

    def derive(self, key: bytes) -> bytes:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RawKey(KeyDerivation):
    """Use the local key bytes as-is (3.1, 3.2, 3.3)."""

    def derive(self, key: bytes) -> bytes:
        return key


class HashedKey(KeyDerivation):
    """MD5 over salt + key (3.4 and the UDP broadcast key)."""

    def __init__(self, salt: bytes = b"") -> None:
        self.salt = salt

    def derive(self, key: bytes) -> bytes:
        return hashlib.md5(self.salt + key).digest()  # noqa: S324 - fixed by device firmware

    def __repr__(self) -> str:
        return f"HashedKey(salt_len={len(self.salt)})"


KEY_DERIVATIONS: dict[str, KeyDerivation] = {
    "3.1": RawKey(),
    "3.2": RawKey(),
    "3.3": RawKey(),
    "3.4": HashedKey(),
}

# Key shared by every device for encrypted UDP broadcasts
UDP_KEY: Final[bytes] = HashedKey(b"yGAdlopoPVldABfn").derive(b"")


def _as_bytes(key: str | bytes) -> bytes:
    return key.encode("latin-1") if isinstance(key, str) else bytes(key)


class TuyaCipher:
    """Deterministic AES-128-ECB cipher with PKCS7 padding.

    Example:
        cipher = TuyaCipher("0123456789abcdef", "3.3")
        token = cipher.encrypt(b'{"dps":{"1":true}}')
        assert cipher.decrypt(token) == b'{"dps":{"1":true}}'

    """

    def __init__(
        self,
        key: str | bytes,
        version: str = "3.1",
        derivation: KeyDerivation | None = None,
    ) -> None:
        """Initialize cipher with the device key and protocol version.

        Args:
            key: Device local key (16 characters) or pre-derived key bytes
            version: Protocol version used to pick the key derivation
            derivation: Explicit strategy overriding the per-version default

        """
        self.version = version
        self.local_key: bytes = _as_bytes(key)
        if derivation is None:
            derivation = KEY_DERIVATIONS.get(version, RawKey())
        self.derivation = derivation
        self.key: bytes = derivation.derive(self.local_key)
        self._cipher = Cipher(algorithms.AES(self.key), modes.ECB())  # noqa: S305 - protocol mandates ECB

    def encrypt(self, plaintext: bytes) -> bytes:
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = self._cipher.encryptor()
        return encryptor.update(padded) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt and unpad.

        Raises:
            CipherError: Length not a multiple of the block size, or bad padding

        """
        if not ciphertext or len(ciphertext) % BLOCK_SIZE_BYTES:
            raise CipherError("bad_block_length")
        decryptor = self._cipher.decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        try:
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError as e:
            raise CipherError("bad_padding") from e

    def encrypt_base64(self, plaintext: bytes) -> bytes:
        return base64.b64encode(self.encrypt(plaintext))

    def decrypt_base64(self, data: bytes) -> bytes:
        try:
            ciphertext = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CipherError("bad_base64") from e
        return self.decrypt(ciphertext)

    def __repr__(self) -> str:
        return f"TuyaCipher(version={self.version}, derivation={self.derivation!r})"
