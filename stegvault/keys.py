from __future__ import annotations

import os
from typing import Iterable, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import CONTAINER_SETTINGS, CRYPTO_SETTINGS
from .errors import KeyDerivationError

KEY_BYTES = CRYPTO_SETTINGS["key_bytes"]
SALT_BYTES = CONTAINER_SETTINGS["salt_bytes"]
NONCE_BYTES = CONTAINER_SETTINGS["nonce_bytes"]

RawKey = Union[bytes, bytearray, memoryview, Iterable[int]]


def generate_salt() -> bytes:
    return os.urandom(SALT_BYTES)


def generate_nonce() -> bytes:
    """Base nonce material for one container (96 bits, as GCM recommends)."""
    return os.urandom(NONCE_BYTES)


def derive_key(password: str, salt: bytes, iterations: int | None = None) -> bytes:
    """Derive a 256-bit AES key from *password* with PBKDF2-HMAC-SHA256.

    The same (password, salt) pair always yields the same key; the key is
    never written into the container.
    """
    if not isinstance(password, str) or not password:
        raise KeyDerivationError("Password must be a non-empty string")
    if len(salt) != SALT_BYTES:
        raise KeyDerivationError(f"Salt must be {SALT_BYTES} bytes, got {len(salt)}")
    params = CRYPTO_SETTINGS["pbkdf2"]
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=params["key_len"],
        salt=bytes(salt),
        iterations=iterations or params["iterations"],
    )
    return kdf.derive(password.encode("utf-8"))


def generate_random_key() -> bytes:
    """Random key for password-less containers (it gets embedded in metadata)."""
    return AESGCM.generate_key(bit_length=KEY_BYTES * 8)


def export_key(key: bytes) -> bytes:
    if len(key) != KEY_BYTES:
        raise KeyDerivationError(f"Key must be {KEY_BYTES} bytes, got {len(key)}")
    return bytes(key)


def import_key(data: RawKey) -> bytes:
    """Accept raw key bytes or a sequence of byte values (the JSON form)."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        raw = bytes(data)
    else:
        if isinstance(data, str):
            raise KeyDerivationError("Key data is not a byte sequence")
        try:
            values = list(data)
        except TypeError as exc:
            raise KeyDerivationError(f"Key data is not a byte sequence: {exc}") from exc
        if any(isinstance(v, bool) for v in values):
            raise KeyDerivationError("Key data holds booleans, not byte values")
        try:
            raw = bytes(values)
        except (TypeError, ValueError) as exc:
            raise KeyDerivationError(f"Key data is not a byte sequence: {exc}") from exc
    if len(raw) != KEY_BYTES:
        raise KeyDerivationError(f"Key must be {KEY_BYTES} bytes, got {len(raw)}")
    return raw
