"""Container codec: per-chunk AES-256-GCM plus the self-describing layout.

Layout (all offsets in bytes, ``N`` = total length, ``M`` = metadata length)::

    0        salt[16]
    16       base nonce[12]
    28       ciphertext chunks, index order, each = ciphertext || tag[16]
    N-4-M    metadata, UTF-8 JSON
    N-4      M as a 4-byte unsigned little-endian integer

Chunk ``i`` is sealed under the nonce whose last four bytes are the base
nonce's last four bytes plus ``i`` (big-endian, wrapping at 2**32), so no
two chunks of one container ever share a nonce.
"""

from __future__ import annotations

import json
import struct
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from . import keys
from .config import CONTAINER_SETTINGS
from .errors import (
    AuthenticationError,
    FormatError,
    KeyDerivationError,
    MalformedMetadataError,
    MissingPasswordError,
)

SALT_BYTES = CONTAINER_SETTINGS["salt_bytes"]
NONCE_BYTES = CONTAINER_SETTINGS["nonce_bytes"]
TAG_BYTES = CONTAINER_SETTINGS["tag_bytes"]
TRAILER_BYTES = CONTAINER_SETTINGS["trailer_bytes"]
HEADER_BYTES = SALT_BYTES + NONCE_BYTES
MIN_CONTAINER_BYTES = CONTAINER_SETTINGS["min_container_bytes"]
FORMAT_VERSION = CONTAINER_SETTINGS["format_version"]

_COUNTER_MOD = 1 << 32


@dataclass(frozen=True)
class Metadata:
    filename: str
    mime_type: str
    has_password: bool
    chunks_count: int
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))
    key: Optional[bytes] = None
    version: str = FORMAT_VERSION
    chunk_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "version": self.version,
            "filename": self.filename,
            "mimeType": self.mime_type,
            "hasPassword": self.has_password,
            "chunksCount": self.chunks_count,
            "timestamp": self.timestamp,
            "key": list(self.key) if self.key is not None else None,
        }
        if self.chunk_size is not None:
            record["chunkSize"] = self.chunk_size
        return record

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Metadata":
        if not isinstance(record, dict):
            raise FormatError("Metadata must be a JSON object")
        expected = {
            "version": str,
            "filename": str,
            "mimeType": str,
            "hasPassword": bool,
            "chunksCount": int,
            "timestamp": int,
        }
        for name, kind in expected.items():
            value = record.get(name)
            # bool is an int subclass; reject it where a count is expected
            if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
                raise FormatError(f"Metadata field {name!r} is missing or has the wrong type")
        if record["chunksCount"] < 0:
            raise FormatError("Metadata chunksCount must not be negative")
        chunk_size = record.get("chunkSize")
        if chunk_size is not None and (not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size <= 0):
            raise FormatError("Metadata chunkSize must be a positive integer")

        raw_key = record.get("key")
        key: Optional[bytes] = None
        if raw_key is not None:
            try:
                key = keys.import_key(raw_key)
            except KeyDerivationError as exc:
                raise MalformedMetadataError(f"Embedded key is invalid: {exc}") from exc

        return cls(
            filename=record["filename"],
            mime_type=record["mimeType"],
            has_password=record["hasPassword"],
            chunks_count=record["chunksCount"],
            timestamp=record["timestamp"],
            key=key,
            version=record["version"],
            chunk_size=chunk_size,
        )


@dataclass(frozen=True)
class ParsedContainer:
    salt: bytes
    nonce: bytes
    ciphertext: memoryview
    metadata: Metadata


def create_metadata(
    filename: str,
    mime_type: str,
    has_password: bool,
    chunks_count: int,
    key_data: Optional[bytes],
    chunk_size: Optional[int] = None,
) -> Metadata:
    """Metadata for a new container; *key_data* only for password-less ones."""
    if has_password and key_data is not None:
        raise ValueError("Password-protected containers must not embed a key")
    if not has_password and key_data is None:
        raise ValueError("Password-less containers must embed their key")
    return Metadata(
        filename=filename,
        mime_type=mime_type,
        has_password=has_password,
        chunks_count=chunks_count,
        key=key_data,
        chunk_size=chunk_size,
    )


def serialize_metadata(metadata: Metadata) -> bytes:
    """Metadata record followed by its length trailer."""
    body = json.dumps(metadata.to_dict(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return body + struct.pack("<I", len(body))


def chunk_nonce(base_nonce: bytes, index: int) -> bytes:
    if len(base_nonce) != NONCE_BYTES:
        raise ValueError(f"Nonce must be {NONCE_BYTES} bytes, got {len(base_nonce)}")
    if not 0 <= index < _COUNTER_MOD:
        raise ValueError(f"Chunk index out of range: {index}")
    counter = int.from_bytes(base_nonce[-4:], "big")
    return bytes(base_nonce[:-4]) + ((counter + index) % _COUNTER_MOD).to_bytes(4, "big")


def encrypt_chunk(plaintext: bytes, key: bytes, nonce: bytes) -> bytes:
    """Seal one chunk; the 16-byte GCM tag is appended to the ciphertext."""
    return AESGCM(key).encrypt(nonce, bytes(plaintext), None)


def decrypt_chunk(ciphertext: bytes, key: bytes, nonce: bytes) -> bytes:
    try:
        return AESGCM(key).decrypt(nonce, bytes(ciphertext), None)
    except InvalidTag as exc:
        raise AuthenticationError() from exc


def build_container(salt: bytes, nonce: bytes, chunks: Iterable[bytes], metadata: Metadata) -> bytes:
    if len(salt) != SALT_BYTES:
        raise ValueError(f"Salt must be {SALT_BYTES} bytes")
    if len(nonce) != NONCE_BYTES:
        raise ValueError(f"Nonce must be {NONCE_BYTES} bytes")
    out = bytearray(salt)
    out += nonce
    for chunk in chunks:
        out += chunk
    out += serialize_metadata(metadata)
    return bytes(out)


def parse_container(blob: bytes) -> ParsedContainer:
    data = memoryview(blob).cast("B")
    total = len(data)
    if total < MIN_CONTAINER_BYTES:
        raise FormatError("File is too small to be a valid encrypted file")

    salt = bytes(data[:SALT_BYTES])
    nonce = bytes(data[SALT_BYTES:HEADER_BYTES])

    (meta_len,) = struct.unpack("<I", data[total - TRAILER_BYTES:])
    if meta_len == 0 or meta_len > total - TRAILER_BYTES:
        raise FormatError("Invalid metadata length in encrypted file")
    meta_start = total - TRAILER_BYTES - meta_len
    if meta_start < HEADER_BYTES:
        raise FormatError("Invalid file structure: metadata overlaps with header")

    try:
        record = json.loads(data[meta_start:total - TRAILER_BYTES].tobytes().decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormatError(f"Invalid metadata JSON: {exc}") from exc

    return ParsedContainer(
        salt=salt,
        nonce=nonce,
        ciphertext=data[HEADER_BYTES:meta_start],
        metadata=Metadata.from_dict(record),
    )


def split_ciphertext(region: Sequence[int], chunks_count: int, chunk_size: int) -> List[memoryview]:
    """Cut the ciphertext region back into sealed chunks.

    Only the last chunk may be shorter than ``chunk_size + 16``; the region
    length has to agree with *chunks_count* exactly.
    """
    view = memoryview(region).cast("B")
    stride = chunk_size + TAG_BYTES
    if chunks_count <= 0:
        raise FormatError("Container declares no ciphertext chunks")
    full = (chunks_count - 1) * stride
    last = len(view) - full
    if last < TAG_BYTES or last > stride:
        raise FormatError(
            f"Ciphertext region of {len(view)} bytes does not hold {chunks_count} chunk(s)"
        )
    return [view[i * stride:min((i + 1) * stride, len(view))] for i in range(chunks_count)]


def prepare_key(metadata: Metadata, password: Optional[str], salt: bytes) -> bytes:
    if metadata.has_password:
        if not password:
            raise MissingPasswordError("Password required for this file")
        return keys.derive_key(password, salt)
    if metadata.key is None:
        raise MalformedMetadataError("Invalid file format: missing key data")
    return keys.import_key(metadata.key)
