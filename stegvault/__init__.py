"""stegvault package: chunked AES-256-GCM containers and LSB image steganography.

Modules:
- keys: salts, nonces, PBKDF2 key derivation, raw key import/export
- streamer: fixed-size chunking of byte sources
- container: per-chunk AEAD and the container layout
- dispatch: worker pool for per-chunk cipher work
- bitstream: forward-only LSB bit reader/writer
- embedder: capacity, embedding and extraction of a length-prefixed payload
- image_utils: lossless image decode/encode, cover generation
- pipeline: encrypt/decrypt/embed/reveal operations
- cli: command-line interface
"""

from .errors import (
    AuthenticationError,
    CapacityError,
    CorruptionError,
    FormatError,
    KeyDerivationError,
    MalformedMetadataError,
    MissingPasswordError,
    OperationCancelled,
    StegVaultError,
    ValidationError,
)
from .pipeline import (
    DecryptedFile,
    decrypt_container,
    embed_container,
    encrypt_container,
    inspect_container,
    reveal_container,
)

__all__ = [
    "keys",
    "streamer",
    "container",
    "dispatch",
    "bitstream",
    "embedder",
    "image_utils",
    "pipeline",
    "DecryptedFile",
    "encrypt_container",
    "decrypt_container",
    "embed_container",
    "reveal_container",
    "inspect_container",
    "StegVaultError",
    "ValidationError",
    "KeyDerivationError",
    "FormatError",
    "MalformedMetadataError",
    "MissingPasswordError",
    "AuthenticationError",
    "CapacityError",
    "CorruptionError",
    "OperationCancelled",
]
