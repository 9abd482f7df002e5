"""Exception hierarchy for stegvault.

Every failure reported to a caller is a :class:`StegVaultError`. Wrong
passwords and corrupted ciphertext both surface as
:class:`AuthenticationError` with the same message.
"""

from __future__ import annotations


class StegVaultError(Exception):
    """Base class for all stegvault failures."""


class ValidationError(StegVaultError, ValueError):
    """Input is absent, of the wrong type or above a configured limit."""


class KeyDerivationError(StegVaultError):
    """A key could not be derived or imported."""


class FormatError(StegVaultError):
    """Container bytes do not have the expected structure."""


class MalformedMetadataError(FormatError):
    """A password-less container does not carry a usable embedded key."""


class MissingPasswordError(StegVaultError):
    """A password-protected container was opened without a password."""


class AuthenticationError(StegVaultError):
    """AEAD tag verification failed: wrong password or corrupted data."""

    DEFAULT_MESSAGE = "Decryption failed. Invalid password or corrupted file."

    def __init__(self, message: str = DEFAULT_MESSAGE) -> None:
        super().__init__(message)


class CapacityError(StegVaultError):
    """Payload does not fit into the cover image."""


class CorruptionError(StegVaultError):
    """A stego image does not carry a plausible payload header."""


class OperationCancelled(StegVaultError):
    """A chunked run was abandoned before it completed."""


__all__ = [
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
