"""Validation helpers shared between the pipeline and the CLI."""

from __future__ import annotations

import math
import os
from pathlib import Path
from typing import Optional, Union

from .config import LIMITS
from .errors import ValidationError

ENCRYPTED_SUFFIX = LIMITS["encrypted_suffix"]


def _ensure_path(path: Union[str, os.PathLike]) -> Path:
    if isinstance(path, Path):
        return path
    return Path(path)


def validate_size(size: int, limit: Optional[int] = None) -> None:
    limit = LIMITS["max_file_size"] if limit is None else limit
    if size > limit:
        raise ValidationError(
            f"File size exceeds maximum limit of {format_file_size(limit)}"
        )


def validate_bytes(data, what: str = "data", check_size: bool = True) -> None:
    if data is None:
        raise ValidationError(f"No {what} supplied")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ValidationError(f"{what} must be bytes-like, got {type(data).__name__}")
    if check_size:
        validate_size(len(data))


def validate_file_exists(path: Union[str, os.PathLike]) -> Path:
    candidate = _ensure_path(path)
    if not candidate.is_file():
        raise ValidationError(f"No such file: {candidate}")
    return candidate


def validate_for_encryption(path: Union[str, os.PathLike]) -> Path:
    candidate = validate_file_exists(path)
    validate_size(candidate.stat().st_size)
    return candidate


def validate_for_decryption(path: Union[str, os.PathLike]) -> Path:
    # containers outgrow their plaintext; the size limit is applied after parsing
    candidate = validate_file_exists(path)
    if not candidate.name.endswith(ENCRYPTED_SUFFIX):
        raise ValidationError(
            f"Selected file is not an encrypted file ({ENCRYPTED_SUFFIX})"
        )
    return candidate


def encrypted_filename(original: str) -> str:
    return f"{original}{ENCRYPTED_SUFFIX}"


def decrypted_filename(encrypted: str, original: Optional[str] = None) -> str:
    # only the base name; metadata must not steer the output directory
    name = Path(original.replace("\\", "/")).name if original else ""
    if name and name not in (".", ".."):
        return name
    if encrypted.endswith(ENCRYPTED_SUFFIX):
        return encrypted[: -len(ENCRYPTED_SUFFIX)]
    return encrypted


def stego_filename(cover: str) -> str:
    return f"stego_{Path(cover).name.split('.')[0]}.png"


def format_file_size(size: int) -> str:
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
    return f"{round(size / 1024 ** i, 2):g} {units[i]}"
