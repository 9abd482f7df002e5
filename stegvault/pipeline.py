"""High-level operations: encrypt/decrypt containers and hide/reveal them.

Two protection tiers exist. With a password the key is derived with
PBKDF2 and never stored. With ``embed_key=True`` and no password the
container carries its own random key in the metadata, so anyone holding
the bytes can decrypt them; callers have to ask for that tier explicitly.
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Optional, Union

import numpy as np

from . import container, keys
from .config import CONTAINER_SETTINGS, LIMITS, STEGO_SETTINGS
from .dispatch import DECRYPT, ENCRYPT, ChunkArena, ChunkDispatcher, ChunkTask, run_chunk_task
from .embedder import embed_payload_lsb, extract_payload_lsb, pixels_capacity
from .errors import CapacityError, ValidationError
from .image_utils import ImageSource, load_image_pixels, save_image_png
from .logger import log_operation, setup_logger
from .streamer import ChunkStreamer
from .validation import (
    decrypted_filename,
    encrypted_filename,
    validate_bytes,
    validate_file_exists,
    validate_for_decryption,
    validate_for_encryption,
    validate_size,
)

logger = setup_logger(__name__)

ProgressCallback = Callable[[int, str], None]
PathLike = Union[str, os.PathLike]

TAG_BYTES = CONTAINER_SETTINGS["tag_bytes"]
FALLBACK_NAME = "revealed.bin"


@dataclass(frozen=True)
class DecryptedFile:
    data: bytes
    filename: str
    mime_type: str
    metadata: container.Metadata

    @property
    def is_image(self) -> bool:
        return self.mime_type.lower().startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime_type.lower().startswith("video/")

    @property
    def is_audio(self) -> bool:
        return self.mime_type.lower().startswith("audio/")


def _report(progress: Optional[ProgressCallback], percent: int, message: str) -> None:
    if progress is not None:
        progress(percent, message)


def _resolve_key(password: Optional[str], embed_key: bool, salt: bytes):
    if password is not None and embed_key:
        raise ValidationError("embed_key cannot be combined with a password")
    if password is None:
        if not embed_key:
            raise ValidationError(
                "A password is required; pass embed_key=True to store the key inside the container"
            )
        key = keys.generate_random_key()
        return key, keys.export_key(key)
    if not password:
        raise ValidationError("Password must not be empty")
    return keys.derive_key(password, salt), None


def _check_plaintext_size(parsed: container.ParsedContainer) -> None:
    # the limit is on what the container decrypts to, not on its own length
    validate_size(max(0, len(parsed.ciphertext) - parsed.metadata.chunks_count * TAG_BYTES))


def _run_chunks(tasks: Iterator[ChunkTask], arena: ChunkArena, workers: int,
                dispatcher: Optional[ChunkDispatcher]) -> bytes:
    if dispatcher is None and workers > 1:
        dispatcher = ChunkDispatcher(max_workers=workers)
    if dispatcher is not None:
        return dispatcher.run(tasks, arena)

    try:
        for task in tasks:
            result = run_chunk_task(task)
            arena.put(result.index, result.data)
        return arena.result()
    except BaseException:
        arena.release()
        raise


@log_operation("Encrypt container")
def encrypt_container(
    source: Union[bytes, bytearray, memoryview, BinaryIO],
    filename: str,
    mime_type: Optional[str] = None,
    password: Optional[str] = None,
    *,
    embed_key: bool = False,
    total_size: Optional[int] = None,
    chunk_size: Optional[int] = None,
    workers: int = 1,
    dispatcher: Optional[ChunkDispatcher] = None,
    progress: Optional[ProgressCallback] = None,
) -> bytes:
    """Encrypt *source* into container bytes.

    *source* may be a bytes-like object or a readable binary file of known
    (or seekable) length; it is read one chunk at a time.
    """
    if not isinstance(filename, str) or not filename:
        raise ValidationError("A filename is required")
    if isinstance(source, (bytes, bytearray, memoryview)):
        validate_bytes(source, "plaintext")
    chunk_size = chunk_size or CONTAINER_SETTINGS["chunk_size"]
    streamer = ChunkStreamer(source, total_size=total_size, chunk_size=chunk_size)
    validate_size(streamer.total_size)

    _report(progress, 0, "Preparing encryption...")
    salt = keys.generate_salt()
    base_nonce = keys.generate_nonce()
    key, key_data = _resolve_key(password, embed_key, salt)

    # an empty source still gets one sealed (empty) chunk so it carries a tag
    count = max(1, streamer.total_chunks)
    arena = ChunkArena(streamer.total_size + count * TAG_BYTES, chunk_size + TAG_BYTES, count)

    def tasks() -> Iterator[ChunkTask]:
        if streamer.total_chunks == 0:
            yield ChunkTask(index=0, operation=ENCRYPT, data=b"", key=key, nonce=container.chunk_nonce(base_nonce, 0))
            return
        for chunk in streamer:
            _report(progress, chunk.progress, f"Encrypting chunk {chunk.index + 1}/{count}")
            yield ChunkTask(
                index=chunk.index,
                operation=ENCRYPT,
                data=chunk.data,
                key=key,
                nonce=container.chunk_nonce(base_nonce, chunk.index),
            )

    region = _run_chunks(tasks(), arena, workers, dispatcher)

    metadata = container.create_metadata(
        filename,
        mime_type or LIMITS["default_mime_type"],
        password is not None,
        count,
        key_data,
        chunk_size=chunk_size,
    )
    _report(progress, 95, "Building encrypted file...")
    blob = container.build_container(salt, base_nonce, [region], metadata)
    _report(progress, 100, "Encryption complete!")
    logger.info(
        f"Encrypted {streamer.total_size} bytes in {count} chunk(s), "
        f"{'password' if password is not None else 'embedded key'} mode"
    )
    return blob


def inspect_container(blob: bytes) -> container.Metadata:
    """Metadata of *blob* without decrypting it."""
    validate_bytes(blob, "container", check_size=False)
    return container.parse_container(blob).metadata


@log_operation("Decrypt container")
def decrypt_container(
    blob: bytes,
    password: Optional[str] = None,
    *,
    workers: int = 1,
    dispatcher: Optional[ChunkDispatcher] = None,
    progress: Optional[ProgressCallback] = None,
) -> DecryptedFile:
    validate_bytes(blob, "container", check_size=False)
    _report(progress, 5, "Reading encrypted file...")
    parsed = container.parse_container(blob)
    meta = parsed.metadata
    _check_plaintext_size(parsed)

    _report(progress, 10, "Preparing decryption key...")
    key = container.prepare_key(meta, password, parsed.salt)

    chunk_size = meta.chunk_size or CONTAINER_SETTINGS["chunk_size"]
    pieces = container.split_ciphertext(parsed.ciphertext, meta.chunks_count, chunk_size)
    arena = ChunkArena(len(parsed.ciphertext) - len(pieces) * TAG_BYTES, chunk_size, len(pieces))

    def tasks() -> Iterator[ChunkTask]:
        for index, piece in enumerate(pieces):
            _report(progress, 20 + 70 * index // len(pieces), f"Decrypting chunk {index + 1}/{len(pieces)}")
            yield ChunkTask(
                index=index,
                operation=DECRYPT,
                data=bytes(piece),
                key=key,
                nonce=container.chunk_nonce(parsed.nonce, index),
            )

    data = _run_chunks(tasks(), arena, workers, dispatcher)
    _report(progress, 100, "Decryption complete!")
    return DecryptedFile(data=data, filename=meta.filename, mime_type=meta.mime_type, metadata=meta)


@log_operation("Embed container")
def embed_container(cover_pixels: np.ndarray, blob: bytes) -> np.ndarray:
    """Hide container bytes inside a copy of *cover_pixels*."""
    validate_bytes(blob, "container", check_size=False)
    _check_plaintext_size(container.parse_container(blob))
    return embed_payload_lsb(cover_pixels, blob)


@log_operation("Reveal container")
def reveal_container(stego_pixels: np.ndarray) -> bytes:
    blob = extract_payload_lsb(stego_pixels)
    container.parse_container(blob)
    return blob


def hide_secret(
    cover_pixels: np.ndarray,
    data: bytes,
    filename: str,
    mime_type: Optional[str] = None,
    password: Optional[str] = None,
    *,
    embed_key: bool = False,
) -> np.ndarray:
    """Encrypt *data* into a container and embed it in the cover."""
    limit = pixels_capacity(cover_pixels)
    if len(data) + TAG_BYTES > limit:
        raise CapacityError(f"File too large! Max capacity: {limit} bytes")
    blob = encrypt_container(data, filename, mime_type, password, embed_key=embed_key)
    return embed_container(cover_pixels, blob)


def hide_text(cover_pixels: np.ndarray, text: str, password: Optional[str] = None, *,
              embed_key: bool = False) -> np.ndarray:
    if not text:
        raise ValidationError("No text to hide")
    return hide_secret(
        cover_pixels,
        text.encode("utf-8"),
        STEGO_SETTINGS["text_filename"],
        STEGO_SETTINGS["text_mime_type"],
        password,
        embed_key=embed_key,
    )


def reveal_secret(stego_pixels: np.ndarray, password: Optional[str] = None) -> DecryptedFile:
    return decrypt_container(reveal_container(stego_pixels), password)


def guess_mime_type(path: PathLike) -> str:
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or LIMITS["default_mime_type"]


def encrypt_file(
    in_path: PathLike,
    out_path: Optional[PathLike] = None,
    password: Optional[str] = None,
    *,
    embed_key: bool = False,
    mime_type: Optional[str] = None,
    workers: int = 1,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    """Encrypt a file on disk, reading it chunk by chunk."""
    src = validate_for_encryption(in_path)
    dest = Path(out_path) if out_path else src.with_name(encrypted_filename(src.name))
    with src.open("rb") as fh:
        blob = encrypt_container(
            fh,
            src.name,
            mime_type or guess_mime_type(src),
            password,
            embed_key=embed_key,
            total_size=src.stat().st_size,
            workers=workers,
            progress=progress,
        )
    dest.write_bytes(blob)
    return dest


def decrypt_file(
    in_path: PathLike,
    out_dir: Optional[PathLike] = None,
    password: Optional[str] = None,
    *,
    workers: int = 1,
    progress: Optional[ProgressCallback] = None,
) -> Path:
    src = validate_for_decryption(in_path)
    result = decrypt_container(src.read_bytes(), password, workers=workers, progress=progress)
    dest_dir = Path(out_dir) if out_dir else src.parent
    dest = dest_dir / decrypted_filename(src.name, result.filename)
    dest.write_bytes(result.data)
    return dest


def image_capacity(source: ImageSource) -> int:
    return pixels_capacity(load_image_pixels(source))


def hide_file(
    cover_path: PathLike,
    secret_path: PathLike,
    out_path: PathLike,
    password: Optional[str] = None,
    *,
    embed_key: bool = False,
) -> Path:
    cover = load_image_pixels(validate_file_exists(cover_path))
    secret = validate_for_encryption(secret_path)
    stego = hide_secret(
        cover, secret.read_bytes(), secret.name, guess_mime_type(secret), password, embed_key=embed_key
    )
    return save_image_png(out_path, stego)


def hide_text_file(cover_path: PathLike, text: str, out_path: PathLike, password: Optional[str] = None,
                   *, embed_key: bool = False) -> Path:
    cover = load_image_pixels(validate_file_exists(cover_path))
    return save_image_png(out_path, hide_text(cover, text, password, embed_key=embed_key))


def reveal_file(stego_path: PathLike, out_dir: PathLike, password: Optional[str] = None) -> Path:
    stego = load_image_pixels(validate_file_exists(stego_path))
    result = reveal_secret(stego, password)
    dest = Path(out_dir) / decrypted_filename(FALLBACK_NAME, result.filename)
    dest.write_bytes(result.data)
    return dest
