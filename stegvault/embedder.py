from __future__ import annotations

import numpy as np

from .bitstream import CHANNELS, BitReader, BitWriter
from .config import STEGO_SETTINGS
from .errors import CapacityError, CorruptionError
from .logger import setup_logger

logger = setup_logger(__name__)

HEADER_BITS = STEGO_SETTINGS["header_bits"]


def capacity(width: int, height: int) -> int:
    """Bytes a ``width x height`` cover can carry after the 32-bit header."""
    return max(0, (width * height * CHANNELS - HEADER_BITS) // 8)


def pixels_capacity(pixels: np.ndarray) -> int:
    height, width = pixels.shape[:2]
    return capacity(width, height)


def embed_payload_lsb(pixels: np.ndarray, payload: bytes, inplace: bool = False) -> np.ndarray:
    """Hide *payload* in the R, G, B least significant bits of *pixels*.

    The frame is a 32-bit big-endian length followed by the payload, one
    bit per colour sample in raster order. Alpha samples are left alone.
    Capacity is checked before any sample changes; with ``inplace=True``
    the cover array itself becomes the stego array.
    """
    payload = bytes(payload)
    limit = pixels_capacity(pixels)
    if len(payload) > limit:
        raise CapacityError(
            f"Payload of {len(payload)} bytes exceeds image capacity of {limit} bytes"
        )

    out = pixels if inplace else pixels.copy()
    writer = BitWriter(out)
    writer.write_uint32(len(payload))
    writer.write(payload)
    logger.debug(f"Embedded {len(payload)} bytes into {out.shape[1]}x{out.shape[0]} image")
    return out


def extract_payload_lsb(pixels: np.ndarray, allow_empty: bool = False) -> bytes:
    """Read back the frame written by :func:`embed_payload_lsb`."""
    limit = pixels_capacity(pixels)
    if pixels.shape[0] * pixels.shape[1] * CHANNELS < HEADER_BITS:
        raise CorruptionError("Image is too small to carry a hidden payload")

    reader = BitReader(np.ascontiguousarray(pixels))
    length = reader.read_uint32()
    if length == 0 and allow_empty:
        return b""
    if length == 0 or length > limit:
        raise CorruptionError("No valid hidden data found or file corrupted.")
    payload = reader.read(length)
    logger.debug(f"Extracted {length} bytes")
    return payload
