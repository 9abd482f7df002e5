"""Forward-only bit cursors over the least significant bits of pixel samples.

Bit ``i`` of the stream lives in the LSB of channel ``i % 3`` of pixel
``i // 3`` (raster order). The cursor knows nothing about headers or
payloads; both are read and written through the same position, so the
stream never gets realigned at pixel or field boundaries.
"""

from __future__ import annotations

import numpy as np

from .config import STEGO_SETTINGS
from .errors import CapacityError, CorruptionError

CHANNELS = STEGO_SETTINGS["channels"]
BLOCK_BITS = STEGO_SETTINGS["write_block_bits"]


class _LsbCursor:
    def __init__(self, pixels: np.ndarray, block_bits: int = BLOCK_BITS):
        if pixels.ndim != 3 or pixels.shape[2] < CHANNELS:
            raise ValueError(f"Expected an (H, W, >={CHANNELS}) pixel array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 samples, got {pixels.dtype}")
        if not pixels.flags["C_CONTIGUOUS"]:
            raise ValueError("Pixel array must be C-contiguous")
        self._flat = pixels.reshape(-1)
        self._stride = pixels.shape[2]
        self.capacity_bits = pixels.shape[0] * pixels.shape[1] * CHANNELS
        # whole bytes per block keeps every slice byte-aligned in the payload
        self._block_bits = max(8, block_bits - block_bits % 8)
        self.position = 0

    @property
    def remaining(self) -> int:
        return self.capacity_bits - self.position

    def _locate(self, count: int):
        start = self.position
        if self._stride == CHANNELS:
            return slice(start, start + count)
        idx = np.arange(start, start + count, dtype=np.int64)
        return (idx // CHANNELS) * self._stride + idx % CHANNELS


class BitWriter(_LsbCursor):
    """Writes bytes MSB first into the LSB plane, in place."""

    def write(self, data: bytes) -> None:
        buf = np.frombuffer(bytes(data), dtype=np.uint8)
        if buf.size * 8 > self.remaining:
            raise CapacityError(
                f"Cannot write {buf.size * 8} bits, only {self.remaining} left"
            )
        step = self._block_bits // 8
        for offset in range(0, buf.size, step):
            bits = np.unpackbits(buf[offset:offset + step])
            where = self._locate(bits.size)
            self._flat[where] = (self._flat[where] & 0xFE) | bits
            self.position += bits.size

    def write_uint32(self, value: int) -> None:
        self.write(int(value).to_bytes(4, "big"))


class BitReader(_LsbCursor):
    """Reads bytes MSB first from the LSB plane."""

    def read(self, count: int) -> bytes:
        if count * 8 > self.remaining:
            raise CorruptionError(
                f"Cannot read {count * 8} bits, only {self.remaining} left"
            )
        step = self._block_bits // 8
        out = bytearray()
        for offset in range(0, count, step):
            nbits = min(step, count - offset) * 8
            bits = self._flat[self._locate(nbits)] & 1
            out += np.packbits(bits).tobytes()
            self.position += nbits
        return bytes(out)

    def read_uint32(self) -> int:
        return int.from_bytes(self.read(4), "big")
