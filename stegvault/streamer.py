"""Fixed-size chunking of a byte source.

The source is either an in-memory buffer or a readable binary file object
of known length. Chunks are read on demand, so at most one chunk is held
at a time no matter how large the source is.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Union

from .config import CONTAINER_SETTINGS
from .errors import ValidationError

CHUNK_SIZE = CONTAINER_SETTINGS["chunk_size"]

Source = Union[bytes, bytearray, memoryview, BinaryIO]


@dataclass(frozen=True)
class Chunk:
    data: bytes
    index: int
    progress: int  # percent of the source consumed before this chunk


class ChunkStreamer:
    """Split *source* into chunks of ``chunk_size`` bytes.

    Every chunk except the last is exactly ``chunk_size`` bytes long. Each
    iteration starts over from the beginning of the source; a file object
    must therefore be seekable to be iterated more than once.
    """

    def __init__(self, source: Source, total_size: Optional[int] = None, chunk_size: int = CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValidationError("Chunk size must be positive")
        self.chunk_size = chunk_size
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._buffer: Optional[memoryview] = memoryview(source).cast("B")
            self._stream: Optional[BinaryIO] = None
            self.total_size = len(self._buffer)
        elif hasattr(source, "read"):
            self._buffer = None
            self._stream = source
            if total_size is None:
                total_size = _stream_length(source)
            self.total_size = total_size
        else:
            raise ValidationError(f"Unsupported chunk source: {type(source).__name__}")
        if self.total_size < 0:
            raise ValidationError("Source length must not be negative")
        self._start = self._stream.tell() if self._stream is not None and self._stream.seekable() else 0
        self._passes = 0

    @property
    def total_chunks(self) -> int:
        return -(-self.total_size // self.chunk_size)

    def __len__(self) -> int:
        return self.total_chunks

    def __iter__(self) -> Iterator[Chunk]:
        return self.chunks()

    def chunks(self) -> Iterator[Chunk]:
        if self._stream is not None:
            if self._passes and not self._stream.seekable():
                raise ValidationError("Source stream cannot be re-read")
            if self._stream.seekable():
                self._stream.seek(self._start)
        self._passes += 1

        offset = 0
        index = 0
        while offset < self.total_size:
            end = min(offset + self.chunk_size, self.total_size)
            data = self._read(offset, end)
            yield Chunk(data=data, index=index, progress=round(offset / self.total_size * 100))
            offset = end
            index += 1

    def _read(self, start: int, end: int) -> bytes:
        if self._buffer is not None:
            return bytes(self._buffer[start:end])
        want = end - start
        parts = []
        while want:
            piece = self._stream.read(want)
            if not piece:
                raise ValidationError(
                    f"Source ended after {start + sum(map(len, parts))} of {self.total_size} bytes"
                )
            parts.append(piece)
            want -= len(piece)
        return b"".join(parts)


def _stream_length(stream: BinaryIO) -> int:
    if not stream.seekable():
        raise ValidationError("total_size is required for non-seekable streams")
    here = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(here)
    return end - here
