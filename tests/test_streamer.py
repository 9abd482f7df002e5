import io

import pytest

from stegvault.errors import ValidationError
from stegvault.streamer import CHUNK_SIZE, ChunkStreamer


@pytest.mark.parametrize(
    "size, expected",
    [(0, 0), (1, 1), (99, 10), (100, 10), (101, 11)],
)
def test_total_chunks(size, expected):
    streamer = ChunkStreamer(b"x" * size, chunk_size=10)
    assert streamer.total_chunks == expected
    assert len(streamer) == expected
    assert len(list(streamer)) == expected


def test_default_chunk_size_is_ten_mib():
    assert CHUNK_SIZE == 10 * 1024 * 1024


def test_chunks_cover_source_in_order():
    data = bytes(range(256)) * 3 + b"tail"
    streamer = ChunkStreamer(data, chunk_size=100)
    chunks = list(streamer)
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(len(c.data) == 100 for c in chunks[:-1])
    assert len(chunks[-1].data) == len(data) % 100
    assert b"".join(c.data for c in chunks) == data


def test_progress_reports_consumed_share():
    streamer = ChunkStreamer(b"a" * 40, chunk_size=10)
    assert [c.progress for c in streamer] == [0, 25, 50, 75]


def test_file_source_is_read_lazily():
    stream = io.BytesIO(b"0123456789" * 5)
    streamer = ChunkStreamer(stream, chunk_size=10)
    assert streamer.total_size == 50
    it = iter(streamer)
    first = next(it)
    assert first.data == b"0123456789"
    assert stream.tell() == 10
    next(it)
    assert stream.tell() == 20


def test_each_pass_restarts_from_the_beginning():
    stream = io.BytesIO(b"abcdefghij")
    streamer = ChunkStreamer(stream, chunk_size=4)
    first = [c.data for c in streamer]
    partial = iter(streamer)
    next(partial)
    second = [c.data for c in streamer]
    assert first == second == [b"abcd", b"efgh", b"ij"]


def test_stream_shorter_than_declared_size():
    streamer = ChunkStreamer(io.BytesIO(b"abc"), total_size=10, chunk_size=4)
    with pytest.raises(ValidationError):
        list(streamer)


def test_rejects_unsupported_source_and_chunk_size():
    with pytest.raises(ValidationError):
        ChunkStreamer(12345)
    with pytest.raises(ValidationError):
        ChunkStreamer(b"abc", chunk_size=0)
