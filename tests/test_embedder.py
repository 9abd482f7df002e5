import numpy as np
import pytest

from stegvault.embedder import capacity, embed_payload_lsb, extract_payload_lsb, pixels_capacity
from stegvault.errors import CapacityError, CorruptionError


@pytest.mark.parametrize(
    "width, height, expected",
    [(200, 200, 14996), (1, 11, 0), (11, 1, 0), (3, 4, 0), (10, 10, 33), (0, 0, 0), (2, 2, 0)],
)
def test_capacity(width, height, expected):
    assert capacity(width, height) == expected


def test_embed_and_extract_100_bytes_in_200x200(make_cover, payload):
    cover = make_cover(200, 200)
    secret = payload(100)
    stego = embed_payload_lsb(cover, secret)
    assert stego.shape == cover.shape
    assert extract_payload_lsb(stego) == secret


def test_header_occupies_first_32_samples(make_cover, payload):
    cover = make_cover(20, 20)
    stego = embed_payload_lsb(cover, payload(100))
    lsbs = stego.reshape(-1)[:32] & 1
    assert int("".join(str(b) for b in lsbs), 2) == 100


@pytest.mark.parametrize("width, height", [(200, 200), (37, 23)])
def test_exact_capacity_fits_and_one_more_does_not(make_cover, payload, width, height):
    cover = make_cover(width, height)
    limit = capacity(width, height)
    secret = payload(limit)
    assert extract_payload_lsb(embed_payload_lsb(cover, secret)) == secret

    original = cover.copy()
    with pytest.raises(CapacityError):
        embed_payload_lsb(cover, payload(limit + 1))
    with pytest.raises(CapacityError):
        embed_payload_lsb(cover, payload(limit + 1), inplace=True)
    assert np.array_equal(cover, original)


def test_capacity_of_200x200_rejects_14997_bytes(make_cover, payload):
    cover = make_cover(200, 200)
    original = cover.copy()
    with pytest.raises(CapacityError):
        embed_payload_lsb(cover, payload(14997))
    assert np.array_equal(cover, original)


@pytest.mark.parametrize("size_of", [lambda cap: 1, lambda cap: cap, lambda cap: cap // 2])
@pytest.mark.parametrize("width, height, channels", [(16, 9, 3), (31, 17, 4)])
def test_round_trip_sizes(make_cover, payload, size_of, width, height, channels):
    cover = make_cover(width, height, channels)
    secret = payload(size_of(pixels_capacity(cover)))
    assert extract_payload_lsb(embed_payload_lsb(cover, secret)) == secret


def test_empty_payload_round_trip_when_allowed(make_cover):
    stego = embed_payload_lsb(make_cover(8, 8), b"")
    assert extract_payload_lsb(stego, allow_empty=True) == b""
    with pytest.raises(CorruptionError):
        extract_payload_lsb(stego)


def test_embed_does_not_touch_cover_or_alpha(make_cover, payload):
    cover = make_cover(30, 30, 4)
    original = cover.copy()
    stego = embed_payload_lsb(cover, payload(200))
    assert np.array_equal(cover, original)
    assert np.array_equal(stego[..., 3], original[..., 3])
    assert np.all((stego.astype(int) - original.astype(int)) ** 2 <= 1)


def test_inplace_embedding_mutates_cover(make_cover, payload):
    cover = make_cover(30, 30)
    stego = embed_payload_lsb(cover, payload(50), inplace=True)
    assert stego is cover


def test_blank_image_has_no_payload():
    with pytest.raises(CorruptionError):
        extract_payload_lsb(np.zeros((50, 50, 3), dtype=np.uint8))


def test_implausible_length_header():
    pixels = np.full((50, 50, 3), 0xFF, dtype=np.uint8)
    with pytest.raises(CorruptionError):
        extract_payload_lsb(pixels)


def test_tiny_image_cannot_carry_header():
    with pytest.raises(CorruptionError):
        extract_payload_lsb(np.zeros((2, 2, 3), dtype=np.uint8))
