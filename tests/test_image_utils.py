import numpy as np
import pytest
from PIL import Image

from stegvault.embedder import embed_payload_lsb, extract_payload_lsb
from stegvault.errors import ValidationError
from stegvault.image_utils import encode_png, generate_cover, load_image_pixels, save_image_png


def test_png_round_trip_is_lossless(make_cover):
    pixels = make_cover(33, 21, 4)
    assert np.array_equal(load_image_pixels(encode_png(pixels)), pixels)


def test_stego_survives_png_on_disk(make_cover, payload, tmp_path):
    secret = payload(120)
    stego = embed_payload_lsb(make_cover(40, 40), secret)
    path = save_image_png(tmp_path / "stego.jpg", stego)
    assert path.suffix == ".png"
    assert extract_payload_lsb(load_image_pixels(path)) == secret


def test_greyscale_and_palette_images_are_converted(tmp_path):
    Image.new("L", (5, 4), 128).save(tmp_path / "grey.png")
    assert load_image_pixels(tmp_path / "grey.png").shape == (4, 5, 3)

    Image.new("LA", (5, 4), (10, 20)).save(tmp_path / "grey_alpha.png")
    converted = load_image_pixels(tmp_path / "grey_alpha.png")
    assert converted.shape == (4, 5, 4)
    assert np.all(converted[..., 3] == 20)


def test_undecodable_input():
    with pytest.raises(ValidationError):
        load_image_pixels(b"definitely not an image")


def test_generate_cover_is_deterministic():
    a = generate_cover(64, 32, seed=1)
    assert a.shape == (32, 64, 3) and a.dtype == np.uint8
    assert np.array_equal(a, generate_cover(64, 32, seed=1))
    assert not np.array_equal(a, generate_cover(64, 32, seed=2))
