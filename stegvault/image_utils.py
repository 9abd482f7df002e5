from __future__ import annotations

import io
import os
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import ValidationError

ImageSource = Union[str, os.PathLike, bytes, bytearray]


def _open(source: ImageSource) -> Image.Image:
    try:
        if isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(bytes(source)))
        else:
            img = Image.open(source)
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError(f"Cannot decode image: {exc}") from exc
    return img


def load_image_pixels(source: ImageSource) -> np.ndarray:
    """Decode an image to a contiguous uint8 array of shape (H, W, 3|4).

    RGB and RGBA are kept as they are; other modes are converted, to RGBA
    when they carry transparency.
    """
    img = _open(source)
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info)
        img = img.convert("RGBA" if has_alpha else "RGB")
    return np.ascontiguousarray(np.array(img, dtype=np.uint8))


def _to_image(pixels: np.ndarray) -> Image.Image:
    if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
        raise ValidationError(f"Expected an (H, W, 3|4) array, got shape {pixels.shape}")
    # (H, W, 3) uint8 decodes as RGB, (H, W, 4) as RGBA
    return Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))


def encode_png(pixels: np.ndarray) -> bytes:
    """Lossless PNG bytes; sample values survive a decode exactly."""
    buf = io.BytesIO()
    _to_image(pixels).save(buf, format="PNG")
    return buf.getvalue()


def save_image_png(path: Union[str, os.PathLike], pixels: np.ndarray) -> Path:
    path = Path(path)
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    _to_image(pixels).save(path, format="PNG")
    return path


def generate_cover(width: int = 682, height: int = 1024, seed: int = 42) -> np.ndarray:
    """Synthetic sunset-like cover: orange gradient, vignette and noise."""
    y = np.linspace(0, 1, height, dtype=np.float32)[:, None]
    x = np.linspace(0, 1, width, dtype=np.float32)[None, :]
    grad = (0.9 * (1 - y) + 0.1).astype(np.float32)

    rng = np.random.default_rng(seed)
    noise = rng.normal(loc=0.0, scale=0.08, size=(height, width)).astype(np.float32)

    vignette = (0.85 + 0.15 * (x * (1 - x) + y * (1 - y))).astype(np.float32)
    base = np.clip(grad * vignette + noise, 0, 1)
    R = np.clip(1.0 * base, 0, 1)
    G = np.clip(0.45 * base, 0, 1)
    B = np.clip(0.1 * base, 0, 1)
    return np.ascontiguousarray((np.stack([R, G, B], axis=2) * 255).astype(np.uint8))
