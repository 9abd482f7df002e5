# stegvault test configuration and shared fixtures

import os

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Deterministic numpy generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def make_cover(rng):
    """Factory for random cover pixel arrays."""

    def _make(width, height, channels=3):
        return rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)

    return _make


@pytest.fixture
def payload():
    """Factory for random payload bytes."""

    def _make(size):
        return os.urandom(size)

    return _make


@pytest.fixture
def sample_file(tmp_path):
    """A small binary file on disk."""
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4\n" + bytes(range(256)) * 8)
    return path
