import io
import random

import numpy as np
import pytest
from PIL import Image


def _encode(img: Image.Image, fmt: str) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def photo_bytes() -> bytes:
    """Portrait JPEG with a dark figure-ish block on the right."""
    arr = np.full((800, 600, 3), 200, dtype=np.uint8)
    arr[200:800, 380:560] = (60, 40, 30)
    return _encode(Image.fromarray(arr, "RGB"), "JPEG")


@pytest.fixture
def cutout_bytes() -> bytes:
    """Transparent PNG with an opaque figure in the middle, as remove.bg returns it."""
    img = Image.new("RGBA", (400, 600), (0, 0, 0, 0))
    img.paste((220, 120, 90, 255), (100, 50, 300, 600))
    return _encode(img, "PNG")


@pytest.fixture
def logo_bytes() -> bytes:
    return _encode(Image.new("RGBA", (320, 120), (10, 80, 200, 255)), "PNG")


@pytest.fixture
def full_width_measure():
    """Every glyph is exactly one em wide: width = size * number of characters."""

    def measure(text, size):
        return len(text) * size

    return measure


class FixedRandom(random.Random):
    """random.Random with pinned draws, to drive the preferred / alternate branches."""

    def __init__(self, value=0.0, index=0, jitter=0):
        super().__init__(0)
        self.value = value
        self.index = index
        self.jitter = jitter

    def random(self):
        return self.value

    def randrange(self, *args, **kwargs):
        return self.index

    def randint(self, a, b):
        return self.jitter


@pytest.fixture
def fixed_random():
    return FixedRandom
