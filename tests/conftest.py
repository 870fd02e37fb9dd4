from __future__ import annotations

import numpy as np
import pytest


def make_red_square(size: int = 100, square: int = 40) -> np.ndarray:
    """White RGBA canvas with a centred opaque red square."""
    img = np.full((size, size, 4), 255, dtype=np.uint8)
    start = (size - square) // 2
    img[start:start + square, start:start + square, :3] = (255, 0, 0)
    return img


@pytest.fixture
def red_square() -> np.ndarray:
    return make_red_square()
