# tests/conftest.py
from pathlib import Path
import sys

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from handauth.models import Sample  # noqa: E402


def _stroke_pixels(height: int, width: int, offset: int) -> np.ndarray:
    pixels = np.zeros((height, width), dtype=np.uint8)
    cv2.line(pixels, (10 + offset, 20), (90 + offset, 180), 255, 1)
    cv2.line(pixels, (50 + offset, 10), (50 + offset, 190), 255, 1)
    cv2.ellipse(pixels, (180 + offset, 100), (60, 40), 0, 0, 360, 255, 1)
    cv2.line(pixels, (240, 30 + offset), (290, 170), 255, 1)
    return pixels


@pytest.fixture
def make_sample():
    """Factory of thin-stroke samples (200x300 by default) shifted by ``offset``."""
    def _make(height: int = 200, width: int = 300, offset: int = 0) -> Sample:
        return Sample(_stroke_pixels(height, width, offset))
    return _make


@pytest.fixture
def sample(make_sample) -> Sample:
    return make_sample()


@pytest.fixture
def left_half_sample() -> Sample:
    """200x300 sample with ink only in x < 100."""
    pixels = np.zeros((200, 300), dtype=np.uint8)
    cv2.line(pixels, (10, 20), (90, 180), 255, 1)
    cv2.line(pixels, (50, 10), (50, 190), 255, 1)
    return Sample(pixels)


@pytest.fixture
def signature_image():
    """Factory of raw grayscale signature scans: dark strokes on white paper."""
    def _make(offset: int = 0) -> np.ndarray:
        image = np.full((150, 400), 235, dtype=np.uint8)
        points = np.array([
            [40, 110], [70, 40], [100, 100], [130, 45 + offset], [170, 105],
            [210, 50], [250, 100 + offset], [300, 60], [350, 95],
        ], dtype=np.int32)
        cv2.polylines(image, [points], False, 20, 4)
        cv2.ellipse(image, (120, 80), (30, 18), 0, 0, 360, 20, 3)
        return image
    return _make


@pytest.fixture
def write_image(tmp_path):
    """Write an image into tmp_path and return its path."""
    def _write(name: str, image: np.ndarray) -> Path:
        path = tmp_path / name
        assert cv2.imwrite(str(path), image)
        return path
    return _write


@pytest.fixture
def signature_path(write_image, signature_image) -> Path:
    return write_image("001_01.png", signature_image())
