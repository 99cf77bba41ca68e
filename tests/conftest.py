"""
Pytest configuration and fixtures for the dungeon filter tests.
"""
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from dungeon_filter.models.image import Image
from dungeon_filter.models.pixel_buffer import PixelBuffer


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep a developer's .env from leaking into assertions on defaults."""
    for name in ("DEFAULT_THRESHOLD", "PRESET_THRESHOLDS", "EXPORT_FILENAME_PREFIX",
                 "SHARE_TEXT", "SHARE_INTENT_URL", "VALID_IMAGE_EXTENSIONS"):
        monkeypatch.delenv(name, raising=False)


def rgba_buffer(*pixels, width=None, height=1):
    """PixelBuffer from (r, g, b, a) tuples laid out in one row by default."""
    flat = np.array(pixels, dtype=np.uint8).reshape(-1)
    return PixelBuffer(flat, width if width is not None else len(pixels), height)


@pytest.fixture
def gradient_pixels():
    """4x64 RGBA image: grey ramp 0..252 across, alpha varies by row."""
    ramp = np.arange(0, 256, 4, dtype=np.uint8)
    pixels = np.zeros((4, len(ramp), 4), dtype=np.uint8)
    pixels[:, :, 0] = ramp
    pixels[:, :, 1] = ramp
    pixels[:, :, 2] = ramp
    pixels[:, :, 3] = np.array([255, 200, 64, 0], dtype=np.uint8)[:, None]
    return pixels


@pytest.fixture
def gradient_image(gradient_pixels):
    return Image(pixels=gradient_pixels.copy())


@pytest.fixture
def png_bytes(gradient_pixels):
    """The gradient encoded as an RGBA PNG."""
    buffer = BytesIO()
    PILImage.fromarray(gradient_pixels).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_file(tmp_path, png_bytes):
    path = tmp_path / "gradient.png"
    path.write_bytes(png_bytes)
    return path
