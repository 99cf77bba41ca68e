from pathlib import Path
from typing import Union
from io import BytesIO
import os

import numpy as np
import cv2
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import UnsupportedImage

# Load environment variables
load_dotenv()

_TO_RGBA = {
    1: cv2.COLOR_GRAY2RGBA,
    3: cv2.COLOR_BGR2RGBA,
    4: cv2.COLOR_BGRA2RGBA,
}


class ImageRepository:
    """
    Handles decoding, encoding and file I/O for Image entities.
    Everything leaving this class is (H, W, 4) uint8 RGBA.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.gif,.bmp,.webp")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    def is_supported(self, path: Union[str, Path]) -> bool:
        return Path(path).suffix.lower() in self.VALID_EXTS

    @staticmethod
    def _to_rgba(arr: np.ndarray) -> np.ndarray:
        if arr.dtype == np.uint16:
            arr = (arr // 257).astype(np.uint8)
        elif arr.dtype != np.uint8:
            raise ValueError(f"unsupported pixel depth {arr.dtype}")

        channels = 1 if arr.ndim == 2 else arr.shape[2]
        if channels not in _TO_RGBA:
            raise ValueError(f"unsupported channel count {channels}")
        if channels == 1 and arr.ndim == 3:
            arr = arr[:, :, 0]
        return cv2.cvtColor(arr, _TO_RGBA[channels])

    @classmethod
    def decode(cls, data: bytes, source: Union[str, Path] = "<bytes>") -> np.ndarray:
        """
        Decode encoded image bytes into RGBA pixels.
        OpenCV first; Pillow for formats OpenCV cannot read (e.g. GIF).
        """
        if not data:
            raise UnsupportedImage(source, "empty payload")

        arr = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if arr is not None:
            try:
                return cls._to_rgba(arr)
            except ValueError as err:
                raise UnsupportedImage(source, str(err)) from err

        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                return np.array(pil_img.convert("RGBA"), dtype=np.uint8)
        except (UnidentifiedImageError, OSError) as err:
            raise UnsupportedImage(source, str(err)) from err

    @classmethod
    def load(cls, path: Union[str, Path]) -> Image:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return Image(pixels=cls.decode(path.read_bytes(), path), path=path)

    @classmethod
    def load_bytes(cls, data: bytes, filename: str = None) -> Image:
        pixels = cls.decode(data, filename or "<upload>")
        return Image(pixels=pixels, path=Path(filename) if filename else None)

    @staticmethod
    def encode_png(pixels: np.ndarray) -> bytes:
        """Lossless PNG encoding of RGBA pixels."""
        buffer = BytesIO()
        PILImage.fromarray(np.ascontiguousarray(pixels)).save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def save(image: Image) -> None:
        if image.path is None:
            raise ValueError("Image has no path to save to")
        image.path.parent.mkdir(parents=True, exist_ok=True)
        PILImage.fromarray(np.ascontiguousarray(image.pixels)).save(image.path, format="PNG")

    @staticmethod
    def save_original_pixels(image: Image) -> None:
        """Save current pixels as original so every filter pass starts from them"""
        if image.original_pixels is None:
            image.original_pixels = image.pixels.copy()

    @staticmethod
    def update_pixels_preserve_original(image: Image, new_pixels: np.ndarray) -> None:
        """Update pixels while preserving original"""
        if image.original_pixels is None:
            image.original_pixels = image.pixels.copy()
        image.pixels = new_pixels
