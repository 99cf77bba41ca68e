from pathlib import Path
from typing import Union
import logging

import numpy as np

from ..models.image import Image
from ..models.pixel_buffer import PixelBuffer
from ..repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


class ImageService:
    """I/O helpers and Image <-> PixelBuffer conversion.  No filter logic."""
    def __init__(self):
        self.image_repository = ImageRepository()

    def create_image(self, pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        return self.image_repository.create_image(pixels, path)

    def load(self, path: Union[str, Path]) -> Image:
        """Load a single image from disk into an Image object."""
        image = self.image_repository.load(path)
        logger.info(f"Loaded {image.path} ({image.width}x{image.height})")
        return image

    def load_bytes(self, data: bytes, filename: str = None) -> Image:
        """Decode an uploaded payload into an Image object."""
        image = self.image_repository.load_bytes(data, filename)
        logger.info(f"Decoded upload {filename or '<unnamed>'} ({image.width}x{image.height})")
        return image

    def is_supported(self, path: Union[str, Path]) -> bool:
        return self.image_repository.is_supported(path)

    def to_pixel_buffer(self, img: Image, *, original: bool = True) -> PixelBuffer:
        """
        Flatten an Image into a PixelBuffer.
        With ``original`` the untouched source pixels are used when available.
        """
        pixels = img.original_pixels if original and img.original_pixels is not None else img.pixels
        return PixelBuffer.from_array(pixels)

    @staticmethod
    def pixels_from_buffer(buffer: PixelBuffer) -> np.ndarray:
        return buffer.to_array().copy()

    def preserve_original_state(self, image: Image) -> None:
        """
        Preserve the current image state before filtering.
        """
        self.image_repository.save_original_pixels(image)

    def apply_pipeline_modification(self, image: Image, buffer: PixelBuffer) -> None:
        """
        Replace the visible pixels with a filtered buffer, keeping the original.
        """
        self.image_repository.update_pixels_preserve_original(image, self.pixels_from_buffer(buffer))

    def encode_png(self, image: Image) -> bytes:
        return self.image_repository.encode_png(image.pixels)

    def save(self, image: Image) -> None:
        """
        Business-level method to save the image to its path as PNG.
        """
        self.image_repository.save(image)
        logger.info(f"Saved {image.path}")
