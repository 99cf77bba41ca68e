# pipeline/apply_filter.py
from pathlib import Path
from typing import Union
import logging

from ..models.image import Image
from ..models.threshold_engine import ThresholdFilterEngine
from ..services.image_service import ImageService

logger = logging.getLogger(__name__)


def apply_filter(
    image: Image,
    threshold: int = None,
    *,
    engine: ThresholdFilterEngine = None,
    image_service: ImageService = None,
) -> Image:
    """
    Filter *image* in-memory:
        • flatten its original pixels into a PixelBuffer
        • run the threshold engine (held threshold unless one is given)
        • write the result back, preserving the original pixels
    Returns the same Image object with updated pixels.
    """
    engine = engine or ThresholdFilterEngine()
    image_service = image_service or ImageService()

    image_service.preserve_original_state(image)
    source = image_service.to_pixel_buffer(image, original=True)
    filtered = engine.apply_threshold(source, threshold)
    image_service.apply_pipeline_modification(image, filtered)

    logger.info(f"Filtered {filtered.width}x{filtered.height} image "
                f"at threshold {engine.threshold if threshold is None else threshold}")
    return image


def filter_file(
    src: Union[str, Path],
    dst: Union[str, Path],
    threshold: int = None,
    *,
    engine: ThresholdFilterEngine = None,
    image_service: ImageService = None,
) -> Path:
    """Load *src*, filter it and save the result as PNG at *dst*."""
    image_service = image_service or ImageService()
    image = apply_filter(image_service.load(src), threshold,
                         engine=engine, image_service=image_service)
    image.path = Path(dst)
    image_service.save(image)
    return image.path
