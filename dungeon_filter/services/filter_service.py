from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Union
import os
import re
import math
import logging

from dotenv import load_dotenv

from ..models.image import Image
from ..models.errors import InvalidThreshold, NoImageLoaded
from ..models.threshold_engine import DEFAULT_THRESHOLD, ThresholdFilterEngine, validate_threshold
from .image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
DEFAULT_PRESETS = "dark:15,dim:50,medium:100,bright:150"


def parse_threshold(raw) -> int:
    """
    Read a threshold the way a slider or form field sends it: an int, or a
    string whose leading digits form the value ("42", " 42px"), or a JSON
    number, truncated toward zero (42.0 and 42.9 both read as 42).
    Range is checked too.
    """
    if isinstance(raw, str):
        match = _LEADING_INT.match(raw)
        if match is None:
            raise InvalidThreshold(raw)
        raw = int(match.group(1))
    elif isinstance(raw, float):
        if not math.isfinite(raw):
            raise InvalidThreshold(raw)
        raw = int(raw)
    return validate_threshold(raw)


def parse_presets(raw: str) -> Dict[str, int]:
    """'dark:15,dim:50' → {'dark': 15, 'dim': 50}"""
    presets: Dict[str, int] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        name, _, value = item.partition(":")
        presets[name.strip().lower()] = parse_threshold(value)
    return presets


class FilterService:
    """
    Holds the single "current image" and re-runs the filter on it whenever
    the threshold changes.

    • Every pass starts from the image's original pixels.
    • With no image loaded, threshold changes only update the engine.
    """

    def __init__(self,
                 image_service: ImageService = None,
                 engine: ThresholdFilterEngine = None,
                 presets: Dict[str, int] = None):
        self.image_service = image_service or ImageService()
        self.engine = engine or ThresholdFilterEngine(
            int(os.getenv("DEFAULT_THRESHOLD", str(DEFAULT_THRESHOLD))))
        self.presets = presets if presets is not None else parse_presets(
            os.getenv("PRESET_THRESHOLDS", DEFAULT_PRESETS))
        self._image: Optional[Image] = None

    # ── State ────────────────────────────────────────────────────────
    @property
    def threshold(self) -> int:
        return self.engine.threshold

    @property
    def current_image(self) -> Optional[Image]:
        return self._image

    @property
    def has_image(self) -> bool:
        return self._image is not None

    def require_image(self, operation: str) -> Image:
        if self._image is None:
            raise NoImageLoaded(operation)
        return self._image

    # ── Loading ──────────────────────────────────────────────────────
    def load(self, image: Image) -> Image:
        """Make ``image`` the current image and filter it at the current threshold."""
        self.image_service.preserve_original_state(image)
        self._image = image
        return self.refresh()

    def load_path(self, path: Union[str, Path]) -> Image:
        return self.load(self.image_service.load(path))

    def load_bytes(self, data: bytes, filename: str = None) -> Image:
        return self.load(self.image_service.load_bytes(data, filename))

    # ── Filtering ────────────────────────────────────────────────────
    def refresh(self) -> Optional[Image]:
        """Re-filter the current image from its original pixels."""
        if self._image is None:
            logger.debug("refresh requested with no image loaded")
            return None

        source = self.image_service.to_pixel_buffer(self._image, original=True)
        filtered = self.engine.apply_threshold(source)
        self.image_service.apply_pipeline_modification(self._image, filtered)
        logger.debug(f"Filtered {filtered.width}x{filtered.height} at threshold {self.threshold}")
        return self._image

    def set_threshold(self, raw) -> Optional[Image]:
        value = parse_threshold(raw)
        self.engine.set_threshold(value)
        logger.info(f"Threshold set to {value}")
        return self.refresh()

    def apply_preset(self, name: str) -> Optional[Image]:
        key = str(name).strip().lower()
        if key not in self.presets:
            raise KeyError(f"Unknown preset: {name}")
        return self.set_threshold(self.presets[key])

    def reset(self) -> None:
        """Drop the current image and restore the default threshold."""
        self._image = None
        self.engine.reset()
        logger.info("Filter state reset")
