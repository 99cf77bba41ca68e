from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import quote
import os
import time
import logging

from dotenv import load_dotenv

from .filter_service import FilterService
from .image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SHARE_TEXT = (
    "Check out my Loot Survivor filtered image! 🎮⚔️\n\n"
    "Get yours now: https://survivalleavesamark.vercel.app/"
)


@dataclass
class SharePayload:
    png: bytes
    text: str
    intent_url: str


class ExportService:
    """
    Turns the filtered current image into something a user can keep:
    a PNG download, a PNG file on disk, or a share intent.
    """

    def __init__(self, image_service: ImageService = None):
        self.image_service = image_service or ImageService()
        self.filename_prefix = os.getenv("EXPORT_FILENAME_PREFIX", "loot-survivor")
        self.share_text = os.getenv("SHARE_TEXT", DEFAULT_SHARE_TEXT)
        self.intent_url = os.getenv("SHARE_INTENT_URL", "https://twitter.com/intent/tweet")

    def default_filename(self, timestamp_ms: int = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"{self.filename_prefix}-{timestamp_ms}.png"

    def to_png(self, filter_service: FilterService) -> bytes:
        image = filter_service.require_image("export")
        return self.image_service.encode_png(image)

    def save(self, filter_service: FilterService, path: Union[str, Path] = None) -> Path:
        """Write the filtered image as PNG; defaults to the download filename in the cwd."""
        image = filter_service.require_image("save")
        target = Path(path) if path is not None else Path(self.default_filename())
        out = self.image_service.create_image(image.pixels, target)
        self.image_service.save(out)
        return target

    def share_intent_url(self) -> str:
        # encodeURIComponent leaves these unescaped
        text = quote(self.share_text, safe="-_.!~*'()")
        return f"{self.intent_url}?text={text}"

    def share(self, filter_service: FilterService) -> SharePayload:
        png = self.to_png(filter_service)
        logger.info(f"Prepared share payload ({len(png)} bytes)")
        return SharePayload(png=png, text=self.share_text, intent_url=self.share_intent_url())
