from __future__ import annotations
from dataclasses import dataclass
import numpy as np

from .errors import MalformedBuffer

CHANNELS = 4  # R, G, B, A


@dataclass
class PixelBuffer:
    """
    Flat row-major RGBA bytes plus the dimensions they claim to describe.

    ``data`` is a 1-D uint8 array laid out as r0 g0 b0 a0 r1 g1 b1 a1 ...
    The buffer is only checked when :meth:`validate` runs, so a caller can
    build a malformed one and have the engine reject it.
    """
    data: np.ndarray
    width: int
    height: int

    @classmethod
    def from_bytes(cls, raw: bytes | bytearray | memoryview, width: int, height: int) -> "PixelBuffer":
        return cls(np.frombuffer(bytes(raw), dtype=np.uint8).copy(), width, height)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "PixelBuffer":
        """Wrap an (H, W, 4) uint8 array. The data is copied."""
        if pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise MalformedBuffer(f"expected an (H, W, 4) array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise MalformedBuffer(f"expected uint8 pixels, got {pixels.dtype}")
        height, width = pixels.shape[:2]
        return cls(np.ascontiguousarray(pixels).reshape(-1).copy(), int(width), int(height))

    @property
    def pixel_count(self) -> int:
        return len(self.data) // CHANNELS

    def validate(self) -> None:
        if not isinstance(self.data, np.ndarray) or self.data.ndim != 1:
            raise MalformedBuffer("data must be a flat array", width=self.width, height=self.height)
        if self.data.dtype != np.uint8:
            raise MalformedBuffer(f"data must be uint8, got {self.data.dtype}",
                                  len(self.data), self.width, self.height)
        length = len(self.data)
        if length % CHANNELS:
            raise MalformedBuffer(f"length {length} is not a multiple of {CHANNELS}",
                                  length, self.width, self.height)
        if self.width < 0 or self.height < 0:
            raise MalformedBuffer("dimensions must be non-negative", length, self.width, self.height)
        if self.width * self.height * CHANNELS != length:
            raise MalformedBuffer(
                f"{self.width}x{self.height} needs {self.width * self.height * CHANNELS} bytes, got {length}",
                length, self.width, self.height)

    def to_array(self) -> np.ndarray:
        """(H, W, 4) view of the data."""
        self.validate()
        return self.data.reshape(self.height, self.width, CHANNELS)

    def to_bytes(self) -> bytes:
        return self.data.tobytes()
