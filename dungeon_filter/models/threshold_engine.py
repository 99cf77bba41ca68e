# models/threshold_engine.py
"""
Two-colour luminance threshold filter.

• Pixels with luminance strictly below the threshold become ``colors.below``.
• Every other pixel becomes ``colors.at_or_above``.
• Alpha is copied through untouched and never read.

The engine holds one piece of state, the threshold.  It does not log and it
never recovers from bad input: every contract violation is raised.
"""
from __future__ import annotations

import numbers

import numpy as np

from .errors import InvalidThreshold, MalformedBuffer
from .filter_colors import DUNGEON_COLORS, FilterColors
from .pixel_buffer import CHANNELS, PixelBuffer

DEFAULT_THRESHOLD = 15
THRESHOLD_MIN = 0
THRESHOLD_MAX = 255

# ITU-R BT.601 luma weights
_W_R, _W_G, _W_B = 0.299, 0.587, 0.114


def compute_luminance(r, g, b):
    """
    0.299*r + 0.587*g + 0.114*b, not rounded.

    Accepts scalars or NumPy arrays; arrays are evaluated in float64 with the
    same operation order, so both paths give bit-identical results.
    """
    if isinstance(r, np.ndarray):
        r, g, b = (np.asarray(c, dtype=np.float64) for c in (r, g, b))
    return _W_R * r + _W_G * g + _W_B * b


def validate_threshold(value) -> int:
    """Return ``value`` as a plain int, or raise InvalidThreshold."""
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Integral):
        raise InvalidThreshold(value)
    if not THRESHOLD_MIN <= value <= THRESHOLD_MAX:
        raise InvalidThreshold(value)
    return int(value)


def threshold_pixels(
        data: np.ndarray,
        threshold: int,
        colors: FilterColors = DUNGEON_COLORS,
) -> np.ndarray:
    """
    Filter flat interleaved RGBA bytes and return a new array of equal length.

    Raises MalformedBuffer before touching anything if ``data`` is not made
    of complete 4-channel pixels.
    """
    threshold = validate_threshold(threshold)
    if not isinstance(data, np.ndarray) or data.ndim != 1 or data.dtype != np.uint8:
        raise MalformedBuffer("expected a flat uint8 array")
    if len(data) % CHANNELS:
        raise MalformedBuffer(f"length {len(data)} is not a multiple of {CHANNELS}", len(data))

    pixels = data.reshape(-1, CHANNELS)
    luminance = compute_luminance(pixels[:, 0], pixels[:, 1], pixels[:, 2])
    below = luminance < threshold

    out = pixels.copy()
    out[below, :3] = colors.below
    out[~below, :3] = colors.at_or_above
    return out.reshape(-1)


class ThresholdFilterEngine:
    """
    Owns the threshold and applies the filter to pixel buffers.

    Lifecycle: construct → set_threshold* → apply_threshold* → discard.
    """

    def __init__(self, threshold: int = DEFAULT_THRESHOLD,
                 colors: FilterColors = DUNGEON_COLORS) -> None:
        self._default = validate_threshold(threshold)
        self._threshold = self._default
        self.colors = colors

    @property
    def threshold(self) -> int:
        return self._threshold

    def set_threshold(self, value) -> None:
        """Reject anything but an int in [0, 255]; never clamps."""
        self._threshold = validate_threshold(value)

    def reset(self) -> None:
        self._threshold = self._default

    def apply_threshold(self, buffer: PixelBuffer, threshold: int | None = None) -> PixelBuffer:
        """
        Return a new buffer of the same shape with the filter applied.

        ``threshold`` overrides the held value for this call only.  The held
        value is read once, so a concurrent set_threshold never produces a
        buffer mixing two thresholds.
        """
        snapshot = self._threshold if threshold is None else validate_threshold(threshold)
        buffer.validate()
        filtered = threshold_pixels(buffer.data, snapshot, self.colors)
        return PixelBuffer(filtered, buffer.width, buffer.height)
