from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

RGB = Tuple[int, int, int]

NEON_GREEN: RGB = (0, 240, 0)
BLACK: RGB = (0, 0, 0)


@dataclass(frozen=True)
class FilterColors:
    """
    The two output colours of the threshold filter.
    Pixels darker than the threshold get ``below``, all others ``at_or_above``.
    """
    below: RGB = NEON_GREEN
    at_or_above: RGB = BLACK


DUNGEON_COLORS = FilterColors()
