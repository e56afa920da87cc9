"""
Discretized price axis shared by the book, the agents and the matcher.

Price is a continuous position on an odd-length grid of bins, so the
middle bin is a true centre. The outermost bins are kept as a margin:
price and beliefs live in [EDGE, bins - 1 - EDGE].
"""

from dataclasses import dataclass
import math

import numpy as np

from config.settings import coerce_bins, DEFAULT_BINS

EDGE = 4


def clamp(v: float, lo: float, hi: float) -> float:
    return lo if v < lo else hi if v > hi else v


def lerp(a, b, t):
    return a + (b - a) * t


def round_half_up(x: float) -> int:
    """Nearest integer with halves rounded up (not banker's rounding)."""
    return int(math.floor(x + 0.5))


@dataclass(frozen=True)
class PriceAxis:
    """Fixed odd-length bin grid. Immutable for the lifetime of a book."""

    bins: int = DEFAULT_BINS

    def __post_init__(self):
        # frozen dataclass: coerce through object.__setattr__
        object.__setattr__(self, 'bins', coerce_bins(self.bins))

    @property
    def mid(self) -> int:
        return self.bins // 2

    @property
    def lo(self) -> float:
        """Lowest admissible price / belief."""
        return float(EDGE)

    @property
    def hi(self) -> float:
        """Highest admissible price / belief."""
        return float(self.bins - 1 - EDGE)

    def clamp_price(self, p: float) -> float:
        return clamp(p, self.lo, self.hi)

    def clamp_prices(self, values: np.ndarray) -> np.ndarray:
        return np.clip(values, self.lo, self.hi)

    def clamp_bin(self, i: int) -> int:
        return int(clamp(i, 0, self.bins - 1))

    def nearest_bin(self, p: float) -> int:
        """Bin closest to a continuous price."""
        return self.clamp_bin(round_half_up(p))

    def zeros(self) -> np.ndarray:
        return np.zeros(self.bins, dtype=np.float64)
