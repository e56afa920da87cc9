"""
Bucketed Limit Order Book

The book is two dense volume arrays indexed by price bin. There is no order
identity and no queue: the book is zeroed and rebuilt from every agent's
intent each tick (cancel-and-replace), and only aggregate volume per bin
matters for matching.

Author: Murad Farzulla
Date: December 2025
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple
import logging

import numpy as np

from simulation.price_axis import PriceAxis

logger = logging.getLogger(__name__)

# Volume below this is treated as an empty bin
DUST = 1e-6


class Side(Enum):
    CROSS = "cross"  # both sides of a crossed bin executed together
    BUY = "buy"
    SELL = "sell"


@dataclass
class TradePrint:
    """One execution on the tape. Fades out as `life` runs down."""
    bin: int
    quantity: float
    side: Side
    life: float

    def to_dict(self) -> dict:
        return {"bin": self.bin, "quantity": self.quantity, "side": self.side.value, "life": self.life}


class OrderBook:
    """
    Dense per-bin bid/ask volume.

    All scans start from a reference bin (the one nearest the price) and
    walk outward, so no sorting is ever needed.
    """

    def __init__(self, axis: PriceAxis):
        self.axis = axis
        self.bid = axis.zeros()
        self.ask = axis.zeros()

    @property
    def bins(self) -> int:
        return self.axis.bins

    def clear(self) -> None:
        """Zero both sides in place before a rebuild."""
        self.bid.fill(0.0)
        self.ask.fill(0.0)

    def best_bid(self, mid: int) -> Optional[int]:
        """Nearest non-empty bid bin at or below mid."""
        hits = np.flatnonzero(self.bid[: mid + 1] > DUST)
        return int(hits[-1]) if hits.size else None

    def best_ask(self, mid: int) -> Optional[int]:
        """Nearest non-empty ask bin at or above mid."""
        hits = np.flatnonzero(self.ask[mid:] > DUST)
        return int(hits[0]) + mid if hits.size else None

    def spread(self, mid: int) -> Optional[int]:
        bb, ba = self.best_bid(mid), self.best_ask(mid)
        if bb is None or ba is None:
            return None
        return max(0, ba - bb)

    def is_crossed(self, mid: int) -> bool:
        bb, ba = self.best_bid(mid), self.best_ask(mid)
        return bb is not None and ba is not None and bb >= ba

    def near_volume(self, mid: int, radius: int) -> Tuple[float, float]:
        """Bid volume in (mid-radius .. mid-1) and ask volume in (mid+1 .. mid+radius)."""
        lo = max(0, mid - radius)
        hi = min(self.bins, mid + radius + 1)
        near_bid = float(self.bid[lo:mid].sum()) if mid > 0 else 0.0
        near_ask = float(self.ask[mid + 1:hi].sum())
        return near_bid, near_ask

    def imbalance(self, mid: int, radius: int) -> Tuple[float, float]:
        """Near-price imbalance in [-1, 1] and the local depth it was computed from."""
        near_bid, near_ask = self.near_volume(mid, radius)
        depth = near_bid + near_ask
        return (near_bid - near_ask) / (1e-6 + depth), depth

    @property
    def bid_volume(self) -> float:
        return float(self.bid.sum())

    @property
    def ask_volume(self) -> float:
        return float(self.ask.sum())

    def get_depth(self, mid: int, span: int) -> Tuple[int, np.ndarray, np.ndarray]:
        """
        Window of the book around mid, as a host would draw it.

        Returns:
            (lo, bids, asks) where lo is the bin index of the first element
        """
        lo = self.axis.clamp_bin(mid - span)
        hi = self.axis.clamp_bin(mid + span)
        return lo, self.bid[lo:hi + 1].copy(), self.ask[lo:hi + 1].copy()

    def get_snapshot(self, mid: int, radius: int = 14) -> dict:
        """Summary statistics of the current book."""
        bb, ba = self.best_bid(mid), self.best_ask(mid)
        imb, depth = self.imbalance(mid, radius)
        return {
            "best_bid": bb,
            "best_ask": ba,
            "spread": self.spread(mid),
            "bid_volume": self.bid_volume,
            "ask_volume": self.ask_volume,
            "imbalance": imb,
            "depth": depth,
        }

    def __repr__(self) -> str:
        return (
            f"OrderBook(bins={self.bins}, "
            f"bid_vol={self.bid_volume:.1f}, ask_vol={self.ask_volume:.1f})"
        )
