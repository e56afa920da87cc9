"""
Data models for exogenous market signals.
"""

from dataclasses import dataclass


NEWS_PEAK = 0.85


@dataclass
class NewsState:
    """
    Intensity of the current news pulse.

    A pulse shifts agent beliefs, never the price directly.
    """

    active: float = 0.0  # [0, peak] current intensity
    dir: int = 0  # -1 / +1, 0 before the first pulse
    ttl: float = 0.0  # seconds left in the active phase
    peak: float = NEWS_PEAK

    @property
    def is_active(self) -> bool:
        return self.active > 0.0

    @property
    def in_pulse(self) -> bool:
        """True while the pulse is still ramping (no new pulse may start)."""
        return self.ttl > 0.0

    def bias(self, strength: float) -> float:
        """Signed belief shift, in bins, applied to every agent's fair value."""
        return self.active * self.dir * strength * 0.15

    def to_dict(self) -> dict:
        return {
            'news_active': self.active,
            'news_dir': self.dir,
            'news_ttl': self.ttl,
        }
