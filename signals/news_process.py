"""
News Process

Random news arrival as a belief shock: a pulse biases agent fair values
for a short while and feeds fear through the moves it provokes. It never
touches the price.

Arrival is a frame-rate-normalized Bernoulli trial, so the pulse rate per
second is the same whatever tick length the host uses.
"""

from typing import Optional
import logging

import numpy as np

from .models import NewsState

logger = logging.getLogger(__name__)


class NewsProcess:
    """
    Exogenous pulse generator.

    Lifecycle of a pulse:
        trigger  -> active = peak, ttl in [0.8, 2.1) s
        ttl > 0  -> ttl counts down, active ramps towards peak
        ttl == 0 -> active decays towards 0, snapped to 0 below SNAP_EPS
    """

    RAMP_RATE = 0.9  # intensity/sec while the pulse is live
    DECAY_RATE = 1.6  # intensity/sec once ttl has run out
    SNAP_EPS = 1e-4
    TTL_MIN = 0.8
    TTL_SPAN = 1.3
    FRAME_RATE = 60.0

    def __init__(self, state: Optional[NewsState] = None):
        self.state = state or NewsState()
        self.pulse_count = 0

    def arrival_probability(self, dt: float, news_rate: float) -> float:
        """Chance that a pulse arrives during a tick of length dt."""
        return 1.0 - (1.0 - news_rate) ** (self.FRAME_RATE * dt)

    def trigger(self, direction: int = 0, rng: Optional[np.random.Generator] = None) -> NewsState:
        """
        Start a pulse now.

        Args:
            direction: >0 bullish, <0 bearish, 0 picks a side at random
            rng: random source for the side and duration
        """
        rng = rng if rng is not None else np.random.default_rng()
        s = self.state
        if direction > 0:
            s.dir = 1
        elif direction < 0:
            s.dir = -1
        else:
            s.dir = -1 if rng.random() < 0.5 else 1
        s.ttl = self.TTL_MIN + rng.random() * self.TTL_SPAN
        s.active = s.peak
        self.pulse_count += 1
        return s

    def step(self, dt: float, rng: np.random.Generator, news_rate: float) -> NewsState:
        """Advance the pulse by dt seconds, possibly starting a new one."""
        s = self.state
        p_hit = self.arrival_probability(dt, news_rate)
        if rng.random() < p_hit and s.ttl <= 0:
            self.trigger(0, rng)
            logger.debug(f"News pulse arrived: dir={s.dir:+d} ttl={s.ttl:.2f}s")

        if s.ttl > 0:
            s.ttl -= dt
            s.active = min(s.peak, s.active + dt * self.RAMP_RATE)
            if s.ttl <= 0:
                s.ttl = 0.0
        else:
            s.active = max(0.0, s.active - dt * self.DECAY_RATE)
            if s.active <= self.SNAP_EPS:
                s.active = 0.0
        return s
