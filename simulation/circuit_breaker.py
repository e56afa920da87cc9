"""
Circuit Breaker

Watches how far price has travelled over a rolling time window and halts
price formation after an excessive move. States are collapsed into two
counters:

    armed     frozen == 0 and cooldown == 0   (evaluates every tick)
    halted    frozen  > 0                      (matcher holds the price)
    cooldown  cooldown > 0                     (no re-evaluation yet)

A trip sets both counters to the configured cooldown, so the halt and the
re-arm delay run out together.
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional
import logging

from agents.population import AgentPopulation

logger = logging.getLogger(__name__)

TRIP_FEAR = 0.25
PRICE_EPS = 1e-6


@dataclass
class PriceSample:
    age: float
    price: float


class CircuitBreaker:
    """Rolling-window price velocity monitor."""

    def __init__(self, window_max: int = 240):
        self.window_max = window_max
        self.frozen = 0.0
        self.cooldown = 0.0
        self.window: deque = deque()
        self.trips = 0

    @property
    def halted(self) -> bool:
        return self.frozen > 0

    @property
    def armed(self) -> bool:
        return self.frozen <= 0 and self.cooldown <= 0

    @property
    def oldest_price(self) -> Optional[float]:
        return self.window[0].price if self.window else None

    def update(
        self,
        dt: float,
        price: float,
        population: AgentPopulation,
        breaker_pct: float,
        window_sec: float,
        cooldown_sec: float,
    ) -> bool:
        """
        Advance counters and window by dt, then evaluate if armed.

        Returns:
            True if the breaker tripped on this tick
        """
        self.cooldown = max(0.0, self.cooldown - dt)
        self.frozen = max(0.0, self.frozen - dt)

        self.window.append(PriceSample(age=0.0, price=price))
        for sample in self.window:
            sample.age += dt

        while self.window and self.window[0].age > window_sec:
            self.window.popleft()
        if len(self.window) > self.window_max:
            self.window.popleft()

        if not self.armed:
            return False

        # Compare against the oldest retained sample
        old = self.oldest_price if self.window else price
        move = abs(price - old) / max(PRICE_EPS, old)

        if move >= breaker_pct:
            self.frozen = cooldown_sec
            self.cooldown = cooldown_sec
            self.trips += 1
            # A halt cannot move price, but it visibly frightens everyone
            population.raise_fear(TRIP_FEAR)
            logger.warning(
                f"Circuit breaker tripped: {move * 100:.2f}% move "
                f"({old:.2f} -> {price:.2f}), halting for {cooldown_sec:.2f}s"
            )
            return True
        return False

    def reset(self) -> None:
        self.frozen = 0.0
        self.cooldown = 0.0
        self.window.clear()

    def get_state(self) -> dict:
        return {
            "breaker_frozen": self.frozen,
            "breaker_cooldown": self.cooldown,
            "breaker_halted": self.halted,
            "breaker_trips": self.trips,
        }
