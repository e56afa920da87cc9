"""
Matcher / Price Engine

Turns the rebuilt book into executions and a continuous price:
1. Crossed bins execute min(bid, ask) each; the last crossed bin is the print.
2. Near-price imbalance drives velocity, amplified in liquidity voids.
3. Executions kick velocity and nudge every agent's inventory.
4. Price integrates velocity and is gently pulled to the nearest bin
   when the book is deep or makers are subsidised.

While the circuit breaker is halted only velocity decays; price, tape and
history are frozen.

Author: Murad Farzulla
Date: December 2025
"""

from collections import deque
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math

import numpy as np

from agents.population import AgentPopulation, Role
from config.settings import PolicySettings
from simulation.circuit_breaker import CircuitBreaker
from simulation.order_book import OrderBook, TradePrint, Side, DUST
from simulation.price_axis import PriceAxis, clamp, lerp

logger = logging.getLogger(__name__)


IMPACT = 22.0  # higher => more sensitive to imbalance
DAMPING = 0.92  # per-frame velocity retention at 60 fps
HALT_DECAY = 0.1  # per-second velocity retention while halted
IMBALANCE_RADIUS = 16
REDUCED_IMBALANCE_RADIUS = 10
VOID_MAX = 4.0
KICK_SCALE = 0.45
KICK_MAX = 3.0
INVENTORY_NUDGE = 0.0006
INVENTORY_NUDGE_MAX = 0.08
INVENTORY_DECAY = 0.9992
DEEP_BOOK = 50.0
LARGE_PRINT = 18.0


@dataclass
class MatchResult:
    """What happened in one matching step."""
    executed: float = 0.0
    last_bin: Optional[int] = None
    best_bid: Optional[int] = None
    best_ask: Optional[int] = None
    imbalance: float = 0.0
    depth: float = 0.0
    halted: bool = False


class PriceEngine:
    """
    Owns price, velocity, the trade tape and the price history.
    """

    def __init__(
        self,
        axis: PriceAxis,
        max_prints: int = 240,
        print_life: float = 1.2,
        history_max: int = 900,
    ):
        self.axis = axis
        self.print_life = print_life
        self.tape: deque = deque(maxlen=max_prints)
        self.price_history: deque = deque(maxlen=history_max)
        self.reset()

    def reset(self) -> None:
        self.price = float(self.axis.mid)
        self.velocity = 0.0
        self.last_trade_bin = self.axis.mid
        self.tape.clear()
        self._fresh_prints = []
        self.price_history.clear()
        self.total_volume = 0.0
        self.trade_count = 0

    @property
    def mid_bin(self) -> int:
        return self.axis.nearest_bin(self.price)

    def execute_crosses(self, book: OrderBook, best_bid: int, best_ask: int) -> Tuple[float, Optional[int]]:
        """
        Execute every bin of the overlap [best_ask, best_bid].

        Returns:
            (executed volume, last bin that traded or None)
        """
        if best_bid < best_ask:
            return 0.0, None
        sl = slice(best_ask, best_bid + 1)
        fills = np.minimum(book.bid[sl], book.ask[sl])
        fills[fills <= DUST] = 0.0
        book.bid[sl] -= fills
        book.ask[sl] -= fills

        traded = np.flatnonzero(fills)
        if traded.size == 0:
            return 0.0, None
        for offset in traded:
            self._push_print(best_ask + int(offset), float(fills[offset]), Side.CROSS)
        self.trade_count += int(traded.size)
        return float(fills.sum()), best_ask + int(traded[-1])

    def _push_print(self, bin_: int, qty: float, side: Side) -> None:
        tp = TradePrint(bin=bin_, quantity=qty, side=side, life=self.print_life)
        self.tape.append(tp)
        self._fresh_prints.append(tp)

    def step(
        self,
        dt: float,
        book: OrderBook,
        breaker: CircuitBreaker,
        population: AgentPopulation,
        policy: PolicySettings,
        rng: np.random.Generator,
    ) -> MatchResult:
        if breaker.halted:
            # Halted: the book keeps forming, only velocity bleeds off
            self.velocity *= math.pow(HALT_DECAY, dt)
            return MatchResult(halted=True)

        axis = self.axis
        mid = self.mid_bin
        result = MatchResult(best_bid=book.best_bid(mid), best_ask=book.best_ask(mid))
        self._fresh_prints = []

        executed = 0.0
        last = self.last_trade_bin
        if result.best_bid is not None and result.best_ask is not None:
            executed, crossed_last = self.execute_crosses(book, result.best_bid, result.best_ask)
            if crossed_last is not None:
                last = crossed_last

        # Imbalance near the price drives drift
        radius = REDUCED_IMBALANCE_RADIUS if policy.reduced_workload else IMBALANCE_RADIUS
        imb, depth = book.imbalance(mid, radius)
        result.imbalance = imb
        result.depth = depth

        # Thin local depth makes moves more violent
        void_mult = clamp(1.0 + 2.0 / (0.4 + depth), 1.0, VOID_MAX)

        self.velocity = self.velocity * math.pow(DAMPING, dt * 60.0) + imb * IMPACT * void_mult * dt

        if executed > 0:
            kick = clamp(math.log1p(executed) * KICK_SCALE, 0.0, KICK_MAX)
            # Prints above mid mean buyers lifted; below, sellers hit
            direction = 1 if last > mid else -1 if last < mid else int(np.sign(imb))
            self.velocity += direction * kick
            self.last_trade_bin = last
            self._stamp_side(direction)
            self._nudge_inventories(population, direction, executed, rng)
            self.total_volume += executed
            result.executed = executed
            result.last_bin = last
            if executed > LARGE_PRINT:
                logger.debug(f"Large print: {executed:.1f} @ bin {last} (dir={direction:+d})")

        self.price = axis.clamp_price(self.price + self.velocity * dt)

        # Deeper books and subsidised makers stabilise price onto the grid
        stab = clamp(policy.rebate * 90.0 + (0.55 if depth > DEEP_BOOK else 0.0), 0.0, 1.2)
        self.price = lerp(self.price, mid, dt * 0.12 * stab)

        self.price_history.append(self.price)
        self._decay_tape(dt)
        return result

    def _stamp_side(self, direction: int) -> None:
        """Label this tick's prints with the aggressor side."""
        side = Side.BUY if direction > 0 else Side.SELL if direction < 0 else Side.CROSS
        for tp in self._fresh_prints:
            tp.side = side

    def _nudge_inventories(self, population: AgentPopulation, direction: int,
                           executed: float, rng: np.random.Generator) -> None:
        """
        Approximate fills without tracking orders: every inventory drifts
        towards the executed side, reactive roles more so, then mean-reverts.
        """
        n = len(population)
        if n == 0:
            return
        nudge = clamp(executed * INVENTORY_NUDGE, 0.0, INVENTORY_NUDGE_MAX)
        reactive = (population.role == Role.SEEKER) | (population.role == Role.SCARED)
        k = np.where(reactive, 1.2, 0.8)
        jitter = rng.random(n) * 0.6 + 0.7
        population.inventory += (direction * nudge) * (0.3 + population.impatience) * k * jitter
        population.inventory *= INVENTORY_DECAY

    def _decay_tape(self, dt: float) -> None:
        for tp in self.tape:
            tp.life -= dt
        while self.tape and self.tape[0].life <= 0:
            self.tape.popleft()

    def get_state(self) -> dict:
        return {
            "price": self.price,
            "velocity": self.velocity,
            "last_trade_bin": self.last_trade_bin,
            "total_volume": self.total_volume,
            "trade_count": self.trade_count,
            "tape_length": len(self.tape),
        }
