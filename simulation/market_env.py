"""
Mesa Market Environment for the Microstructure Swarm

Coordinates the per-tick pipeline and exposes the host surface:

    news -> circuit breaker -> book rebuild -> match & move

The host drives one fixed-size tick per frame through step(), reads
get_market_state() for display, and changes levers with set_policy()
between ticks. Pausing is simply not calling step(); the model holds no
timers of its own.

Author: Murad Farzulla
Date: December 2025
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Iterable, Tuple
import logging

import numpy as np
import pandas as pd

from mesa import Model

from agents.population import AgentPopulation
from config.settings import PolicySettings, SimulationConfig
from signals.models import NewsState
from signals.news_process import NewsProcess
from simulation.book_builder import BookBuilder, BuildResult
from simulation.circuit_breaker import CircuitBreaker
from simulation.matching import PriceEngine, MatchResult
from simulation.order_book import OrderBook, TradePrint
from simulation.price_axis import PriceAxis

logger = logging.getLogger(__name__)

# Radius of the depth/imbalance figures shown to the host
HUD_RADIUS = 14


@dataclass
class MarketState:
    """Read-only snapshot of the market for display and analysis."""
    step: int
    price: float
    velocity: float
    mid_bin: int
    best_bid: Optional[int]
    best_ask: Optional[int]
    spread: Optional[int]
    imbalance: float
    depth: float
    last_trade_bin: int
    bid: np.ndarray
    ask: np.ndarray
    news: NewsState
    breaker_frozen: float
    breaker_cooldown: float
    tape: List[TradePrint] = field(default_factory=list)
    price_history: np.ndarray = field(default_factory=lambda: np.zeros(0))
    population: Dict[str, Any] = field(default_factory=dict)
    total_volume: float = 0.0
    trade_count: int = 0

    @property
    def halted(self) -> bool:
        return self.breaker_frozen > 0

    def status_line(self, tax: float) -> str:
        spread = self.spread if self.spread is not None else 0
        return (
            f"Market Microstructure Swarm • Agents {self.population.get('agents', 0)} "
            f"• Spread {spread} • Tax {tax * 100:.2f}%"
        )


class SwarmMarketModel(Model):
    """
    Mesa model of a swarm of heterogeneous agents trading on a bucketed book.

    Manages:
    - Agent population (column store, role-dispatched rules)
    - News pulses
    - Circuit breaker
    - Book rebuild, matching and price formation
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        policy: Optional[PolicySettings] = None,
        seed: Optional[int] = None,
    ):
        super().__init__()
        self.config = config or SimulationConfig()
        self.policy = policy or PolicySettings()

        # Random state
        self.reseed(seed if seed is not None else self.config.seed)

        self.axis = PriceAxis(self.config.bins)
        self.book = OrderBook(self.axis)
        self.builder = BookBuilder(self.book)
        self.engine = PriceEngine(
            self.axis,
            max_prints=self.config.max_prints,
            print_life=self.config.print_life_sec,
            history_max=self.config.price_history_max,
        )
        self.breaker = CircuitBreaker(window_max=self.config.breaker_window_max)
        self.news_process = NewsProcess()
        self.population = AgentPopulation.create(self.policy.effective_population, self.axis, self.rng)

        self.tick_count = 0
        self.last_build: Optional[BuildResult] = None
        self.last_match: Optional[MatchResult] = None

        # History for analysis (filled by run_simulation)
        self.history: List[dict] = []

        logger.info(
            f"Swarm market ready: {len(self.population)} agents, {self.axis.bins} bins, "
            f"tick {self.config.tick_sec * 1000:.1f}ms"
        )

    # ------------------------------------------------------------------
    # Host surface
    # ------------------------------------------------------------------

    @property
    def price(self) -> float:
        return self.engine.price

    @property
    def velocity(self) -> float:
        return self.engine.velocity

    @property
    def news(self) -> NewsState:
        return self.news_process.state

    def reseed(self, seed: Optional[int] = None) -> None:
        """Replace the random source (None draws fresh entropy)."""
        self.rng = np.random.default_rng(seed)

    def set_policy(self, **levers) -> None:
        """
        Change policy levers between ticks.

        Unknown names raise AttributeError; values are coerced into range.
        The call is all-or-nothing: if any lever fails, none is changed.
        A population size change recreates the population immediately.
        """
        for name in levers:
            if name not in PolicySettings.model_fields:
                raise AttributeError(f"Unknown policy lever: {name}")
        updated = PolicySettings.model_validate({**self.policy.model_dump(), **levers})
        for name in levers:
            setattr(self.policy, name, getattr(updated, name))
        self._sync_population()

    def resize(self, n: int) -> None:
        """Recreate the population with n fresh agents."""
        self.policy.population_size = n
        self._sync_population(force=True)

    def reset(self) -> None:
        """
        Full market reset: book, price, tape, history and breaker are cleared
        and beliefs reseeded. Roles and fixed per-agent scalars are kept.
        """
        self.book.clear()
        self.engine.reset()
        self.breaker.reset()
        self.population.reset_beliefs(self.axis, self.rng)
        logger.info(f"Market reset at tick {self.tick_count}: price back to bin {self.axis.mid}")

    def trigger_news_pulse(self, direction: int = 0) -> NewsState:
        """Manual news shock. direction: +1 up, -1 down, 0 random."""
        state = self.news_process.trigger(direction, self.rng)
        logger.info(f"Manual news pulse: dir={state.dir:+d} ttl={state.ttl:.2f}s")
        return state

    def _sync_population(self, force: bool = False) -> None:
        target = self.policy.effective_population
        if force or target != len(self.population):
            self.population.resize(target, self.axis, self.rng)
            logger.info(f"Population recreated with {target} agents")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def step(self, dt: Optional[float] = None) -> None:
        """Advance the market by one tick of dt seconds (default: configured tick)."""
        dt = self.config.tick_sec if dt is None else float(dt)
        if not dt > 0:
            logger.warning(f"Ignoring tick with non-positive dt={dt}")
            return

        policy = self.policy
        self._sync_population()

        self.news_process.step(dt, self.rng, policy.news_rate)

        self.breaker.update(
            dt,
            self.engine.price,
            self.population,
            breaker_pct=policy.breaker_pct,
            window_sec=policy.breaker_window_sec,
            cooldown_sec=policy.breaker_cooldown_sec,
        )

        # Cancel-and-replace: the book is rebuilt from scratch every tick
        self.last_build = self.builder.build(
            dt,
            self.axis,
            self.population,
            self.news,
            policy,
            price=self.engine.price,
            velocity=self.engine.velocity,
            last_trade_bin=self.engine.last_trade_bin,
            rng=self.rng,
        )

        self.last_match = self.engine.step(dt, self.book, self.breaker, self.population, policy, self.rng)
        self.tick_count += 1

    def get_market_state(self) -> MarketState:
        """Snapshot of everything a host may display."""
        mid = self.engine.mid_bin
        book_stats = self.book.get_snapshot(mid, HUD_RADIUS)
        return MarketState(
            step=self.tick_count,
            price=self.engine.price,
            velocity=self.engine.velocity,
            mid_bin=mid,
            best_bid=book_stats["best_bid"],
            best_ask=book_stats["best_ask"],
            spread=book_stats["spread"],
            imbalance=book_stats["imbalance"],
            depth=book_stats["depth"],
            last_trade_bin=self.engine.last_trade_bin,
            bid=self.book.bid.copy(),
            ask=self.book.ask.copy(),
            news=NewsState(**vars(self.news)),
            breaker_frozen=self.breaker.frozen,
            breaker_cooldown=self.breaker.cooldown,
            tape=[TradePrint(**vars(tp)) for tp in self.engine.tape],
            price_history=np.fromiter(self.engine.price_history, dtype=np.float64),
            population=self.population.get_state(),
            total_volume=self.engine.total_volume,
            trade_count=self.engine.trade_count,
        )

    # ------------------------------------------------------------------
    # Batch runs
    # ------------------------------------------------------------------

    def _record_step(self) -> None:
        """Record current state for analysis."""
        state = self.get_market_state()
        match = self.last_match or MatchResult()
        record = {
            "step": state.step,
            "price": state.price,
            "velocity": state.velocity,
            "best_bid": state.best_bid,
            "best_ask": state.best_ask,
            "spread": state.spread,
            "imbalance": state.imbalance,
            "depth": state.depth,
            "executed": match.executed,
            "halted": state.halted,
            "mean_fear": state.population.get("mean_fear", 0.0),
            "net_inventory": state.population.get("net_inventory", 0.0),
            "total_volume": state.total_volume,
            "trade_count": state.trade_count,
        }
        record.update(state.news.to_dict())
        self.history.append(record)

    def run_simulation(
        self,
        n_steps: int,
        dt: Optional[float] = None,
        pulses: Optional[Iterable[Tuple[int, int]]] = None,
        log_every: int = 600,
    ) -> List[dict]:
        """
        Run n_steps ticks, recording one history row per tick.

        Args:
            n_steps: Number of ticks
            dt: Tick length (default: configured tick)
            pulses: Optional (step, direction) pairs for manual news shocks;
                pulses sharing a step fire in the order given
            log_every: Progress log interval in ticks
        """
        schedule: Dict[int, List[int]] = defaultdict(list)
        for at, direction in pulses or []:
            schedule[at].append(direction)

        for i in range(n_steps):
            for direction in schedule.get(i, ()):
                self.trigger_news_pulse(direction)

            self.step(dt)
            self._record_step()

            if log_every and i % log_every == 0:
                bb, ba = self.history[-1]["best_bid"], self.history[-1]["best_ask"]
                logger.info(
                    f"Step {i}/{n_steps}: price={self.price:.2f} v={self.velocity:.2f} "
                    f"bid/ask={bb if bb is not None else 'N/A'}/{ba if ba is not None else 'N/A'} "
                    f"trades={self.engine.trade_count}"
                    + (" [HALT]" if self.breaker.halted else "")
                )

        return self.history

    def history_frame(self) -> pd.DataFrame:
        """Recorded history as a DataFrame indexed by step."""
        df = pd.DataFrame(self.history)
        if not df.empty:
            df = df.set_index("step")
        return df


def create_default_market(
    n_agents: int = 1200,
    bins: int = 241,
    seed: Optional[int] = 42,
    **levers,
) -> SwarmMarketModel:
    """Create a market with default policy levers (overridable by keyword)."""
    config = SimulationConfig(bins=bins, seed=seed)
    policy = PolicySettings(population_size=n_agents, **levers)
    return SwarmMarketModel(config=config, policy=policy)
