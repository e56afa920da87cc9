"""
Book Builder

Projects every agent's desired order into the bucketed book once per tick.
Agents "place and cancel" simply by contributing fresh intent each tick;
nothing from the previous tick survives the rebuild.

Order of operations for each agent:
    fear update -> role rule (belief, tilt, width) -> size -> offsets
    -> feint -> bins around fair -> bid/ask split -> inventory skew
    -> seeker sweep -> accumulate

Feint and sweep can hit the same agent in one tick. The feint is applied
first; a sweep then replaces the bin of the side it targets, while the
feint's size cut stays in force.
"""

from dataclasses import dataclass
import logging

import numpy as np

from agents.population import AgentPopulation, Role
from agents.roles import TickContext, apply_role_rules
from config.settings import PolicySettings
from signals.models import NewsState
from simulation.order_book import OrderBook
from simulation.price_axis import PriceAxis, clamp

logger = logging.getLogger(__name__)


# Behavioral constants
FEAR_DECAY = 0.18
FEINT_THRESHOLD = 0.92
FEINT_FEAR_MAX = 0.4
FEINT_SHIFT = 6
FEINT_SIZE = 0.8
SCARED_CROSS_FEAR = 0.75
SCARED_CROSS_IMPATIENCE = 0.65
SCARED_CROSS_SIZE = 1.3
SWEEP_PROBABILITY = 0.02
SWEEP_IMPATIENCE = 0.7
SWEEP_FEAR_MAX = 0.7
INVENTORY_SKEW_MAX = 1.3


def tax_drag(tax: float) -> float:
    """High tax discourages aggressive size."""
    return clamp(1.0 - tax * 35.0, 0.2, 1.0)


def rebate_boost(rebate: float) -> float:
    """Rebate makes makers post more."""
    return 1.0 + rebate * 60.0


@dataclass
class BuildResult:
    """Diagnostics of one rebuild."""
    momentum: float
    feints: int
    sweeps: int
    crossers: int


class BookBuilder:
    """Rebuilds an OrderBook from agent intent."""

    def __init__(self, book: OrderBook):
        self.book = book

    def build(
        self,
        dt: float,
        axis: PriceAxis,
        population: AgentPopulation,
        news: NewsState,
        policy: PolicySettings,
        price: float,
        velocity: float,
        last_trade_bin: int,
        rng: np.random.Generator,
    ) -> BuildResult:
        book = self.book
        book.clear()
        n = len(population)
        if n == 0:
            return BuildResult(momentum=0.0, feints=0, sweeps=0, crossers=0)

        B = axis.bins
        mid_bin = axis.nearest_bin(price)
        spread_floor = int(policy.spread_floor)
        pop = population

        # Cheap "tape" momentum from velocity and the distance to the last print
        tape_mom = clamp(velocity * 0.75, -6.0, 6.0)
        mom = clamp(tape_mom + (price - last_trade_bin) * 0.2, -10.0, 10.0)

        noise = rng.standard_normal(n) * (policy.noise_scale * 0.15)
        dev = np.clip(price - pop.fair, -30.0, 30.0)

        # Fear rises in shocks and when the tape runs against inventory
        inv_pain = np.clip(pop.inventory * mom * 0.06, -1.2, 1.2)
        shock = clamp(abs(velocity) * 0.1 + abs(mom) * 0.02, 0.0, 0.6)
        pop.fear = np.clip(pop.fear + dt * (shock + np.maximum(0.0, inv_pain)) - dt * FEAR_DECAY, 0.0, 1.0)

        ctx = TickContext(
            price=price,
            momentum=mom,
            news_bias=news.bias(policy.news_strength),
            spread_floor=spread_floor,
            deviation=dev,
            noise=noise,
        )
        tilt, width = apply_role_rules(pop, ctx)
        pop.fair = axis.clamp_prices(pop.fair)

        is_maker = pop.role == Role.MAKER
        is_scared = pop.role == Role.SCARED
        is_seeker = pop.role == Role.SEEKER
        fear = pop.fear
        impat = pop.impatience

        # Size: base * risk * (impatience + signal strength), reduced by tax
        signal = np.clip(np.abs(tilt) + abs(mom) * 0.03 + np.abs(dev) * 0.01, 0.0, 2.0)
        qty = pop.size * pop.risk * (0.35 + 0.75 * impat + 0.5 * signal) * tax_drag(policy.tax)

        maker_mult = np.where(is_maker, rebate_boost(policy.rebate) * (1.0 + 0.35 * (1.0 - fear)), 1.0)

        # Aggressive demand quotes closer to fair
        aggress = np.clip(impat * 0.9 + signal * 0.25 - fear * 0.35, 0.0, 1.0)
        off = np.maximum(1.0, np.floor(width - aggress * (width - 1.0) + 0.5))
        buy_off = off.copy()
        sell_off = off.copy()

        buy_off[is_maker] = np.maximum(buy_off[is_maker], spread_floor)
        sell_off[is_maker] = np.maximum(sell_off[is_maker], spread_floor)

        # Scared money widens when fearful, unless it is running for the exit
        cross = is_scared & (fear > SCARED_CROSS_FEAR) & (impat > SCARED_CROSS_IMPATIENCE)
        widen = is_scared & ~cross
        fear_push = np.trunc(fear * 8.0)
        buy_off[widen] = np.maximum(2.0, buy_off[widen] + fear_push[widen])
        sell_off[widen] = np.maximum(2.0, sell_off[widen] + fear_push[widen])
        buy_off[cross] = 1.0
        sell_off[cross] = 1.0
        qty[cross] *= SCARED_CROSS_SIZE

        # Feint: one side moves outward (chosen by momentum sign), slightly smaller
        feint = ~is_maker & (pop.feint_bias > FEINT_THRESHOLD) & (fear < FEINT_FEAR_MAX)
        if mom >= 0:
            buy_off[feint] += FEINT_SHIFT
        else:
            sell_off[feint] += FEINT_SHIFT
        qty[feint] *= FEINT_SIZE

        # Bins are placed around fair, not around the last price
        buy_bin = np.clip(np.trunc(pop.fair - buy_off), 0, B - 1).astype(np.intp)
        sell_bin = np.clip(np.trunc(pop.fair + sell_off), 0, B - 1).astype(np.intp)

        buy_w = np.clip(0.5 + tilt * 0.6, 0.02, 0.98)
        bq = qty * buy_w * maker_mult
        aq = qty * (1.0 - buy_w) * maker_mult

        # Inventory management: long suppresses bids, short suppresses asks
        inv_skew = np.clip(pop.inventory * 0.08, -0.6, 0.6)
        bq *= np.clip(1.0 - np.maximum(0.0, inv_skew), 0.2, INVENTORY_SKEW_MAX)
        aq *= np.clip(1.0 + np.minimum(0.0, inv_skew), 0.2, INVENTORY_SKEW_MAX)

        # Seekers occasionally sweep: a marketable order next to the price
        sweep = is_seeker & (impat > SWEEP_IMPATIENCE) & (fear < SWEEP_FEAR_MAX) & (rng.random(n) < SWEEP_PROBABILITY)
        sweep_buy = sweep & (tilt > 0)
        sweep_sell = sweep & ~(tilt > 0)
        buy_bin[sweep_buy] = axis.clamp_bin(mid_bin + 1)
        sell_bin[sweep_sell] = axis.clamp_bin(mid_bin - 1)

        book.bid += np.bincount(buy_bin, weights=bq, minlength=B)
        book.ask += np.bincount(sell_bin, weights=aq, minlength=B)

        crossers = int(cross.sum())
        if crossers:
            logger.debug(f"{crossers} scared agents crossing to exit (mom={mom:.2f})")

        return BuildResult(
            momentum=mom,
            feints=int(feint.sum()),
            sweeps=int(sweep.sum()),
            crossers=crossers,
        )

    @staticmethod
    def max_contribution(population: AgentPopulation, policy: PolicySettings) -> np.ndarray:
        """
        Upper bound on the volume any single agent can add to one side in a tick.

        Uses the largest value of every bounded factor: signal 2, side weight
        0.98, scared crossing boost, inventory skew 1.3 and the maker
        multiplier at zero fear.
        """
        base = population.size * population.risk * (0.35 + 0.75 * population.impatience + 1.0)
        base = base * tax_drag(policy.tax) * 0.98 * INVENTORY_SKEW_MAX
        maker = rebate_boost(policy.rebate) * 1.35
        is_maker = population.role == Role.MAKER
        is_scared = population.role == Role.SCARED
        return base * np.where(is_maker, maker, 1.0) * np.where(is_scared, SCARED_CROSS_SIZE, 1.0)
