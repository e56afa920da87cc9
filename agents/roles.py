"""
Per-role behavioral rules.

Each rule is one function of (population slice, tick context) that updates
the slice's belief state in place and returns its directional tilt and
quote width. Rules are selected through ROLE_RULES, a single dispatch on
the role tag.

    tilt  > 0  => wants to buy
    tilt  < 0  => wants to sell
    width      => how far from fair the agent is willing to quote (bins)
"""

from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np

from agents.population import AgentPopulation, Role


@dataclass
class TickContext:
    """Market inputs shared by every rule during one book build."""
    price: float
    momentum: float  # tape momentum proxy, bins/sec-ish
    news_bias: float  # signed belief shift from the news process
    spread_floor: int
    deviation: np.ndarray  # per-agent clip(price - fair), taken before the update
    noise: np.ndarray  # per-agent idiosyncratic judgement noise


RuleResult = Tuple[np.ndarray, np.ndarray]
Rule = Callable[[AgentPopulation, np.ndarray, TickContext], RuleResult]


def _blend_momentum(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext,
                    speed: float, bound: float) -> np.ndarray:
    mom = pop.momentum[idx]
    mom = np.clip(mom + (ctx.momentum - mom) * (pop.alpha[idx] * speed), -bound, bound)
    pop.momentum[idx] = mom
    return mom


def trend_rule(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext) -> RuleResult:
    """Chase momentum; weights the momentum term highest."""
    mom = _blend_momentum(pop, idx, ctx, 1.8, 12.0)
    fair = pop.fair[idx]
    alpha = pop.alpha[idx]
    dev = ctx.deviation[idx]
    pop.fair[idx] = fair + alpha * (0.6 * (ctx.price - fair) + 0.9 * mom + ctx.news_bias) + ctx.noise[idx]
    tilt = np.clip(mom * 0.12 - dev * 0.02, -1.0, 1.0)
    width = 2.0 + pop.impatience[idx] * 2.0 + pop.fear[idx] * 6.0
    return tilt, width


def contrarian_rule(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext) -> RuleResult:
    """Fade the move: the momentum term enters the belief with inverted sign."""
    mom = _blend_momentum(pop, idx, ctx, 0.8, 10.0)
    fair = pop.fair[idx]
    alpha = pop.alpha[idx]
    dev = ctx.deviation[idx]
    pop.fair[idx] = (fair + alpha * (0.95 * (ctx.price - fair) - 0.6 * mom + ctx.news_bias * 0.8)
                     + ctx.noise[idx])
    tilt = np.clip(-dev * 0.06 - ctx.momentum * 0.06, -1.0, 1.0)
    width = 2.0 + pop.impatience[idx] * 1.0 + pop.fear[idx] * 8.0
    return tilt, width


def maker_rule(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext) -> RuleResult:
    """Damp towards price, no momentum; lean against own inventory."""
    fair = pop.fair[idx]
    alpha = pop.alpha[idx]
    dev = ctx.deviation[idx]
    pop.fair[idx] = fair + alpha * (0.75 * (ctx.price - fair) + ctx.news_bias * 0.55) + ctx.noise[idx] * 0.6
    tilt = np.clip(-pop.inventory[idx] * 0.08 - dev * 0.01, -1.0, 1.0)
    width = 1.5 + ctx.spread_floor + pop.fear[idx] * 12.0
    return tilt, width


def seeker_rule(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext) -> RuleResult:
    """Impatience-scaled momentum with mild inventory control."""
    mom = _blend_momentum(pop, idx, ctx, 1.2, 12.0)
    fair = pop.fair[idx]
    alpha = pop.alpha[idx]
    impat = pop.impatience[idx]
    dev = ctx.deviation[idx]
    pop.fair[idx] = fair + alpha * (0.7 * (ctx.price - fair) + ctx.news_bias) + ctx.noise[idx]
    tilt = np.clip((impat * 0.55) * (mom * 0.1 - dev * 0.03) - pop.inventory[idx] * 0.05, -1.0, 1.0)
    width = 1.0 + pop.fear[idx] * 4.0 + impat * 1.5
    return tilt, width


def scared_rule(pop: AgentPopulation, idx: np.ndarray, ctx: TickContext) -> RuleResult:
    """Overreact to news and flatten inventory fast; panic mutes momentum chasing."""
    mom = _blend_momentum(pop, idx, ctx, 2.2, 14.0)
    fair = pop.fair[idx]
    alpha = pop.alpha[idx]
    fear = pop.fear[idx]
    dev = ctx.deviation[idx]
    pop.fair[idx] = fair + alpha * (0.6 * (ctx.price - fair) + ctx.news_bias * 1.4) + ctx.noise[idx]
    panic = np.clip(fear * 1.2 + np.abs(mom) * 0.05, 0.0, 1.0)
    tilt = np.clip(-pop.inventory[idx] * 0.18 + (mom * 0.06) * (1.0 - panic) - dev * 0.02, -1.0, 1.0)
    width = 3.0 + fear * 14.0
    return tilt, width


ROLE_RULES: Dict[Role, Rule] = {
    Role.TREND: trend_rule,
    Role.CONTRARIAN: contrarian_rule,
    Role.MAKER: maker_rule,
    Role.SEEKER: seeker_rule,
    Role.SCARED: scared_rule,
}


def apply_role_rules(pop: AgentPopulation, ctx: TickContext) -> RuleResult:
    """Run every role's rule over its agents; returns full-length (tilt, width)."""
    n = len(pop)
    tilt = np.zeros(n)
    width = np.zeros(n)
    for role, rule in ROLE_RULES.items():
        idx = np.flatnonzero(pop.role == role)
        if idx.size == 0:
            continue
        tilt[idx], width[idx] = rule(pop, idx, ctx)
    return tilt, width
