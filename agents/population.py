"""
Agent Population

The whole population is stored column-wise: one numpy array per attribute,
indexed by agent. A role tag column selects which behavioral rule applies
to each agent (see agents.roles). This keeps a tick linear in population
size without allocating anything per agent.

Author: Murad Farzulla
Date: December 2025
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, TYPE_CHECKING
import logging

import numpy as np

if TYPE_CHECKING:
    from simulation.price_axis import PriceAxis

logger = logging.getLogger(__name__)


class Role(IntEnum):
    TREND = 0
    CONTRARIAN = 1
    MAKER = 2
    SEEKER = 3
    SCARED = 4


# Interpretable mix:
# - Trend-followers chase momentum.
# - Contrarians fade deviations from fair.
# - Makers post both sides around fair.
# - Seekers sweep into depth when impatient.
# - Scared money runs for the exit in shocks.
ROLE_MIX: Dict[Role, float] = {
    Role.TREND: 0.28,
    Role.CONTRARIAN: 0.22,
    Role.MAKER: 0.24,
    Role.SEEKER: 0.16,
    Role.SCARED: 0.10,
}

FAIR_SPREAD = 6.0
INVENTORY_SPREAD = 2.0


def role_weights() -> np.ndarray:
    """Role mix as a probability vector ordered by Role value."""
    w = np.array([ROLE_MIX[r] for r in Role], dtype=np.float64)
    return w / w.sum()


@dataclass
class AgentPopulation:
    """
    Column store of agent state.

    Fixed at creation: role, risk, size, alpha, impatience, feint_bias.
    Mutated every tick: fair, inventory, momentum, fear.
    """

    role: np.ndarray
    fair: np.ndarray
    inventory: np.ndarray
    risk: np.ndarray
    alpha: np.ndarray
    impatience: np.ndarray
    size: np.ndarray
    momentum: np.ndarray
    fear: np.ndarray
    feint_bias: np.ndarray

    @classmethod
    def create(cls, n: int, axis: 'PriceAxis', rng: np.random.Generator) -> 'AgentPopulation':
        """Sample a fresh population of n agents around the axis midpoint."""
        n = max(0, int(n))
        role = rng.choice(len(Role), size=n, p=role_weights()).astype(np.int8)
        pop = cls(
            role=role,
            fair=np.empty(n),
            inventory=np.empty(n),
            risk=np.clip(0.6 + rng.random(n) * 1.2, 0.4, 2.2),
            alpha=np.clip(0.015 + rng.random(n) * 0.04, 0.01, 0.08),
            impatience=np.clip(rng.random(n), 0.0, 1.0),
            size=np.clip(0.6 + rng.random(n) * 2.4, 0.4, 4.0),
            momentum=np.zeros(n),
            fear=np.zeros(n),
            # product of two uniforms: heavily biased towards zero
            feint_bias=np.clip(rng.random(n) * rng.random(n), 0.0, 1.0),
        )
        pop.reset_beliefs(axis, rng)
        logger.debug(f"Created population of {n} agents: {pop.role_counts()}")
        return pop

    def resize(self, n: int, axis: 'PriceAxis', rng: np.random.Generator) -> None:
        """Discard every agent and sample n new ones. No state carries over."""
        fresh = AgentPopulation.create(n, axis, rng)
        self.__dict__.update(fresh.__dict__)

    def reset_beliefs(self, axis: 'PriceAxis', rng: np.random.Generator) -> None:
        """Reseed fair/inventory/momentum/fear in place; roles and scalars are kept."""
        n = len(self)
        self.fair = np.clip(axis.mid + rng.standard_normal(n) * FAIR_SPREAD, axis.lo, axis.hi)
        self.inventory = rng.standard_normal(n) * INVENTORY_SPREAD
        self.momentum = np.zeros(n)
        self.fear = np.zeros(n)

    def __len__(self) -> int:
        return int(self.role.shape[0])

    def mask(self, role: Role) -> np.ndarray:
        return self.role == role

    def raise_fear(self, amount: float) -> None:
        """Frighten every agent by a fixed increment, capped at 1."""
        np.minimum(self.fear + amount, 1.0, out=self.fear)

    def role_counts(self) -> Dict[str, int]:
        counts = np.bincount(self.role, minlength=len(Role))
        return {r.name.lower(): int(counts[r]) for r in Role}

    def get_state(self) -> dict:
        """Aggregate state for logging/analysis."""
        if len(self) == 0:
            return {"agents": 0, "roles": self.role_counts(), "mean_fear": 0.0,
                    "mean_inventory": 0.0, "mean_fair": 0.0, "net_inventory": 0.0}
        return {
            "agents": len(self),
            "roles": self.role_counts(),
            "mean_fear": float(self.fear.mean()),
            "mean_inventory": float(self.inventory.mean()),
            "mean_fair": float(self.fair.mean()),
            "net_inventory": float(self.inventory.sum()),
        }


def create_population(n: int, axis: 'PriceAxis', rng: np.random.Generator) -> AgentPopulation:
    """Convenience factory mirroring AgentPopulation.create."""
    return AgentPopulation.create(n, axis, rng)
