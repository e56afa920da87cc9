"""
Configuration Management for the Market Microstructure Swarm

Centralized, type-safe configuration using Pydantic BaseSettings.
Every value can be overridden from the environment (or a .env file).

Unlike a service config, nothing here fails on a merely odd value: a live
simulation is better served by a coerced parameter than by a crash, so
out-of-range levers are clamped into their documented range and logged.
Only values that cannot be read as numbers at all raise a ValidationError.

Usage:
    from config.settings import settings

    model = SwarmMarketModel(config=settings.simulation, policy=settings.policy)
"""

import logging
import math
from typing import Dict, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


MIN_BINS = 121
DEFAULT_BINS = 241
PERF_MODE_MAX_AGENTS = 1600

# Documented (min, max) range of each policy lever
LEVER_RANGES: Dict[str, Tuple[float, float]] = {
    'tax': (0.0, 0.02),
    'spread_floor': (0, 12),
    'breaker_pct': (0.005, 0.12),
    'breaker_window_sec': (0.25, 10.0),
    'breaker_cooldown_sec': (0.25, 10.0),
    'rebate': (0.0, 0.01),
    'news_rate': (0.0, 0.25),
    'news_strength': (0.0, 40.0),
    'noise_scale': (0.0, 5.0),
    'population_size': (1, 20000),
}

INTEGER_LEVERS = ('spread_floor', 'population_size')


def coerce_bins(value) -> int:
    """Force a requested bin count to an odd integer >= MIN_BINS."""
    bins = int(value)
    if bins < MIN_BINS:
        bins = MIN_BINS
    if bins % 2 == 0:
        bins += 1
    return bins


class PolicySettings(BaseSettings):
    """Policy levers the user may change between any two ticks."""

    tax: float = Field(
        default=0.002,
        validation_alias='SWARM_TAX',
        description='Transaction tax; discourages aggressive size'
    )

    spread_floor: int = Field(
        default=2,
        validation_alias='SWARM_SPREAD_FLOOR',
        description='Minimum maker quote offset in bins'
    )

    breaker_pct: float = Field(
        default=0.035,
        validation_alias='SWARM_BREAKER_PCT',
        description='Fractional move over the window that halts trading'
    )

    breaker_window_sec: float = Field(
        default=2.5,
        validation_alias='SWARM_BREAKER_WINDOW_SEC',
        description='Length of the circuit breaker look-back window'
    )

    breaker_cooldown_sec: float = Field(
        default=2.0,
        validation_alias='SWARM_BREAKER_COOLDOWN_SEC',
        description='Halt duration and re-arm delay after a trip'
    )

    rebate: float = Field(
        default=0.0008,
        validation_alias='SWARM_REBATE',
        description='Liquidity rebate; boosts maker size and book stickiness'
    )

    news_rate: float = Field(
        default=0.012,
        validation_alias='SWARM_NEWS_RATE',
        description='Per-frame (60 fps) probability of a news pulse'
    )

    news_strength: float = Field(
        default=10.0,
        validation_alias='SWARM_NEWS_STRENGTH',
        description='Belief shift of a full news pulse, in bins'
    )

    noise_scale: float = Field(
        default=1.0,
        validation_alias='SWARM_NOISE_SCALE',
        description='Scale of idiosyncratic belief noise'
    )

    population_size: int = Field(
        default=1200,
        validation_alias='SWARM_AGENTS',
        description='Number of agents'
    )

    reduced_workload: bool = Field(
        default=False,
        validation_alias='SWARM_REDUCED_WORKLOAD',
        description='Narrow imbalance window and cap the population for cheaper ticks'
    )

    @field_validator(*LEVER_RANGES.keys(), mode='before')
    @classmethod
    def clamp_to_range(cls, v, info):
        """Clamp a lever into its documented range instead of rejecting it."""
        lo, hi = LEVER_RANGES[info.field_name]
        value = float(v)
        if math.isnan(value):
            logger.warning(f"{info.field_name}=NaN ignored, using minimum {lo}")
            value = lo
        clamped = min(max(value, lo), hi)
        if clamped != value:
            logger.warning(
                f"{info.field_name}={v} outside [{lo}, {hi}], coerced to {clamped}"
            )
        if info.field_name in INTEGER_LEVERS:
            return int(clamped)
        return clamped

    @property
    def effective_population(self) -> int:
        """Population size after the reduced-workload cap."""
        if self.reduced_workload:
            return min(self.population_size, PERF_MODE_MAX_AGENTS)
        return self.population_size

    model_config = {
        'env_file': '.env',
        'case_sensitive': False,
        'extra': 'ignore',
        'populate_by_name': True,
        'validate_assignment': True,
    }


class SimulationConfig(BaseSettings):
    """Structural constants of a run. Changing these requires a new model."""

    bins: int = Field(
        default=DEFAULT_BINS,
        validation_alias='SWARM_BINS',
        description='Price axis length (forced odd, >= 121)'
    )

    tick_sec: float = Field(
        default=1.0 / 60.0,
        validation_alias='SWARM_TICK_SEC',
        description='Fixed simulation time step in seconds'
    )

    seed: Optional[int] = Field(
        default=None,
        validation_alias='SWARM_SEED',
        description='Seed for the random source (None = fresh entropy)'
    )

    price_history_max: int = Field(
        default=900,
        validation_alias='SWARM_PRICE_HISTORY_MAX',
        description='Retained price samples (~15s at 60 fps)'
    )

    max_prints: int = Field(
        default=240,
        validation_alias='SWARM_MAX_PRINTS',
        description='Trade tape capacity'
    )

    print_life_sec: float = Field(
        default=1.2,
        validation_alias='SWARM_PRINT_LIFE_SEC',
        description='Lifetime of a trade print on the tape'
    )

    breaker_window_max: int = Field(
        default=240,
        validation_alias='SWARM_BREAKER_WINDOW_MAX',
        description='Maximum samples kept by the circuit breaker window'
    )

    @field_validator('bins', mode='before')
    @classmethod
    def validate_bins(cls, v):
        """Round the bin count up to a usable odd size."""
        bins = coerce_bins(v)
        if bins != int(v):
            logger.warning(f"bins={v} coerced to {bins}")
        return bins

    @field_validator('tick_sec')
    @classmethod
    def validate_tick(cls, v):
        """Keep the time step positive and below a quarter second."""
        if not v > 0:
            logger.warning(f"tick_sec={v} not positive, using 1/60")
            return 1.0 / 60.0
        return min(v, 0.25)

    @field_validator('price_history_max', 'max_prints', 'breaker_window_max')
    @classmethod
    def validate_capacity(cls, v):
        """Capacities must hold at least one element."""
        return max(1, v)

    model_config = {
        'env_file': '.env',
        'case_sensitive': False,
        'extra': 'ignore',
        'populate_by_name': True,
        'validate_assignment': True,
    }


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(
        default='INFO',
        validation_alias='LOG_LEVEL',
        description='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)'
    )

    file: Optional[str] = Field(
        default=None,
        validation_alias='LOG_FILE',
        description='Log file path (None = stdout only)'
    )

    format: str = Field(
        default='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        validation_alias='LOG_FORMAT',
        description='Log message format'
    )

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                f"Invalid log level: '{v}'. "
                f"Must be one of: {', '.join(valid_levels)}"
            )
        return v_upper

    def configure(self) -> None:
        """Install a root handler according to this config."""
        handlers = [logging.StreamHandler()]
        if self.file:
            handlers.append(logging.FileHandler(self.file))
        logging.basicConfig(
            level=self.level,
            format=self.format,
            handlers=handlers,
            force=True,
        )

    model_config = {
        'env_file': '.env',
        'case_sensitive': False,
        'extra': 'ignore',
        'populate_by_name': True,
    }


class Settings(BaseSettings):
    """
    Global settings aggregator.

    Usage:
        from config.settings import settings

        settings.policy.tax = 0.01      # coerced into range on assignment
        print(settings)
    """

    policy: PolicySettings = Field(default_factory=PolicySettings)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        'env_file': '.env',
        'case_sensitive': False,
        'extra': 'ignore'
    }

    def __repr__(self) -> str:
        p = self.policy
        lines = [
            "=== Configuration ===",
            "",
            "Simulation:",
            f"  Bins: {self.simulation.bins}",
            f"  Tick: {self.simulation.tick_sec * 1000:.2f}ms",
            f"  Seed: {self.simulation.seed}",
            "",
            "Policy:",
            f"  Agents: {p.population_size} (reduced workload: {p.reduced_workload})",
            f"  Tax: {p.tax * 100:.2f}%",
            f"  Spread floor: {p.spread_floor} bins",
            f"  Circuit breaker: {p.breaker_pct * 100:.1f}% over {p.breaker_window_sec}s, "
            f"cooldown {p.breaker_cooldown_sec}s",
            f"  Rebate: {p.rebate * 100:.2f}%",
            f"  News: rate {p.news_rate}, strength {p.news_strength}",
            f"  Noise scale: {p.noise_scale}",
            "",
            "Logging:",
            f"  Level: {self.logging.level}",
            f"  File: {self.logging.file or 'stdout'}",
        ]
        return "\n".join(lines)


# Global settings instance
# Import this in your modules:
#   from config.settings import settings
try:
    settings = Settings()
except Exception as e:
    logger.error(f"Configuration error: {e}. Check your .env file or SWARM_* environment variables.")
    raise


if __name__ == '__main__':
    print(settings)
