#!/usr/bin/env python3
"""
Headless Swarm Runner

Drives the market for a fixed number of ticks without any UI, optionally
injecting manual news pulses, and writes the per-tick history to CSV.

Usage:
    # One minute of market time at 60 ticks/sec
    python -m simulation.run_swarm --steps 3600

    # Bullish pulse at tick 600, bearish at 1800, custom levers
    python -m simulation.run_swarm --steps 3600 --pulse 600:1 --pulse 1800:-1 \\
        --tax 0.01 --breaker-pct 0.02 --output /tmp/swarm.csv
"""

import argparse
import logging
import sys
from typing import List, Tuple

from pydantic import ValidationError

from config.settings import settings, LoggingConfig, PolicySettings, SimulationConfig
from simulation.market_env import SwarmMarketModel

logger = logging.getLogger(__name__)


def parse_pulse(value: str) -> Tuple[int, int]:
    """Parse STEP:DIR (DIR in -1, 0, 1)."""
    try:
        step_s, dir_s = value.split(':')
        step, direction = int(step_s), int(dir_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid pulse '{value}', expected STEP:DIR (e.g. 600:1)")
    if step < 0:
        raise argparse.ArgumentTypeError(f"Pulse step must be >= 0, got {step}")
    return step, max(-1, min(1, direction))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Run the market microstructure swarm headless',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--steps', type=int, default=3600,
                        help='Number of ticks to simulate')
    parser.add_argument('--agents', type=int, default=None,
                        help='Population size (default: from settings)')
    parser.add_argument('--bins', type=int, default=None,
                        help='Price axis length, forced odd and >= 121')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed')
    parser.add_argument('--tax', type=float, default=None,
                        help='Transaction tax (0 - 0.02)')
    parser.add_argument('--spread-floor', type=int, default=None,
                        help='Maker spread floor in bins (0 - 12)')
    parser.add_argument('--breaker-pct', type=float, default=None,
                        help='Circuit breaker trigger fraction (0.005 - 0.12)')
    parser.add_argument('--rebate', type=float, default=None,
                        help='Liquidity rebate (0 - 0.01)')
    parser.add_argument('--reduced-workload', action='store_true',
                        help='Cheaper ticks: narrower imbalance window, population cap')
    parser.add_argument('--pulse', type=parse_pulse, action='append', default=[],
                        help='Manual news pulse as STEP:DIR (repeatable)')
    parser.add_argument('--output', type=str, default=None,
                        help='Write per-tick history CSV here')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Override LOG_LEVEL')
    return parser


def build_model(args: argparse.Namespace) -> SwarmMarketModel:
    config = SimulationConfig(**settings.simulation.model_dump())
    if args.bins is not None:
        config.bins = args.bins
    if args.seed is not None:
        config.seed = args.seed

    policy = PolicySettings(**settings.policy.model_dump())
    overrides = {
        'population_size': args.agents,
        'tax': args.tax,
        'spread_floor': args.spread_floor,
        'breaker_pct': args.breaker_pct,
        'rebate': args.rebate,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(policy, name, value)
    if args.reduced_workload:
        policy.reduced_workload = True

    return SwarmMarketModel(config=config, policy=policy)


def summarize(history: List[dict]) -> dict:
    """Headline statistics of a run."""
    if not history:
        return {}
    prices = [r['price'] for r in history]
    return {
        'ticks': len(history),
        'final_price': prices[-1],
        'min_price': min(prices),
        'max_price': max(prices),
        'halted_ticks': sum(1 for r in history if r['halted']),
        'total_volume': history[-1]['total_volume'],
        'trade_count': history[-1]['trade_count'],
    }


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_config = settings.logging
    if args.log_level:
        try:
            log_config = LoggingConfig(
                level=args.log_level,
                file=log_config.file,
                format=log_config.format,
            )
        except ValidationError as e:
            parser.error(f"invalid --log-level: {e.errors()[0]['msg']}")
    log_config.configure()

    model = build_model(args)
    model.run_simulation(args.steps, pulses=args.pulse)

    df = model.history_frame()
    stats = summarize(model.history)
    logger.info(
        f"Simulation complete: {stats.get('ticks', 0)} ticks, "
        f"price {stats.get('min_price', 0):.2f} - {stats.get('max_price', 0):.2f}, "
        f"{stats.get('halted_ticks', 0)} halted ticks, "
        f"volume {stats.get('total_volume', 0):.1f}"
    )

    if args.output:
        df.to_csv(args.output)
        logger.info(f"Saved history to {args.output}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
