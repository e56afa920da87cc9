"""
Simulation module for the market microstructure swarm.

Components:
- PriceAxis: odd-length discretized price line
- OrderBook: dense per-bin bid/ask volume, rebuilt every tick
- BookBuilder: projects agent intent into the book
- PriceEngine: crossing, imbalance-driven price formation, trade tape
- CircuitBreaker: rolling-window halt with cooldown
- SwarmMarketModel: Mesa model running the per-tick pipeline
"""

from simulation.price_axis import PriceAxis

from simulation.order_book import (
    OrderBook,
    TradePrint,
    Side,
)

from simulation.book_builder import BookBuilder, BuildResult

from simulation.circuit_breaker import CircuitBreaker

from simulation.matching import PriceEngine, MatchResult

from simulation.market_env import (
    SwarmMarketModel,
    MarketState,
    create_default_market,
)

__all__ = [
    "PriceAxis",
    # Order book
    "OrderBook",
    "TradePrint",
    "Side",
    "BookBuilder",
    "BuildResult",
    # Price formation
    "PriceEngine",
    "MatchResult",
    "CircuitBreaker",
    # Market environment
    "SwarmMarketModel",
    "MarketState",
    "create_default_market",
]
