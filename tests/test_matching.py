"""
Tests for crossing, price formation and the trade tape.
"""

import math

import numpy as np
import pytest

from config.settings import PolicySettings
from simulation.circuit_breaker import CircuitBreaker
from simulation.matching import PriceEngine, HALT_DECAY, KICK_MAX
from simulation.order_book import Side


DT = 1.0 / 60.0


@pytest.fixture
def engine(axis):
    return PriceEngine(axis, max_prints=20, print_life=1.2, history_max=50)


# ============================================================================
# CROSSING
# ============================================================================

def test_execute_crosses_overlap(engine, book):
    """Every overlap bin trades min(bid, ask); the last traded bin is reported."""
    book.bid[118:123] = [1.0, 2.0, 0.0, 4.0, 5.0]
    book.ask[118:123] = [3.0, 1.0, 2.0, 1.5, 0.0]
    executed, last = engine.execute_crosses(book, best_bid=122, best_ask=118)

    assert executed == pytest.approx(1.0 + 1.0 + 1.5)
    assert last == 121
    np.testing.assert_allclose(book.bid[118:123], [0.0, 1.0, 0.0, 2.5, 5.0])
    np.testing.assert_allclose(book.ask[118:123], [2.0, 0.0, 2.0, 0.0, 0.0])
    assert [tp.bin for tp in engine.tape] == [118, 119, 121]
    assert engine.trade_count == 3


def test_execute_crosses_not_crossed(engine, book):
    book.bid[118] = 5.0
    book.ask[122] = 5.0
    assert engine.execute_crosses(book, best_bid=118, best_ask=122) == (0.0, None)
    assert len(engine.tape) == 0


def test_crossed_book_at_mid_trades(engine, book, population, axis, rng):
    breaker = CircuitBreaker()
    book.bid[axis.mid] = 4.0
    book.ask[axis.mid] = 3.0
    book.bid[axis.mid - 2] = 10.0
    result = engine.step(DT, book, breaker, population, PolicySettings(), rng)

    assert result.executed == pytest.approx(3.0)
    assert result.last_bin == axis.mid
    assert book.ask[axis.mid] == 0.0
    assert book.bid[axis.mid] == pytest.approx(1.0)
    assert engine.total_volume == pytest.approx(3.0)
    # the remaining book leans bid, so the print is stamped a buy
    assert engine.tape[-1].side == Side.BUY


def test_trade_kicks_velocity_and_moves_inventory(engine, book, population, axis, rng):
    before = population.inventory.copy()
    book.bid[axis.mid] = 50.0
    book.ask[axis.mid] = 50.0
    book.ask[axis.mid + 3] = 20.0
    engine.step(DT, book, CircuitBreaker(), population, PolicySettings(), rng)

    assert engine.velocity < 0
    assert abs(engine.velocity) <= KICK_MAX + 22.0 * 4.0 * DT
    # sell direction: every inventory moved down before the shared decay
    assert np.all(population.inventory < before * 0.9992 + 1e-12)


# ============================================================================
# PRICE FORMATION
# ============================================================================

def test_imbalance_drives_price(engine, book, population, axis, rng):
    book.bid[axis.mid - 3] = 30.0
    policy = PolicySettings(rebate=0.0)
    for _ in range(30):
        engine.step(DT, book, CircuitBreaker(), population, policy, rng)
    assert engine.velocity > 0
    assert engine.price > axis.mid


def test_empty_book_holds_price(engine, book, population, axis, rng):
    for _ in range(60):
        engine.step(DT, book, CircuitBreaker(), population, PolicySettings(), rng)
    assert engine.price == pytest.approx(axis.mid)
    assert engine.velocity == 0.0


def test_price_clamped_to_axis(engine, book, population, axis, rng):
    engine.velocity = 1e6
    engine.step(DT, book, CircuitBreaker(), population, PolicySettings(rebate=0.0), rng)
    assert engine.price == axis.hi
    engine.velocity = -1e6
    engine.step(DT, book, CircuitBreaker(), population, PolicySettings(rebate=0.0), rng)
    assert engine.price == axis.lo


def test_halt_freezes_price_and_decays_velocity(engine, book, population, axis, rng):
    breaker = CircuitBreaker()
    breaker.frozen = breaker.cooldown = 2.0
    engine.velocity = 5.0
    engine.price = 130.0
    book.bid[axis.mid] = 10.0
    book.ask[axis.mid] = 10.0

    result = engine.step(0.5, book, breaker, population, PolicySettings(), rng)

    assert result.halted
    assert engine.price == 130.0
    assert engine.velocity == pytest.approx(5.0 * math.pow(HALT_DECAY, 0.5))
    assert len(engine.price_history) == 0
    assert len(engine.tape) == 0
    assert book.bid[axis.mid] == 10.0


# ============================================================================
# TAPE AND HISTORY
# ============================================================================

def test_history_capacity(engine, book, population, rng):
    for _ in range(200):
        engine.step(DT, book, CircuitBreaker(), population, PolicySettings(), rng)
    assert len(engine.price_history) == 50


def test_tape_capacity(engine, book):
    for i in range(60):
        book.bid[100] = 1.0
        book.ask[100] = 1.0
        engine.execute_crosses(book, 100, 100)
    assert len(engine.tape) == 20


def test_prints_expire(engine, book, population, axis, rng):
    book.bid[axis.mid] = 1.0
    book.ask[axis.mid] = 1.0
    engine.step(DT, book, CircuitBreaker(), population, PolicySettings(), rng)
    assert len(engine.tape) == 1
    for _ in range(80):
        engine.step(DT, book, CircuitBreaker(), population, PolicySettings(), rng)
    assert len(engine.tape) == 0


def test_reset(engine, axis):
    engine.price = 10.0
    engine.velocity = 3.0
    engine.price_history.append(10.0)
    engine.reset()
    assert engine.price == axis.mid
    assert engine.velocity == 0.0
    assert engine.last_trade_bin == axis.mid
    assert len(engine.price_history) == 0
