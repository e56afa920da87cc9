"""
Tests for the bucketed order book and the price axis.
"""

import numpy as np
import pytest

from simulation.order_book import OrderBook, TradePrint, Side
from simulation.price_axis import PriceAxis, round_half_up, EDGE


# ============================================================================
# PRICE AXIS
# ============================================================================

def test_axis_geometry():
    axis = PriceAxis(241)
    assert axis.mid == 120
    assert axis.lo == EDGE
    assert axis.hi == 241 - 1 - EDGE


def test_axis_clamps_prices(axis):
    assert axis.clamp_price(-50.0) == axis.lo
    assert axis.clamp_price(1e9) == axis.hi
    assert axis.clamp_price(100.5) == 100.5
    np.testing.assert_array_equal(axis.clamp_prices(np.array([0.0, 300.0])), [axis.lo, axis.hi])


def test_nearest_bin_rounds_half_up(axis):
    assert round_half_up(2.5) == 3
    assert round_half_up(-2.5) == -2
    assert axis.nearest_bin(119.5) == 120
    assert axis.nearest_bin(-10.0) == 0
    assert axis.nearest_bin(1000.0) == axis.bins - 1


# ============================================================================
# BOOK
# ============================================================================

def test_empty_book(book, axis):
    assert book.best_bid(axis.mid) is None
    assert book.best_ask(axis.mid) is None
    assert book.spread(axis.mid) is None
    assert not book.is_crossed(axis.mid)
    imb, depth = book.imbalance(axis.mid, 16)
    assert imb == 0.0
    assert depth == 0.0


def test_best_quotes_scan_outward(book):
    book.bid[110] = 2.0
    book.bid[115] = 1.0
    book.ask[125] = 3.0
    book.ask[130] = 1.0
    assert book.best_bid(120) == 115
    assert book.best_ask(120) == 125
    assert book.spread(120) == 10


def test_dust_is_ignored(book):
    book.bid[118] = 1e-9
    book.bid[100] = 1.0
    assert book.best_bid(120) == 100


def test_crossed_at_mid(book):
    book.bid[120] = 2.0
    book.ask[120] = 1.0
    assert book.is_crossed(120)
    assert book.spread(120) == 0


def test_imbalance_excludes_mid_bin(book):
    book.bid[120] = 100.0
    book.ask[120] = 100.0
    book.bid[118] = 3.0
    book.ask[121] = 1.0
    imb, depth = book.imbalance(120, 16)
    assert depth == pytest.approx(4.0)
    assert imb == pytest.approx(0.5, rel=1e-5)


def test_imbalance_radius(book):
    book.bid[100] = 5.0
    imb, depth = book.imbalance(120, 16)
    assert depth == 0.0
    imb, depth = book.imbalance(120, 20)
    assert depth == 5.0
    assert imb > 0.99


def test_clear(book):
    book.bid[:] = 1.0
    book.ask[:] = 1.0
    book.clear()
    assert book.bid_volume == 0.0
    assert book.ask_volume == 0.0


def test_depth_window_is_a_copy(book):
    book.bid[119] = 4.0
    lo, bids, asks = book.get_depth(120, 5)
    assert lo == 115
    assert len(bids) == 11
    assert bids[4] == 4.0
    bids[4] = 0.0
    assert book.bid[119] == 4.0


def test_depth_window_clamped_at_edges(book):
    lo, bids, _ = book.get_depth(2, 10)
    assert lo == 0
    assert len(bids) == 13


def test_snapshot_keys(book):
    book.bid[118] = 1.0
    book.ask[122] = 1.0
    snap = book.get_snapshot(120)
    assert snap["best_bid"] == 118
    assert snap["best_ask"] == 122
    assert snap["spread"] == 4
    assert snap["imbalance"] == pytest.approx(0.0)


def test_trade_print_to_dict():
    tp = TradePrint(bin=120, quantity=2.5, side=Side.BUY, life=1.2)
    assert tp.to_dict() == {"bin": 120, "quantity": 2.5, "side": "buy", "life": 1.2}
