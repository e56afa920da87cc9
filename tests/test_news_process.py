"""
Tests for the news pulse process.
"""

import math

import numpy as np
import pytest

from signals.models import NewsState, NEWS_PEAK
from signals.news_process import NewsProcess


DT = 1.0 / 60.0


def test_initial_state_quiet():
    news = NewsProcess()
    assert news.state.active == 0.0
    assert news.state.dir == 0
    assert news.state.ttl == 0.0
    assert not news.state.is_active
    assert news.state.bias(10.0) == 0.0


def test_manual_trigger_direction_up(rng):
    news = NewsProcess()
    state = news.trigger(1, rng)
    assert state.dir == 1
    assert state.active == pytest.approx(NEWS_PEAK)
    assert NewsProcess.TTL_MIN <= state.ttl < NewsProcess.TTL_MIN + NewsProcess.TTL_SPAN
    assert news.pulse_count == 1


def test_manual_trigger_direction_down(rng):
    state = NewsProcess().trigger(-3, rng)
    assert state.dir == -1


def test_random_direction_is_a_sign(rng):
    dirs = {NewsProcess().trigger(0, rng).dir for _ in range(50)}
    assert dirs == {-1, 1}


def test_active_stays_within_peak_during_pulse(rng):
    """After a manual up pulse, active stays in (0, peak] through the live phase."""
    news = NewsProcess()
    news.trigger(1, rng)
    while news.state.ttl > 0:
        news.step(DT, rng, news_rate=0.0)
        assert 0.0 < news.state.active <= NEWS_PEAK
        assert news.state.dir == 1


def test_decays_to_zero_after_ttl(rng):
    """Once ttl is spent, active reaches exactly zero in bounded time."""
    news = NewsProcess()
    news.trigger(1, rng)
    while news.state.ttl > 0:
        news.step(DT, rng, news_rate=0.0)
    assert news.state.ttl == 0.0

    budget = math.ceil(NEWS_PEAK / NewsProcess.DECAY_RATE / DT) + 1
    for _ in range(budget):
        news.step(DT, rng, news_rate=0.0)
    assert news.state.active == 0.0
    assert not news.state.is_active


def test_no_new_pulse_while_live(rng):
    """A certain arrival cannot restart a pulse that still has ttl."""
    news = NewsProcess()
    news.trigger(1, rng)
    news.step(DT, rng, news_rate=1.0)
    assert news.pulse_count == 1


def test_quiet_with_zero_rate(rng):
    news = NewsProcess()
    for _ in range(600):
        news.step(DT, rng, news_rate=0.0)
    assert news.pulse_count == 0
    assert news.state.active == 0.0


def test_arrival_probability_frame_rate_normalized():
    """One 1/30s tick equals two 1/60s ticks in arrival chance."""
    news = NewsProcess()
    p60 = news.arrival_probability(1 / 60, 0.012)
    p30 = news.arrival_probability(1 / 30, 0.012)
    assert p60 == pytest.approx(0.012)
    assert 1 - p30 == pytest.approx((1 - p60) ** 2)
    assert news.arrival_probability(DT, 0.0) == 0.0


def test_pulses_arrive_at_positive_rate():
    rng = np.random.default_rng(5)
    news = NewsProcess()
    for _ in range(60 * 60):
        news.step(DT, rng, news_rate=0.05)
    assert news.pulse_count > 5


def test_bias_sign_and_scale():
    state = NewsState(active=0.5, dir=-1, ttl=1.0)
    assert state.bias(10.0) == pytest.approx(-0.75)
    assert state.to_dict() == {'news_active': 0.5, 'news_dir': -1, 'news_ttl': 1.0}
