import os

import numpy as np
import pytest

from agents.population import AgentPopulation
from config.settings import PolicySettings, SimulationConfig
from simulation.order_book import OrderBook
from simulation.price_axis import PriceAxis
from simulation.market_env import SwarmMarketModel


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep SWARM_* variables and any local .env out of the tests."""
    for key in list(os.environ):
        if key.startswith('SWARM_') or key in ('LOG_LEVEL', 'LOG_FILE', 'LOG_FORMAT'):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def axis():
    return PriceAxis(241)


@pytest.fixture
def policy():
    return PolicySettings()


@pytest.fixture
def population(axis, rng):
    return AgentPopulation.create(400, axis, rng)


@pytest.fixture
def book(axis):
    return OrderBook(axis)


@pytest.fixture
def small_model():
    """A cheap model: 300 agents, quiet news, fixed seed."""
    config = SimulationConfig(bins=241, seed=7)
    policy = PolicySettings(population_size=300, news_rate=0.0)
    return SwarmMarketModel(config=config, policy=policy)
