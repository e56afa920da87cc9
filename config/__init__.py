"""
Configuration package for the Market Microstructure Swarm.

Provides centralized, type-safe configuration management.

Usage:
    from config.settings import settings

    # Access configuration
    bins = settings.simulation.bins
    tax = settings.policy.tax
"""

from .settings import settings, Settings, PolicySettings, SimulationConfig, LoggingConfig

__all__ = ['settings', 'Settings', 'PolicySettings', 'SimulationConfig', 'LoggingConfig']
