"""
Trading agent population and per-role behavioral rules.
"""

from agents.population import AgentPopulation, Role, ROLE_MIX, create_population
from agents.roles import TickContext, ROLE_RULES, apply_role_rules

__all__ = [
    "AgentPopulation",
    "Role",
    "ROLE_MIX",
    "create_population",
    "TickContext",
    "ROLE_RULES",
    "apply_role_rules",
]
