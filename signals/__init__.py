"""
Exogenous signal processing

News pulses that shift agent beliefs for the swarm simulation.
"""

from .models import NewsState, NEWS_PEAK
from .news_process import NewsProcess

__all__ = [
    'NewsState',
    'NEWS_PEAK',
    'NewsProcess',
]
