"""Discovery strategies, conflict aggregation and run orchestration."""

from .aggregator import DiscoveryAggregator, FileDiscovery
from .service import DiscoveryResult, DiscoveryService
from .strategies import DiscoveryMatch, DiscoveryRules, StrategyEvaluator

__all__ = [
    "DiscoveryAggregator",
    "DiscoveryMatch",
    "DiscoveryResult",
    "DiscoveryRules",
    "DiscoveryService",
    "FileDiscovery",
    "StrategyEvaluator",
]
