"""Migration strategies.

All built-in strategies are registered on import. The
:class:`StrategyRegistry` is the single entry point for the engine to pick
one.
"""

from .base import MigrationStrategy
from .registry import StrategyRegistry

# ── Register built-in strategies ─────────────────────────────────────

from .advanced import AdvancedStrategy
from .cluster import ClusterStrategy
from .naive import NaiveStrategy
from .transaction import TransactionStrategy

StrategyRegistry.register(NaiveStrategy())
StrategyRegistry.register(ClusterStrategy())
StrategyRegistry.register(TransactionStrategy())
StrategyRegistry.register(AdvancedStrategy())

__all__ = [
    "AdvancedStrategy",
    "ClusterStrategy",
    "MigrationStrategy",
    "NaiveStrategy",
    "StrategyRegistry",
    "TransactionStrategy",
]
