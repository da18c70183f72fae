"""Migration strategy registry.

Simple dict-based registry. All strategies are registered at import time
via ``strategies/__init__.py``; exactly one of them runs per request.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..analysis import select_strategy
from ..models import ComplexityLevel, PatternTag, StrategyKind
from .base import MigrationStrategy

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Registry for migration strategies.

    Class-level store so the engine can call ``StrategyRegistry.select(...)``
    without holding an instance.
    """

    _strategies: Dict[StrategyKind, MigrationStrategy] = {}

    @classmethod
    def register(cls, strategy: MigrationStrategy) -> None:
        """Register a strategy instance, replacing any of the same kind."""
        cls._strategies[strategy.kind] = strategy
        logger.debug("Registered migration strategy: %s (%s)", strategy.kind.value, strategy.display_name)

    @classmethod
    def get(cls, kind: StrategyKind) -> Optional[MigrationStrategy]:
        """Get a strategy by kind. Returns ``None`` if not registered."""
        return cls._strategies.get(kind)

    @classmethod
    def select(cls, complexity: ComplexityLevel, patterns: Sequence[PatternTag]) -> MigrationStrategy:
        """Pick the strategy for a classified request.

        Raises:
            LookupError: If the selected strategy kind is not registered.
        """
        kind = select_strategy(complexity, patterns)
        strategy = cls._strategies.get(kind)
        if strategy is None:
            raise LookupError(f"No migration strategy registered for '{kind.value}'")
        logger.info(
            "Selected %s strategy (complexity=%s, patterns=%s)",
            kind.value, complexity.value, ",".join(p.value for p in patterns) or "-",
        )
        return strategy

    @classmethod
    def list_strategies(cls) -> List[Dict[str, Any]]:
        """List all registered strategies with metadata."""
        return [
            {"kind": strategy.kind.value, "display_name": strategy.display_name}
            for strategy in cls._strategies.values()
        ]
