"""Migration strategy base class.

A strategy owns the rewrite stages that are unique to one kind of input
(cluster construction, MULTI/pipeline batches, advanced features). Every
strategy finishes with the source client's naive rule set, the GLIDE import
symbol sync and the common transformer; the shared pipeline sorts all of
them by phase.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from ..context import MigrationContext
from ..models import StrategyKind, StrategyOutcome
from ..rules.base import TransformRule
from ..rules.pipeline import RulePipeline
from ..rules.rulesets import closing_rules, naive_rules

logger = logging.getLogger(__name__)


class MigrationStrategy(ABC):
    """Abstract base for migration strategies."""

    # ── Identity ─────────────────────────────────────────────────

    @property
    @abstractmethod
    def kind(self) -> StrategyKind:
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        ...

    # ── Stages ───────────────────────────────────────────────────

    def strategy_rules(self, ctx: MigrationContext) -> List[TransformRule]:
        """Stages specific to this strategy, in order. Default: none."""
        return []

    def announce(self, ctx: MigrationContext) -> None:
        """Messages emitted whenever the strategy runs. Default: none."""

    def build_pipeline(self, ctx: MigrationContext) -> RulePipeline:
        rules = [
            *self.strategy_rules(ctx),
            *naive_rules(ctx.source_client),
            *closing_rules(),
        ]
        return RulePipeline(rules)

    # ── Execution ────────────────────────────────────────────────

    def run(self, code: str, ctx: MigrationContext) -> StrategyOutcome:
        """Rewrite ``code``; warnings and notes accumulate on ``ctx``."""
        self.announce(ctx)
        pipeline = self.build_pipeline(ctx)
        logger.debug("Strategy %s stages: %s", self.kind.value, ", ".join(pipeline.stage_names))
        transformed = pipeline.run(code, ctx)
        return StrategyOutcome(code=transformed, warnings=list(ctx.warnings), notes=list(ctx.notes))
