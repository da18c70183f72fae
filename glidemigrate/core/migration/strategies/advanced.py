"""Advanced strategy.

Runs only the sub-transforms whose pattern tag was detected, in a fixed
order (lua, pubsub, streams, blocking, then the unresolved-pattern
advisories), followed by the naive rule set. Sub-transforms are METHOD
stages: they see GLIDE factory calls already in place and run before the
naive method rewrites.
"""

from typing import List, Optional

from ..context import MigrationContext
from ..models import PatternTag, StrategyKind
from ..rules.base import RuleApplication, RulePhase, TransformRule
from ..rules.pubsub import PubSubRule
from ..rules.scripting import EXECUTE, EvalRule
from .base import MigrationStrategy

STREAMS_NOTE = (
    "Stream commands (xadd, xread, xreadgroup, ...) take option objects in "
    "GLIDE; review their arguments"
)
BLOCKING_WARNING = (
    "Blocking commands: timeout semantics may differ; make sure requestTimeout "
    "is longer than the blocking timeout"
)
SENTINEL_WARNING = (
    "Sentinel-managed connections have no direct GLIDE equivalent; connect to "
    "the primary (or use cluster mode) and review failover handling"
)
SCAN_WARNING = (
    "SCAN-family iteration was not rewritten: GLIDE scan calls take a cursor and "
    "an options object ({ match, count, type }); review scan loops"
)
OPTIMISTIC_LOCKING_WARNING = (
    "WATCH/UNWATCH optimistic locking: GLIDE exec() resolves to null when a "
    "watched key changed; review retry loops around transactions"
)


class AdvisoryRule(TransformRule):
    """Stage that only reports: a detected feature with no automatic rewrite."""

    phase = RulePhase.METHOD

    def __init__(self, name: str, tag: PatternTag, warning: Optional[str] = None, note: Optional[str] = None):
        self.name = name
        self.tag = tag
        self.warning = warning
        self.note = note

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.has_pattern(self.tag)

    def apply(self, app: RuleApplication) -> None:
        if self.warning:
            app.warn(self.warning)
        if self.note:
            app.note(self.note)


class _TaggedRule(TransformRule):
    """Wraps a rule so it only runs when ``tag`` was detected."""

    def __init__(self, rule: TransformRule, tag: PatternTag):
        self.rule = rule
        self.tag = tag
        self.name = rule.name
        self.phase = rule.phase
        self.description = rule.description

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.has_pattern(self.tag) and self.rule.applies_to(ctx)

    def apply(self, app: RuleApplication) -> None:
        self.rule.apply(app)


class AdvancedStrategy(MigrationStrategy):

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.ADVANCED

    @property
    def display_name(self) -> str:
        return "Advanced (feature-specific rewrites)"

    def strategy_rules(self, ctx: MigrationContext) -> List[TransformRule]:
        return [
            _TaggedRule(EvalRule("lua-script", mode=EXECUTE), PatternTag.LUA),
            _TaggedRule(PubSubRule(), PatternTag.PUBSUB),
            AdvisoryRule("streams-advisory", PatternTag.STREAMS, note=STREAMS_NOTE),
            AdvisoryRule("blocking-advisory", PatternTag.BLOCKING, warning=BLOCKING_WARNING),
            AdvisoryRule("sentinel-advisory", PatternTag.SENTINEL, warning=SENTINEL_WARNING),
            AdvisoryRule("scan-advisory", PatternTag.SCAN, warning=SCAN_WARNING),
            AdvisoryRule(
                "optimistic-locking-advisory", PatternTag.OPTIMISTIC_LOCKING,
                warning=OPTIMISTIC_LOCKING_WARNING,
            ),
        ]
