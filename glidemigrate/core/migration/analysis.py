"""Source analysis: complexity classification, pattern detection, strategy selection.

All three are pure functions of the source text (and the immutable keyword
tables from configuration).

Known limitation: matching is a case-insensitive substring scan, so words
such as "executive" count as ``exec`` and "publish" counts as ``pub``. This
is accepted behaviour, not a bug to be fixed silently.
"""

import logging
from typing import Optional, Sequence, Tuple

from ..config import MigrationConfig, get_config
from .models import ComplexityLevel, PatternTag, StrategyKind

logger = logging.getLogger(__name__)


def classify_complexity(code: str, config: Optional[MigrationConfig] = None) -> ComplexityLevel:
    """Classify source text as simple, intermediate or advanced.

    Any advanced keyword wins; otherwise any intermediate keyword; otherwise
    simple.
    """
    config = config or get_config()
    lowered = code.lower()

    if any(keyword in lowered for keyword in config.complexity.advanced):
        return ComplexityLevel.ADVANCED
    if any(keyword in lowered for keyword in config.complexity.intermediate):
        return ComplexityLevel.INTERMEDIATE
    return ComplexityLevel.SIMPLE


def detect_patterns(code: str, config: Optional[MigrationConfig] = None) -> Tuple[PatternTag, ...]:
    """Detect structural pattern tags.

    Each configured check is tested independently, in configuration order;
    tags are non-exclusive and the output preserves that order.
    """
    config = config or get_config()
    lowered = code.lower()

    tags = []
    for check in config.patterns:
        if any(keyword in lowered for keyword in check.keywords):
            tag = PatternTag(check.tag)
            if tag not in tags:
                tags.append(tag)
    return tuple(tags)


def select_strategy(complexity: ComplexityLevel, patterns: Sequence[PatternTag]) -> StrategyKind:
    """Pick exactly one strategy. First matching row wins:

    1. simple and no patterns     -> naive
    2. cluster detected           -> cluster
    3. pipeline or transaction    -> transaction
    4. anything else              -> advanced
    """
    if complexity == ComplexityLevel.SIMPLE and not patterns:
        return StrategyKind.NAIVE
    if PatternTag.CLUSTER in patterns:
        return StrategyKind.CLUSTER
    if PatternTag.PIPELINE in patterns or PatternTag.TRANSACTION in patterns:
        return StrategyKind.TRANSACTION
    return StrategyKind.ADVANCED
