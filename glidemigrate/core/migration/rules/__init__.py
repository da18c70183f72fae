"""Rewrite rules -- named, phased stages over the JavaScript syntax tree."""

from .base import NodeRule, RuleApplication, RulePhase, TransformRule
from .pipeline import RulePipeline
from .rulesets import closing_rules, ioredis_rules, naive_rules, node_redis_rules

__all__ = [
    "NodeRule",
    "RuleApplication",
    "RulePhase",
    "RulePipeline",
    "TransformRule",
    "closing_rules",
    "ioredis_rules",
    "naive_rules",
    "node_redis_rules",
]
