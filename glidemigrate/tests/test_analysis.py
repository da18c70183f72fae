"""Tests for complexity classification, pattern detection and strategy selection."""

import pytest

from glidemigrate.core.migration.analysis import (
    classify_complexity,
    detect_patterns,
    select_strategy,
)
from glidemigrate.core.migration.models import ComplexityLevel, PatternTag, StrategyKind


# =========================================================================
# Sample JavaScript source fixtures
# =========================================================================

PLAIN = """\
const Redis = require('ioredis');
const redis = new Redis();
await redis.set('k', 'v');
"""

CLUSTERED_PIPELINE = """\
const cluster = new Redis.Cluster([{ host: 'a', port: 7000 }]);
const p = cluster.pipeline();
await p.exec();
"""


# =========================================================================
# Tests: Complexity
# =========================================================================

class TestClassifyComplexity:
    def test_simple(self):
        assert classify_complexity(PLAIN) == ComplexityLevel.SIMPLE

    @pytest.mark.parametrize("code", [
        "client.multi()", "redis.EVAL(src, 0)", "new Redis.Cluster(nodes)", "WATCH key",
    ])
    def test_advanced_keywords(self, code):
        assert classify_complexity(code) == ComplexityLevel.ADVANCED

    @pytest.mark.parametrize("code", ["redis.publish('c', 'm')", "new Batch()", "readStream()"])
    def test_intermediate_keywords(self, code):
        assert classify_complexity(code) == ComplexityLevel.INTERMEDIATE

    def test_advanced_wins_over_intermediate(self):
        assert classify_complexity("redis.subscribe('c'); redis.multi();") == ComplexityLevel.ADVANCED


# =========================================================================
# Tests: Patterns
# =========================================================================

class TestDetectPatterns:
    def test_none(self):
        assert detect_patterns(PLAIN) == ()

    def test_multiple_tags_in_configured_order(self):
        tags = detect_patterns(CLUSTERED_PIPELINE)
        assert tags == (PatternTag.CLUSTER, PatternTag.PIPELINE, PatternTag.TRANSACTION)

    def test_blocking(self):
        assert PatternTag.BLOCKING in detect_patterns("await redis.blpop('q', 0)")

    def test_substring_matching_is_accepted(self):
        # "executive" contains "exec"
        assert PatternTag.TRANSACTION in detect_patterns("const executive = 1;")

    def test_each_tag_reported_once(self):
        assert detect_patterns("eval(a); evalsha(b); eval(c)") == (PatternTag.LUA,)


# =========================================================================
# Tests: Strategy selection
# =========================================================================

class TestSelectStrategy:
    def test_simple_without_patterns_is_naive(self):
        assert select_strategy(ComplexityLevel.SIMPLE, ()) == StrategyKind.NAIVE

    def test_cluster_first(self):
        patterns = (PatternTag.PIPELINE, PatternTag.CLUSTER)
        assert select_strategy(ComplexityLevel.ADVANCED, patterns) == StrategyKind.CLUSTER

    @pytest.mark.parametrize("tag", [PatternTag.PIPELINE, PatternTag.TRANSACTION])
    def test_batches(self, tag):
        assert select_strategy(ComplexityLevel.ADVANCED, (tag, PatternTag.LUA)) == StrategyKind.TRANSACTION

    def test_everything_else_is_advanced(self):
        assert select_strategy(ComplexityLevel.SIMPLE, (PatternTag.BLOCKING,)) == StrategyKind.ADVANCED
        assert select_strategy(ComplexityLevel.INTERMEDIATE, ()) == StrategyKind.ADVANCED
