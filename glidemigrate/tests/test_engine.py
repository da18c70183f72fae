"""Tests for the migration engine boundary, failure containment and report."""

import pytest

from glidemigrate.core.errors import InputValidationError
from glidemigrate.core.migration import (
    MigrationEngine,
    MigrationResult,
    MigrationValidationError,
    format_report,
    migrate,
)
from glidemigrate.core.migration.models import ComplexityLevel, SourceClient, StrategyKind
from glidemigrate.core.migration.rules.clients import BareConstructorRule
from glidemigrate.core.migration.rules.commands import ExpiryShorthandRule
from glidemigrate.core.migration.strategies.naive import NaiveStrategy


# =========================================================================
# Sample source fixtures
# =========================================================================

SIMPLE = """\
import Redis from 'ioredis';
const redis = new Redis();
await redis.setex('k', 10, 'v');
"""

NO_KEYWORDS = "const total = prices.reduce((a, b) => a + b, 0);\n"


@pytest.fixture
def engine():
    return MigrationEngine()


# =========================================================================
# Tests: Validation
# =========================================================================

class TestValidation:
    @pytest.mark.parametrize("source", ["jedis", "", "IOREDIS", None])
    def test_unknown_source_client(self, engine, source):
        result = engine.migrate({"code": SIMPLE, "from": source})
        assert isinstance(result, MigrationValidationError)
        assert result.error == "validation_error"
        assert [f.field for f in result.fields] == ["from"]
        assert "Usage:" in result.message

    def test_missing_fields(self, engine):
        result = engine.migrate({})
        assert sorted(f.field for f in result.fields) == ["code", "from"]

    def test_blank_code(self, engine):
        result = engine.migrate({"code": "   ", "from": "ioredis"})
        assert result.fields[0].field == "code"
        assert result.fields[0].message == "code must be a non-empty string"

    def test_non_mapping_payload(self, engine):
        result = engine.migrate("new Redis()")
        assert result.fields[0].field == "request"

    def test_validate_request_raises(self, engine):
        with pytest.raises(InputValidationError) as excinfo:
            engine.validate_request({"code": 42, "from": "ioredis"})
        assert excinfo.value.field_errors[0]["field"] == "code"

    def test_validate_request_accepts_alias(self, engine):
        request = engine.validate_request({"code": SIMPLE, "from": "node-redis"})
        assert request.source_client == SourceClient.NODE_REDIS


# =========================================================================
# Tests: Migration
# =========================================================================

class TestMigrate:
    def test_no_keywords(self, engine):
        result = engine.migrate({"code": NO_KEYWORDS, "from": "ioredis"})
        assert isinstance(result, MigrationResult)
        assert result.complexity == ComplexityLevel.SIMPLE
        assert result.detected_patterns == []
        assert result.strategy == StrategyKind.NAIVE
        assert result.transformed_code == NO_KEYWORDS

    def test_module_level_migrate(self):
        result = migrate({"code": SIMPLE, "from": "ioredis"})
        assert "GlideClient.createClient" in result.transformed_code

    def test_response_uses_wire_names(self, engine):
        response = engine.migrate({"code": SIMPLE, "from": "ioredis"}).to_response()
        assert set(response) == {
            "transformedCode", "detectedPatterns", "complexity", "warnings", "notes", "strategy",
        }
        assert response["complexity"] == "simple"
        assert response["strategy"] == "naive"

    def test_failed_stage_returns_original(self, engine, monkeypatch):
        def explode(self, app):
            raise RuntimeError("boom")

        monkeypatch.setattr(ExpiryShorthandRule, "apply", explode)
        result = engine.migrate({"code": SIMPLE, "from": "ioredis"})
        assert result.transformed_code == SIMPLE
        assert result.notes == ["Skipped rewrite stage 'setex': boom"]
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Automatic migration failed in the naive strategy")

    def test_failed_constructor_keeps_import(self, engine, monkeypatch):
        def explode(self, node, args, app):
            raise RuntimeError("boom")

        monkeypatch.setattr(BareConstructorRule, "construct", explode)
        result = engine.migrate({"code": SIMPLE, "from": "ioredis"})
        assert result.transformed_code == SIMPLE
        assert "import Redis from 'ioredis';" in result.transformed_code
        assert "Skipped rewrite stage 'bare-constructor': boom" in result.notes

    def test_failed_strategy_returns_original(self, engine, monkeypatch):
        def explode(self, code, ctx):
            raise RuntimeError("boom")

        monkeypatch.setattr(NaiveStrategy, "run", explode)
        result = engine.migrate({"code": SIMPLE, "from": "ioredis"})
        assert result.transformed_code == SIMPLE
        assert result.strategy == StrategyKind.NAIVE
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Automatic migration failed in the naive strategy (boom)")

    def test_requests_do_not_share_state(self, engine):
        first = engine.migrate({"code": "const r = new Redis();\nr.on('error', console.error);\n", "from": "ioredis"})
        second = engine.migrate({"code": NO_KEYWORDS, "from": "ioredis"})
        assert first.warnings
        assert second.warnings == []
        assert second.notes == []


# =========================================================================
# Tests: Report
# =========================================================================

class TestFormatReport:
    def test_success_report(self, engine):
        result = engine.migrate({"code": SIMPLE, "from": "ioredis"})
        report = format_report(result, "ioredis")
        lines = report.splitlines()
        assert lines[0] == "✅ Migration from ioredis to GLIDE completed!"
        assert lines[1] == "Detected patterns: basic operations"
        assert lines[2] == "Complexity: simple"
        assert lines[3] == "Strategy: naive"
        assert "🔄 Transformed code:" in lines
        assert report.endswith(result.transformed_code)

    def test_messages_listed(self):
        result = MigrationResult(
            transformed_code="x",
            complexity=ComplexityLevel.ADVANCED,
            warnings=["w1"],
            notes=["n1"],
            strategy=StrategyKind.CLUSTER,
            detected_patterns=["cluster"],
        )
        report = format_report(result, SourceClient.NODE_REDIS)
        assert "Migration from node-redis" in report
        assert "Detected patterns: cluster" in report
        assert "⚠️ Warnings:\n  • w1" in report
        assert "📝 Notes:\n  • n1" in report

    def test_validation_report(self, engine):
        report = format_report(engine.migrate({"code": "x", "from": "jedis"}), "jedis")
        assert report.startswith("❌ ")
        assert "  • from:" in report
