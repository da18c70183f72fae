"""Tests for the phase-ordered rule pipeline and stage failure containment."""

import pytest

from glidemigrate.core.config import get_config
from glidemigrate.core.errors import SubTransformFailure
from glidemigrate.core.migration.context import MigrationContext
from glidemigrate.core.migration.models import SourceClient
from glidemigrate.core.migration.rules import (
    NodeRule,
    RulePhase,
    RulePipeline,
    TransformRule,
    closing_rules,
    ioredis_rules,
)
from glidemigrate.core.migration.rules.clients import _IoredisConstructorRule, _NodeRedisFactoryRule
from glidemigrate.core.migration.rules.commands import _MethodRule
from glidemigrate.core.migration.rules.imports import ImportSymbolsRule


def _context(source_client=SourceClient.IOREDIS) -> MigrationContext:
    return MigrationContext(source_client=source_client, config=get_config())


class _AppendComment(TransformRule):
    def __init__(self, name, phase, marker):
        self.name = name
        self.phase = phase
        self.marker = marker

    def apply(self, app):
        app.insert(len(app.source), f"// {self.marker}\n")


class _Exploding(TransformRule):
    name = "exploding"
    phase = RulePhase.METHOD

    def apply(self, app):
        app.warn("never reported")
        app.insert(0, "// never applied\n")
        raise RuntimeError("boom")


class _RenameFoo(NodeRule):
    name = "rename-foo"
    phase = RulePhase.METHOD

    def rewrite(self, node, app):
        function = node.child_by_field_name("function")
        if app.text(function) == "foo":
            app.replace(function, "bar")


# =========================================================================
# Tests: Ordering
# =========================================================================

class TestOrdering:
    def test_sorted_by_phase_stably(self):
        rules = [
            _AppendComment("common", RulePhase.COMMON, "c"),
            _AppendComment("method-a", RulePhase.METHOD, "a"),
            _AppendComment("import", RulePhase.IMPORT, "i"),
            _AppendComment("method-b", RulePhase.METHOD, "b"),
        ]
        pipeline = RulePipeline(rules)
        assert pipeline.stage_names == ["import", "method-a", "method-b", "common"]
        assert pipeline.run("", _context()) == "// i\n// a\n// b\n// c\n"

    def test_ioredis_rules_respect_phases(self):
        pipeline = RulePipeline(ioredis_rules() + closing_rules())
        phases = [rule.phase for rule in pipeline.rules]
        assert phases == sorted(phases)
        assert pipeline.stage_names[:2] == ["es-import", "require-import"]
        assert pipeline.stage_names[-1] == "array-keys"

    def test_stages_see_previous_output(self):
        pipeline = RulePipeline([_RenameFoo()])
        assert pipeline.run("foo(); foo();", _context()) == "bar(); bar();"

    @pytest.mark.parametrize("base", [_IoredisConstructorRule, _NodeRedisFactoryRule, _MethodRule])
    def test_shape_hooks_are_abstract(self, base):
        with pytest.raises(TypeError):
            base()


# =========================================================================
# Tests: Failure containment
# =========================================================================

class TestFailureContainment:
    def test_failed_stage_aborts_run(self):
        ctx = _context()
        renamed = []

        class _RecordingRename(_RenameFoo):
            def apply(self, app):
                renamed.append(True)
                super().apply(app)

        pipeline = RulePipeline([_Exploding(), _RecordingRename()])
        with pytest.raises(SubTransformFailure) as excinfo:
            pipeline.run("foo();", ctx)
        assert excinfo.value.rule_name == "exploding"
        assert str(excinfo.value.cause) == "boom"
        assert renamed == []

    def test_failed_stage_messages_discarded(self):
        ctx = _context()
        with pytest.raises(SubTransformFailure):
            RulePipeline([_Exploding()]).run("foo();", ctx)
        assert ctx.warnings == []
        assert ctx.notes == []

    def test_gated_stage_not_run(self):
        ctx = _context(SourceClient.NODE_REDIS)

        class _IoredisOnly(_Exploding):
            def applies_to(self, ctx):
                return ctx.is_ioredis

        assert RulePipeline([_IoredisOnly()]).run("foo();", ctx) == "foo();"
        assert ctx.notes == []


# =========================================================================
# Tests: Import symbol sync
# =========================================================================

class TestImportSymbols:
    def test_appends_missing_symbols(self):
        code = (
            "import { GlideClient } from '@valkey/valkey-glide';\n"
            "const tx = new Transaction();\n"
        )
        result = RulePipeline([ImportSymbolsRule()]).run(code, _context())
        assert result.startswith("import { GlideClient, Transaction } from '@valkey/valkey-glide';")

    def test_commonjs_destructuring(self):
        code = (
            "const { GlideClient } = require('@valkey/valkey-glide');\n"
            "const s = new Script('return 1');\n"
        )
        result = RulePipeline([ImportSymbolsRule()]).run(code, _context())
        assert result.startswith("const { GlideClient, Script } = require('@valkey/valkey-glide');")

    def test_never_creates_an_import(self):
        code = "const tx = new Transaction();\n"
        assert RulePipeline([ImportSymbolsRule()]).run(code, _context()) == code

    def test_already_imported(self):
        code = (
            "import { GlideClient, Batch } from '@valkey/valkey-glide';\n"
            "const b = new Batch(false);\n"
        )
        assert RulePipeline([ImportSymbolsRule()]).run(code, _context()) == code
