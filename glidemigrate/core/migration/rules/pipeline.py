"""Ordered rule pipeline.

Runs a list of :class:`TransformRule` stages over source text. Stages are
stably sorted by phase, so the relative order of rules within a phase is the
order they were given in. Every stage re-parses the current text. A stage
that raises aborts the whole run with :class:`SubTransformFailure`; the
engine then returns the untouched input, so no half-rewritten text escapes.
"""

import logging
from typing import Iterable, List

from ...ast_parser import apply_edits, parse_javascript
from ...errors import SubTransformFailure
from ..context import MigrationContext
from .base import RuleApplication, TransformRule

logger = logging.getLogger(__name__)


class RulePipeline:
    """An explicit, named, phase-ordered list of rewrite stages."""

    def __init__(self, rules: Iterable[TransformRule]):
        self.rules: List[TransformRule] = sorted(rules, key=lambda r: r.phase)

    @property
    def stage_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def run(self, code: str, ctx: MigrationContext) -> str:
        """Apply every applicable stage in order and return the new text.

        Raises:
            SubTransformFailure: The first stage that raised.
        """
        for rule in self.rules:
            if not rule.applies_to(ctx):
                continue
            code = self._run_stage(rule, code, ctx)
        return code

    def _run_stage(self, rule: TransformRule, code: str, ctx: MigrationContext) -> str:
        parsed = parse_javascript(code)
        app = RuleApplication(parsed, ctx, rule.name)
        try:
            rule.apply(app)
            new_code = apply_edits(parsed.source, app.edits) if app.edits else code
        except Exception as e:
            raise SubTransformFailure(rule.name, e) from e

        app.commit()
        if app.edits:
            logger.debug("Stage %s applied %d edit(s)", rule.name, len(app.edits))
        return new_code
