"""Migration engine -- validates a request, classifies it and runs one strategy.

Pipeline: validate -> classify complexity + detect patterns -> select
strategy -> run its stages -> result. Everything is request-scoped; the
only shared values are the immutable configuration and the strategy
registry.
"""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from ..config import MigrationConfig, get_config
from ..errors import InputValidationError, SubTransformFailure
from .analysis import classify_complexity, detect_patterns
from .context import MigrationContext
from .models import (
    FieldError,
    MigrationRequest,
    MigrationResult,
    MigrationValidationError,
    SourceClient,
    SourceUnit,
)
from .strategies import StrategyRegistry

logger = logging.getLogger(__name__)

_FIELD_NAMES = {"source_client": "from"}


class MigrationEngine:
    """Stateless migration orchestrator.

    Args:
        config: Migration configuration. Defaults to the process-wide one.
    """

    def __init__(self, config: Optional[MigrationConfig] = None):
        self.config = config or get_config()

    # ── Boundary ─────────────────────────────────────────────────────

    def validate_request(self, payload: Any) -> MigrationRequest:
        """Validate a ``{code, from}`` payload.

        Raises:
            InputValidationError: With one entry per invalid or missing field.
        """
        if isinstance(payload, MigrationRequest):
            return payload
        if not isinstance(payload, Mapping):
            raise InputValidationError([
                {"field": "request", "message": "Request must be an object with 'code' and 'from'"},
            ])
        try:
            return MigrationRequest.model_validate(dict(payload))
        except ValidationError as e:
            field_errors = []
            for error in e.errors():
                loc = error.get("loc") or ("request",)
                name = _FIELD_NAMES.get(str(loc[0]), str(loc[0]))
                message = str(error.get("msg", "invalid value")).removeprefix("Value error, ")
                field_errors.append({"field": name, "message": message})
            raise InputValidationError(field_errors) from e

    def migrate(self, payload: Any) -> Union[MigrationResult, MigrationValidationError]:
        """Validate ``payload`` and migrate it.

        Invalid requests return a :class:`MigrationValidationError` and no
        transformation is attempted.
        """
        try:
            request = self.validate_request(payload)
        except InputValidationError as e:
            logger.info("Rejected migration request: %s", e)
            return MigrationValidationError(
                message=e.user_message,
                fields=[FieldError(**fe) for fe in e.field_errors],
            )
        return self.migrate_source(request.code, request.source_client)

    # ── Migration ────────────────────────────────────────────────────

    def migrate_source(self, code: str, source_client: Union[SourceClient, str]) -> MigrationResult:
        """Migrate already-validated source text."""
        unit = SourceUnit(code=code, source_client=SourceClient(source_client))

        complexity = classify_complexity(unit.code, self.config)
        patterns = detect_patterns(unit.code, self.config)
        strategy = StrategyRegistry.select(complexity, patterns)

        ctx = MigrationContext(
            source_client=unit.source_client,
            config=self.config,
            complexity=complexity,
            patterns=patterns,
        )

        try:
            outcome = strategy.run(unit.code, ctx)
        except Exception as e:
            logger.warning(
                "Strategy %s failed; returning original code", strategy.kind.value, exc_info=True,
            )
            notes = []
            if isinstance(e, SubTransformFailure):
                notes.append(f"Skipped rewrite stage '{e.rule_name}': {e.cause}")
            return MigrationResult(
                transformed_code=unit.code,
                detected_patterns=list(patterns),
                complexity=complexity,
                warnings=[
                    f"Automatic migration failed in the {strategy.kind.value} strategy ({e}); "
                    "the original code is returned unchanged and needs manual migration"
                ],
                notes=notes,
                strategy=strategy.kind,
            )

        logger.info(
            "Migrated %s source with %s strategy (%d warning(s), %d note(s))",
            unit.source_client.value, strategy.kind.value, len(outcome.warnings), len(outcome.notes),
        )
        return MigrationResult(
            transformed_code=outcome.code,
            detected_patterns=list(patterns),
            complexity=complexity,
            warnings=outcome.warnings,
            notes=outcome.notes,
            strategy=strategy.kind,
        )


_default_engine: Optional[MigrationEngine] = None


def migrate(payload: Mapping) -> Union[MigrationResult, MigrationValidationError]:
    """Module-level convenience wrapper around a default :class:`MigrationEngine`."""
    global _default_engine
    if _default_engine is None:
        _default_engine = MigrationEngine()
    return _default_engine.migrate(payload)
