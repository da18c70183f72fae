"""ioredis / node-redis to Valkey GLIDE migration engine.

Public API:
    migrate(payload) -> MigrationResult | MigrationValidationError
    MigrationEngine(config).migrate_source(code, source_client) -> MigrationResult
    format_report(result, source_client) -> str
"""

from .analysis import classify_complexity, detect_patterns, select_strategy
from .engine import MigrationEngine, migrate
from .models import (
    ComplexityLevel,
    FieldError,
    MigrationRequest,
    MigrationResult,
    MigrationValidationError,
    PatternTag,
    SourceClient,
    SourceUnit,
    StrategyKind,
)
from .report import format_report

__all__ = [
    "ComplexityLevel",
    "FieldError",
    "MigrationEngine",
    "MigrationRequest",
    "MigrationResult",
    "MigrationValidationError",
    "PatternTag",
    "SourceClient",
    "SourceUnit",
    "StrategyKind",
    "classify_complexity",
    "detect_patterns",
    "format_report",
    "migrate",
    "select_strategy",
]
