"""Data contracts for the migration engine.

Enums and dataclasses shared by the analysis functions, rules and
strategies, plus the pydantic request/response models used at the engine
boundary. Everything here is request-scoped; nothing is cached.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceClient(str, Enum):
    """Redis client API the code is migrated from."""
    IOREDIS = "ioredis"
    NODE_REDIS = "node-redis"


class ComplexityLevel(str, Enum):
    SIMPLE = "simple"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class PatternTag(str, Enum):
    """Structural features of the input that drive strategy selection."""
    CLUSTER = "cluster"
    SENTINEL = "sentinel"
    PIPELINE = "pipeline"
    TRANSACTION = "transaction"
    LUA = "lua"
    PUBSUB = "pubsub"
    STREAMS = "streams"
    SCAN = "scan"
    OPTIMISTIC_LOCKING = "optimistic-locking"
    BLOCKING = "blocking"


class StrategyKind(str, Enum):
    NAIVE = "naive"
    CLUSTER = "cluster"
    TRANSACTION = "transaction"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class SourceUnit:
    """Immutable migration input: source text plus the client it targets."""
    code: str
    source_client: SourceClient


@dataclass
class StrategyOutcome:
    """Output of one strategy run."""
    code: str
    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


# ── Boundary models ──────────────────────────────────────────────────────


class MigrationRequest(BaseModel):
    """Validated ``{code, from}`` request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str = Field(..., description="Source code to migrate")
    source_client: SourceClient = Field(..., alias="from", description="ioredis | node-redis")

    @field_validator("code")
    @classmethod
    def _code_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("code must be a non-empty string")
        return value


class MigrationResult(BaseModel):
    """Migration response.

    Field names are snake_case in Python and camelCase on the wire
    (``to_response()``).
    """

    model_config = ConfigDict(populate_by_name=True)

    transformed_code: str = Field(..., alias="transformedCode")
    detected_patterns: List[PatternTag] = Field(default_factory=list, alias="detectedPatterns")
    complexity: ComplexityLevel
    warnings: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    strategy: StrategyKind

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class FieldError(BaseModel):
    field: str
    message: str


class MigrationValidationError(BaseModel):
    """Structured validation-error response; no transformation was attempted."""

    error: Literal["validation_error"] = "validation_error"
    message: str
    fields: List[FieldError] = Field(default_factory=list)

    def to_response(self) -> dict:
        return self.model_dump(mode="json")
