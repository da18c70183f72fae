"""
Migration engine exceptions.

Each exception carries a technical message (for logs); validation errors
additionally carry the per-field details returned to callers.
"""

from typing import Dict, List


class MigrationError(Exception):
    """Base exception for migration engine errors."""

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class ConfigurationError(MigrationError):
    """The migration configuration file is missing or invalid."""
    pass


class InputValidationError(MigrationError):
    """Missing or invalid ``code`` / ``from`` request fields.

    Reported immediately; no transformation is attempted.
    """

    def __init__(self, field_errors: List[Dict[str, str]]):
        names = ", ".join(sorted({e["field"] for e in field_errors})) or "request"
        super().__init__(
            f"Invalid migration request: {names}",
            f"Invalid or missing field(s): {names}. "
            "Usage: { code: 'your-code', from: 'ioredis' | 'node-redis' }",
        )
        self.field_errors = field_errors


class SubTransformFailure(MigrationError):
    """A single rewrite rule raised while rewriting the source."""

    def __init__(self, rule_name: str, cause: Exception):
        super().__init__(f"Rewrite rule '{rule_name}' failed: {cause}")
        self.rule_name = rule_name
        self.cause = cause
