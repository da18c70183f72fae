"""Human-readable migration report."""

from typing import List, Union

from .models import MigrationResult, MigrationValidationError, SourceClient


def format_report(
    result: Union[MigrationResult, MigrationValidationError],
    source_client: Union[SourceClient, str],
) -> str:
    """Render a result as text: status, patterns, complexity, messages, code."""
    if isinstance(result, MigrationValidationError):
        lines = [f"❌ {result.message}"]
        lines.extend(f"  • {f.field}: {f.message}" for f in result.fields)
        return "\n".join(lines)

    source = source_client.value if isinstance(source_client, SourceClient) else source_client
    patterns = ", ".join(p.value for p in result.detected_patterns) or "basic operations"

    lines: List[str] = [
        f"✅ Migration from {source} to GLIDE completed!",
        f"Detected patterns: {patterns}",
        f"Complexity: {result.complexity.value}",
        f"Strategy: {result.strategy.value}",
    ]
    if result.warnings:
        lines.append("⚠️ Warnings:")
        lines.extend(f"  • {w}" for w in result.warnings)
    if result.notes:
        lines.append("📝 Notes:")
        lines.extend(f"  • {n}" for n in result.notes)
    lines.append("🔄 Transformed code:")
    lines.append(result.transformed_code)
    return "\n".join(lines)
