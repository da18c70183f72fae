"""glidemigrate AST Parser — tree-sitter based JavaScript parsing.

Public API:
    parse_javascript(source) → ParsedSource
    apply_edits(source_bytes, edits) → str
"""

from typing import Optional

from .editing import apply_edits, resolve_conflicts
from .javascript_parser import JavaScriptParser
from .models import Edit, ParsedSource, ParseError

__all__ = [
    "parse_javascript",
    "apply_edits",
    "resolve_conflicts",
    "Edit",
    "JavaScriptParser",
    "ParsedSource",
    "ParseError",
]

# Parser instance is stateless (a tree_sitter.Parser is created per parse)
_parser: Optional[JavaScriptParser] = None


def parse_javascript(source_text: str) -> ParsedSource:
    """Parse JavaScript source text into a ParsedSource.

    Args:
        source_text: Source code as string

    Returns:
        ParsedSource containing the tree-sitter tree and parse errors
    """
    global _parser
    if _parser is None:
        _parser = JavaScriptParser()
    return _parser.parse_source(source_text)
