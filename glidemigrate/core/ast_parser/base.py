"""Base interface for language-specific syntax parsers.

Defines the Strategy pattern base class that parsers implement.
Shared parsing logic lives here; language-specific helpers are delegated.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

import tree_sitter

from .models import ParsedSource, ParseError

logger = logging.getLogger(__name__)


class BaseLanguageParser(ABC):
    """Abstract base for tree-sitter parsers used by the rewrite pipeline.

    Subclasses implement:
    - get_language(): returns language name string
    - get_tree_sitter_language(): returns tree-sitter Language object
    """

    @abstractmethod
    def get_language(self) -> str:
        """Return the language identifier (e.g., 'javascript')."""
        ...

    @abstractmethod
    def get_tree_sitter_language(self) -> tree_sitter.Language:
        """Return the tree-sitter Language object for this language."""
        ...

    def parse_source(self, source_text: str) -> ParsedSource:
        """Parse source code string into a ParsedSource.

        A fresh ``tree_sitter.Parser`` is created per call so parsers are
        never shared between concurrent requests.

        Args:
            source_text: Source code as string

        Returns:
            ParsedSource with the tree and any parse errors
        """
        source_bytes = source_text.encode("utf-8")

        parser = tree_sitter.Parser(self.get_tree_sitter_language())
        tree = parser.parse(source_bytes)

        errors: List[ParseError] = []
        if tree.root_node.has_error:
            errors.extend(self._collect_errors(tree.root_node))
            logger.debug(
                "%s parse produced %d error region(s)", self.get_language(), len(errors)
            )

        return ParsedSource(text=source_text, source=source_bytes, tree=tree, errors=errors)

    @staticmethod
    def _collect_errors(root: tree_sitter.Node) -> List[ParseError]:
        """Walk the tree and report ERROR / MISSING nodes by line."""
        errors: List[ParseError] = []
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR":
                errors.append(ParseError(
                    line=node.start_point.row + 1,
                    message="Unparseable syntax region",
                ))
                continue
            if node.is_missing:
                errors.append(ParseError(
                    line=node.start_point.row + 1,
                    message=f"Missing '{node.type}'",
                ))
                continue
            if node.has_error:
                stack.extend(reversed(node.children))
        return errors
