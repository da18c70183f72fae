"""AST Parser data models.

Defines the core data structures for parsed source and pending rewrites.
These are pure data containers — no parsing logic.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import tree_sitter


@dataclass
class ParseError:
    """An error encountered during parsing."""

    line: int
    message: str
    severity: str = "warning"  # "warning" | "error"


@dataclass
class ParsedSource:
    """A parsed snapshot of one version of the source text.

    ``source`` is the exact byte string the tree was built from; every node
    offset refers to it.
    """

    text: str
    source: bytes
    tree: tree_sitter.Tree
    errors: List[ParseError] = field(default_factory=list)

    @property
    def root(self) -> tree_sitter.Node:
        return self.tree.root_node

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class Edit:
    """Replace ``source[start_byte:end_byte]`` with ``replacement``.

    An insertion is an edit with ``start_byte == end_byte``.
    """

    start_byte: int
    end_byte: int
    replacement: str
    rule_name: Optional[str] = None

    @property
    def is_insertion(self) -> bool:
        return self.start_byte == self.end_byte

    def overlaps(self, other: "Edit") -> bool:
        # Insertions only conflict when they fall strictly inside a replaced range
        return self.start_byte < other.end_byte and other.start_byte < self.end_byte
