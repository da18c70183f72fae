"""Rewrite rule base classes.

A rule is one named stage of a strategy pipeline. Each stage sees a fresh
parse of the current text, records byte-range edits against it, and the
edits are applied atomically when the stage finishes. Rules match syntax
nodes (call / new / import expressions), never raw text, so a construct that
has already been rewritten into GLIDE shape cannot be matched again by an
earlier-stage pattern.

Phase contract (pipelines are stably sorted by phase):

* ``IMPORT``      -- import / require rewrites; records source bindings.
* ``CONSTRUCTOR`` -- client construction sites become GLIDE factory calls.
                    Post-condition: every recognised client is created by
                    ``GlideClient.createClient`` / ``GlideClusterClient.createClient``.
* ``METHOD``      -- command and feature rewrites. May rely on the
                    constructor post-condition (factory-assignment lookup,
                    pub/sub config injection).
* ``SYMBOLS``     -- adds referenced GLIDE symbols to the existing import.
* ``COMMON``      -- argument normalisation shared by every strategy.
"""

import logging
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, List, Optional, Set, Tuple

import tree_sitter

from ...ast_parser import Edit, ParsedSource
from ...ast_parser.javascript_parser import (
    iter_nodes,
    line_indent,
    node_text,
    statement_line_range,
)
from ..context import MigrationContext

logger = logging.getLogger(__name__)


class RulePhase(IntEnum):
    IMPORT = 10
    CONSTRUCTOR = 20
    METHOD = 30
    SYMBOLS = 40
    COMMON = 50


class RuleApplication:
    """One rule's view of one parsed snapshot.

    Collects edits and messages. Messages are only forwarded to the
    :class:`MigrationContext` by :meth:`commit`, i.e. when the stage
    succeeded, so a failed stage never leaves warnings behind.
    """

    def __init__(self, parsed: ParsedSource, ctx: MigrationContext, rule_name: str):
        self.parsed = parsed
        self.ctx = ctx
        self.rule_name = rule_name
        self.edits: List[Edit] = []
        self._warnings: List[str] = []
        self._notes: List[str] = []
        self._identifiers: Optional[Set[str]] = None
        self._reserved: Set[str] = set()
        self._once: Set[str] = set()
        self._tracked: Dict[str, str] = {}

    # ── Reading ──────────────────────────────────────────────────────

    @property
    def source(self) -> bytes:
        return self.parsed.source

    @property
    def root(self) -> tree_sitter.Node:
        return self.parsed.root

    def text(self, node: tree_sitter.Node) -> str:
        return node_text(node, self.parsed.source)

    def indent_of(self, node: tree_sitter.Node) -> str:
        return line_indent(self.parsed.source, node.start_byte)

    def identifiers(self) -> Set[str]:
        """All identifier names in the snapshot (for collision-free naming)."""
        if self._identifiers is None:
            self._identifiers = {
                self.text(n)
                for n in iter_nodes(self.root, "identifier", "shorthand_property_identifier_pattern")
            }
        return self._identifiers

    def unique_name(self, base: str, always_number: bool = False) -> str:
        """Return ``base`` (or ``base2``, ``base3`` ...) not yet used in the source."""
        taken = self.identifiers() | self._reserved
        candidate = f"{base}1" if always_number else base
        n = 1
        while candidate in taken:
            n += 1
            candidate = f"{base}{n}"
        self._reserved.add(candidate)
        return candidate

    def is_covered(self, node: tree_sitter.Node) -> bool:
        """True if ``node`` lies inside a range already replaced in this stage."""
        for edit in self.edits:
            if edit.is_insertion:
                continue
            if edit.start_byte <= node.start_byte and node.end_byte <= edit.end_byte:
                return True
        return False

    def first_time(self, key: str) -> bool:
        """True the first time ``key`` is seen in this stage."""
        if key in self._once:
            return False
        self._once.add(key)
        return True

    # ── Writing ──────────────────────────────────────────────────────

    def replace(self, node: tree_sitter.Node, replacement: str) -> None:
        self.replace_range(node.start_byte, node.end_byte, replacement)

    def replace_range(self, start: int, end: int, replacement: str) -> None:
        self.edits.append(Edit(start, end, replacement, rule_name=self.rule_name))

    def insert(self, offset: int, text: str) -> None:
        self.edits.append(Edit(offset, offset, text, rule_name=self.rule_name))

    def insert_before_statement(self, statement: tree_sitter.Node, line: str) -> None:
        """Insert ``line`` as a new statement just before ``statement``.

        The new line reuses the statement's indentation.
        """
        indent = self.indent_of(statement)
        self.insert(statement.start_byte, f"{line}\n{indent}")

    def remove_statement(self, statement: tree_sitter.Node) -> None:
        start, end = statement_line_range(self.parsed.source, statement)
        self.replace_range(start, end, "")

    def warn(self, message: str) -> None:
        if message not in self._warnings:
            self._warnings.append(message)

    def note(self, message: str) -> None:
        if message not in self._notes:
            self._notes.append(message)

    def track_batch(self, variable: str, client: str) -> None:
        """Record that batch ``variable`` is executed by ``client``."""
        self._tracked[variable] = client

    def commit(self) -> None:
        for message in self._warnings:
            self.ctx.warn(message)
        for message in self._notes:
            self.ctx.note(message)
        self.ctx.tracked_batches.update(self._tracked)


class TransformRule(ABC):
    """A named, phased rewrite stage."""

    name: str = ""
    phase: RulePhase = RulePhase.METHOD
    description: str = ""

    def applies_to(self, ctx: MigrationContext) -> bool:
        """Gate the stage on request facts (source client, pattern tags)."""
        return True

    @abstractmethod
    def apply(self, app: RuleApplication) -> None:
        """Record edits and messages for one parsed snapshot."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} phase={self.phase.name}>"


class NodeRule(TransformRule):
    """Rule that visits every node of the given types in document order.

    Nodes inside a range this stage already replaced are skipped; the next
    stage re-parses, so nothing is lost.
    """

    node_types: Tuple[str, ...] = ("call_expression",)

    def apply(self, app: RuleApplication) -> None:
        for node in list(iter_nodes(app.root, *self.node_types)):
            if app.is_covered(node):
                continue
            self.rewrite(node, app)

    @abstractmethod
    def rewrite(self, node: tree_sitter.Node, app: RuleApplication) -> None:
        ...
