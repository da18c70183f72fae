"""JavaScript syntax parser using tree-sitter.

Parses JavaScript source into a tree-sitter AST and provides the small set
of node helpers the rewrite rules rely on: call/member/new expression
accessors, literal decoding, statement lookup and indentation.
"""

import logging
from typing import Iterator, List, Optional, Tuple

import tree_sitter
import tree_sitter_javascript

from .base import BaseLanguageParser

logger = logging.getLogger(__name__)

_JS_LANGUAGE = tree_sitter.Language(tree_sitter_javascript.language())

# Node types whose children are statements
_STATEMENT_CONTAINERS = frozenset({
    "program",
    "statement_block",
    "switch_case",
    "switch_default",
    "class_body",
})

_STRING_TYPES = frozenset({"string", "template_string"})


class JavaScriptParser(BaseLanguageParser):
    """tree-sitter based JavaScript parser."""

    def get_language(self) -> str:
        return "javascript"

    def get_tree_sitter_language(self) -> tree_sitter.Language:
        return _JS_LANGUAGE


# =========================================================================
# Node helpers
# =========================================================================


def node_text(node: tree_sitter.Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def iter_nodes(root: tree_sitter.Node, *types: str) -> Iterator[tree_sitter.Node]:
    """Yield nodes in document order (pre-order), optionally filtered by type."""
    wanted = frozenset(types)
    stack = [root]
    while stack:
        node = stack.pop()
        if not wanted or node.type in wanted:
            yield node
        stack.extend(reversed(node.children))


def argument_nodes(call: tree_sitter.Node) -> List[tree_sitter.Node]:
    """Return the argument expressions of a call or new expression.

    Comments inside the argument list are skipped.
    """
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return [child for child in args.named_children if child.type != "comment"]


def arguments_text(call: tree_sitter.Node, source: bytes) -> str:
    """Text between the parentheses of a call's argument list."""
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return ""
    return source[args.start_byte + 1:args.end_byte - 1].decode("utf-8", errors="replace")


def call_method(call: tree_sitter.Node, source: bytes) -> Optional[str]:
    """Method name of ``recv.method(...)``, or ``None`` for other callees."""
    function = call.child_by_field_name("function")
    if function is None or function.type != "member_expression":
        return None
    prop = function.child_by_field_name("property")
    return node_text(prop, source) if prop is not None else None


def call_receiver(call: tree_sitter.Node) -> Optional[tree_sitter.Node]:
    """Receiver node of ``recv.method(...)``."""
    function = call.child_by_field_name("function")
    if function is None or function.type != "member_expression":
        return None
    return function.child_by_field_name("object")


def callee_name(call: tree_sitter.Node, source: bytes) -> Optional[str]:
    """Name of a plain-identifier callee, e.g. ``createClient`` in ``createClient()``."""
    function = call.child_by_field_name("function")
    if function is not None and function.type == "identifier":
        return node_text(function, source)
    return None


def member_property_range(call: tree_sitter.Node) -> Optional[Tuple[int, int]]:
    """Byte range of the method name in ``recv.method(...)``."""
    function = call.child_by_field_name("function")
    if function is None or function.type != "member_expression":
        return None
    prop = function.child_by_field_name("property")
    if prop is None:
        return None
    return prop.start_byte, prop.end_byte


def is_string_literal(node: Optional[tree_sitter.Node]) -> bool:
    """True for quoted strings and template strings without substitutions."""
    if node is None or node.type not in _STRING_TYPES:
        return False
    if node.type == "template_string":
        return not any(child.type == "template_substitution" for child in node.named_children)
    return True


def string_value(node: tree_sitter.Node, source: bytes) -> Optional[str]:
    """Decoded value of a string literal node, or ``None`` if not a literal."""
    if not is_string_literal(node):
        return None
    return node_text(node, source)[1:-1]


def same_node(a: Optional[tree_sitter.Node], b: Optional[tree_sitter.Node]) -> bool:
    if a is None or b is None:
        return False
    return (a.start_byte, a.end_byte, a.type) == (b.start_byte, b.end_byte, b.type)


def unwrap_await(node: tree_sitter.Node) -> tree_sitter.Node:
    """Return the awaited expression of ``await expr``, else the node itself."""
    while node.type in ("await_expression", "parenthesized_expression"):
        inner = [child for child in node.named_children if child.type != "comment"]
        if not inner:
            break
        node = inner[0]
    return node


def enclosing_statement(node: tree_sitter.Node) -> tree_sitter.Node:
    """Nearest ancestor (or self) that is a statement in a statement list."""
    current = node
    while current.parent is not None and current.parent.type not in _STATEMENT_CONTAINERS:
        current = current.parent
    return current


def is_statement_expression(statement: tree_sitter.Node, expression: tree_sitter.Node) -> bool:
    """True if ``statement`` is ``expression;`` or ``await expression;``."""
    if statement.type != "expression_statement":
        return False
    inner = [child for child in statement.named_children if child.type != "comment"]
    if not inner:
        return False
    return same_node(unwrap_await(inner[0]), expression)


def line_indent(source: bytes, byte_offset: int) -> str:
    """Leading whitespace of the line containing ``byte_offset``."""
    line_start = source.rfind(b"\n", 0, byte_offset) + 1
    indent = bytearray()
    for ch in source[line_start:byte_offset]:
        if ch in (0x20, 0x09):
            indent.append(ch)
        else:
            break
    return indent.decode("utf-8")


def statement_line_range(source: bytes, node: tree_sitter.Node) -> Tuple[int, int]:
    """Byte range covering ``node`` plus its whole line when it stands alone.

    Used to delete a statement without leaving an empty indented line.
    """
    line_start = source.rfind(b"\n", 0, node.start_byte) + 1
    line_end = source.find(b"\n", node.end_byte)
    if line_end == -1:
        line_end = len(source)
    before = source[line_start:node.start_byte]
    after = source[node.end_byte:line_end]
    if before.strip() or after.strip():
        return node.start_byte, node.end_byte
    # Consume the trailing newline as well
    return line_start, min(line_end + 1, len(source))


def statement_insert_point(source: bytes, statement: tree_sitter.Node) -> Tuple[int, str]:
    """Position and indentation for inserting a new statement before ``statement``."""
    return statement.start_byte, line_indent(source, statement.start_byte)
