"""Argument normalisation shared by every strategy."""

import logging

from ...ast_parser.javascript_parser import argument_nodes, arguments_text, call_method
from .base import NodeRule, RulePhase

logger = logging.getLogger(__name__)

_FUNCTION_TYPES = ("arrow_function", "function_expression", "function")


class ArrayKeysRule(NodeRule):
    """``del(a, b)`` / ``exists(k)`` -> ``del([a, b])`` / ``exists([k])``.

    Skipped when the argument text already contains a ``[ ... ]`` pair or a
    callback, so arrays are never wrapped twice.
    """

    name = "array-keys"
    phase = RulePhase.COMMON
    methods = ("del", "exists")

    def rewrite(self, node, app):
        if call_method(node, app.source) not in self.methods:
            return
        args = argument_nodes(node)
        if not args or any(a.type in _FUNCTION_TYPES for a in args):
            return
        text = arguments_text(node, app.source)
        if "[" in text and "]" in text:
            return
        app.replace(node.child_by_field_name("arguments"), f"([{text.strip()}])")
