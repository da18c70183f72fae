"""Pipeline / MULTI rewrites.

ioredis and node-redis queue commands on an object returned by the client
(``client.pipeline()``, ``client.multi()``) and run them with ``.exec()`` on
that object. GLIDE builds a ``Transaction`` / ``Batch`` on its own and runs it
through the client: ``client.exec(batch)``.

Stages, in the order strategies list them:

1. ``BatchBindingRule``      ``const tx = client.multi()`` -> ``new Transaction()``; tracks ``tx``
2. ``BatchChainRule``        ``client.multi().set(..).exec()`` -> unrolled statements
3. ``UnboundBatchRule``      leftover ``client.pipeline()`` -> anonymous batch
4. ``TrackedExecRule``       ``tx.exec()`` -> ``client.exec(tx)``
5. ``TrackedBatchRepairRule`` ``client.tx.set(..)`` -> ``tx.set(..)``
6. ``ExecFallbackRule``      remaining bare ``.exec()`` -> ``.exec(batch)`` + warning
"""

import logging
from typing import Dict, List, Optional, Tuple

import tree_sitter

from ...ast_parser.javascript_parser import (
    argument_nodes,
    arguments_text,
    call_method,
    call_receiver,
    enclosing_statement,
    same_node,
)
from .base import NodeRule, RuleApplication, RulePhase
from .connection import client_assignments, glide_factory_classes, nearest_client_before

logger = logging.getLogger(__name__)

RESULT_SHAPE_NOTE = (
    "ioredis exec() resolves to [error, value] pairs; GLIDE exec() resolves to "
    "plain values (or null if a watched key changed) and throws on errors. "
    "Update code that reads the results"
)

_FALLBACK_WARNING = (
    "An .exec() call could not be tied to a Transaction/Batch variable and was "
    "rewritten to .exec(batch); a 'batch' variable holding the queued commands must exist"
)


def batch_variable_base(constructor: str) -> str:
    return "batch" if constructor.startswith("new Batch") else "tx"


def _note_result_shape(app: RuleApplication) -> None:
    if app.ctx.is_ioredis:
        app.note(RESULT_SHAPE_NOTE)


class _BatchRule(NodeRule):
    """Configured with ``constructors``: source method -> GLIDE constructor text."""

    phase = RulePhase.METHOD

    def __init__(self, name: str, constructors: Dict[str, str]):
        self.name = name
        self.constructors = dict(constructors)

    def is_batch_call(self, call: tree_sitter.Node, app: RuleApplication) -> Optional[str]:
        """Source method name when ``call`` is ``<recv>.pipeline()`` / ``.multi()``."""
        if call.type != "call_expression":
            return None
        method = call_method(call, app.source)
        if method not in self.constructors or call_receiver(call) is None:
            return None
        return method


class BatchBindingRule(_BatchRule):
    """``const X = <client>.pipeline()`` -> ``const X = new Transaction()``.

    The executing client is the receiver when it is a GLIDE client variable,
    otherwise the variable of the nearest earlier GLIDE factory assignment
    (falling back to the receiver expression).
    """

    node_types = ("variable_declarator", "assignment_expression")

    def rewrite(self, node, app):
        if node.type == "variable_declarator":
            target, value = node.child_by_field_name("name"), node.child_by_field_name("value")
        else:
            target, value = node.child_by_field_name("left"), node.child_by_field_name("right")
        if target is None or value is None or target.type != "identifier":
            return
        method = self.is_batch_call(value, app)
        if method is None:
            return
        if argument_nodes(value):
            app.warn(
                f"{app.text(value)} queues commands from an array argument; "
                "add them to the GLIDE batch one by one"
            )
            return

        receiver = app.text(call_receiver(value))
        classes = glide_factory_classes(app.ctx.config)
        clients = {name for name, _, _ in client_assignments(app.root, app.source, classes)}
        client = receiver
        if receiver not in clients:
            client = nearest_client_before(app.root, app.source, node.start_byte, classes) or receiver

        constructor = self.constructors[method]
        app.replace(value, constructor)
        app.track_batch(app.text(target), client)
        if not app.ctx.is_ioredis:
            kind = constructor.split("(")[0].replace("new ", "")
            app.note(
                f"TODO: '{app.text(target)}' is now a GLIDE {kind}; chained calls such as "
                f"{app.text(target)}.set(..).get(..) still queue commands, "
                f"run it with {client}.exec({app.text(target)}) instead of .exec()"
            )


class BatchChainRule(_BatchRule):
    """``<client>.multi().a(..).b(..).exec()`` chains.

    At statement level the chain is unrolled into a batch variable plus one
    statement per queued command; elsewhere it becomes the single expression
    ``<client>.exec(new Transaction().a(..).b(..))``.
    """

    node_types = ("call_expression",)

    def __init__(self, name: str, constructors: Dict[str, str], terminals: Optional[Dict[str, Optional[str]]] = None):
        super().__init__(name, constructors)
        # terminal method -> constructor override (None keeps the head's)
        self.terminals = dict(terminals or {"exec": None})

    def rewrite(self, node, app):
        chain = self._chain(node, app)
        if chain is None:
            return
        client, head, links, terminal = chain
        constructor = self.terminals.get(terminal) or self.constructors[head]

        statement = self._statement_slot(node)
        if statement is None:
            queued = "".join(f".{method}({args})" for method, args in links)
            app.replace(node, f"{client}.exec({constructor}{queued})")
            app.note(
                "A chained MULTI/pipeline was rewritten inline as client.exec(new ...); "
                "consider moving the batch into a variable"
            )
        else:
            variable = app.unique_name(batch_variable_base(constructor))
            indent = app.indent_of(statement)
            lines = [f"const {variable} = {constructor};"]
            lines.extend(f"{variable}.{method}({args});" for method, args in links)
            app.insert(statement.start_byte, f"\n{indent}".join(lines) + f"\n{indent}")
            app.replace(node, f"{client}.exec({variable})")
        _note_result_shape(app)

    def _chain(self, outer: tree_sitter.Node, app: RuleApplication):
        terminal = call_method(outer, app.source)
        if terminal not in self.terminals or argument_nodes(outer):
            return None
        links: List[Tuple[str, str]] = []
        current = call_receiver(outer)
        while current is not None and current.type == "call_expression":
            method = call_method(current, app.source)
            if method is None:
                return None
            receiver = call_receiver(current)
            if method in self.constructors and not argument_nodes(current):
                links.reverse()
                return app.text(receiver), method, links, terminal
            links.append((method, arguments_text(current, app.source)))
            current = receiver
        return None

    def _statement_slot(self, call: tree_sitter.Node) -> Optional[tree_sitter.Node]:
        """Statement that can receive lines before it, if ``call`` is its whole value."""
        node = call
        parent = node.parent
        while parent is not None and parent.type in ("await_expression", "parenthesized_expression"):
            node, parent = parent, parent.parent
        if parent is None:
            return None

        statement = None
        if parent.type in ("expression_statement", "return_statement"):
            statement = parent
        elif parent.type == "variable_declarator" and same_node(parent.child_by_field_name("value"), node):
            declaration = parent.parent
            if declaration is not None and len(declaration.named_children) == 1:
                statement = declaration
        elif parent.type == "assignment_expression" and same_node(parent.child_by_field_name("right"), node):
            if parent.parent is not None and parent.parent.type == "expression_statement":
                statement = parent.parent
        if statement is None or not same_node(enclosing_statement(statement), statement):
            return None
        return statement


class UnboundBatchRule(_BatchRule):
    """Remaining ``<recv>.pipeline()`` / ``.multi()`` calls -> anonymous batch."""

    node_types = ("call_expression",)

    def rewrite(self, node, app):
        method = self.is_batch_call(node, app)
        if method is None or argument_nodes(node):
            return
        app.replace(node, self.constructors[method])
        app.warn(
            f"An unbound .{method}() was replaced by {self.constructors[method]}; "
            "run it with client.exec(<batch>) instead of calling .exec() on it"
        )


class TrackedExecRule(NodeRule):
    """``X.exec()`` on a tracked batch -> ``<client>.exec(X)``.

    Also covers ``X.set(..).exec()``: batch methods return the batch, so the
    whole receiver chain is passed to the client.
    """

    name = "tracked-exec"
    phase = RulePhase.METHOD

    def rewrite(self, node, app):
        if call_method(node, app.source) != "exec":
            return
        receiver = call_receiver(node)
        root = chain_root(receiver)
        if root is None or root.type != "identifier":
            return
        variable = app.text(root)
        client = app.ctx.tracked_batches.get(variable)
        if client is None:
            return
        if argument_nodes(node):
            app.warn(f"{variable}.exec(callback) is callback-style; rewrite it to await {client}.exec({variable})")
            return
        app.replace(node, f"{client}.exec({app.text(receiver)})")
        _note_result_shape(app)


def chain_root(node: Optional[tree_sitter.Node]) -> Optional[tree_sitter.Node]:
    """Innermost receiver of ``a.b(..).c(..)`` (``a``)."""
    while node is not None and node.type == "call_expression":
        node = call_receiver(node)
    return node


class TrackedBatchRepairRule(NodeRule):
    """``<client>.<X>.<method>`` -> ``<X>.<method>`` for tracked pairs."""

    name = "tracked-batch-repair"
    phase = RulePhase.METHOD
    node_types = ("member_expression",)

    def rewrite(self, node, app):
        inner = node.child_by_field_name("object")
        if inner is None or inner.type != "member_expression":
            return
        owner = inner.child_by_field_name("object")
        prop = inner.child_by_field_name("property")
        if owner is None or prop is None:
            return
        variable = app.text(prop)
        if app.ctx.tracked_batches.get(variable) == app.text(owner):
            app.replace(inner, variable)


class ExecFallbackRule(NodeRule):
    """Any remaining zero-argument ``.exec()`` -> ``.exec(batch)`` plus a warning."""

    name = "exec-fallback"
    phase = RulePhase.METHOD

    def rewrite(self, node, app):
        if call_method(node, app.source) != "exec" or argument_nodes(node):
            return
        receiver = call_receiver(node)
        if receiver is None:
            return
        if receiver.type == "identifier" and app.text(receiver) in app.ctx.tracked_batches:
            return
        arguments = node.child_by_field_name("arguments")
        app.replace(arguments, "(batch)")
        app.warn(_FALLBACK_WARNING)
