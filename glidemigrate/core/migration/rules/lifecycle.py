"""Connection lifecycle stages.

GLIDE factories resolve to a connected client and the client emits no
events, so explicit ``connect()`` calls are dropped and event handlers are
commented out with a TODO.
"""

import logging

from ...ast_parser.javascript_parser import (
    argument_nodes,
    call_method,
    call_receiver,
    enclosing_statement,
    is_statement_expression,
    string_value,
)
from ..context import MigrationContext
from .base import NodeRule, RulePhase
from .pubsub import comment_out
from .scripting import TODO_MARKER

logger = logging.getLogger(__name__)


class ConnectDropRule(NodeRule):
    """Remove ``client.connect()`` and ``client.connect().catch(...)`` statements."""

    name = "drop-connect"
    phase = RulePhase.METHOD

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node, app):
        method = call_method(node, app.source)
        if method in ("catch", "then"):
            inner = call_receiver(node)
            if inner is None or inner.type != "call_expression":
                return
            if call_method(inner, app.source) != "connect" or argument_nodes(inner):
                return
        elif method != "connect" or argument_nodes(node):
            return

        statement = enclosing_statement(node)
        if not is_statement_expression(statement, node):
            return
        app.remove_statement(statement)
        app.note("connect() calls were removed: GLIDE clients connect when they are created")


class EventHandlerRule(NodeRule):
    """``client.on('error' | 'connect' | ..., handler)`` -> commented out TODO."""

    name = "event-handlers"
    phase = RulePhase.METHOD

    def rewrite(self, node, app):
        if call_method(node, app.source) not in ("on", "once"):
            return
        args = argument_nodes(node)
        if len(args) != 2:
            return
        event = string_value(args[0], app.source)
        if event not in app.ctx.config.node_redis.lifecycle_events:
            return
        statement = enclosing_statement(node)
        if not is_statement_expression(statement, node):
            return

        indent = app.indent_of(statement)
        lines = [
            f"// {TODO_MARKER}: GLIDE clients do not emit '{event}' events; "
            "wrap client operations in try/catch instead",
        ]
        lines.extend(comment_out(app.text(statement), indent))
        app.replace(statement, f"\n{indent}".join(lines))
        app.warn(f"'{event}' event handlers were commented out: GLIDE has no connection events")
