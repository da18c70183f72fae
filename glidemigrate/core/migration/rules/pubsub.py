"""Pub/Sub rewrites.

GLIDE subscribes at client creation (``pubsubSubscriptions`` in the client
configuration) and delivers messages through a callback or
``getPubSubMessage()``; there are no runtime ``subscribe`` calls and no
``'message'`` events.

Naive stages only explain this (header block, pointer comments, TODO
blocks). The advanced stage rewrites literal-channel code for real: it
injects the subscriptions into the subscriber's factory config, turns
message listeners into polling loops and swaps ``publish`` arguments.
Channel names computed at runtime are left alone.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

import tree_sitter

from ...ast_parser.javascript_parser import (
    argument_nodes,
    call_method,
    call_receiver,
    enclosing_statement,
    is_statement_expression,
    iter_nodes,
    string_value,
)
from ..context import MigrationContext
from .base import NodeRule, RuleApplication, RulePhase, TransformRule
from .connection import client_assignments, glide_factory_classes
from .printer import js_string, render_value
from .scripting import TODO_MARKER

logger = logging.getLogger(__name__)

HEADER_MARKER = "GLIDE pub/sub:"

PUBSUB_HEADER = """\
/*
 * GLIDE pub/sub: subscriptions are part of the client configuration and are
 * established when the client is created, for example:
 *
 *   const subscriber = await GlideClient.createClient({
 *     addresses: [{ host: 'localhost', port: 6379 }],
 *     pubsubSubscriptions: {
 *       channelsAndPatterns: {
 *         [GlideClientConfiguration.PubSubChannelModes.Exact]: new Set(['channel']),
 *         [GlideClientConfiguration.PubSubChannelModes.Pattern]: new Set(['news.*']),
 *       },
 *       callback: (msg) => console.log(msg.channel, msg.message),
 *     },
 *   });
 *
 * Without a callback, read messages with await subscriber.getPubSubMessage().
 */
"""

_FUNCTION_TYPES = ("arrow_function", "function_expression", "function")

EXACT = "Exact"
PATTERN = "Pattern"


def comment_out(text: str, indent: str) -> List[str]:
    """Turn (possibly multi-line) statement text into ``//`` comment lines.

    ``text`` starts at the statement itself; continuation lines lose the
    statement's ``indent`` so the caller can re-indent every line.
    """
    result = []
    for i, line in enumerate(text.splitlines() or [""]):
        if i and line.startswith(indent):
            line = line[len(indent):]
        result.append(f"// {line}".rstrip())
    return result


def literal_channels(args: List[tree_sitter.Node], app: RuleApplication) -> Optional[List[str]]:
    """String-literal channel names (arrays flattened); ``None`` if any is dynamic."""
    channels = []
    for arg in args:
        if arg.type in _FUNCTION_TYPES:
            continue
        if arg.type == "array":
            items = [c for c in arg.named_children if c.type != "comment"]
        else:
            items = [arg]
        for item in items:
            value = string_value(item, app.source)
            if value is None:
                return None
            channels.append(value)
    return channels


def is_subscribe_call(call: tree_sitter.Node, app: RuleApplication) -> Optional[str]:
    """``Exact`` / ``Pattern`` for subscribe-style calls, else ``None``."""
    method = call_method(call, app.source)
    if method in ("subscribe", "unsubscribe"):
        return EXACT
    if method in ("psubscribe", "pSubscribe", "punsubscribe", "pUnsubscribe"):
        return PATTERN
    return None


def _is_unsubscribe(method: str) -> bool:
    return method.lower() in ("unsubscribe", "punsubscribe")


def statement_of(call: tree_sitter.Node) -> Optional[tree_sitter.Node]:
    statement = enclosing_statement(call)
    return statement if is_statement_expression(statement, call) else None


# ── Naive ────────────────────────────────────────────────────────────────


class SubscribeNoticeRule(TransformRule):
    """ioredis: explain construction-time subscriptions once, point call sites at it."""

    name = "subscribe-notice"
    phase = RulePhase.METHOD

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.is_ioredis

    def apply(self, app):
        calls = [
            c for c in iter_nodes(app.root, "call_expression")
            if call_method(c, app.source) in ("subscribe", "psubscribe")
        ]
        if not calls:
            return

        if HEADER_MARKER.encode("utf-8") not in app.source:
            app.insert(0, PUBSUB_HEADER)
            app.note("Pub/sub subscriptions move to client creation; see the comment block at the top of the file")

        for call in calls:
            statement = statement_of(call)
            if statement is None or app.is_covered(statement):
                continue
            indent = app.indent_of(statement)
            lines = ["// Subscriptions are set at client creation (see the GLIDE pub/sub note above):"]
            lines.extend(comment_out(app.text(statement), indent))
            app.replace(statement, f"\n{indent}".join(lines))


class SubscribeTodoRule(NodeRule):
    """node-redis: ``subscribe`` family statements -> commented TODO blocks."""

    name = "subscribe-todo"
    phase = RulePhase.METHOD

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node, app):
        mode = is_subscribe_call(node, app)
        if mode is None:
            return
        statement = statement_of(node)
        if statement is None:
            return
        method = call_method(node, app.source)
        indent = app.indent_of(statement)

        if _is_unsubscribe(method):
            header = [
                f"// {TODO_MARKER}: GLIDE cannot change subscriptions at runtime;",
                "// close the subscriber client (client.close()) instead.",
            ]
        else:
            channels = literal_channels(argument_nodes(node), app) or ["<channel>"]
            names = ", ".join(js_string(c) for c in channels)
            header = [
                f"// {TODO_MARKER}: subscribe at client creation instead:",
                "//   pubsubSubscriptions: {",
                "//     channelsAndPatterns: {",
                f"//       [GlideClientConfiguration.PubSubChannelModes.{mode}]: new Set([{names}]),",
                "//     },",
                "//     callback: (msg) => { /* msg.channel, msg.message */ },",
                "//   },",
            ]
        lines = header + comment_out(app.text(statement), indent)
        app.replace(statement, f"\n{indent}".join(lines))
        app.warn(f"{method}() was commented out: configure pubsubSubscriptions when creating the client")


# ── Advanced ─────────────────────────────────────────────────────────────


def _function_parts(fn: tree_sitter.Node, app: RuleApplication) -> Optional[Tuple[List[str], str, bool]]:
    """``(param_names, body_text, is_block)`` for a listener function."""
    if fn.type not in _FUNCTION_TYPES:
        return None
    params: List[str] = []
    single = fn.child_by_field_name("parameter")
    if single is not None:
        params.append(app.text(single))
    else:
        formal = fn.child_by_field_name("parameters")
        if formal is not None:
            for p in formal.named_children:
                if p.type != "identifier":
                    return None
                params.append(app.text(p))
    body = fn.child_by_field_name("body")
    if body is None:
        return None
    if body.type == "statement_block":
        return params, app.text(body)[1:-1], True
    return params, app.text(body), False


def reindent(block: str, indent: str) -> List[str]:
    lines = block.splitlines()
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        return []
    if len(lines) == 1:
        return [indent + lines[0].strip()]
    # The first line may share the opening brace's line
    body = [lines[0].strip()] if lines[0].strip() and not lines[0].startswith((" ", "\t")) else []
    rest = lines[len(body):]
    widths = [len(l) - len(l.lstrip()) for l in rest if l.strip()]
    cut = min(widths) if widths else 0
    return [indent + l for l in body] + [indent + l[cut:] if l.strip() else "" for l in rest]


def polling_loop(receiver: str, fields: List[Tuple[str, str]], body_lines: List[str], indent: str) -> str:
    """``(async () => { while (true) { const {...} = await r.getPubSubMessage(); body } })();``"""
    step = "  "
    pattern = ", ".join(field if field == local else f"{field}: {local}" for field, local in fields)
    destructure = f"const {{ {pattern} }} = " if fields else ""
    lines = [
        "(async () => {",
        f"{indent}{step}while (true) {{",
        f"{indent}{step * 2}{destructure}await {receiver}.getPubSubMessage();",
        *body_lines,
        f"{indent}{step}}}",
        f"{indent}}})();",
    ]
    return "\n".join(lines)


class PubSubRule(TransformRule):
    """Construction-time subscriptions, polling loops and ``publish`` order."""

    name = "pubsub-subscriptions"
    phase = RulePhase.METHOD

    def apply(self, app):
        calls = list(iter_nodes(app.root, "call_expression"))
        subscribes = [(c, is_subscribe_call(c, app)) for c in calls]
        subscribes = [(c, mode) for c, mode in subscribes if mode is not None
                      and not _is_unsubscribe(call_method(c, app.source))]

        exact: List[str] = []
        patterns: List[str] = []
        receivers: Set[str] = set()
        literal_calls = []
        for call, mode in subscribes:
            channels = literal_channels(argument_nodes(call), app)
            receiver = call_receiver(call)
            if channels is None or receiver is None:
                continue
            bucket = exact if mode == EXACT else patterns
            for channel in channels:
                if channel not in bucket:
                    bucket.append(channel)
            receivers.add(app.text(receiver))
            literal_calls.append(call)

        injected = self._inject(app, receivers, exact, patterns) if literal_calls else set()

        for call in literal_calls:
            receiver = app.text(call_receiver(call))
            statement = statement_of(call)
            if receiver not in injected or statement is None:
                continue
            listener = self._node_redis_listener(call, app)
            if listener is not None and _function_parts(listener, app) is None:
                continue
            if listener is not None:
                app.replace(statement, self._loop(receiver, listener, (("message", 0), ("channel", 1)), statement, app))
            else:
                app.remove_statement(statement)
                args = argument_nodes(call)
                if args and args[-1].type in _FUNCTION_TYPES:
                    app.note(
                        f"The completion callback of {receiver}.{call_method(call, app.source)}(...) "
                        "was removed with the call; move its error handling or logging next to "
                        "the client creation"
                    )

        for call in calls:
            method = call_method(call, app.source)
            if method == "on":
                self._listener(call, app, injected)
            elif method == "publish":
                self._publish(call, app)

    # ── Subscriptions ────────────────────────────────────────────────

    def _inject(self, app: RuleApplication, receivers: Set[str], exact: List[str], patterns: List[str]) -> Set[str]:
        """Add ``pubsubSubscriptions`` to each receiver's factory config."""
        config = app.ctx.config
        injected: Set[str] = set()
        for variable, declaration, factory in client_assignments(app.root, app.source, glide_factory_classes(config)):
            if variable not in receivers:
                continue
            factory_class = app.text(factory.child_by_field_name("function").child_by_field_name("object"))
            configuration = (
                "GlideClusterClientConfiguration" if factory_class == config.target.cluster_client_class
                else "GlideClientConfiguration"
            )
            modes: Dict[str, str] = {}
            if exact:
                modes[f"[{configuration}.PubSubChannelModes.Exact]"] = self._set(exact)
            if patterns:
                modes[f"[{configuration}.PubSubChannelModes.Pattern]"] = self._set(patterns)
            subscriptions = {"channelsAndPatterns": modes}

            if self._add_property(factory, subscriptions, app):
                injected.add(variable)
        if injected:
            app.note(
                "Pub/sub subscriptions were moved into the subscriber's client configuration "
                "(pubsubSubscriptions); they are established when the client connects"
            )
        return injected

    @staticmethod
    def _set(values: List[str]) -> str:
        return "new Set([" + ", ".join(js_string(v) for v in values) + "])"

    def _add_property(self, factory: tree_sitter.Node, subscriptions, app: RuleApplication) -> bool:
        args = argument_nodes(factory)
        if len(args) != 1:
            return False
        arg = args[0]
        if arg.type != "object":
            rendered = render_value(subscriptions, app.indent_of(factory))
            app.replace(arg, f"{{ ...{app.text(arg)}, pubsubSubscriptions: {rendered} }}")
            return True

        entries = [c for c in arg.named_children if c.type != "comment"]
        for entry in entries:
            key = entry.child_by_field_name("key") if entry.type == "pair" else None
            if key is not None and app.text(key) == "pubsubSubscriptions":
                return False

        if not entries:
            rendered = render_value(subscriptions, app.indent_of(factory))
            app.replace(arg, f"{{ pubsubSubscriptions: {rendered} }}")
            return True

        last = entries[-1]
        multiline = "\n" in app.text(arg)
        entry_indent = app.indent_of(last) if multiline else app.indent_of(factory)
        rendered = render_value(subscriptions, entry_indent)
        trailing_comma = last.next_sibling is not None and last.next_sibling.type == ","
        anchor = last.next_sibling.end_byte if trailing_comma else last.end_byte
        separator = "" if trailing_comma else ","
        if multiline:
            text = f"{separator}\n{entry_indent}pubsubSubscriptions: {rendered}"
            if trailing_comma:
                text += ","
        else:
            text = f"{separator} pubsubSubscriptions: {rendered}"
        app.insert(anchor, text)
        return True

    # ── Listeners ────────────────────────────────────────────────────

    def _node_redis_listener(self, call: tree_sitter.Node, app: RuleApplication):
        if app.ctx.is_ioredis:
            # ioredis callbacks here are (err, count) completions, not listeners
            return None
        args = argument_nodes(call)
        if args and args[-1].type in _FUNCTION_TYPES:
            return args[-1]
        return None

    def _listener(self, call: tree_sitter.Node, app: RuleApplication, injected: Set[str]) -> None:
        args = argument_nodes(call)
        if len(args) != 2:
            return
        event = string_value(args[0], app.source)
        if event == "message":
            fields = (("channel", 0), ("message", 1))
        elif event == "pmessage":
            fields = (("pattern", 0), ("channel", 1), ("message", 2))
        else:
            return
        receiver = call_receiver(call)
        statement = statement_of(call)
        if receiver is None or statement is None or app.is_covered(statement):
            return
        if app.text(receiver) not in injected:
            return
        if _function_parts(args[1], app) is None:
            return
        app.replace(statement, self._loop(app.text(receiver), args[1], fields, statement, app))
        app.note(
            f"{app.text(receiver)}.on('{event}') was rewritten into a getPubSubMessage() polling loop"
        )

    def _loop(self, receiver: str, fn: tree_sitter.Node, fields, statement: tree_sitter.Node,
              app: RuleApplication) -> str:
        params, body, is_block = _function_parts(fn, app)
        indent = app.indent_of(statement)
        body_indent = indent + "    "
        named = [(field, params[position]) for field, position in fields if position < len(params)]
        if is_block:
            body_lines = reindent(body, body_indent)
        else:
            body_lines = [f"{body_indent}{body.strip()};"]
        return polling_loop(receiver, named, body_lines, indent)

    # ── Publish ──────────────────────────────────────────────────────

    def _publish(self, call: tree_sitter.Node, app: RuleApplication) -> None:
        args = argument_nodes(call)
        if len(args) != 2 or any(a.type == "spread_element" for a in args):
            return
        channel, message = args
        app.replace_range(
            channel.start_byte, message.end_byte,
            f"{app.text(message)}, {app.text(channel)}",
        )
        app.note("publish() arguments were swapped to GLIDE's (message, channel) order")
