"""Command call rewrites.

Method-level stages that change a single call's name or argument shape:

* ``setex`` / ``psetex``              -> ``set(k, v, { expiry })``
* ``set(k, v, 'EX', n, 'NX', 'GET')`` -> options object
* ``set(k, v, { EX, NX, ... })``      -> GLIDE options object (node-redis)
* ``mget(a, b)`` / ``watch(a, b)``    -> array argument
* blocking pops                       -> key array; ``brpoplpush`` -> ``blmove``
* ``quit`` / ``disconnect``           -> ``close``
* node-redis camelCase methods        -> GLIDE method names
* ``hset(k, f, v)`` / ``hdel(k, f)``  -> field map / field array
"""

import logging
from abc import abstractmethod
from typing import Dict, List, Optional, Tuple

import tree_sitter

from ...ast_parser.javascript_parser import (
    argument_nodes,
    call_method,
    call_receiver,
    is_string_literal,
    member_property_range,
    string_value,
)
from ..context import MigrationContext
from .base import NodeRule, RuleApplication, RulePhase
from .connection import declared_names, glide_factory_classes, nearest_client_before
from .printer import js_key, js_string, render_inline

logger = logging.getLogger(__name__)

_TIME_UNITS = ("EX", "PX", "EXAT", "PXAT")

_CONDITIONS = {
    "NX": "onlyIfDoesNotExist",
    "XX": "onlyIfExists",
}


def replace_arguments(app: RuleApplication, call: tree_sitter.Node, args_text: str) -> None:
    arguments = call.child_by_field_name("arguments")
    app.replace(arguments, f"({args_text})")


def rename_method(app: RuleApplication, call: tree_sitter.Node, new_name: str) -> None:
    span = member_property_range(call)
    if span is not None:
        app.replace_range(span[0], span[1], new_name)


def _set_options(expiry: Optional[object], condition: Optional[str], get: bool) -> Dict[str, object]:
    options: Dict[str, object] = {}
    if expiry is not None:
        options["expiry"] = expiry
    if condition is not None:
        options["conditionalSet"] = js_string(condition)
    if get:
        options["returnOldValue"] = True
    return options


class _MethodRule(NodeRule):
    """Matches ``<recv>.<method>(...)`` calls for a fixed set of method names."""

    phase = RulePhase.METHOD
    methods: Tuple[str, ...] = ()

    def method_names(self, ctx: MigrationContext) -> Tuple[str, ...]:
        return self.methods

    def rewrite(self, node, app):
        method = call_method(node, app.source)
        if method is None or method not in self.method_names(app.ctx):
            return
        self.rewrite_call(node, method, argument_nodes(node), app)

    @abstractmethod
    def rewrite_call(self, node, method, args, app):
        ...


class ExpiryShorthandRule(_MethodRule):
    name = "setex"
    description = "setex/psetex -> set(k, v, { expiry: { type, count } })"
    methods = ("setex", "psetex", "setEx", "pSetEx")

    def rewrite_call(self, node, method, args, app):
        if len(args) != 3:
            return
        unit = "PX" if method.lower() == "psetex" else "EX"
        key, seconds, value = (app.text(a) for a in args)
        options = {"expiry": {"type": js_string(unit), "count": seconds}}
        rename_method(app, node, "set")
        replace_arguments(app, node, f"{key}, {value}, {render_inline(options)}")


class ConditionalSetRule(_MethodRule):
    """ioredis positional SET flags.

    Every flag must be a string literal; expiry counts may be any expression.
    """

    name = "conditional-set"
    description = "set(k, v, 'PX', n, 'NX') -> set(k, v, { expiry, conditionalSet })"
    methods = ("set",)

    def rewrite_call(self, node, method, args, app):
        if len(args) < 3 or args[2].type == "object":
            return

        expiry = None
        condition = None
        get = False
        rest = args[2:]
        i = 0
        while i < len(rest):
            flag = string_value(rest[i], app.source)
            if flag is None:
                return
            flag = flag.upper()
            if flag in _TIME_UNITS:
                if i + 1 >= len(rest):
                    return
                expiry = {"type": js_string(flag), "count": app.text(rest[i + 1])}
                i += 2
                continue
            if flag in _CONDITIONS:
                condition = _CONDITIONS[flag]
            elif flag == "GET":
                get = True
            elif flag == "KEEPTTL":
                expiry = js_string("keepExisting")
            else:
                return
            i += 1

        options = _set_options(expiry, condition, get)
        replace_arguments(app, node, f"{app.text(args[0])}, {app.text(args[1])}, {render_inline(options)}")


class SetOptionsRule(_MethodRule):
    """node-redis ``set(k, v, { EX: 10, NX: true })`` options."""

    name = "set-options"
    description = "set(k, v, { EX, NX, GET }) -> GLIDE set options"
    methods = ("set",)

    _TARGET_KEYS = frozenset({"expiry", "conditionalSet", "returnOldValue"})

    def rewrite_call(self, node, method, args, app):
        if len(args) != 3 or args[2].type != "object":
            return

        expiry = None
        condition = None
        get = False
        for child in args[2].named_children:
            if child.type == "comment":
                continue
            if child.type != "pair":
                return
            key_node = child.child_by_field_name("key")
            value_node = child.child_by_field_name("value")
            key = string_value(key_node, app.source) or app.text(key_node)
            value = app.text(value_node)
            if key in self._TARGET_KEYS:
                return
            upper = key.upper()
            if upper in _TIME_UNITS:
                expiry = {"type": js_string(upper), "count": value}
            elif upper in _CONDITIONS and value == "true":
                condition = _CONDITIONS[upper]
            elif key == "condition" and string_value(value_node, app.source) in _CONDITIONS:
                condition = _CONDITIONS[string_value(value_node, app.source)]
            elif upper == "KEEPTTL" and value == "true":
                expiry = js_string("keepExisting")
            elif upper == "GET" and value == "true":
                get = True
            else:
                return

        options = _set_options(expiry, condition, get)
        app.replace(args[2], render_inline(options))


class ArrayArgumentsRule(_MethodRule):
    name = "array-arguments"
    description = "mget(...keys) / mget(a, b) / watch(a, b) -> array argument"

    def method_names(self, ctx):
        return ctx.config.ioredis.array_argument_methods

    def rewrite_call(self, node, method, args, app):
        if not args:
            return
        if len(args) == 1:
            only = args[0]
            if only.type == "spread_element":
                replace_arguments(app, node, app.text(only.named_children[0]))
            elif is_string_literal(only):
                replace_arguments(app, node, f"[{app.text(only)}]")
            return
        replace_arguments(app, node, "[" + ", ".join(app.text(a) for a in args) + "]")


class BlockingCommandsRule(_MethodRule):
    """Blocking pops take a key array; ``brpoplpush`` becomes ``blmove``."""

    name = "blocking-commands"
    description = "blpop/brpop/bzpopmin/bzpopmax key arrays, brpoplpush -> blmove"

    def method_names(self, ctx):
        blocking = ctx.config.blocking
        return (*blocking.array_key_commands, blocking.move_command)

    def rewrite_call(self, node, method, args, app):
        if method == app.ctx.config.blocking.move_command:
            if len(args) != 3:
                return
            source, destination, timeout = (app.text(a) for a in args)
            rename_method(app, node, "blmove")
            replace_arguments(
                app, node,
                f"{source}, {destination}, ListDirection.RIGHT, ListDirection.LEFT, {timeout}",
            )
            return

        if len(args) < 2:
            return
        keys, timeout = args[:-1], args[-1]
        if len(keys) == 1 and keys[0].type == "array":
            return
        # node-redis already accepts a key array here, so only literals are wrapped
        if len(keys) == 1 and not app.ctx.is_ioredis and not is_string_literal(keys[0]):
            return
        if len(keys) == 1 and keys[0].type == "spread_element":
            keys_text = app.text(keys[0].named_children[0])
        else:
            keys_text = "[" + ", ".join(app.text(k) for k in keys) + "]"
        replace_arguments(app, node, f"{keys_text}, {app.text(timeout)}")


class CloseClientRule(_MethodRule):
    """``quit()`` / ``disconnect()`` -> ``close()``.

    A client-named receiver that is never declared in the file (e.g. a
    leftover ``client``) is pointed at the nearest GLIDE client variable.
    """

    name = "close-client"
    description = "quit/disconnect -> close on the discovered client"

    def method_names(self, ctx):
        aliases = ctx.config.ioredis.close_aliases if ctx.is_ioredis else ctx.config.node_redis.close_aliases
        return (*aliases, "close")

    def rewrite_call(self, node, method, args, app):
        if args:
            return
        receiver = call_receiver(node)
        if method != "close":
            rename_method(app, node, "close")
        if receiver is None or receiver.type != "identifier":
            return
        name = app.text(receiver)
        if not any(hint in name.lower() for hint in ("redis", "client")):
            return
        if name in declared_names(app.root, app.source):
            return
        client = nearest_client_before(
            app.root, app.source, node.start_byte, glide_factory_classes(app.ctx.config),
        )
        if client and client != name and "." not in client:
            app.replace(receiver, client)


class MethodRenameRule(_MethodRule):
    name = "method-casing"
    description = "node-redis camelCase commands -> GLIDE method names"

    def method_names(self, ctx):
        return tuple(ctx.config.node_redis.method_renames)

    def rewrite_call(self, node, method, args, app):
        rename_method(app, node, app.ctx.config.node_redis.method_renames[method])


class HashArgumentsRule(_MethodRule):
    name = "hash-arguments"
    description = "hset(k, f, v) -> hset(k, { [f]: v }); hdel(k, f) -> hdel(k, [f])"
    methods = ("hset", "hdel")

    def rewrite_call(self, node, method, args, app):
        if method == "hset":
            self._hset(node, args, app)
        else:
            self._hdel(node, args, app)

    def _hset(self, node, args, app):
        # hset(key, field, value[, field, value ...])
        if len(args) < 3 or len(args) % 2 == 0:
            return
        if any(a.type == "spread_element" for a in args):
            return
        pairs: List[str] = []
        for field, value in zip(args[1::2], args[2::2]):
            if is_string_literal(field) and field.type == "string":
                key = js_key(string_value(field, app.source))
            else:
                key = f"[{app.text(field)}]"
            pairs.append(f"{key}: {app.text(value)}")
        replace_arguments(app, node, f"{app.text(args[0])}, {{ {', '.join(pairs)} }}")

    def _hdel(self, node, args, app):
        if len(args) < 2:
            return
        fields = args[1:]
        if len(fields) == 1 and fields[0].type == "array":
            return
        if len(fields) == 1 and fields[0].type == "spread_element":
            fields_text = app.text(fields[0].named_children[0])
        else:
            fields_text = "[" + ", ".join(app.text(f) for f in fields) + "]"
        replace_arguments(app, node, f"{app.text(args[0])}, {fields_text}")
