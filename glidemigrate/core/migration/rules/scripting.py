"""Lua scripting rewrites.

GLIDE runs Lua through reusable ``Script`` objects and manages the script
cache itself, so ``EVAL`` / ``EVALSHA`` / ``SCRIPT LOAD`` call sites change
shape:

    await client.eval(src, 1, 'key', 'arg')
->  const luaScript1 = new Script(src);
    await client.invokeScript(luaScript1, { keys: ['key'], args: ['arg'] });
"""

import logging
from typing import List, Optional

import tree_sitter

from ...ast_parser.javascript_parser import (
    argument_nodes,
    call_method,
    call_receiver,
    enclosing_statement,
)
from ..context import MigrationContext
from .base import NodeRule, RuleApplication, RulePhase
from .connection import object_entries
from .printer import render_inline

logger = logging.getLogger(__name__)

TODO_MARKER = "TODO(glide)"

INVOKE = "invoke"
EXECUTE = "execute"


def hoist_script(app: RuleApplication, call: tree_sitter.Node, script: str) -> str:
    """Declare ``const luaScriptN = new Script(script);`` before the call's statement."""
    name = app.unique_name("luaScript", always_number=True)
    app.insert_before_statement(enclosing_statement(call), f"const {name} = new Script({script});")
    return name


def script_options(keys: Optional[str], args: Optional[str]) -> str:
    options = {}
    if keys is not None:
        options["keys"] = keys
    if args is not None:
        options["args"] = args
    return render_inline(options) if options else ""


def _array(nodes: List[tree_sitter.Node], app: RuleApplication) -> Optional[str]:
    if not nodes:
        return None
    return "[" + ", ".join(app.text(n) for n in nodes) + "]"


class EvalRule(NodeRule):
    """ioredis ``eval(script, numKeys, ...keysAndArgs)``.

    ``invoke`` mode emits ``<client>.invokeScript(script, opts)``; ``execute``
    mode emits ``script.execute(<client>, opts)``. ``numKeys`` must be a
    numeric literal to split keys from arguments.
    """

    phase = RulePhase.METHOD

    def __init__(self, name: str = "eval-script", mode: str = INVOKE):
        self.name = name
        self.mode = mode

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.is_ioredis

    def rewrite(self, node, app):
        method = call_method(node, app.source)
        if method == "evalsha":
            app.warn(
                "evalsha() has no GLIDE equivalent: GLIDE caches scripts itself. "
                "Create a Script from the Lua source and use invokeScript() instead"
            )
            return
        if method != "eval":
            return
        args = argument_nodes(node)
        if len(args) < 2 or args[1].type != "number":
            return
        if any(a.type == "spread_element" for a in args[2:]):
            app.warn(f"{app.text(node)} spreads its keys/arguments; split them into keys and args manually")
            return
        try:
            num_keys = int(app.text(args[1]))
        except ValueError:
            return

        rest = args[2:]
        keys = _array(rest[:num_keys], app)
        values = _array(rest[num_keys:], app)
        receiver = app.text(call_receiver(node))
        script = hoist_script(app, node, app.text(args[0]))
        options = script_options(keys, values)

        if self.mode == EXECUTE:
            call_args = f"{receiver}, {options}" if options else receiver
            app.replace(node, f"{script}.execute({call_args})")
            app.note("Lua scripts now run through reusable Script objects (hoisted before their first use)")
            app.warn("EVAL semantics changed: verify the Script.execute() call and its key/argument split")
        else:
            call_args = f"{script}, {options}" if options else script
            app.replace(node, f"{receiver}.invokeScript({call_args})")


class NodeRedisEvalRule(NodeRule):
    """node-redis ``eval(script, { keys, arguments })`` -> ``invokeScript``."""

    name = "eval-script"
    phase = RulePhase.METHOD

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node, app):
        if call_method(node, app.source) != "eval":
            return
        args = argument_nodes(node)
        if not args or len(args) > 2:
            return
        keys = values = None
        if len(args) == 2:
            if args[1].type != "object":
                return
            for key, value, _ in object_entries(args[1], app.source):
                if key == "keys":
                    keys = value
                elif key == "arguments":
                    values = value
                else:
                    return

        receiver = app.text(call_receiver(node))
        script = hoist_script(app, node, app.text(args[0]))
        options = script_options(keys, values)
        call_args = f"{script}, {options}" if options else script
        app.replace(node, f"{receiver}.invokeScript({call_args})")


class ScriptCacheTodoRule(NodeRule):
    """Flag ``scriptLoad`` / ``evalSha`` call sites with a TODO comment."""

    name = "script-cache-todo"
    phase = RulePhase.METHOD

    _MESSAGES = {
        "scriptLoad": "GLIDE caches scripts itself; replace scriptLoad() with a Script object",
        "evalSha": "replace evalSha() with client.invokeScript(script, { keys, args }) on a Script object",
    }

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node, app):
        method = call_method(node, app.source)
        message = self._MESSAGES.get(method)
        if message is None:
            return
        statement = enclosing_statement(node)
        line_start = app.source.rfind(b"\n", 0, statement.start_byte)
        previous = app.source[app.source.rfind(b"\n", 0, max(line_start, 0)) + 1:max(line_start, 0)]
        if TODO_MARKER.encode("utf-8") in previous:
            return
        if not app.first_time(f"todo:{statement.start_byte}"):
            return
        app.insert_before_statement(statement, f"// {TODO_MARKER}: {message}")
        app.warn(f"{method}() needs a manual rewrite: {message}")
