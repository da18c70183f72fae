"""Client construction stages.

Each stage recognises one construction shape and turns it into an awaited
GLIDE factory call:

    new Redis()                      -> await GlideClient.createClient({ addresses: [...] })
    new Redis(6380, 'cache')         -> explicit address
    new Redis('rediss://u:p@h:1/2')  -> parsed URL config
    new Redis(process.env.REDIS_URL) -> parseRedisUrlRuntime(...) + helper
    new Redis({ host, port, ... })   -> merged config
    createClient({ url | socket })   -> same, node-redis flavour
    new Redis.Cluster([...])         -> await GlideClusterClient.createClient(...)
    createCluster({ rootNodes })     -> await GlideClusterClient.createClient(...)
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional

import tree_sitter

from ...ast_parser.javascript_parser import (
    argument_nodes,
    string_value,
)
from ..context import MigrationContext
from .base import NodeRule, RuleApplication, RulePhase
from .connection import (
    ClientOptions,
    glide_factory_classes,
    ioredis_options,
    is_dynamic_url,
    node_redis_options,
    object_entries,
    parse_redis_url,
    runtime_helper_insertion,
    runtime_url_call,
)
from .printer import js_string, render_value

logger = logging.getLogger(__name__)

_UNMAPPED_NOTE = "Options with no GLIDE equivalent were dropped ({names}); review them manually"
_RECONNECT_WARNING = (
    "Function-based reconnect strategies cannot be translated; a default "
    "connectionRetryStrategy (exponential backoff) was generated instead"
)


# ── Emission helpers ─────────────────────────────────────────────────────


def replacement_target(node: tree_sitter.Node) -> tree_sitter.Node:
    """The node to overwrite: an enclosing ``await`` is absorbed."""
    parent = node.parent
    if parent is not None and parent.type == "await_expression":
        return parent
    return node


def emit_factory(app: RuleApplication, node: tree_sitter.Node, class_name: str, argument: Any) -> None:
    """Replace ``node`` with ``await <class_name>.createClient(<argument>)``."""
    target = replacement_target(node)
    rendered = render_value(argument, app.indent_of(target))
    text = f"await {class_name}.createClient({rendered})"
    parent = target.parent
    if parent is not None and parent.type in ("member_expression", "call_expression"):
        text = f"({text})"
    app.replace(target, text)


def emit_options(app: RuleApplication, node: tree_sitter.Node, class_name: str, options: ClientOptions) -> None:
    if options.unmapped:
        app.note(_UNMAPPED_NOTE.format(names=", ".join(options.unmapped)))
    emit_factory(app, node, class_name, options.to_config(app.ctx.config))


def emit_runtime_url(app: RuleApplication, node: tree_sitter.Node, class_name: str, expression: str,
                     extra: Optional[ClientOptions] = None) -> None:
    """Factory call fed by the runtime URL parser, plus the one-time helper."""
    call = runtime_url_call(expression)
    if extra is not None and _has_settings(extra):
        extra.spreads.insert(0, call)
        emit_options(app, node, class_name, extra)
    else:
        emit_factory(app, node, class_name, call)

    insertion = runtime_helper_insertion(app.root, app.source)
    if insertion is not None and app.first_time("runtime-url-helper"):
        offset, snippet = insertion
        app.insert(offset, snippet)
        app.note(
            "Connection URL is only known at runtime; parseRedisUrlRuntime() was added "
            "to build the GLIDE configuration from it"
        )


def _has_settings(options: ClientOptions) -> bool:
    return any(
        getattr(options, name) is not None
        for name in (
            "host", "port", "use_tls", "username", "password", "database", "client_name",
            "request_timeout", "connection_timeout", "read_from", "retry",
        )
    ) or bool(options.spreads)


# ── ioredis ──────────────────────────────────────────────────────────────


class _IoredisConstructorRule(NodeRule):
    phase = RulePhase.CONSTRUCTOR
    node_types = ("new_expression",)

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.is_ioredis

    def rewrite(self, node: tree_sitter.Node, app: RuleApplication) -> None:
        constructor = node.child_by_field_name("constructor")
        if constructor is None or constructor.type != "identifier":
            return
        if app.text(constructor) not in app.ctx.constructor_names():
            return
        self.construct(node, argument_nodes(node), app)

    @abstractmethod
    def construct(self, node: tree_sitter.Node, args: List[tree_sitter.Node], app: RuleApplication) -> None:
        """Rewrite one matched constructor call."""

    def client_class(self, app: RuleApplication) -> str:
        return app.ctx.config.target.client_class


class BareConstructorRule(_IoredisConstructorRule):
    name = "bare-constructor"
    description = "new Redis() -> factory with default address"

    def construct(self, node, args, app):
        if args:
            return
        emit_options(app, node, self.client_class(app), ClientOptions())


class PositionalConstructorRule(_IoredisConstructorRule):
    name = "positional-constructor"
    description = "new Redis(port[, host[, options]]) -> factory with explicit address"

    def construct(self, node, args, app):
        if not args or not _looks_like_port(args[0], app):
            return
        options = ClientOptions(port=app.text(args[0]))
        rest = args[1:]
        if rest and rest[0].type != "object":
            options.host = app.text(rest[0])
            rest = rest[1:]
        if rest and rest[0].type == "object":
            extra = ioredis_options(rest[0], app.source, app.ctx.config)
            extra.host = extra.host or options.host
            extra.port = options.port
            options = extra
        emit_options(app, node, self.client_class(app), options)


def _looks_like_port(node: tree_sitter.Node, app: RuleApplication) -> bool:
    if node.type == "number":
        return True
    if node.type in ("identifier", "member_expression"):
        return "port" in app.text(node).lower()
    return False


class UrlConstructorRule(_IoredisConstructorRule):
    name = "url-constructor"
    description = "new Redis('redis://...') -> factory with parsed config"

    def construct(self, node, args, app):
        if not args or string_value(args[0], app.source) is None:
            return
        url = string_value(args[0], app.source)
        options = parse_redis_url(url)
        if options is None:
            app.warn(f"Connection string {app.text(args[0])} is not a redis:// URL; client construction left unchanged")
            return
        if len(args) > 1 and args[1].type == "object":
            options.merge(ioredis_options(args[1], app.source, app.ctx.config))
        emit_options(app, node, self.client_class(app), options)


class DynamicUrlConstructorRule(_IoredisConstructorRule):
    name = "dynamic-url-constructor"
    description = "new Redis(process.env.REDIS_URL) -> runtime URL parser"

    def construct(self, node, args, app):
        if not args or not is_dynamic_url(args[0], app.source):
            return
        extra = None
        if len(args) > 1 and args[1].type == "object":
            extra = ioredis_options(args[1], app.source, app.ctx.config)
        emit_runtime_url(app, node, self.client_class(app), app.text(args[0]), extra)


class ObjectConstructorRule(_IoredisConstructorRule):
    name = "object-constructor"
    description = "new Redis({...}) -> merged GLIDE config"

    def construct(self, node, args, app):
        if len(args) != 1:
            return
        arg = args[0]
        if arg.type == "object":
            emit_options(app, node, self.client_class(app), ioredis_options(arg, app.source, app.ctx.config))
        elif arg.type in ("identifier", "member_expression") and not is_dynamic_url(arg, app.source):
            emit_factory(app, node, self.client_class(app), app.text(arg))
            app.warn(
                f"Options object '{app.text(arg)}' was passed through unchanged; "
                "make sure it matches the GLIDE client configuration shape"
            )


# ── node-redis ───────────────────────────────────────────────────────────


def is_node_redis_factory(call: tree_sitter.Node, app: RuleApplication, cluster: bool = False) -> bool:
    """``createClient(...)`` or ``redis.createClient(...)`` (never a GLIDE class)."""
    function = call.child_by_field_name("function")
    if function is None:
        return False
    if function.type == "identifier":
        local = app.ctx.cluster_factory_names() if cluster else app.ctx.factory_names()
        return app.text(function) in local
    if function.type != "member_expression":
        return False
    obj = function.child_by_field_name("object")
    prop = function.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return False
    if app.text(obj) in glide_factory_classes(app.ctx.config):
        return False
    if app.ctx.namespace_bindings and app.text(obj) not in app.ctx.namespace_bindings:
        return False
    node_cfg = app.ctx.config.node_redis
    exported = node_cfg.cluster_factory_names if cluster else node_cfg.factory_names
    return app.text(prop) in exported


def strip_lifecycle_chain(call: tree_sitter.Node, app: RuleApplication) -> tree_sitter.Node:
    """Extend ``createClient()`` over trailing ``.on(...)`` / ``.connect()`` links.

    GLIDE factories return a connected client, so the links are dropped.
    """
    current = call
    while True:
        member = current.parent
        if member is None or member.type != "member_expression":
            break
        outer = member.parent
        prop = member.child_by_field_name("property")
        if outer is None or outer.type != "call_expression" or prop is None:
            break
        method = app.text(prop)
        if method == "on":
            app.warn(
                "GLIDE clients do not emit connection events; the chained .on(...) "
                "handler was removed. Wrap operations in try/catch instead"
            )
        elif method != "connect":
            break
        current = outer
    return current


class _NodeRedisFactoryRule(NodeRule):
    phase = RulePhase.CONSTRUCTOR
    node_types = ("call_expression",)

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node: tree_sitter.Node, app: RuleApplication) -> None:
        if not is_node_redis_factory(node, app):
            return
        self.construct(node, argument_nodes(node), app)

    @abstractmethod
    def construct(self, node, args, app):
        """Rewrite one matched factory call."""

    def emit(self, app, node, options: ClientOptions) -> None:
        emit_options(app, strip_lifecycle_chain(node, app), app.ctx.config.target.client_class, options)


class BareFactoryRule(_NodeRedisFactoryRule):
    name = "bare-factory"
    description = "createClient() -> factory with default address"

    def construct(self, node, args, app):
        if not args:
            self.emit(app, node, ClientOptions())


class UrlFactoryRule(_NodeRedisFactoryRule):
    name = "url-factory"
    description = "createClient({ url }) -> parsed or runtime URL config"

    def construct(self, node, args, app):
        if len(args) != 1 or args[0].type != "object":
            return
        options, url_node, reconnect = node_redis_options(args[0], app.source, app.ctx.config)
        if url_node is None:
            return
        if reconnect:
            app.warn(_RECONNECT_WARNING)

        url = string_value(url_node, app.source)
        if url is not None:
            parsed = parse_redis_url(url)
            if parsed is None:
                app.warn(f"Connection string {app.text(url_node)} is not a redis:// URL; client construction left unchanged")
                return
            parsed.merge(options)
            self.emit(app, node, parsed)
            return

        target = strip_lifecycle_chain(node, app)
        emit_runtime_url(app, target, app.ctx.config.target.client_class, app.text(url_node), options)


class OptionsFactoryRule(_NodeRedisFactoryRule):
    name = "options-factory"
    description = "createClient({ socket, username, password, database, name }) -> GLIDE config"

    def construct(self, node, args, app):
        if len(args) != 1:
            return
        arg = args[0]
        if arg.type == "object":
            options, url_node, reconnect = node_redis_options(arg, app.source, app.ctx.config)
            if url_node is not None:
                return
            if reconnect:
                app.warn(_RECONNECT_WARNING)
            self.emit(app, node, options)
        elif arg.type in ("identifier", "member_expression"):
            target = strip_lifecycle_chain(node, app)
            emit_factory(app, target, app.ctx.config.target.client_class, app.text(arg))
            app.warn(
                f"Options object '{app.text(arg)}' was passed through unchanged; "
                "make sure it matches the GLIDE client configuration shape"
            )


# ── Cluster ──────────────────────────────────────────────────────────────


class IoredisClusterRule(NodeRule):
    """``new Redis.Cluster(nodes, opts)`` / ``new Cluster(nodes)`` -> cluster factory."""

    name = "cluster-constructor"
    phase = RulePhase.CONSTRUCTOR
    node_types = ("new_expression",)
    description = "new Redis.Cluster([...]) -> GlideClusterClient.createClient"

    def applies_to(self, ctx: MigrationContext) -> bool:
        return ctx.is_ioredis

    def rewrite(self, node, app):
        constructor = node.child_by_field_name("constructor")
        if constructor is None or not self._is_cluster_class(constructor, app):
            return
        args = argument_nodes(node)
        if not args:
            return

        options = ClientOptions()
        if len(args) > 1 and args[1].type == "object":
            for key, value, value_node in object_entries(args[1], app.source):
                if key == "redisOptions" and value_node.type == "object":
                    options.merge(ioredis_options(value_node, app.source, app.ctx.config))
                elif key == "scaleReads":
                    if string_value(value_node, app.source) in ("slave", "all"):
                        options.read_from = js_string("preferReplica")
                elif key is not None:
                    options.unmapped.append(key)

        # Seed nodes keep their { host, port } shape
        options.host = options.port = None
        config = options.to_config(app.ctx.config)
        config["addresses"] = app.text(args[0])
        config = {"addresses": config.pop("addresses"), **config}
        if options.unmapped:
            app.note(_UNMAPPED_NOTE.format(names=", ".join(options.unmapped)))
        emit_factory(app, node, app.ctx.config.target.cluster_client_class, config)

    def _is_cluster_class(self, constructor, app) -> bool:
        if constructor.type == "identifier":
            return app.text(constructor) in app.ctx.cluster_factory_names()
        if constructor.type != "member_expression":
            return False
        obj = constructor.child_by_field_name("object")
        prop = constructor.child_by_field_name("property")
        return (
            obj is not None and prop is not None
            and app.text(prop) == "Cluster"
            and app.text(obj) in app.ctx.constructor_names()
        )


class NodeRedisClusterRule(NodeRule):
    """``createCluster({ rootNodes, defaults })`` -> cluster factory."""

    name = "cluster-factory"
    phase = RulePhase.CONSTRUCTOR
    node_types = ("call_expression",)
    description = "createCluster({ rootNodes }) -> GlideClusterClient.createClient"

    def applies_to(self, ctx: MigrationContext) -> bool:
        return not ctx.is_ioredis

    def rewrite(self, node, app):
        if not is_node_redis_factory(node, app, cluster=True):
            return
        args = argument_nodes(node)
        if len(args) != 1 or args[0].type != "object":
            return

        addresses: Any = None
        options = ClientOptions()
        for key, value, value_node in object_entries(args[0], app.source):
            if key == "rootNodes":
                addresses = self._addresses(value_node, app)
            elif key == "defaults" and value_node.type == "object":
                defaults, _, reconnect = node_redis_options(value_node, app.source, app.ctx.config)
                if reconnect:
                    app.warn(_RECONNECT_WARNING)
                options.merge(defaults)
            elif key == "useReplicas":
                if value == "true":
                    options.read_from = js_string("preferReplica")
            elif key is not None:
                options.unmapped.append(key)
        if addresses is None:
            return

        options.host = options.port = None
        config = options.to_config(app.ctx.config)
        config = {"addresses": addresses, **{k: v for k, v in config.items() if k != "addresses"}}
        if options.unmapped:
            app.note(_UNMAPPED_NOTE.format(names=", ".join(options.unmapped)))
        target = strip_lifecycle_chain(node, app)
        emit_factory(app, target, app.ctx.config.target.cluster_client_class, config)

    def _addresses(self, array: tree_sitter.Node, app: RuleApplication) -> Any:
        if array.type != "array":
            return app.text(array)
        addresses: List[Any] = []
        for item in array.named_children:
            if item.type == "comment":
                continue
            addresses.append(self._address(item, app))
        return addresses

    def _address(self, item: tree_sitter.Node, app: RuleApplication) -> Any:
        if item.type != "object":
            return app.text(item)
        entry: Dict[str, Any] = {}
        for key, value, value_node in object_entries(item, app.source):
            if key == "url":
                url = string_value(value_node, app.source)
                parsed = parse_redis_url(url) if url is not None else None
                if parsed is None:
                    return app.text(item)
                entry["host"] = parsed.host or js_string(app.ctx.config.target.default_host)
                entry["port"] = parsed.port or app.ctx.config.target.default_port
            elif key == "socket" and value_node.type == "object":
                for sub_key, sub_value, _ in object_entries(value_node, app.source):
                    if sub_key in ("host", "port"):
                        entry[sub_key] = sub_value
        return entry or app.text(item)
