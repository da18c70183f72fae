"""Connection configuration helpers shared by the constructor rules.

Turns ioredis / node-redis connection arguments (URL strings, option
objects, positional port/host) into a GLIDE client configuration and finds
GLIDE factory assignments in already-rewritten code.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import unquote, urlsplit

import tree_sitter

from ...ast_parser.javascript_parser import (
    iter_nodes,
    node_text,
    string_value,
    unwrap_await,
)
from ...config import MigrationConfig
from .printer import js_string, spread

logger = logging.getLogger(__name__)

URL_SCHEMES = ("redis", "rediss")

RUNTIME_HELPER_NAME = "parseRedisUrlRuntime"

RUNTIME_HELPER_SNIPPET = """\
// Helper function to add to your codebase: parses redis:// URLs at runtime
function parseRedisUrlRuntime(url) {
  const parsed = new URL(url);
  const config = {
    addresses: [{ host: parsed.hostname || 'localhost', port: Number(parsed.port) || 6379 }],
  };
  if (parsed.protocol === 'rediss:') config.useTLS = true;
  if (parsed.password) {
    config.credentials = { password: decodeURIComponent(parsed.password) };
    if (parsed.username) config.credentials.username = decodeURIComponent(parsed.username);
  }
  if (parsed.pathname && parsed.pathname.length > 1) config.databaseId = Number(parsed.pathname.slice(1));
  return config;
}"""


@dataclass
class ClientOptions:
    """Connection settings collected from source arguments.

    Every value is an already-rendered JS expression.
    """
    host: Optional[str] = None
    port: Optional[str] = None
    use_tls: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    client_name: Optional[str] = None
    request_timeout: Optional[str] = None
    connection_timeout: Optional[str] = None
    read_from: Optional[str] = None
    retry: Optional[Dict[str, Any]] = None
    spreads: List[str] = field(default_factory=list)
    unmapped: List[str] = field(default_factory=list)

    def merge(self, other: "ClientOptions") -> None:
        """Take every value ``other`` sets."""
        for name in (
            "host", "port", "use_tls", "username", "password", "database",
            "client_name", "request_timeout", "connection_timeout", "read_from", "retry",
        ):
            value = getattr(other, name)
            if value is not None:
                setattr(self, name, value)
        self.spreads.extend(other.spreads)
        self.unmapped.extend(other.unmapped)

    def to_config(self, config: MigrationConfig) -> Dict[str, Any]:
        """Build the GLIDE configuration object (as printer input)."""
        target = config.target
        result: Dict[str, Any] = {}
        for expression in self.spreads:
            result[spread(expression)] = None

        if not self.spreads or self.host is not None or self.port is not None:
            result["addresses"] = [{
                "host": self.host or js_string(target.default_host),
                "port": self.port or target.default_port,
            }]
        if self.use_tls:
            result["useTLS"] = self.use_tls
        if self.password or self.username:
            credentials: Dict[str, Any] = {}
            if self.username:
                credentials["username"] = self.username
            if self.password:
                credentials["password"] = self.password
            result["credentials"] = credentials
        if self.database is not None:
            result["databaseId"] = self.database
        if self.client_name:
            result["clientName"] = self.client_name
        if self.request_timeout:
            result["requestTimeout"] = self.request_timeout
        if self.read_from:
            result["readFrom"] = self.read_from
        if self.connection_timeout:
            result["advancedConfiguration"] = {"connectionTimeout": self.connection_timeout}
        if self.retry:
            result["connectionRetryStrategy"] = self.retry
        return result


# ── URLs ─────────────────────────────────────────────────────────────────


def parse_redis_url(url: str) -> Optional[ClientOptions]:
    """Parse ``redis[s]://[user[:pass]@]host[:port][/db]``.

    Returns ``None`` for anything that is not a redis URL.
    """
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None
    if parts.scheme not in URL_SCHEMES or not parts.netloc:
        return None

    options = ClientOptions()
    if parts.hostname:
        options.host = js_string(parts.hostname)
    if port:
        options.port = str(port)
    if parts.scheme == "rediss":
        options.use_tls = "true"
    if parts.username:
        options.username = js_string(unquote(parts.username))
    if parts.password:
        options.password = js_string(unquote(parts.password))
    database = parts.path.lstrip("/")
    if database.isdigit():
        options.database = database
    return options


def is_dynamic_url(node: tree_sitter.Node, source: bytes) -> bool:
    """True for runtime URL expressions: ``process.env.*``, ``*url*`` names, templates."""
    node = unwrap_await(node)
    if node.type == "template_string":
        return any(child.type == "template_substitution" for child in node.named_children)
    if node.type not in ("identifier", "member_expression", "subscript_expression"):
        return False
    text = node_text(node, source)
    return text.startswith("process.env") or "url" in text.lower()


def runtime_url_call(expression: str) -> str:
    return f"{RUNTIME_HELPER_NAME}({expression})"


def after_imports_offset(root: tree_sitter.Node, source: bytes) -> int:
    """Offset just past the last top-level import / require statement line."""
    last_end = None
    for child in root.named_children:
        if child.type == "import_statement":
            last_end = child.end_byte
        elif child.type in ("lexical_declaration", "variable_declaration"):
            if _requires_module(child, source):
                last_end = child.end_byte
    if last_end is None:
        return 0
    line_end = source.find(b"\n", last_end)
    return len(source) if line_end == -1 else line_end + 1


def _requires_module(statement: tree_sitter.Node, source: bytes) -> bool:
    for call in iter_nodes(statement, "call_expression"):
        function = call.child_by_field_name("function")
        if function is not None and node_text(function, source) == "require":
            return True
    return False


def runtime_helper_insertion(root: tree_sitter.Node, source: bytes) -> Optional[Tuple[int, str]]:
    """Where and what to insert for the runtime URL helper, or ``None`` if present."""
    if f"function {RUNTIME_HELPER_NAME}".encode("utf-8") in source:
        return None
    offset = after_imports_offset(root, source)
    if offset == 0:
        return 0, RUNTIME_HELPER_SNIPPET + "\n\n"
    prefix = "" if source[offset - 1:offset] == b"\n" else "\n"
    return offset, f"{prefix}\n{RUNTIME_HELPER_SNIPPET}\n"


# ── Option objects ───────────────────────────────────────────────────────


def object_entries(obj: tree_sitter.Node, source: bytes) -> List[Tuple[Optional[str], str, tree_sitter.Node]]:
    """``(key, value_text, value_node)`` for each entry of an object literal.

    Spread entries have key ``None``; computed keys are returned verbatim.
    """
    entries = []
    for child in obj.named_children:
        if child.type == "pair":
            key_node = child.child_by_field_name("key")
            value_node = child.child_by_field_name("value")
            if key_node is None or value_node is None:
                continue
            key = string_value(key_node, source)
            if key is None:
                key = node_text(key_node, source)
            entries.append((key, node_text(value_node, source), value_node))
        elif child.type == "shorthand_property_identifier":
            name = node_text(child, source)
            entries.append((name, name, child))
        elif child.type == "spread_element":
            inner = child.named_children[0] if child.named_children else child
            entries.append((None, node_text(inner, source), inner))
    return entries


def default_retry(config: MigrationConfig) -> Dict[str, Any]:
    return {
        "numberOfRetries": config.retry.default_retries,
        "factor": config.retry.factor,
        "baseDelay": config.retry.default_base_delay,
    }


def ioredis_options(obj: tree_sitter.Node, source: bytes, config: MigrationConfig) -> ClientOptions:
    """Map an ioredis options object onto :class:`ClientOptions`.

    Keys with no GLIDE counterpart end up in ``unmapped``.
    """
    options = ClientOptions()
    mapping = config.ioredis.connection_options
    retries = None
    base_delay = None
    retry_function = False

    for key, value, value_node in object_entries(obj, source):
        if key is None:
            options.spreads.append(value)
        elif key == "host":
            options.host = value
        elif key == "port":
            options.port = value
        elif key == "username":
            options.username = value
        elif key == "password":
            options.password = value
        elif key == "tls":
            if value not in ("false", "undefined", "null"):
                options.use_tls = "true"
        elif key == "maxRetriesPerRequest":
            retries = value
        elif key == "retryDelayOnFailover":
            base_delay = value
        elif key == "retryStrategy":
            retry_function = True
        elif key in mapping:
            _apply_mapped(options, mapping[key], value)
        else:
            options.unmapped.append(key)

    if retries is not None or base_delay is not None or retry_function:
        options.retry = {
            "numberOfRetries": retries if retries is not None and retries != "null" else config.retry.default_retries,
            "factor": config.retry.factor,
            "baseDelay": base_delay if base_delay is not None else config.retry.default_base_delay,
        }
    return options


def _apply_mapped(options: ClientOptions, glide_key: str, value: str) -> None:
    if glide_key == "databaseId":
        options.database = value
    elif glide_key == "clientName":
        options.client_name = value
    elif glide_key == "requestTimeout":
        options.request_timeout = value
    elif glide_key == "connectionTimeout":
        options.connection_timeout = value
    elif glide_key == "readFrom":
        if value == "true":
            options.read_from = js_string("preferReplica")
    else:
        logger.debug("No handler for configured GLIDE option %s", glide_key)


def node_redis_options(
    obj: tree_sitter.Node, source: bytes, config: MigrationConfig,
) -> Tuple[ClientOptions, Optional[tree_sitter.Node], bool]:
    """Map node-redis ``createClient`` options.

    Returns ``(options, url_node, has_reconnect_strategy)``; the URL itself is
    left to the caller.
    """
    options = ClientOptions()
    url_node = None
    reconnect = False

    for key, value, value_node in object_entries(obj, source):
        if key is None:
            options.spreads.append(value)
        elif key == "url":
            url_node = value_node
        elif key == "username":
            options.username = value
        elif key == "password":
            options.password = value
        elif key == "database":
            options.database = value
        elif key == "name":
            options.client_name = value
        elif key == "commandTimeout":
            options.request_timeout = value
        elif key == "readonly":
            if value == "true":
                options.read_from = js_string("preferReplica")
        elif key == "socket" and value_node.type == "object":
            reconnect = _node_redis_socket(value_node, source, options) or reconnect
        else:
            options.unmapped.append(key)

    if reconnect:
        options.retry = default_retry(config)
    return options, url_node, reconnect


def _node_redis_socket(socket: tree_sitter.Node, source: bytes, options: ClientOptions) -> bool:
    reconnect = False
    for key, value, _ in object_entries(socket, source):
        if key == "host":
            options.host = value
        elif key == "port":
            options.port = value
        elif key == "tls":
            if value not in ("false", "undefined", "null"):
                options.use_tls = "true"
        elif key == "connectTimeout":
            options.connection_timeout = value
        elif key == "reconnectStrategy":
            reconnect = True
        elif key is None:
            options.spreads.append(value)
        else:
            options.unmapped.append(f"socket.{key}")
    return reconnect


# ── GLIDE factory discovery ──────────────────────────────────────────────


def glide_factory_classes(config: MigrationConfig) -> Set[str]:
    return {config.target.client_class, config.target.cluster_client_class}


def is_glide_factory_call(call: tree_sitter.Node, source: bytes, classes: Set[str]) -> bool:
    """True for ``GlideClient.createClient(...)`` style calls."""
    if call.type != "call_expression":
        return False
    function = call.child_by_field_name("function")
    if function is None or function.type != "member_expression":
        return False
    obj = function.child_by_field_name("object")
    prop = function.child_by_field_name("property")
    if obj is None or prop is None:
        return False
    return node_text(obj, source) in classes and node_text(prop, source) == "createClient"


def client_assignments(
    root: tree_sitter.Node, source: bytes, classes: Set[str],
) -> List[Tuple[str, tree_sitter.Node, tree_sitter.Node]]:
    """``(variable, declaration, factory_call)`` for every GLIDE client assignment."""
    found = []
    for node in iter_nodes(root, "variable_declarator", "assignment_expression"):
        if node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            value = node.child_by_field_name("value")
        else:
            target = node.child_by_field_name("left")
            value = node.child_by_field_name("right")
        if target is None or value is None:
            continue
        if target.type not in ("identifier", "member_expression"):
            continue
        call = unwrap_await(value)
        if is_glide_factory_call(call, source, classes):
            found.append((node_text(target, source), node, call))
    return found


def nearest_client_before(
    root: tree_sitter.Node, source: bytes, offset: int, classes: Set[str],
) -> Optional[str]:
    """Variable of the nearest GLIDE client assignment that starts before ``offset``."""
    best = None
    for name, node, _ in client_assignments(root, source, classes):
        if node.start_byte < offset:
            best = name
    return best


def declared_names(root: tree_sitter.Node, source: bytes) -> Set[str]:
    """Identifiers declared anywhere in the file (variables, params, functions, imports)."""
    names: Set[str] = set()
    for node in iter_nodes(
        root,
        "variable_declarator", "formal_parameters", "arrow_function",
        "function_declaration", "class_declaration", "import_clause", "import_specifier",
    ):
        if node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            if target is not None:
                names.update(node_text(n, source) for n in _pattern_identifiers(target))
        elif node.type == "formal_parameters":
            for param in node.named_children:
                names.update(node_text(n, source) for n in _pattern_identifiers(param))
        elif node.type == "arrow_function":
            param = node.child_by_field_name("parameter")
            if param is not None:
                names.add(node_text(param, source))
        elif node.type in ("function_declaration", "class_declaration"):
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(node_text(name, source))
        elif node.type == "import_clause":
            for child in node.named_children:
                if child.type == "identifier":
                    names.add(node_text(child, source))
        else:
            alias = node.child_by_field_name("alias") or node.child_by_field_name("name")
            if alias is not None:
                names.add(node_text(alias, source))
    return names


def _pattern_identifiers(node: tree_sitter.Node) -> List[tree_sitter.Node]:
    # Over-approximates for default values (`{ a = b }` also yields `b`)
    return list(iter_nodes(node, "identifier", "shorthand_property_identifier_pattern"))
