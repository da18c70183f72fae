"""Import rewrite stages.

Source-client imports (ES ``import`` and CommonJS ``require``) are replaced by
a single GLIDE import; the local names they bound are recorded on the
context so the constructor stages know what ``new Redis()`` or
``createClient()`` refer to in this file. A later stage appends GLIDE symbols
that the rewritten code references but the import does not yet bring in.
"""

import logging
from typing import List, Optional, Tuple

import tree_sitter

from ...ast_parser.javascript_parser import (
    iter_nodes,
    node_text,
    string_value,
)
from ..context import MigrationContext
from .base import RuleApplication, RulePhase, TransformRule

logger = logging.getLogger(__name__)


# ── Lookup helpers ───────────────────────────────────────────────────────


def import_source(statement: tree_sitter.Node, source: bytes) -> Optional[str]:
    """Module name of an ES import statement."""
    module = statement.child_by_field_name("source")
    return string_value(module, source) if module is not None else None


def require_target(declarator: tree_sitter.Node, source: bytes) -> Optional[str]:
    """Module name of ``<pattern> = require('<module>')``."""
    value = declarator.child_by_field_name("value")
    if value is None or value.type != "call_expression":
        return None
    function = value.child_by_field_name("function")
    if function is None or node_text(function, source) != "require":
        return None
    args = value.child_by_field_name("arguments")
    if args is None or not args.named_children:
        return None
    return string_value(args.named_children[0], source)


def require_declarations(root: tree_sitter.Node, source: bytes, modules) -> List[Tuple[tree_sitter.Node, tree_sitter.Node]]:
    """``(statement, declarator)`` pairs for top-level requires of ``modules``."""
    found = []
    for statement in root.named_children:
        if statement.type not in ("lexical_declaration", "variable_declaration"):
            continue
        for declarator in statement.named_children:
            if declarator.type == "variable_declarator" and require_target(declarator, source) in modules:
                found.append((statement, declarator))
    return found


def find_glide_import(root: tree_sitter.Node, source: bytes, package: str) -> Optional[tree_sitter.Node]:
    """The existing GLIDE import: an import statement or a require declarator."""
    for statement in root.named_children:
        if statement.type == "import_statement" and import_source(statement, source) == package:
            return statement
    for _, declarator in require_declarations(root, source, (package,)):
        return declarator
    return None


def glide_import_line(symbols: List[str], package: str, commonjs: bool) -> str:
    names = ", ".join(symbols)
    if commonjs:
        return f"const {{ {names} }} = require('{package}');"
    return f"import {{ {names} }} from '{package}';"


# ── Binding bookkeeping ──────────────────────────────────────────────────


def _record_named(ctx: MigrationContext, imported: str, local: str) -> None:
    if ctx.is_ioredis:
        if imported in ("default", *ctx.config.ioredis.client_classes):
            ctx.client_bindings.add(local)
        elif imported == "Cluster":
            ctx.cluster_bindings.add(local)
    else:
        if imported in ctx.config.node_redis.factory_names:
            ctx.client_bindings.add(local)
        elif imported in ctx.config.node_redis.cluster_factory_names:
            ctx.cluster_bindings.add(local)
        elif imported == "default":
            ctx.namespace_bindings.add(local)


def _record_module_object(ctx: MigrationContext, local: str) -> None:
    # `import Redis from 'ioredis'` binds the constructor;
    # `import redis from 'redis'` binds the module namespace
    if ctx.is_ioredis:
        ctx.client_bindings.add(local)
    else:
        ctx.namespace_bindings.add(local)


def _constructed_kinds(app: RuleApplication) -> Tuple[bool, bool]:
    """Whether the file constructs a standalone and/or a cluster ioredis client."""
    standalone = cluster = False
    for node in iter_nodes(app.root, "new_expression"):
        constructor = node.child_by_field_name("constructor")
        if constructor is None:
            continue
        if constructor.type == "identifier":
            name = app.text(constructor)
            standalone = standalone or name in app.ctx.client_bindings
            cluster = cluster or name in app.ctx.cluster_bindings
        elif constructor.type == "member_expression":
            obj = constructor.child_by_field_name("object")
            prop = constructor.child_by_field_name("property")
            if obj is not None and prop is not None and app.text(prop) == "Cluster":
                cluster = cluster or app.text(obj) in app.ctx.client_bindings
    return standalone, cluster


def _initial_symbols(app: RuleApplication) -> List[str]:
    ctx = app.ctx
    target = ctx.config.target
    if ctx.cluster_bindings and not ctx.client_bindings and not ctx.namespace_bindings:
        return [target.cluster_client_class]
    if ctx.is_ioredis:
        # `new Redis.Cluster(...)` alone needs no standalone client class
        standalone, cluster = _constructed_kinds(app)
        if cluster and not standalone:
            return [target.cluster_client_class]
    return [target.client_class]


class _SourceImportRule(TransformRule):
    """Shared replacement logic for ES and CommonJS source imports."""

    phase = RulePhase.IMPORT

    def _replace_or_drop(self, app: RuleApplication, statement: tree_sitter.Node, commonjs: bool) -> None:
        package = app.ctx.config.target.package
        existing = find_glide_import(app.root, app.source, package)
        if existing is not None or not app.first_time("glide-import"):
            # One GLIDE import per file; re-runs never add a second
            app.remove_statement(statement)
            return
        line = glide_import_line(_initial_symbols(app), package, commonjs)
        app.replace(statement, line)


class EsImportRule(_SourceImportRule):
    name = "es-import"
    description = "import ... from '<source client>' -> GLIDE import"

    def apply(self, app: RuleApplication) -> None:
        packages = app.ctx.config.packages_for(app.ctx.source_client.value)
        statements = [
            s for s in app.root.named_children
            if s.type == "import_statement" and import_source(s, app.source) in packages
        ]
        for statement in statements:
            self._record_bindings(statement, app)
        for statement in statements:
            self._replace_or_drop(app, statement, commonjs=False)

    def _record_bindings(self, statement: tree_sitter.Node, app: RuleApplication) -> None:
        for clause in statement.named_children:
            if clause.type != "import_clause":
                continue
            for child in clause.named_children:
                if child.type == "identifier":
                    _record_module_object(app.ctx, app.text(child))
                elif child.type == "namespace_import":
                    for ident in iter_nodes(child, "identifier"):
                        _record_module_object(app.ctx, app.text(ident))
                elif child.type == "named_imports":
                    for spec in child.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name = spec.child_by_field_name("name")
                        alias = spec.child_by_field_name("alias") or name
                        if name is not None:
                            _record_named(app.ctx, app.text(name), app.text(alias))


class RequireImportRule(_SourceImportRule):
    name = "require-import"
    description = "require('<source client>') -> destructured GLIDE require"

    def apply(self, app: RuleApplication) -> None:
        packages = app.ctx.config.packages_for(app.ctx.source_client.value)
        found = require_declarations(app.root, app.source, packages)
        for _, declarator in found:
            self._record_bindings(declarator, app)
        seen = set()
        for statement, _ in found:
            key = (statement.start_byte, statement.end_byte)
            if key in seen:
                continue
            seen.add(key)
            self._replace_or_drop(app, statement, commonjs=True)

    def _record_bindings(self, declarator: tree_sitter.Node, app: RuleApplication) -> None:
        target = declarator.child_by_field_name("name")
        if target is None:
            return
        if target.type == "identifier":
            _record_module_object(app.ctx, app.text(target))
            return
        if target.type != "object_pattern":
            return
        for child in target.named_children:
            if child.type == "shorthand_property_identifier_pattern":
                name = app.text(child)
                _record_named(app.ctx, name, name)
            elif child.type == "pair_pattern":
                key = child.child_by_field_name("key")
                value = child.child_by_field_name("value")
                if key is not None and value is not None and value.type == "identifier":
                    _record_named(app.ctx, app.text(key), app.text(value))


# ── GLIDE symbol sync ────────────────────────────────────────────────────


class ImportSymbolsRule(TransformRule):
    """Append referenced GLIDE symbols missing from the existing GLIDE import.

    Never creates an import; files without one are left alone.
    """

    name = "import-symbols"
    phase = RulePhase.SYMBOLS
    description = "add referenced GLIDE symbols to the GLIDE import"

    def apply(self, app: RuleApplication) -> None:
        target = app.ctx.config.target
        glide_import = find_glide_import(app.root, app.source, target.package)
        if glide_import is None:
            return

        imported, anchor, wrap = self._imported_names(glide_import, app)
        if anchor is None:
            return

        referenced = set()
        for ident in iter_nodes(app.root, "identifier"):
            if glide_import.start_byte <= ident.start_byte < glide_import.end_byte:
                continue
            referenced.add(app.text(ident))

        missing = [s for s in target.symbols if s in referenced and s not in imported]
        if not missing:
            return
        names = ", ".join(missing)
        app.insert(anchor, f", {{ {names} }}" if wrap else f", {names}")
        logger.debug("Adding GLIDE symbols to import: %s", names)

    def _imported_names(self, node: tree_sitter.Node, app: RuleApplication):
        """``(names, insert_offset, needs_braces)`` for an import or require."""
        names = set()
        anchor = None
        wrap = False
        if node.type == "import_statement":
            clause = next((c for c in node.named_children if c.type == "import_clause"), None)
            if clause is None:
                return names, None, False
            named = next((c for c in clause.named_children if c.type == "named_imports"), None)
            if named is not None:
                specs = [c for c in named.named_children if c.type == "import_specifier"]
                for spec in specs:
                    alias = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                    names.add(app.text(alias))
                if specs:
                    anchor = specs[-1].end_byte
                else:
                    return names, None, False
            else:
                default = next((c for c in clause.named_children if c.type == "identifier"), None)
                if default is not None:
                    anchor, wrap = default.end_byte, True
            return names, anchor, wrap

        pattern = node.child_by_field_name("name")
        if pattern is None or pattern.type != "object_pattern":
            return names, None, False
        entries = [
            c for c in pattern.named_children
            if c.type in ("shorthand_property_identifier_pattern", "pair_pattern")
        ]
        for entry in entries:
            if entry.type == "pair_pattern":
                value = entry.child_by_field_name("value")
                if value is not None:
                    names.add(app.text(value))
            else:
                names.add(app.text(entry))
        if entries:
            anchor = entries[-1].end_byte
        return names, anchor, False
