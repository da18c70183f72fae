"""Tests for the JavaScript AST parser and edit application."""

import pytest

from glidemigrate.core.ast_parser import (
    Edit,
    ParsedSource,
    apply_edits,
    parse_javascript,
    resolve_conflicts,
)
from glidemigrate.core.ast_parser.javascript_parser import (
    argument_nodes,
    arguments_text,
    call_method,
    callee_name,
    enclosing_statement,
    is_statement_expression,
    is_string_literal,
    iter_nodes,
    line_indent,
    node_text,
    statement_line_range,
    string_value,
    unwrap_await,
)


# =========================================================================
# Sample JavaScript source fixtures
# =========================================================================

SIMPLE_CALLS = """\
const a = 1;
foo();
bar(1, 'two');
"""

AWAITED_CALL = """\
async function run() {
    await client.get('key');
}
"""

TEMPLATES = """\
const plain = `plain`;
const mixed = `id:${id}`;
"""

BROKEN = "const = ;\n"


def _first(parsed: ParsedSource, node_type: str):
    return next(iter_nodes(parsed.root, node_type))


# =========================================================================
# Tests: Parsing
# =========================================================================

class TestParseJavascript:
    def test_valid_source(self):
        parsed = parse_javascript(SIMPLE_CALLS)
        assert isinstance(parsed, ParsedSource)
        assert parsed.text == SIMPLE_CALLS
        assert parsed.source == SIMPLE_CALLS.encode("utf-8")
        assert parsed.root.type == "program"
        assert not parsed.has_errors

    def test_syntax_errors_reported(self):
        parsed = parse_javascript(BROKEN)
        assert parsed.has_errors
        assert all(e.line == 1 for e in parsed.errors)

    def test_unicode_offsets(self):
        parsed = parse_javascript("const s = 'héllo';\n")
        literal = _first(parsed, "string")
        assert string_value(literal, parsed.source) == "héllo"


# =========================================================================
# Tests: Node helpers
# =========================================================================

class TestNodeHelpers:
    def test_iter_nodes_document_order(self):
        parsed = parse_javascript(SIMPLE_CALLS)
        calls = list(iter_nodes(parsed.root, "call_expression"))
        assert [callee_name(c, parsed.source) for c in calls] == ["foo", "bar"]

    def test_arguments(self):
        parsed = parse_javascript(SIMPLE_CALLS)
        bar = list(iter_nodes(parsed.root, "call_expression"))[1]
        assert [node_text(a, parsed.source) for a in argument_nodes(bar)] == ["1", "'two'"]
        assert arguments_text(bar, parsed.source) == "1, 'two'"

    def test_call_method_and_unwrap_await(self):
        parsed = parse_javascript(AWAITED_CALL)
        awaited = _first(parsed, "await_expression")
        call = unwrap_await(awaited)
        assert call.type == "call_expression"
        assert call_method(call, parsed.source) == "get"
        assert callee_name(call, parsed.source) is None

    def test_statement_lookup(self):
        parsed = parse_javascript(AWAITED_CALL)
        call = _first(parsed, "call_expression")
        statement = enclosing_statement(call)
        assert statement.type == "expression_statement"
        assert is_statement_expression(statement, call)
        assert line_indent(parsed.source, statement.start_byte) == "    "

    def test_template_literals(self):
        parsed = parse_javascript(TEMPLATES)
        plain, mixed = list(iter_nodes(parsed.root, "template_string"))
        assert is_string_literal(plain)
        assert string_value(plain, parsed.source) == "plain"
        assert not is_string_literal(mixed)
        assert string_value(mixed, parsed.source) is None

    def test_statement_line_range_consumes_line(self):
        parsed = parse_javascript(SIMPLE_CALLS)
        foo_statement = enclosing_statement(_first(parsed, "call_expression"))
        start, end = statement_line_range(parsed.source, foo_statement)
        remaining = parsed.source[:start] + parsed.source[end:]
        assert remaining.decode() == "const a = 1;\nbar(1, 'two');\n"

    def test_statement_line_range_shared_line(self):
        source = "foo(); bar();\n"
        parsed = parse_javascript(source)
        bar_statement = enclosing_statement(list(iter_nodes(parsed.root, "call_expression"))[1])
        start, end = statement_line_range(parsed.source, bar_statement)
        assert (start, end) == (bar_statement.start_byte, bar_statement.end_byte)


# =========================================================================
# Tests: Edits
# =========================================================================

class TestEdits:
    def test_apply_replacement(self):
        assert apply_edits(b"hello world", [Edit(0, 5, "howdy")]) == "howdy world"

    def test_no_edits_returns_source(self):
        assert apply_edits(b"unchanged", []) == "unchanged"

    def test_first_recorded_edit_wins(self):
        edits = [Edit(0, 5, "HI", "outer"), Edit(2, 4, "xx", "inner")]
        kept = resolve_conflicts(edits)
        assert [e.rule_name for e in kept] == ["outer"]
        assert apply_edits(b"hello world", edits) == "HI world"

    def test_insertions_keep_recording_order(self):
        edits = [Edit(5, 5, "A"), Edit(5, 5, "B")]
        assert apply_edits(b"hello world", edits) == "helloAB world"

    def test_insertion_at_replacement_boundary(self):
        edits = [Edit(0, 5, "bye"), Edit(5, 5, "!")]
        assert apply_edits(b"hello world", edits) == "bye! world"

    def test_insertion_inside_replacement_dropped(self):
        edits = [Edit(0, 5, "bye"), Edit(2, 2, "!")]
        assert apply_edits(b"hello world", edits) == "bye world"

    @pytest.mark.parametrize("edit,expected", [
        (Edit(3, 3, "x"), True),
        (Edit(3, 4, "x"), False),
    ])
    def test_is_insertion(self, edit, expected):
        assert edit.is_insertion is expected
