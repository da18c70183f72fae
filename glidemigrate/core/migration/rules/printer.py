"""Small JavaScript pretty-printer for generated literals.

Values are Python structures:

* ``dict``  -> object literal (insertion order kept)
* ``list`` / ``tuple`` -> array literal
* ``bool`` / ``int`` / ``float`` -> literal
* ``str``   -> emitted verbatim, i.e. an already-rendered JS expression.
  Use :func:`js_string` to turn a Python string into a quoted literal.
* a dict key built with :func:`spread` renders as ``...expr``.

Short values print on one line; anything wider than ``width`` breaks one
entry per line.
"""

from typing import Any

_INDENT = "  "


def js_string(value: str) -> str:
    """Single-quoted JS string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def js_key(key: str) -> str:
    """Object key, quoted only when it is not a plain identifier."""
    if key.startswith("[") and key.endswith("]"):
        return key
    if key and (key[0].isalpha() or key[0] in "_$") and all(c.isalnum() or c in "_$" for c in key):
        return key
    return js_string(key)


def spread(expression: str) -> str:
    """Dict key that renders as ``...expression`` (its value is ignored)."""
    return f"...{expression}"


def _entry(key: str, rendered: str) -> str:
    if key.startswith("..."):
        return key
    return f"{js_key(key)}: {rendered}"


def render_inline(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, dict):
        if not value:
            return "{}"
        body = ", ".join(_entry(k, render_inline(v)) for k, v in value.items())
        return f"{{ {body} }}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_inline(v) for v in value) + "]"
    return str(value)


def render_value(value: Any, indent: str = "", width: int = 80) -> str:
    """Render ``value``; continuation lines are indented relative to ``indent``."""
    inline = render_inline(value)
    if len(indent) + len(inline) <= width or "\n" in inline:
        return inline

    inner = indent + _INDENT
    if isinstance(value, dict) and value:
        lines = [
            f"{inner}{_entry(k, render_value(v, inner, width))}"
            for k, v in value.items()
        ]
        return "{\n" + ",\n".join(lines) + f"\n{indent}}}"
    if isinstance(value, (list, tuple)) and value:
        lines = [f"{inner}{render_value(v, inner, width)}" for v in value]
        return "[\n" + ",\n".join(lines) + f"\n{indent}]"
    return inline
