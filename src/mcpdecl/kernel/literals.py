"""Compile-time evaluation of literal expressions.

Extraction is all-or-nothing: if any nested member is not itself a literal the
whole expression extracts to ``UNDEFINED``. Partially literal dicts are never
returned.
"""

import ast
from typing import Any, Optional

# Names a subscript may use for Literal[...] / tuple[...] regardless of import style
_LITERAL_NAMES = {"Literal", "typing.Literal", "typing_extensions.Literal"}
_TUPLE_NAMES = {"tuple", "Tuple", "typing.Tuple"}


class _Undefined:
    """Sentinel for 'not a literal' (None is a valid literal value)."""
    _instance: Optional["_Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()


def dotted_name(node: ast.AST) -> Optional[str]:
    """Return 'a.b.c' for Name/Attribute chains, else None."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        if base is None:
            return None
        return f"{base}.{node.attr}"
    return None


def subscript_args(node: ast.Subscript) -> list:
    """Arguments of ``X[a, b]`` as a list of nodes."""
    inner = node.slice
    if isinstance(inner, ast.Tuple):
        return list(inner.elts)
    return [inner]


def is_literal_subscript(node: ast.AST) -> bool:
    return isinstance(node, ast.Subscript) and dotted_name(node.value) in _LITERAL_NAMES


def literal_members(node: ast.AST) -> Any:
    """Values of every argument in ``Literal[a, b, ...]``, or UNDEFINED."""
    if not is_literal_subscript(node):
        return UNDEFINED
    values = []
    for arg in subscript_args(node):
        value = extract_literal(arg)
        if value is UNDEFINED:
            return UNDEFINED
        values.append(value)
    return values


def extract_literal(node: Optional[ast.AST]) -> Any:
    """Evaluate a literal expression node into a concrete value.

    Supports str/int/float/bool/None constants, unary +/- on numbers,
    ``Literal[x]`` with one argument, dict displays with string keys, list and
    tuple displays, and ``tuple[...]`` subscripts of literals. Tuples come back
    as lists, matching their JSON form.

    Returns UNDEFINED the moment any member is non-literal.
    """
    if node is None:
        return UNDEFINED

    if isinstance(node, ast.Constant):
        if isinstance(node.value, (str, int, float, bool)) or node.value is None:
            return node.value
        return UNDEFINED

    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        operand = node.operand
        if (
            isinstance(operand, ast.Constant)
            and isinstance(operand.value, (int, float))
            and not isinstance(operand.value, bool)
        ):
            return -operand.value if isinstance(node.op, ast.USub) else operand.value
        return UNDEFINED

    if isinstance(node, ast.Dict):
        out = {}
        for key, value in zip(node.keys, node.values):
            # key is None for '**spread' entries
            if not (isinstance(key, ast.Constant) and isinstance(key.value, str)):
                return UNDEFINED
            extracted = extract_literal(value)
            if extracted is UNDEFINED:
                return UNDEFINED
            out[key.value] = extracted
        return out

    if isinstance(node, (ast.List, ast.Tuple)):
        items = []
        for elt in node.elts:
            extracted = extract_literal(elt)
            if extracted is UNDEFINED:
                return UNDEFINED
            items.append(extracted)
        return items

    if isinstance(node, ast.Subscript):
        head = dotted_name(node.value)
        args = subscript_args(node)
        if head in _LITERAL_NAMES:
            if len(args) != 1:
                return UNDEFINED
            return extract_literal(args[0])
        if head in _TUPLE_NAMES:
            if any(isinstance(arg, ast.Constant) and arg.value is Ellipsis for arg in args):
                return UNDEFINED
            items = []
            for arg in args:
                extracted = extract_literal(arg)
                if extracted is UNDEFINED:
                    return UNDEFINED
                items.append(extracted)
            return items
        return UNDEFINED

    return UNDEFINED


def to_literal_source(value: Any) -> str:
    """Render a literal value back into source text that extracts to the same value."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return repr(value)
    if isinstance(value, dict):
        if not all(isinstance(k, str) for k in value):
            raise TypeError("Only string keys can be rendered as literal source")
        body = ", ".join(f"{k!r}: {to_literal_source(v)}" for k, v in value.items())
        return "{" + body + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_literal_source(v) for v in value) + "]"
    raise TypeError(f"Cannot render {type(value).__name__} as literal source")


def extract_literal_source(source: str) -> Any:
    """Parse an expression string and extract its literal value."""
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError:
        return UNDEFINED
    return extract_literal(tree.body)
