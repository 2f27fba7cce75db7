"""Tests for compile-time literal extraction."""

import ast

import pytest

from mcpdecl.kernel.literals import (
    UNDEFINED,
    extract_literal,
    extract_literal_source,
    literal_members,
    to_literal_source,
)


def _expr(source: str) -> ast.AST:
    return ast.parse(source, mode="eval").body


@pytest.mark.parametrize("source,expected", [
    ('"hello"', "hello"),
    ("42", 42),
    ("-1.5", -1.5),
    ("+3", 3),
    ("True", True),
    ("None", None),
    ('Literal["get_weather"]', "get_weather"),
    ('typing.Literal[8080]', 8080),
    ('{"version": "1.0.0", "features": ["a", "b"]}', {"version": "1.0.0", "features": ["a", "b"]}),
    ("(1, 2)", [1, 2]),
    ('tuple[1, "x"]', [1, "x"]),
    ("{}", {}),
])
def test_extract_literal(source, expected):
    assert extract_literal(_expr(source)) == expected


@pytest.mark.parametrize("source", [
    "os.environ",
    "get_version()",
    '{"version": get_version()}',
    '["a", name]',
    '{1: "int key"}',
    '{**base, "x": 1}',
    'Literal["a", "b"]',
    "tuple[int, ...]",
    "-True",
    'f"{x}"',
])
def test_non_literal_is_undefined(source):
    assert extract_literal(_expr(source)) is UNDEFINED


def test_nested_non_literal_poisons_whole_value():
    node = _expr('{"outer": {"inner": [1, 2, compute()]}}')
    assert extract_literal(node) is UNDEFINED


def test_undefined_is_falsy_singleton():
    assert not UNDEFINED
    assert repr(UNDEFINED) == "UNDEFINED"
    assert type(UNDEFINED)() is UNDEFINED


@pytest.mark.parametrize("value", [
    None,
    True,
    0,
    -7,
    2.5,
    "text with 'quotes'",
    {"a": 1, "b": [True, None, {"c": "d"}]},
    [],
])
def test_to_literal_source_extracts_to_same_value(value):
    assert extract_literal_source(to_literal_source(value)) == value


def test_to_literal_source_rejects_non_string_keys():
    with pytest.raises(TypeError):
        to_literal_source({1: "x"})


def test_to_literal_source_rejects_objects():
    with pytest.raises(TypeError):
        to_literal_source(object())


def test_extract_literal_source_syntax_error():
    assert extract_literal_source("{unclosed") is UNDEFINED


def test_literal_members():
    assert literal_members(_expr('Literal["celsius", "fahrenheit"]')) == ["celsius", "fahrenheit"]
    assert literal_members(_expr("str")) is UNDEFINED
