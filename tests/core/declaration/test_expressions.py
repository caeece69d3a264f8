# tests/core/declaration/test_expressions.py
"""
Testes de templates `${...}` e valores UNKNOWN.

Os testes asseguram que:
- referências são decompostas em raiz, atributos, índices e chaves
- uma string que é exatamente um template preserva o tipo do valor
- interpolação converte bools, null e coleções em texto
- `$${` produz um `${` literal
- qualquer UNKNOWN interpolado torna a string inteira UNKNOWN
- UNKNOWN sobrevive à serialização via marcador `{"$unknown": true}`
"""

import json

import pytest

from graphform.core.declaration.expressions import (
    UNKNOWN,
    contains_unknown,
    decode_unknowns,
    encode_unknowns,
    evaluate,
    find_references,
    parse_reference,
    parse_template,
    traverse,
)
from graphform.core.exceptions import ExpressionError


def _resolver(values):
    def _resolve(ref):
        address, path = ref.target("")
        return traverse(values[address], path, text=ref.text)

    return _resolve


def test_parse_reference_with_accessors():
    ref = parse_reference('mem_object.web.tags["env"].ports[0]')
    assert ref.root == "mem_object"
    assert ref.parts == ("web", "tags", "env", "ports", 0)
    assert ref.target("") == ("mem_object.web", ("tags", "env", "ports", 0))


@pytest.mark.parametrize(
    "text,expected",
    [
        ("var.region", ("var.region", ())),
        ("local.names[1]", ("local.names", (1,))),
        ("module.net.vpc_id", ("module.net.output.vpc_id", ())),
        ("module.net.cfg.cidr", ("module.net.output.cfg", ("cidr",))),
    ],
)
def test_reference_targets(text, expected):
    assert parse_reference(text).target("") == expected


def test_reference_target_inside_module_is_prefixed():
    assert parse_reference("var.name").target("module.web.") == ("module.web.var.name", ())


def test_incomplete_reference_raises():
    with pytest.raises(ExpressionError):
        parse_reference("var").target("")
    with pytest.raises(ExpressionError):
        parse_reference("module.net").target("")


def test_invalid_syntax_raises():
    with pytest.raises(ExpressionError):
        parse_reference("var.x[")
    with pytest.raises(ExpressionError):
        parse_template("prefix-${var.x")


def test_parse_template_splits_literals_and_escapes():
    parts = parse_template("a-${var.x}-$${literal}")
    assert parts[0] == "a-"
    assert parts[1].text == "var.x"
    assert parts[2] == "-${literal}"


def test_find_references_walks_nested_values():
    value = {"a": ["${var.x}", {"b": "${local.y}-${var.x}"}], "c": 3}
    assert sorted(r.text for r in find_references(value)) == ["local.y", "var.x", "var.x"]


def test_whole_template_preserves_type():
    resolve = _resolver({"var.n": 3, "var.flags": [True, False]})
    assert evaluate("${var.n}", resolve) == 3
    assert evaluate("${var.flags}", resolve) == [True, False]


def test_interpolation_to_text():
    resolve = _resolver({"var.n": 3, "var.on": True, "var.none": None, "var.m": {"b": 1, "a": 2}})
    assert evaluate("n=${var.n} on=${var.on} none=${var.none}", resolve) == "n=3 on=true none=null"
    assert evaluate("m=${var.m}", resolve) == "m=" + json.dumps({"a": 2, "b": 1}, sort_keys=True)


def test_escape_is_not_evaluated():
    assert evaluate("$${var.x}", _resolver({})) == "${var.x}"


def test_evaluate_does_not_mutate_input():
    raw = {"list": ["${var.n}"], "k": "v"}
    out = evaluate(raw, _resolver({"var.n": 1}))
    assert out == {"list": [1], "k": "v"}
    assert raw == {"list": ["${var.n}"], "k": "v"}


def test_unknown_propagates():
    resolve = _resolver({"mem_object.a": UNKNOWN})
    assert evaluate("${mem_object.a.arn}", resolve) is UNKNOWN
    assert evaluate("arn=${mem_object.a.arn}", resolve) is UNKNOWN
    out = evaluate({"x": ["${mem_object.a.arn}"]}, resolve)
    assert contains_unknown(out)


def test_traverse_errors_on_missing_attribute_and_bad_index():
    with pytest.raises(ExpressionError):
        traverse({"a": 1}, ("b",), text="x.b")
    with pytest.raises(ExpressionError):
        traverse([1, 2], (5,), text="x[5]")


def test_unknown_marker_encoding():
    value = {"a": UNKNOWN, "b": [1, UNKNOWN]}
    encoded = encode_unknowns(value)
    assert encoded == {"a": {"$unknown": True}, "b": [1, {"$unknown": True}]}
    decoded = decode_unknowns(json.loads(json.dumps(encoded)))
    assert decoded["a"] is UNKNOWN
    assert decoded["b"][1] is UNKNOWN
    assert repr(UNKNOWN) == "(known after apply)"
