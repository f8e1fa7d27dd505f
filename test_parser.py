"""Parser Testing Strategy:

 1. Handpicked inputs whose parse must equal the parse of an explicitly
    parenthesized equivalent, plus one check per diagnostic the parser can
    give (message and the column it points at).
 2. Generative tests: random operation trees are pretty printed to infix with
    `unparse` and must parse back to an equal tree; random operator pairs and
    nesting depths check that precedence and parentheses bind as they should.
"""
import math

import pytest
from hypothesis import example, given, strategies as st

from expr_errors import LexError, ParseError
from expr_parser import *
from expr_tree import *
from simplifier import simplify_expr


def test_parse_roundtrips_handpicked():
    equiv_exprs = [
        ["0.1 + 0.2 + 0.3", "(0.1 + 0.2) + 0.3"],
        ["1 + 2 * 3", "1 + (2 * 3)"],
        ["(1 + 2) * 3"],
        ["2^3^4", "(2^3)^4"],
        ["2 * x^-1", "2*(x^(-1))"],
        ["sin(x)^2", "(sin(x))^2", "((sin((x))))^2"],
        ["1 / sqrt(1 - x^2)", "1/(sqrt((1-(x^2))))"],
        ["-1 * sin(y) - 3", "((-1)*sin(y))-3"],
    ]
    for canon, *equivs in equiv_exprs:
        canon_ast = to_ast(canon)
        assert canon == unparse(canon_ast)
        for equiv in equivs:
            assert to_ast(equiv) == canon_ast
            assert to_ast(unparse(to_ast(equiv))) == canon_ast


def test_associativity():
    assert to_ast("1 * 2 * 3") == to_ast("(1 * 2) * 3")
    assert to_ast("1 * 2 * 3") != to_ast("1 * (2 * 3)")
    assert to_ast("1 / 2 / 3") == to_ast("(1 / 2) / 3")
    assert to_ast("1 - 2 + 3") == to_ast("(1 - 2) + 3")
    # Equal priorities reduce leftmost first, so ^ groups to the left too.
    assert to_ast("1^2^3") == to_ast("(1^2)^3")
    assert to_ast("1^2^3") != to_ast("1^(2^3)")


def test_node_shapes():
    ast = to_ast("2 * sin(x) + y")
    assert ast == BinaryOp(
        ADD,
        BinaryOp(MUL, Number(2.0), Function(FUNCS["sin"], Variable("x"))),
        Variable("y"),
    )
    assert ast.source.text == "+" and ast.source.column == 12
    assert ast.left.right.source.text == "sin"


def test_negative_literals():
    assert to_ast("-2") == Number(-2.0)
    assert to_ast("3 -2") == BinaryOp(SUB, Number(3.0), Number(2.0))
    assert to_ast("x - -2") == BinaryOp(SUB, Variable("x"), Number(-2.0))
    assert to_ast("x^-2") == BinaryOp(POW, Variable("x"), Number(-2.0))
    assert to_ast("1e-3 * x") == BinaryOp(MUL, Number(0.001), Variable("x"))


def test_priorities():
    tokens = tokenize("sin((x))")
    assert [(t.kind, t.priority) for t in tokens] == [
        (Kind.FUNCTION, 4),
        (Kind.PAREN_OPEN, 5),
        (Kind.PAREN_OPEN, 5 + PAREN_OFFSET),
        (Kind.IDENTIFIER, 4 + 2 * PAREN_OFFSET),
        (Kind.PAREN_CLOSE, PAREN_OFFSET),
        (Kind.PAREN_CLOSE, 0),
    ]
    assert PAREN_OFFSET > max(BASE_PRIORITY.values())
    assert PAREN_OFFSET > max(op.prec for op in OPS.values())


def test_pending_sequence_extract_relinks():
    seq = PendingSequence()
    for entry in "abcd":
        seq.append(entry)
    assert seq.extract(0) == "a"
    assert seq.extract(2) == "c"
    assert list(seq) == ["b", "d"] and len(seq) == 2
    assert (seq.first, seq.last) == (1, 3)
    assert (seq.prev[3], seq.next[1]) == (1, 3)
    seq.extract(3)
    assert (seq.first, seq.last) == (1, 1)
    assert seq.slots == [None, "b", None, None]


def parse_error(source):
    with pytest.raises(ParseError) as excinfo:
        to_ast(source)
    err = excinfo.value
    return err.message, err.token and (err.token.text, err.token.column)


def test_parse_errors():
    assert parse_error("") == ("Cannot parse empty input", None)
    assert parse_error("   ") == ("Cannot parse empty input", None)
    assert parse_error("(2+3") == ("Expected a closing parenthesis", ("(", 1))
    assert parse_error("(2 3)") == ("Expected a closing parenthesis", ("3", 4))
    assert parse_error("2)") == ("Unmatched closing parenthesis", (")", 2))
    assert parse_error("* 2") == ("Expected an operand to the left", ("*", 1))
    assert parse_error("2 +") == ("Expected an operand to the right", ("+", 3))
    assert parse_error("sin") == ("Expected an operand to the right", ("sin", 1))
    expected = "Expression does not evaluate to a single value"
    assert parse_error("2 3") == (expected, ("2", 1))
    assert parse_error("(2)(3)") == (expected, ("(", 1))


def test_unexpected_tokens_follow_priority_order():
    unexpected = "Invalid syntax, this token was not expected"
    # `*` outranks `+`, so `*` is reduced first and trips over the `+`.
    assert parse_error("2 + * 3") == (unexpected, ("+", 3))
    # `sin` and `x` tie; the leftmost one, `sin`, goes first.
    assert parse_error("sin x") == (unexpected, ("x", 5))
    assert parse_error("()") == (unexpected, (")", 2))


def test_lex_errors():
    with pytest.raises(LexError) as excinfo:
        to_ast("2 $ 3")
    assert excinfo.value.token.text == "$"
    assert excinfo.value.column == 3
    # Identifiers are ASCII only, the same rule derivation variables follow.
    for source, bad in [("é + 1", "é"), ("2 * xé", "é"), ("ñ", "ñ")]:
        with pytest.raises(LexError) as excinfo:
            to_ast(source)
        assert excinfo.value.token.text == bad


def test_inf_and_nan_literals():
    assert to_ast("inf") == Number(math.inf)
    assert to_ast("x^-inf") == BinaryOp(POW, Variable("x"), Number(-math.inf))
    assert math.isnan(to_ast("nan").value)
    assert to_ast("info + nano") == BinaryOp(ADD, Variable("info"), Variable("nano"))
    assert not is_variable("inf") and not is_variable("nan")

    for source, expected in [("1/0", "inf"), ("-1/0", "-inf"), ("ln(-1)", "nan")]:
        text = unparse(simplify_expr(to_ast(source)))
        assert text == expected
        assert unparse(to_ast(text)) == text


unary_funcs = st.sampled_from(list(FUNCS.values()))
binary_ops = st.sampled_from(list(OPS.values()))
numbers = st.floats(min_value=0, allow_nan=False).map(Number)
variables = st.sampled_from(["x", "y", "a"]).map(Variable)


# An ast is either a number or a variable, or, recursively, a function
# applied to an ast or a binary operator applied to two asts.
ast = st.recursive(
    numbers | variables,
    lambda child_ast: st.builds(Function, unary_funcs, child_ast)
    | st.builds(BinaryOp, binary_ops, child_ast, child_ast),
)


@given(ast)
@example(ast=BinaryOp(POW, BinaryOp(DIV, Number(0.0), Number(0.0)), Number(0.0)))
@example(ast=BinaryOp(SUB, Number(1.0), BinaryOp(SUB, Number(2.0), Number(1e16))))
@example(ast=Number(math.inf))
@example(ast=BinaryOp(SUB, Variable("x"), Number(-math.inf)))
def test_parse_roundtrips(ast):
    assert to_ast(unparse(ast)) == ast, "Didn't roundtrip"


@given(binary_ops, binary_ops, st.sampled_from(["1", "x", "sin(x)", "2.5"]))
def test_precedence_without_parentheses(o1, o2, atom):
    a, b, c = (Variable(v) for v in "abc")
    parsed = to_ast(f"a {o1.op} b {o2.op} c")
    if o2.prec > o1.prec:
        assert parsed == BinaryOp(o1, a, BinaryOp(o2, b, c))
    else:
        assert parsed == BinaryOp(o2, BinaryOp(o1, a, b), c)
    operand = to_ast(atom)
    assert to_ast(f"{atom} {o1.op} {atom}") == BinaryOp(o1, operand, operand)


@given(st.integers(min_value=1, max_value=8), binary_ops, binary_ops)
def test_parentheses_bind_tightest(depth, inner, outer):
    source = "(" * depth + f"a {inner.op} b" + ")" * depth + f" {outer.op} c"
    assert to_ast(source) == BinaryOp(
        outer, BinaryOp(inner, Variable("a"), Variable("b")), Variable("c")
    )
    source = f"c {outer.op} " + "(" * depth + f"a {inner.op} b" + ")" * depth
    assert to_ast(source) == BinaryOp(
        outer, Variable("c"), BinaryOp(inner, Variable("a"), Variable("b"))
    )
