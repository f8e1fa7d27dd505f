"""Symbolic differentiation of operation trees.

`derive_expr` applies the usual rule table recursively. The result is a new
tree; whenever a rule keeps an operand as it is (one factor of a product
rule term, say) the original node is referenced, not copied:

>>> from expr_parser import to_ast
>>> from expr_tree import unparse
>>> f = to_ast("x * sin(x)")
>>> df = derive_expr(f, "x")
>>> unparse(df)
'1 * sin(x) + x * (cos(x) * 1)'
>>> df.left.right is f.right
True
"""
import logging

from expr_errors import InvalidVariableError
from expr_parser import Kind, Token, is_variable
from expr_tree import (
    FUNCS,
    OPS,
    BinaryOp,
    Function,
    FunctionTree,
    Number,
    Variable,
    rewrite,
)
from simplifier import simplify_expr

logger = logging.getLogger(__name__)


class _Nodes:
    """Node constructors stamping each new node with the same source token."""

    def __init__(self, source):
        self.source = source

    def num(self, value):
        return Number(float(value), self.source)

    def func(self, name, arg):
        return Function(FUNCS[name], arg, self.source)

    def _op(sym):
        def make(self, left, right):
            return BinaryOp(OPS[sym], left, right, self.source)

        return make

    add, sub, mul, div, pow = map(_op, "+-*/^")
    del _op


# f'(u) for a node f(u), given as (nodes, f(u), u); f(u) itself may be reused.
FUNCTION_DERIVATIVES = {
    "sin": lambda n, f, u: n.func("cos", u),
    "cos": lambda n, f, u: n.mul(n.num(-1), n.func("sin", u)),
    "tan": lambda n, f, u: n.pow(n.func("sec", u), n.num(2)),
    "asin": lambda n, f, u: n.div(
        n.num(1), n.func("sqrt", n.sub(n.num(1), n.pow(u, n.num(2))))
    ),
    "acos": lambda n, f, u: n.div(
        n.num(-1), n.func("sqrt", n.sub(n.num(1), n.pow(u, n.num(2))))
    ),
    "atan": lambda n, f, u: n.div(n.num(1), n.add(n.num(1), n.pow(u, n.num(2)))),
    "sqrt": lambda n, f, u: n.div(n.num(1), n.mul(n.num(2), f)),
    "ln": lambda n, f, u: n.div(n.num(1), u),
    "sec": lambda n, f, u: n.mul(f, n.func("tan", u)),
    "exp": lambda n, f, u: f,
}
assert FUNCTION_DERIVATIVES.keys() == FUNCS.keys()


def _derive_node(node, var, d):
    n = _Nodes(node.source)
    if isinstance(node, Number):
        return n.num(0)
    if isinstance(node, Variable):
        return n.num(1 if node.name == var else 0)
    if isinstance(node, Function):
        outer = FUNCTION_DERIVATIVES[node.func.name](n, node, node.arg)
        return n.mul(outer, d(node.arg))

    a, b = node.left, node.right
    sym = node.op.op
    if sym == "+":
        return n.add(d(a), d(b))
    if sym == "-":
        return n.sub(d(a), d(b))
    if sym == "*":
        return n.add(n.mul(d(a), b), n.mul(a, d(b)))
    if sym == "/":
        return n.div(n.sub(n.mul(d(a), b), n.mul(a, d(b))), n.pow(b, n.num(2)))

    # a^b: a constant exponent gets the plain power rule, anything else is
    # differentiated as exp(b * ln(a)).
    db = d(b)
    if simplify_expr(db) == Number(0.0):
        logger.debug("constant exponent at column %s", getattr(node.source, "column", None))
        return n.mul(n.mul(b, n.pow(a, n.sub(b, n.num(1)))), d(a))
    logger.debug("variable exponent at column %s", getattr(node.source, "column", None))
    ln_a = n.func("ln", a)
    return n.mul(
        n.func("exp", n.mul(b, ln_a)),
        n.add(n.mul(db, ln_a), n.div(n.mul(b, d(a)), a)),
    )


def derive_expr(expr, var):
    """Differentiate `expr` with respect to the variable named `var`.

    >>> from expr_parser import to_ast
    >>> from expr_tree import unparse
    >>> unparse(derive_expr(to_ast("x^2"), "x"))
    '2 * x^(2 - 1) * 1'
    >>> unparse(derive_expr(to_ast("2^x"), "x"))
    'exp(x * ln(2)) * (1 * ln(2) + x * 0 / 2)'
    """
    return rewrite(expr, lambda node, d: _derive_node(node, var, d))


def check_variable(var):
    if not is_variable(var):
        raise InvalidVariableError(
            f"`{var}` is not a valid variable name",
            Token(Kind.IDENTIFIER, var, 1, 0),
        )
    return var


def derive(tree, var="x"):
    """Differentiate a `FunctionTree`; the result is named after it, primed.

    >>> from expr_parser import to_tree
    >>> print(derive(to_tree("sin(x)"), "x"))
    f' = cos(x) * 1
    >>> derive(to_tree("sin(x)"), "2x")
    Traceback (most recent call last):
      ...
    expr_errors.InvalidVariableError: `2x` is not a valid variable name (token '2x' at column 1)
    """
    check_variable(var)
    return FunctionTree(derive_expr(tree.root, var), tree.name + "'")
