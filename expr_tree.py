"""Operation trees for single-variable arithmetic expressions.

A tree is built from four immutable node types: `Number`, `Variable`,
`BinaryOp` and `Function`. Nodes never change once built, so any node may be
referenced from several parents (differentiation relies on that to reuse
un-derived subtrees), i.e. a "tree" is really a DAG.

Each node remembers the source token it came from, but the token does not
take part in equality, so two trees compare equal iff they have the same
shape:

>>> from expr_parser import to_ast
>>> to_ast("x * (y + 1)") == to_ast("x*(y+1)")
True
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Literal, NamedTuple, Union

import numpy as np


def canonicalize_num(num):
    """
    >>> canonicalize_num(2.0), canonicalize_num(0.5), canonicalize_num(float("inf"))
    ('2', '0.5', 'inf')
    """
    if not np.isfinite(num):
        return repr(float(num))
    return repr(integer if (integer := int(num)) == num else float(num))


class Op(NamedTuple):
    op: str
    prec: int
    assoc: Literal["l", "r"]  # left-associative, right-associative
    fun: Callable

    def __call__(self, *args):
        return self.fun(*args)

    def __repr__(self):
        return f"op({self.op!r:})"

    def left_first(self, other):
        return self.prec > other.prec or self.prec == other.prec and other.assoc == "l"


# One line per precedence level, lowest first. Equal priorities reduce
# leftmost first, so every level is left-associative (2^3^4 == (2^3)^4).
OP_GROUPS = """
add+l subtract-l
divide/l multiply*l
power^l
""".strip()
OPS = {
    o: Op(o, prec, assoc, getattr(np, fun))
    for prec, op_groups in enumerate(OP_GROUPS.split("\n"), 1)
    for [(fun, o, assoc)] in map(
        re.compile(r"^(\w+)(\W+)(\w+)$").findall, op_groups.split()
    )
}
ADD, SUB, MUL, DIV, POW = (OPS[o] for o in "+-*/^")


class Func(NamedTuple):
    name: str
    fun: Callable

    def __call__(self, arg):
        return self.fun(arg)

    def __repr__(self):
        return f"func({self.name!r:})"


def _sec(x):
    return 1 / np.cos(x)


FUNCS = {
    f.name: f
    for f in [
        Func("sin", np.sin),
        Func("cos", np.cos),
        Func("tan", np.tan),
        Func("asin", np.arcsin),
        Func("acos", np.arccos),
        Func("atan", np.arctan),
        Func("sqrt", np.sqrt),
        Func("ln", np.log),
        Func("sec", _sec),
        Func("exp", np.exp),
    ]
}


def apply_numeric(fun, *args):
    """Apply `fun` (an `Op` or `Func`) to floats, IEEE style.

    Division by zero, overflow and domain errors give inf/nan instead of
    raising.

    >>> apply_numeric(OPS["/"], 1.0, 0.0)
    inf
    >>> apply_numeric(FUNCS["ln"], -1.0)
    nan
    >>> apply_numeric(OPS["^"], 2.0, 10.0)
    1024.0
    """
    with np.errstate(all="ignore"):
        return float(fun(*map(np.float64, args)))


@dataclass(frozen=True)
class Number:
    value: float
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Variable:
    name: str
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BinaryOp:
    op: Op
    left: "Expr"
    right: "Expr"
    source: object = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Function:
    func: Func
    arg: "Expr"
    source: object = field(default=None, compare=False, repr=False)


Expr = Union[Number, Variable, BinaryOp, Function]


@dataclass(frozen=True)
class FunctionTree:
    """A complete, named expression, e.g. the parsed input or its derivative."""

    root: Expr
    name: str = "f"

    def __str__(self):
        return f"{self.name} = {unparse(self.root)}"


def unparse(expr):
    """Render `expr` as infix text, with as few parentheses as possible.

    >>> from expr_parser import to_ast
    >>> unparse(to_ast("((1 + x)) * sin(2*x)^2"))
    '(1 + x) * sin(2 * x)^2'
    >>> unparse(to_ast("1 - (2 - 3)"))
    '1 - (2 - 3)'
    """
    if isinstance(expr, Number):
        return canonicalize_num(expr.value)
    if isinstance(expr, Variable):
        return expr.name
    if isinstance(expr, Function):
        return f"{expr.func.name}({unparse(expr.arg)})"
    o = expr.op
    x = unparse(expr.left)
    y = unparse(expr.right)
    if isinstance(expr.left, BinaryOp) and not expr.left.op.left_first(o):
        x = f"({x})"
    if isinstance(expr.right, BinaryOp) and o.left_first(expr.right.op):
        y = f"({y})"
    return f"{x} {o.op} {y}" if o.op != "^" else f"{x}^{y}"


def format_tree(expr, indent=0):
    """Render `expr` one node per line, children indented below their parent.

    >>> from expr_parser import to_ast
    >>> print(format_tree(to_ast("2 + cos(x)")))
    | +
      | 2
      | cos
        | x
    """
    pad = " " * indent + "| "
    if isinstance(expr, Number):
        return pad + canonicalize_num(expr.value)
    if isinstance(expr, Variable):
        return pad + expr.name
    if isinstance(expr, Function):
        return "\n".join([pad + expr.func.name, format_tree(expr.arg, indent + 2)])
    return "\n".join(
        [
            pad + expr.op.op,
            format_tree(expr.left, indent + 2),
            format_tree(expr.right, indent + 2),
        ]
    )


def children(expr):
    if isinstance(expr, BinaryOp):
        return (expr.left, expr.right)
    if isinstance(expr, Function):
        return (expr.arg,)
    return ()


def post_order(expr):
    """The distinct nodes under `expr`, each after all of its children.

    >>> from expr_parser import to_ast
    >>> [unparse(node) for node in post_order(to_ast("sin(x) + 2"))]
    ['x', 'sin(x)', '2', 'sin(x) + 2']
    """
    order = []
    seen = set()
    todo = [(expr, False)]
    while todo:
        node, expanded = todo.pop()
        if expanded:
            order.append(node)
        elif id(node) not in seen:
            seen.add(id(node))
            todo.append((node, True))
            todo.extend((child, False) for child in reversed(children(node)))
    return order


def rewrite(expr, rule):
    """Rewrite `expr` with `rule(node, recurse)`, visiting each node once.

    `recurse` is memoized by node identity, so a subtree shared by several
    parents is rewritten once and its rewrite is shared in the same way.
    Nodes are visited children first, so when `rule` recurses into a child
    the result is already there and the Python stack stays flat however
    deep `expr` is.
    """
    memo = {}

    def recurse(node):
        if (key := id(node)) not in memo:
            # Keep `node` alive so its id can't be reused during the rewrite.
            memo[key] = (node, rule(node, recurse))
        return memo[key][1]

    for node in post_order(expr):
        recurse(node)
    return recurse(expr)


def free_vars(expr):
    """Return the free variables in `expr`.

    >>> from expr_parser import to_ast
    >>> free_vars(to_ast("(b^2-4*a*c)^0.5/(2*a)")) == {'a', 'b', 'c'}
    True
    """
    return frozenset(
        node.name for node in post_order(expr) if isinstance(node, Variable)
    )


def count_nodes(expr):
    """Number of distinct nodes reachable from `expr`; shared nodes count once.

    >>> x = Variable("x")
    >>> count_nodes(BinaryOp(MUL, x, x))
    2
    """
    return len(post_order(expr))


def evaluator(expr, name="f_numpy"):
    """Return a function (named `name`) that evaluates `expr` with numpy.

    The returned function takes the free variables in `expr` in alphabetical
    order; each may be a float or an array.

    Examples:

    >>> from expr_parser import to_ast
    >>> print(evaluator(to_ast("a+2*b^3"))(.5, 1.))
    2.5
    >>> evaluator(to_ast("x^2"))(np.array([1.0, 2.0, 3.0]))
    array([1., 4., 9.])
    >>> print(evaluator(to_ast("a/0"))(-1.))
    -inf
    """
    nodes = post_order(expr)
    arg_names = sorted({node.name for node in nodes if isinstance(node, Variable)})

    def f(*args):
        env = dict(zip(arg_names, (np.asarray(arg, dtype=float) for arg in args)))
        values = {}

        def eval_node(node):
            if isinstance(node, Number):
                return np.float64(node.value)
            if isinstance(node, Variable):
                return env[node.name]
            if isinstance(node, Function):
                return node.func(values[id(node.arg)])
            return node.op(values[id(node.left)], values[id(node.right)])

        with np.errstate(all="ignore"):
            for node in nodes:
                values[id(node)] = eval_node(node)
        return values[id(expr)]

    f.__name__ = name

    return f
