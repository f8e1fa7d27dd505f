"""Bottom-up simplification of operation trees.

One post-order pass: children first, then the node's own rule. It folds
constant subtrees and drops products and quotients with a zero factor or
numerator. It does not iterate to a fixed point, and by default knows no
identity rules, so `x * 1` stays as it is:

>>> from expr_parser import to_ast
>>> from expr_tree import unparse
>>> unparse(simplify_expr(to_ast("(2 + 3) * x * 1 + 0 * sin(x)")))
'5 * x * 1 + 0'
>>> unparse(simplify_expr(to_ast("(2 + 3) * x * 1 + 0 * sin(x)"), identities=True))
'5 * x'
"""
from expr_tree import (
    BinaryOp,
    Function,
    FunctionTree,
    Number,
    Variable,
    apply_numeric,
    rewrite,
)


def _is_num(expr, value):
    return isinstance(expr, Number) and expr.value == value


def _identity(sym, left, right, source):
    if sym == "*":
        if _is_num(left, 1):
            return right
        if _is_num(right, 1):
            return left
    elif sym == "+":
        if _is_num(left, 0):
            return right
        if _is_num(right, 0):
            return left
    elif sym == "-":
        if _is_num(right, 0):
            return left
    elif sym == "/":
        if _is_num(right, 1):
            return left
    elif sym == "^":
        if _is_num(right, 1):
            return left
        if _is_num(right, 0):
            return Number(1.0, source)
    return None


def _simplify_node(node, simplify, identities):
    if isinstance(node, (Number, Variable)):
        return node
    if isinstance(node, Function):
        arg = simplify(node.arg)
        if isinstance(arg, Number):
            return Number(apply_numeric(node.func, arg.value), node.source)
        return node if arg is node.arg else Function(node.func, arg, node.source)

    left, right = simplify(node.left), simplify(node.right)
    sym = node.op.op
    # 0 absorbs the other operand whatever it is, 0/0 included.
    if sym == "*" and (_is_num(left, 0) or _is_num(right, 0)):
        return Number(0.0, node.source)
    if sym == "/" and _is_num(left, 0):
        return Number(0.0, node.source)
    if isinstance(left, Number) and isinstance(right, Number):
        return Number(apply_numeric(node.op, left.value, right.value), node.source)
    if identities and (
        (reduced := _identity(sym, left, right, node.source)) is not None
    ):
        return reduced
    if left is node.left and right is node.right:
        return node
    return BinaryOp(node.op, left, right, node.source)


def simplify_expr(expr, identities=False):
    """Simplify `expr`; with `identities`, also drop `*1`, `+0`, `-0`, `/1`, `^1` and `^0`.

    >>> from expr_parser import to_ast
    >>> simplify_expr(to_ast("2^10"))
    Number(value=1024.0)
    >>> simplify_expr(to_ast("1/0"))
    Number(value=inf)
    """
    return rewrite(expr, lambda node, recurse: _simplify_node(node, recurse, identities))


def simplify(tree, identities=False):
    return FunctionTree(simplify_expr(tree.root, identities), tree.name)
