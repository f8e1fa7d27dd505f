"""Command line front end: print the derivative of an expression.

    $ symderiv "x * sin(x)"
    f' = 1 * sin(x) + x * (cos(x) * 1)
    $ symderiv "x^2" --identities --at 3
    f' = 2 * x
    f'(3) = 6

Set DEBUG (or pass -v) to log each parser reduction.
"""
import argparse
import logging
import os
import sys

from derivative import check_variable, derive
from expr_errors import DerivError, EvaluationError, InvalidVariableError, diagnostic
from expr_parser import to_tree
from expr_tree import canonicalize_num, evaluator, format_tree, free_vars
from simplifier import simplify

DEBUG = bool(os.getenv("DEBUG", False))


def make_parser():
    parser = argparse.ArgumentParser(
        prog="symderiv", description="Differentiate a single-variable expression."
    )
    parser.add_argument("function", help="the expression to differentiate")
    parser.add_argument(
        "-d",
        "--derivation-variable",
        default="x",
        help="the variable to differentiate with respect to (default: %(default)s)",
    )
    parser.add_argument(
        "--tree", action="store_true", help="also print the derivative as a tree"
    )
    parser.add_argument(
        "--no-simplify", action="store_true", help="print the raw derivative"
    )
    parser.add_argument(
        "--identities",
        action="store_true",
        help="also drop *1, +0, -0, /1, ^1 and ^0 when simplifying",
    )
    parser.add_argument(
        "--at",
        type=float,
        metavar="VALUE",
        help="also evaluate the derivative with the variable set to VALUE",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(args):
    var = check_variable(args.derivation_variable)
    tree = derive(to_tree(args.function), var)
    if not args.no_simplify:
        tree = simplify(tree, identities=args.identities)
    print(tree)
    if args.tree:
        print(format_tree(tree.root))
    if args.at is not None:
        if other := free_vars(tree.root) - {var}:
            raise EvaluationError(
                f"Cannot evaluate at {var} = {canonicalize_num(args.at)}, "
                f"other free variables: {', '.join(sorted(other))}"
            )
        f = evaluator(tree.root)
        value = f(args.at) if var in free_vars(tree.root) else f()
        print(f"{tree.name}({canonicalize_num(args.at)}) = {canonicalize_num(value)}")
    return tree


def main(argv=None):
    args = make_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if DEBUG or args.verbose else logging.WARNING,
        format="%(levelname)s:%(name)s: %(message)s",
    )
    try:
        run(args)
    except InvalidVariableError as e:
        print(diagnostic(e, args.derivation_variable), file=sys.stderr)
        return 1
    except DerivError as e:
        print(diagnostic(e, args.function), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
