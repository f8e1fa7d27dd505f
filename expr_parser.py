"""Turn expression text into an operation tree.

Parsing does not use a grammar. Every token gets a priority (its kind's base
priority, plus a fixed offset for each enclosing pair of parentheses) and the
parser keeps reducing whichever pending token has the highest priority,
leftmost first on ties, until a single parsed node is left:

>>> [(t.text, t.priority) for t in tokenize("2*(x+1)")]
[('2', 4), ('*', 2), ('(', 5), ('x', 10), ('+', 7), ('1', 10), (')', 0)]
>>> to_ast("2*(x+1)") == to_ast("2 * (x + 1)")
True
"""
import dataclasses
import enum
import logging
import re
from typing import NamedTuple

from expr_errors import LexError, ParseError
from expr_tree import (
    FUNCS,
    OPS,
    BinaryOp,
    Function,
    FunctionTree,
    Number,
    Variable,
    unparse,
)

logger = logging.getLogger(__name__)


class Kind(enum.Enum):
    OPERATOR = "operator"
    NUMBER = "number"
    IDENTIFIER = "identifier"
    FUNCTION = "function"
    PAREN_OPEN = "("
    PAREN_CLOSE = ")"


# Operators take their base priority from their precedence in `OPS`.
BASE_PRIORITY = {
    Kind.PAREN_CLOSE: 0,
    Kind.IDENTIFIER: 4,
    Kind.NUMBER: 4,
    Kind.FUNCTION: 4,
    Kind.PAREN_OPEN: 5,
}
PAREN_OFFSET = max(BASE_PRIORITY.values()) + 1


class Token(NamedTuple):
    kind: Kind
    text: str
    column: int  # 1-based
    priority: int

    def __repr__(self):
        return f"Token({self.text!r}, col={self.column}, prio={self.priority})"


IDENTIFIER = r"[_a-zA-Z][_a-zA-Z0-9]*"
IDENTIFIER_REX = re.compile(IDENTIFIER)
# inf and nan are literals too, so folded 1/0 or ln(-1) render and parse back.
NUMBER = r"(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|(?:inf|nan)(?![_a-zA-Z0-9]))"
NUMBER_REX = re.compile(NUMBER)
TOKEN_REX = re.compile(rf"{IDENTIFIER}|{NUMBER}|[-+*/^()]|\S")


def is_variable(text):
    """
    >>> [is_variable(t) for t in ["x", "_t1", "sin", "inf", "2x", "é"]]
    [True, True, False, False, False, False]
    """
    return bool(
        IDENTIFIER_REX.fullmatch(text)
        and text not in FUNCS
        and not NUMBER_REX.fullmatch(text)
    )


def _classify(text, column):
    if NUMBER_REX.fullmatch(text.removeprefix("-")):
        kind = Kind.NUMBER
    elif text in OPS:
        return Token(Kind.OPERATOR, text, column, OPS[text].prec)
    elif text == "(":
        kind = Kind.PAREN_OPEN
    elif text == ")":
        kind = Kind.PAREN_CLOSE
    elif text in FUNCS:
        kind = Kind.FUNCTION
    elif is_variable(text):
        kind = Kind.IDENTIFIER
    else:
        raise LexError(
            "String is not a valid token.", Token(None, text, column, 0)
        )
    return Token(kind, text, column, BASE_PRIORITY[kind])


def lex(source):
    """Split `source` into tokens carrying their base priority.

    A `-` directly in front of a number literal is part of the literal when
    an operand is expected (at the start, after an operator or `(`):

    >>> [t.text for t in lex("-1 - 2*x^-0.5")]
    ['-1', '-', '2', '*', 'x', '^', '-0.5']
    """
    pos = 0
    prev = None
    while m := TOKEN_REX.search(source, pos):
        text, start = m.group(), m.start()
        pos = m.end()
        if (
            text == "-"
            and (prev is None or prev.kind in (Kind.OPERATOR, Kind.PAREN_OPEN))
            and (num := NUMBER_REX.match(source, pos))
        ):
            text, pos = source[start : num.end()], num.end()
        prev = _classify(text, start + 1)
        yield prev


def tokenize(source):
    """Lex `source` and resolve each token's positional priority."""
    offset = 0
    tokens = []
    for tok in lex(source):
        if tok.kind is Kind.PAREN_CLOSE:
            offset -= PAREN_OFFSET
        tokens.append(tok._replace(priority=tok.priority + offset))
        if tok.kind is Kind.PAREN_OPEN:
            offset += PAREN_OFFSET
    return tokens


class Unparsed(NamedTuple):
    token: Token
    priority: int


def _source(entry):
    return entry.token if isinstance(entry, Unparsed) else entry.source


class PendingSequence:
    """A doubly linked list of pending parse entries, kept in index slots.

    Entries are either `Unparsed` tokens or already parsed tree nodes.
    Extracting an entry vacates its slot and links its neighbours together.
    """

    def __init__(self):
        self.slots = []
        self.prev = []
        self.next = []
        self.first = self.last = None
        self.size = 0

    def __len__(self):
        return self.size

    def __iter__(self):
        i = self.first
        while i is not None:
            yield self.slots[i]
            i = self.next[i]

    def append(self, entry):
        i = len(self.slots)
        self.slots.append(entry)
        self.prev.append(self.last)
        self.next.append(None)
        if self.last is None:
            self.first = i
        else:
            self.next[self.last] = i
        self.last = i
        self.size += 1
        return i

    def extract(self, i):
        p, n = self.prev[i], self.next[i]
        if p is None:
            self.first = n
        else:
            self.next[p] = n
        if n is None:
            self.last = p
        else:
            self.prev[n] = p
        entry, self.slots[i] = self.slots[i], None
        self.prev[i] = self.next[i] = None
        self.size -= 1
        return entry

    def highest_priority(self):
        """Index of the leftmost unparsed entry with the highest priority."""
        best = None
        i = self.first
        while i is not None:
            entry = self.slots[i]
            if isinstance(entry, Unparsed) and (
                best is None or entry.priority > self.slots[best].priority
            ):
                best = i
            i = self.next[i]
        return best


def parse(tokens):
    """Build an operation tree from `tokens` (as returned by `tokenize`).

    >>> parse(tokenize("1 + 2 * 3")) == parse(tokenize("1 + (2 * 3)"))
    True
    >>> parse(tokenize("2^3^4")) == parse(tokenize("(2^3)^4"))
    True
    >>> parse(tokenize("2 3"))
    Traceback (most recent call last):
      ...
    expr_errors.ParseError: Expression does not evaluate to a single value (token '2' at column 1)
    """
    pending = PendingSequence()
    for tok in tokens:
        pending.append(Unparsed(tok, tok.priority))
    if not pending:
        raise ParseError("Cannot parse empty input")

    def take_parsed(i, tok, side):
        j = pending.prev[i] if side == "left" else pending.next[i]
        if j is None:
            raise ParseError(f"Expected an operand to the {side}", tok)
        entry = pending.extract(j)
        if isinstance(entry, Unparsed):
            raise ParseError("Invalid syntax, this token was not expected", entry.token)
        return entry

    while (i := pending.highest_priority()) is not None:
        tok, priority = pending.slots[i]
        if tok.kind is Kind.OPERATOR:
            left = take_parsed(i, tok, "left")
            right = take_parsed(i, tok, "right")
            node = BinaryOp(OPS[tok.text], left, right, tok)
        elif tok.kind is Kind.PAREN_OPEN:
            content = take_parsed(i, tok, "right")
            if (j := pending.next[i]) is None:
                raise ParseError("Expected a closing parenthesis", tok)
            close = pending.extract(j)
            if not (
                isinstance(close, Unparsed) and close.token.kind is Kind.PAREN_CLOSE
            ):
                raise ParseError("Expected a closing parenthesis", _source(close))
            # The parentheses are gone; the tree's shape keeps the grouping.
            node = dataclasses.replace(content, source=tok)
        elif tok.kind is Kind.FUNCTION:
            node = Function(FUNCS[tok.text], take_parsed(i, tok, "right"), tok)
        elif tok.kind is Kind.IDENTIFIER:
            node = Variable(tok.text, tok)
        elif tok.kind is Kind.NUMBER:
            node = Number(float(tok.text), tok)
        else:
            raise ParseError("Unmatched closing parenthesis", tok)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("reduced %r (priority %d) to %s", tok.text, priority, unparse(node))
        pending.slots[i] = node

    if len(pending) > 1:
        raise ParseError(
            "Expression does not evaluate to a single value",
            _source(pending.slots[pending.first]),
        )
    return pending.slots[pending.first]


def to_ast(source):
    return parse(tokenize(source))


def to_tree(source, name="f"):
    return FunctionTree(to_ast(source), name)
