"""Structured failures raised while lexing, parsing and deriving expressions.

Nothing in here prints or exits; `diagnostic` renders an error for whoever
talks to the user.
"""


class DerivError(Exception):
    """Base error: a message plus the offending token (if there is one)."""

    kind = "Invalid input"

    def __init__(self, message, token=None):
        super().__init__(message)
        self.message = message
        self.token = token

    @property
    def column(self):
        return self.token.column if self.token is not None else None

    def __str__(self):
        if self.token is None:
            return self.message
        return f"{self.message} (token {self.token.text!r} at column {self.column})"


class LexError(DerivError):
    kind = "Invalid token"


class ParseError(DerivError):
    kind = "Parsing error on token"


class InvalidVariableError(DerivError):
    kind = "Invalid derivation variable"


class EvaluationError(DerivError):
    """The derivative cannot be evaluated as asked, e.g. it has free variables left."""


def diagnostic(err, source):
    """Render `err` with the source line and a caret under the culprit.

    >>> from expr_parser import to_ast
    >>> try:
    ...     to_ast("(2+3")
    ... except ParseError as e:
    ...     print(diagnostic(e, "(2+3"))
    Parsing error on token `(` at column 1:
    <BLANKLINE>
    (2+3
    ^
    <BLANKLINE>
    Expected a closing parenthesis
    """
    if err.token is None:
        return f"Invalid input:\n{err.message}"
    col = err.column
    return "\n".join(
        [
            f"{err.kind} `{err.token.text}` at column {col}:",
            "",
            source,
            " " * (col - 1) + "^",
            "",
            err.message,
        ]
    )
