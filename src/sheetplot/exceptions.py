"""
Exception classes for sheetplot.

These exceptions are used throughout the sheetplot package to signal error conditions
while compiling expressions, parsing operator sequences, transforming datasheets,
reading and writing checkpoints, and talking to external tools.

Every error is fatal to the current invocation. The only recovered condition in the
package is a cache miss, which is not an error at all.
"""

from typing import Optional


class SheetplotError(Exception):
    """Base class for every error raised by sheetplot."""
    pass


def caret_pointer(text: str, position: int) -> str:
    """Render ``text`` with a caret under ``position`` on the next line."""
    return f"{text}\n{' ' * max(position, 0)}^"


# Expression errors

class ExpressionError(SheetplotError):
    """Raised when an x/y column expression cannot be compiled or evaluated."""
    pass


class ParseError(ExpressionError):
    """Raised when an expression is lexically or syntactically malformed.

    Attributes:
        detail: Short description of the problem
        expression: The full expression text
        position: 0-based character offset of the offending input
        pointer: ``expression`` followed by a caret line marking ``position``
    """

    label = "Parse error"

    def __init__(self, detail: str, expression: str = "", position: int = 0) -> None:
        self.detail = detail
        self.expression = expression
        self.position = position
        self.pointer = caret_pointer(expression, position)
        super().__init__(f"{self.label}: {detail}\n{self.pointer}")


class InvalidCharacter(ParseError):
    """Raised for a character that cannot start any token."""

    label = "Invalid character"


class InvalidNumber(ParseError):
    """Raised for malformed numeric literals such as ``1.2.3``, ``.`` or ``2x``."""

    label = "Invalid number format"


class InvalidColumnReference(ParseError):
    """Raised for ``#``/``@`` references that are empty, malformed or unknown."""

    label = "Invalid column reference"


class UnexpectedToken(ParseError):
    """Raised when the parser meets a token the grammar does not allow there."""

    label = "Unexpected token"


class MismatchedParentheses(ParseError):
    """Raised when a ``(`` is not closed by a matching ``)``."""

    label = "Mismatched parentheses"


class EvaluationError(ExpressionError):
    """Raised when a compiled expression fails on actual data."""
    pass


class ColumnNotFound(EvaluationError):
    """Raised when an expression references a column the input does not have."""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Column #{index} not found")


class RowIndexOutOfBounds(EvaluationError):
    """Raised when a row index lies beyond the end of a referenced column."""

    def __init__(self, row: int) -> None:
        self.row = row
        super().__init__(f"Row index {row} out of bounds")


class ColumnsDifferentLengths(EvaluationError):
    """Raised when columns that must be aligned have different lengths."""

    def __init__(self, lengths) -> None:
        self.lengths = tuple(lengths)
        super().__init__(f"Columns have different lengths: {list(self.lengths)}")


class NonFiniteNumber(EvaluationError):
    """Raised as soon as any leaf or intermediate result is INF or NaN.

    Non-finite values are never propagated silently into a datasheet built from
    expressions: ``#1/0`` fails instead of producing ``inf``.
    """

    def __init__(self, row: Optional[int] = None) -> None:
        self.row = row
        where = "" if row is None else f" in row {row}"
        super().__init__(f"Non-finite result (inf or NaN){where}")


# Operator errors

class OpSeqParseError(SheetplotError):
    """Raised when an operator-sequence string is malformed.

    This covers unknown opcodes, wrong argument counts and out-of-range
    arguments. The offending substring and its offset are kept so the caller
    can point at it.
    """

    def __init__(self, message: str, fragment: str = "", position: int = 0) -> None:
        self.fragment = fragment
        self.position = position
        super().__init__(f"{message} (at {position}: {fragment!r})")


class PreconditionError(SheetplotError):
    """Raised when data violates the precondition of a transform operator.

    Examples:
        - Derivative or Integral over an x column with duplicated values
        - Sort, CDF, Derivative or Integral over a column containing INF/NAN
    """
    pass


# Cache errors

class CacheError(SheetplotError):
    """Raised for unreadable or inconsistent checkpoint files.

    Common causes include:
        - Missing metadata delimiter or malformed YAML header
        - Header fields that fail validation
        - A recorded history that does not extend monotonically
        - A payload that is not a two-column numeric table
    """
    pass


# I/O and collaborator errors

class InputError(SheetplotError):
    """Raised when the raw input cannot be read as a numeric table."""
    pass


class CollaboratorError(SheetplotError):
    """Raised when an external tool (gnuplot, mlr) fails or is missing."""
    pass


class PipelineError(SheetplotError):
    """Raised by the pipeline driver when a step fails.

    The original exception is chained as ``__cause__``.

    Attributes:
        index: Index of the failing operator within the sequence, or None when the
               failure happened while loading the input
        opcode: Opcode of the failing operator, if any
    """

    def __init__(self, message: str, index: Optional[int] = None, opcode: Optional[str] = None) -> None:
        self.index = index
        self.opcode = opcode
        super().__init__(message)
