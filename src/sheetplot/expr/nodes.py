"""
Expression nodes for column expressions.

A compiled x/y expression is an immutable tree of ``Number`` literals,
``ColumnRef`` references (1-based column indexes), ``BinaryOp`` arithmetic and
``Negate``. Trees are built once by the parser and evaluated per row or per
whole column by ``sheetplot.expr.evaluate``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Union

BINARY_OPERATORS = ("+", "-", "*", "/", "%", "^")


@dataclass(frozen=True)
class Number:
    """A numeric literal."""

    value: float

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class ColumnRef:
    """Reference to an input column by 1-based index."""

    index: int

    def __str__(self) -> str:
        return f"#{self.index}"


@dataclass(frozen=True)
class BinaryOp:
    """Binary arithmetic: ``+ - * / % ^``."""

    op: str
    left: "Expr"
    right: "Expr"

    def __post_init__(self):
        if self.op not in BINARY_OPERATORS:
            raise ValueError(f"Unknown binary operator: {self.op!r}")

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class Negate:
    """Unary minus."""

    operand: "Expr"

    def __str__(self) -> str:
        return f"(-{self.operand})"


Expr = Union[Number, ColumnRef, BinaryOp, Negate]


def walk(expr: Expr) -> Iterator[Expr]:
    """Yield every node of the tree in pre-order."""
    yield expr
    match expr:
        case BinaryOp(left=left, right=right):
            yield from walk(left)
            yield from walk(right)
        case Negate(operand=operand):
            yield from walk(operand)


def referenced_columns(expr: Expr) -> list[int]:
    """Return the sorted, de-duplicated column indexes used by ``expr``."""
    return sorted({node.index for node in walk(expr) if isinstance(node, ColumnRef)})
