"""Evaluator for compiled column expressions.

Two entry points share one set of arithmetic kernels:

- ``evaluate_row`` walks the tree for a single row, the reference semantics
- ``evaluate_columns`` walks the tree once with numpy arrays, producing a
  whole column at a time

Both check every leaf and every intermediate result for finiteness and stop
at the first INF/NaN with ``NonFiniteNumber``.
"""

from __future__ import annotations

import logging
import operator
from typing import Any, Optional, Sequence

import numpy as np

from sheetplot.exceptions import (
    ColumnNotFound,
    ColumnsDifferentLengths,
    NonFiniteNumber,
    RowIndexOutOfBounds,
)
from sheetplot.expr.lexer import is_constant_expression
from sheetplot.expr.nodes import BinaryOp, ColumnRef, Expr, Negate, Number, referenced_columns
from sheetplot.expr.parser import compile_expression
from sheetplot.sheet.model import Column, Datasheet

logger = logging.getLogger(__name__)

# % follows the sign of the dividend (fmod), ^ is IEEE pow
_ARITH_OPS: dict[str, Any] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": np.divide,
    "%": np.fmod,
    "^": np.power,
}


def _check_finite(value: Any) -> Any:
    if np.ndim(value) == 0:
        if not np.isfinite(value):
            raise NonFiniteNumber()
        return value
    finite = np.isfinite(value)
    if not finite.all():
        raise NonFiniteNumber(int(np.argmin(finite)))
    return value


def _lookup(columns: Sequence[np.ndarray], index: int) -> np.ndarray:
    if index < 1 or index > len(columns):
        raise ColumnNotFound(index)
    return columns[index - 1]


def _evaluate(expr: Expr, columns: Sequence[np.ndarray], row: Optional[int]) -> Any:
    match expr:
        case Number(value=value):
            return _check_finite(np.float64(value))

        case ColumnRef(index=index):
            column = _lookup(columns, index)
            if row is None:
                return _check_finite(column)
            if row < 0 or row >= len(column):
                raise RowIndexOutOfBounds(row)
            return _check_finite(np.float64(column[row]))

        case BinaryOp(op=op, left=left, right=right):
            lval = _evaluate(left, columns, row)
            rval = _evaluate(right, columns, row)
            return _check_finite(_ARITH_OPS[op](lval, rval))

        case Negate(operand=operand):
            return _check_finite(-_evaluate(operand, columns, row))

        case _:
            raise TypeError(f"Unknown expression type: {type(expr).__name__}")


def evaluate_row(expr: Expr, columns: Sequence[np.ndarray], row: int) -> float:
    """Evaluate ``expr`` for one row.

    Raises:
        ColumnNotFound: If a referenced column does not exist
        RowIndexOutOfBounds: If ``row`` is past the end of a referenced column
        NonFiniteNumber: If any value along the way is INF/NaN
    """
    with np.errstate(all="ignore"):
        return float(_evaluate(expr, columns, row))


def evaluate_columns(expr: Expr, columns: Sequence[np.ndarray]) -> np.ndarray:
    """Evaluate ``expr`` for every row of ``columns``.

    Returns:
        float64 array with one value per row

    Raises:
        ColumnsDifferentLengths: If the referenced columns disagree in length
        ColumnNotFound: If a referenced column does not exist
        NonFiniteNumber: If any value along the way is INF/NaN
    """
    if not columns:
        return np.empty(0, dtype=np.float64)

    used = [_lookup(columns, index) for index in referenced_columns(expr)]
    lengths = {len(column) for column in used}
    if len(lengths) > 1:
        raise ColumnsDifferentLengths(len(column) for column in used)
    num_rows = lengths.pop() if lengths else len(columns[0])

    with np.errstate(all="ignore"):
        result = _evaluate(expr, columns, None)
    return np.broadcast_to(np.asarray(result, dtype=np.float64), (num_rows,)).copy()


def evaluate_text(
    text: str,
    columns: Sequence[np.ndarray],
    titles: Optional[Sequence[str]] = None,
) -> np.ndarray:
    """Compile and evaluate an expression string over ``columns``.

    Expressions that cannot reference a column are evaluated once and the
    result is repeated for every row.
    """
    expr = compile_expression(text, titles)
    if is_constant_expression(text):
        num_rows = len(columns[0]) if columns else 0
        value = evaluate_row(expr, [], 0)
        logger.debug("Constant expression %r = %r", text, value)
        return np.full(num_rows, value, dtype=np.float64)
    return evaluate_columns(expr, columns)


def build_datasheet(
    titles: Sequence[str],
    columns: Sequence[np.ndarray],
    xexpr: str,
    yexpr: str,
) -> Datasheet:
    """Derive the initial (x, y) datasheet from a raw table.

    Column names of the result are the expression strings themselves.
    """
    xdata = evaluate_text(xexpr, columns, titles)
    ydata = evaluate_text(yexpr, columns, titles)
    return Datasheet(Column(xexpr, xdata), Column(yexpr, ydata))
