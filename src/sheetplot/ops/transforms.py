"""
Transform operators applied to a datasheet.

``apply_transform`` takes ownership of the live datasheet and returns the
next one; the input must not be used afterwards. Column names of the result
always follow ``transformed_names`` so that the names predicted from an
operator sequence alone match what a run produces.

Sortedness flags after each transform:

- Merge, Step: both reset
- CDF, Derivative, Integral: x sorted, y unsorted
- Sort: x sorted, y unsorted
- FilterFinite, Unique, Average: x flag kept (rows keep their order)
- Rotate: flags travel with their columns
"""

import logging
from typing import Tuple

import numpy as np

from sheetplot.exceptions import PreconditionError
from sheetplot.ops.operators import (
    CDF,
    Average,
    Derivative,
    FilterFinite,
    Integral,
    Merge,
    Rotate,
    Sort,
    Step,
    Transform,
    Unique,
)
from sheetplot.sheet.model import Column, Datasheet

logger = logging.getLogger(__name__)


def transformed_names(op: Transform, xname: str, yname: str) -> Tuple[str, str]:
    """Return the (x, y) column names produced by ``op``."""
    match op:
        case CDF():
            return yname, "CDF"
        case Derivative():
            return xname, f"{yname}:Derivation"
        case Integral():
            return xname, f"{yname}:Integral"
        case Merge():
            return xname, f"{yname}:Merge"
        case Rotate():
            return yname, xname
        case Step():
            return xname, f"{yname}:Step"
        case Sort():
            return xname, yname
        case Average():
            return xname, f"{yname}:Average"
        case FilterFinite():
            return xname, f"{yname}:Finite"
        case Unique():
            return xname, f"{yname}:Unique"
        case _:
            raise TypeError(f"Not a transform operator: {op!r}")


def apply_transform(op: Transform, ds: Datasheet) -> Datasheet:
    """Apply one transform to ``ds``.

    Raises:
        PreconditionError: If the data violates the operator's precondition
    """
    names = transformed_names(op, ds.x.name, ds.y.name)

    match op:
        case CDF():
            result = _cdf(ds)
        case Derivative():
            result = _derivative(op, ds)
        case Integral():
            result = _integral(ds)
        case Merge():
            result = _merge(ds)
        case Rotate():
            ds.rotate()
            result = ds
        case Step():
            result = _step(ds)
        case Sort():
            ds.sort_by_x()
            result = ds
        case Average():
            result = _average(op, ds)
        case FilterFinite():
            result = _filter_finite(ds)
        case Unique():
            result = _unique(ds)
        case _:
            raise TypeError(f"Not a transform operator: {op!r}")

    result.x.name, result.y.name = names
    logger.debug("Applied '%s': %d -> %d rows", op, len(ds), len(result))
    return result


def _require_sorted_unique_x(ds: Datasheet) -> None:
    ds.sort_by_x()
    if not ds.x.is_sortable():
        raise PreconditionError(f"Column x ({ds.x.name}) contains INF/NAN.")
    if not ds.x.is_unique():
        raise PreconditionError(f"Column x ({ds.x.name}) contains duplicated values.")


def _run_starts(x: np.ndarray) -> np.ndarray:
    """Indexes where a run of equal consecutive values begins."""
    if len(x) == 0:
        return np.empty(0, dtype=np.intp)
    return np.flatnonzero(np.r_[True, x[1:] != x[:-1]])


def _cdf(ds: Datasheet) -> Datasheet:
    if not ds.y.is_sortable():
        raise PreconditionError(f"Column y ({ds.y.name}) contains INF/NAN.")
    xval = np.sort(ds.y.data, kind="stable")
    n = len(xval)
    yval = np.arange(1, n + 1, dtype=np.float64) / n if n else np.empty(0)
    return Datasheet(Column("", xval, sorted=True), Column("", yval))


def _derivative(op: Derivative, ds: Datasheet) -> Datasheet:
    _require_sorted_unique_x(ds)
    x, y = ds.x.data, ds.y.data

    if op.window is not None:
        xs, ys = [], []
        if len(x):
            x0, y0 = x[0], y[0]
            for xi, yi in zip(x[1:], y[1:]):
                if x0 + op.window > xi:
                    continue
                xs.append(xi)
                ys.append((yi - y0) / (xi - x0))
                x0, y0 = xi, yi
        return Datasheet(Column("", xs, sorted=True), Column("", ys))

    left, right = op.bounds
    # j: last row with x_j <= x_i - left; k: first row with x_k >= x_i + right
    j = np.searchsorted(x, x - left, side="right") - 1
    k = np.searchsorted(x, x + right, side="left")
    valid = (j >= 0) & (k < len(x))
    i, j, k = np.flatnonzero(valid), j[valid], k[valid]
    distinct = x[k] != x[j]
    i, j, k = i[distinct], j[distinct], k[distinct]
    slopes = (y[k] - y[j]) / (x[k] - x[j])
    return Datasheet(Column("", x[i], sorted=True), Column("", slopes))


def _integral(ds: Datasheet) -> Datasheet:
    _require_sorted_unique_x(ds)
    return Datasheet(Column("", ds.x.data, sorted=True), Column("", np.cumsum(ds.y.data)))


def _merge(ds: Datasheet) -> Datasheet:
    starts = _run_starts(ds.x.data)
    if len(starts):
        sums = np.add.reduceat(ds.y.data, starts)
    else:
        sums = np.empty(0)
    return Datasheet(Column("", ds.x.data[starts]), Column("", sums))


def _step(ds: Datasheet) -> Datasheet:
    return Datasheet(Column("", ds.x.data[1:]), Column("", np.diff(ds.y.data)))


def _average(op: Average, ds: Datasheet) -> Datasheet:
    left, right = op.bounds
    x, y = ds.x.data, ds.y.data
    known = np.flatnonzero(~np.isnan(x))
    order = known[np.argsort(x[known], kind="stable")]
    xs, ys = x[order], y[order]

    means = np.full(len(x), np.nan)
    for i in known:
        lo = np.searchsorted(xs, x[i] - left, side="left")
        hi = np.searchsorted(xs, x[i] + right, side="right")
        means[i] = ys[lo:hi].mean()
    return Datasheet(Column("", x, sorted=ds.x.sorted), Column("", means))


def _filter_finite(ds: Datasheet) -> Datasheet:
    keep = np.isfinite(ds.y.data)
    return Datasheet(
        Column("", ds.x.data[keep], sorted=ds.x.sorted),
        Column("", ds.y.data[keep], sorted=ds.y.sorted),
    )


def _unique(ds: Datasheet) -> Datasheet:
    starts = _run_starts(ds.x.data)
    return Datasheet(
        Column("", ds.x.data[starts], sorted=ds.x.sorted),
        Column("", ds.y.data[starts], sorted=ds.y.sorted),
    )
