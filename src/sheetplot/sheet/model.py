"""
Column store model classes.

This module provides the in-memory data model the pipeline operates on:
- Column: A named float64 series with an advisory sortedness flag
- Datasheet: The live (x, y) pair of equally long columns
- DatasheetFormat: How a delimited table or checkpoint is laid out on disk
"""

import re
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from sheetplot.exceptions import ColumnsDifferentLengths, PreconditionError


def letters_to_index(letters: str) -> int:
    """Convert spreadsheet column letter(s) to a 1-based column index.

    Letters are case-insensitive: A = 1, Z = 26, AA = 27, etc.

    Raises:
        ValueError: If ``letters`` is empty or contains non-ASCII letters
    """
    if not letters or not re.fullmatch(r"[A-Za-z]+", letters):
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for char in letters.upper():
        index = index * 26 + (ord(char) - 64)
    return index


class Column:
    """A named numeric column.

    The ``sorted`` flag is advisory: when True the data is known to be
    non-decreasing. Operators that reorder or regenerate a column reset it.

    Attributes:
        name: The column title
        data: 1-D float64 numpy array (may hold NaN/Inf)
        sorted: Whether ``data`` is known to be non-decreasing
    """

    def __init__(self, name: str, data: Union[Sequence[float], np.ndarray], sorted: bool = False) -> None:
        self.name = name
        self.data = np.asarray(data, dtype=np.float64).reshape(-1)
        self.sorted = sorted

    def __len__(self) -> int:
        return len(self.data)

    def is_sortable(self) -> bool:
        """Check that every value is finite."""
        return bool(np.isfinite(self.data).all())

    def is_unique(self) -> bool:
        """Check that adjacent values are finite and pairwise distinct.

        Only meaningful on sorted data, where it means no value repeats.
        """
        if not self.is_sortable():
            return False
        return bool((self.data[1:] != self.data[:-1]).all())

    def copy(self) -> "Column":
        return Column(self.name, self.data.copy(), self.sorted)

    def __repr__(self) -> str:
        return f"Column(name={self.name!r}, rows={len(self)}, sorted={self.sorted})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        return (
            self.name == other.name
            and self.sorted == other.sorted
            and np.array_equal(self.data, other.data, equal_nan=True)
        )


class Datasheet:
    """The two-column (x, y) table that transform operators act on.

    Exactly one Datasheet is live at any point in a pipeline run; transform
    operators take it over and hand back a new one.

    Attributes:
        x: The x column
        y: The y column
    """

    def __init__(self, x: Column, y: Column) -> None:
        """Initialize a Datasheet.

        Raises:
            ColumnsDifferentLengths: If x and y do not have the same length
        """
        if len(x) != len(y):
            raise ColumnsDifferentLengths((len(x), len(y)))
        self.x = x
        self.y = y

    @classmethod
    def from_arrays(
        cls,
        xname: str,
        xdata: Sequence[float],
        yname: str,
        ydata: Sequence[float],
        x_sorted: bool = False,
    ) -> "Datasheet":
        return cls(Column(xname, xdata, x_sorted), Column(yname, ydata))

    def __len__(self) -> int:
        return len(self.x)

    @property
    def names(self) -> List[str]:
        return [self.x.name, self.y.name]

    def copy(self) -> "Datasheet":
        """Return an owned deep copy."""
        return Datasheet(self.x.copy(), self.y.copy())

    def rotate(self) -> None:
        """Swap x and y in place; names and sorted flags move with their data."""
        self.x, self.y = self.y, self.x

    def sort_by_x(self) -> None:
        """Sort rows by x in place (stable), carrying y along.

        A no-op when x is already flagged as sorted.

        Raises:
            PreconditionError: If x contains INF/NAN
        """
        if self.x.sorted:
            return
        if not self.x.is_sortable():
            raise PreconditionError(f"Column x ({self.x.name}) contains INF/NAN.")
        order = np.argsort(self.x.data, kind="stable")
        self.x.data = self.x.data[order]
        self.y.data = self.y.data[order]
        self.x.sorted = True
        self.y.sorted = False

    def to_frame(self) -> pd.DataFrame:
        """Return the datasheet as a two-column pandas DataFrame."""
        return pd.DataFrame({0: self.x.data, 1: self.y.data}).set_axis(
            [self.x.name, self.y.name], axis=1
        )

    def __repr__(self) -> str:
        return f"Datasheet(x={self.x!r}, y={self.y!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Datasheet):
            return NotImplemented
        return self.x == other.x and self.y == other.y


class DatasheetFormat:
    """Describes how a table is stored on disk.

    Two kinds exist:
    - ``csv``: a comma-separated table, with or without a header row
    - ``lnk``: a checkpoint file (header block + CSV payload)

    Attributes:
        kind: ``"csv"`` or ``"lnk"``
        has_header: Whether a CSV table carries a header row (ignored for lnk)
    """

    KINDS = ("csv", "lnk")

    def __init__(self, kind: str = "csv", has_header: bool = True) -> None:
        if kind not in self.KINDS:
            raise ValueError(f"Unknown datasheet format {kind!r}, expected one of {self.KINDS}")
        self.kind = kind
        self.has_header = has_header if kind == "csv" else False

    @classmethod
    def parse(cls, text: str, has_header: Optional[bool] = None) -> "DatasheetFormat":
        """Parse ``csv``, ``csv(true)``, ``csv(false)`` or ``lnk``."""
        match = re.fullmatch(r"\s*(csv|lnk)\s*(?:\(\s*(true|false)\s*\))?\s*", text)
        if not match:
            raise ValueError(f"Invalid datasheet format: {text!r}")
        kind, flag = match.groups()
        if has_header is None:
            has_header = flag != "false"
        return cls(kind, has_header)

    @property
    def is_checkpoint(self) -> bool:
        return self.kind == "lnk"

    def __str__(self) -> str:
        if self.kind == "csv":
            return f"csv({'true' if self.has_header else 'false'})"
        return self.kind

    def __repr__(self) -> str:
        return f"DatasheetFormat({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DatasheetFormat):
            return NotImplemented
        return self.kind == other.kind and self.has_header == other.has_header
