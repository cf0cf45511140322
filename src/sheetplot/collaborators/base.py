"""
Interfaces for the external tools sheetplot delegates to.

The core never plots, filters rows, or runs queries itself. These protocols
define the contracts for the collaborators that do. Concrete implementations
include GnuplotRenderer (plots via gnuplot) and MillerRowFilter (row
filtering via mlr); Calculator and QueryEngine have no bundled backend.
"""

from typing import IO, Mapping, Protocol

import pandas as pd

from sheetplot.sheet.model import Datasheet


class Renderer(Protocol):
    """Protocol for plot backends used by the ``P`` dump operator."""

    def render(self, datasheet: Datasheet) -> None:
        """Render the datasheet.

        Args:
            datasheet: The live datasheet. Renderers must not modify it.
        """
        ...


class RowFilter(Protocol):
    """Protocol for tools that filter raw input rows before expressions run."""

    def filter(self, stream: IO[bytes]) -> str:
        """Stream raw CSV bytes through the filter.

        Args:
            stream: Raw input table, read to exhaustion

        Returns:
            The filtered table as CSV text, in the same header layout as the input
        """
        ...


class Calculator(Protocol):
    """Protocol for an alternate per-row expression backend."""

    def evaluate(self, expression: str, row_values: Mapping[str, float]) -> float:
        """Evaluate ``expression`` against one row of named values."""
        ...


class QueryEngine(Protocol):
    """Protocol for an alternate whole-pipeline backend driven by query text."""

    def run(self, query: str) -> pd.DataFrame:
        """Execute ``query`` and return its two-column (x, y) result."""
        ...
