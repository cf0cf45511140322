"""
Delimited-table input and output.

Raw input tables are read with pandas into a list of float64 columns so that
column expressions can reference any of them. Datasheets are written back as
two-column CSV, with float formatting that round-trips exactly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from sheetplot.exceptions import InputError
from sheetplot.sheet.model import Column, Datasheet

logger = logging.getLogger(__name__)

Source = Union[str, Path, IO[str]]


def read_table(
    source: Source,
    has_header: bool,
    strict: bool = False,
) -> Tuple[List[str], List[np.ndarray]]:
    """Read a raw delimited table into column titles and float64 columns.

    Args:
        source: Path or text stream
        has_header: Whether the first row holds column titles. Without a header,
                    columns are titled ``"1"``, ``"2"``, ... Leading spaces
                    after a comma are dropped from every cell, titles included,
                    so a column headed ``" b"`` is titled ``"b"``.
        strict: Reject non-numeric cells instead of turning them into NaN.
                In lenient mode an expression that references such a cell
                fails later with a non-finite error.

    Returns:
        Tuple of (titles, columns)

    Raises:
        InputError: If the table cannot be read, or (strict mode) holds
                    non-numeric cells
    """
    try:
        df = pd.read_csv(
            source,
            header=0 if has_header else None,
            float_precision="round_trip",
            skipinitialspace=True,
        )
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise InputError(f"Failed to read input table {_describe(source)}: {e}") from e

    if has_header:
        titles = [str(c) for c in df.columns]
    else:
        titles = [str(i + 1) for i in range(df.shape[1])]

    columns = []
    for i, title in enumerate(titles):
        try:
            series = pd.to_numeric(df.iloc[:, i], errors="raise" if strict else "coerce")
        except (ValueError, TypeError) as e:
            raise InputError(f"Non-numeric value in column {title!r} of {_describe(source)}: {e}") from e
        columns.append(series.to_numpy(dtype=np.float64))

    logger.debug("Read %d rows x %d columns from %s", len(df), len(columns), _describe(source))
    return titles, columns


def write_datasheet(ds: Datasheet, dest: Source, write_header: bool = True) -> None:
    """Write a datasheet as two-column CSV."""
    ds.to_frame().to_csv(dest, index=False, header=write_header, na_rep="nan")


def read_datasheet(
    source: Source,
    has_header: bool,
    names: Optional[Tuple[str, str]] = None,
) -> Datasheet:
    """Read a two-column CSV table back into a Datasheet.

    Args:
        source: Path or text stream
        has_header: Whether the first row holds column titles
        names: Titles to use instead of (or in the absence of) the header row

    Raises:
        InputError: If the table is unreadable or is not exactly two numeric columns
    """
    titles, columns = read_table(source, has_header, strict=True)
    if len(columns) != 2:
        raise InputError(f"Expected 2 columns in datasheet, got {len(columns)}")
    xname, yname = names if names is not None else titles
    return Datasheet(Column(xname, columns[0]), Column(yname, columns[1]))


def _describe(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return getattr(source, "name", "<stream>")
