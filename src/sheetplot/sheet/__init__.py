"""
Column store module.

This module provides the two-column datasheet the pipeline operates on and
its delimited-table input and output.
"""

from sheetplot.sheet.model import (
    Column,
    Datasheet,
    DatasheetFormat,
    letters_to_index,
)
from sheetplot.sheet.csvio import (
    read_table,
    read_datasheet,
    write_datasheet,
)

__all__ = [
    "Column",
    "Datasheet",
    "DatasheetFormat",
    "letters_to_index",
    "read_table",
    "read_datasheet",
    "write_datasheet",
]
