"""
External collaborators: rendering and row filtering.
"""

from .base import Calculator, QueryEngine, Renderer, RowFilter
from .gnuplot import GnuplotRenderer, build_script
from .miller import MillerRowFilter

__all__ = [
    "Calculator",
    "QueryEngine",
    "Renderer",
    "RowFilter",
    "GnuplotRenderer",
    "build_script",
    "MillerRowFilter",
]
