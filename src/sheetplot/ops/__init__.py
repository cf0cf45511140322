"""
Operator library and operator-sequence interpreter.

Key components:
- Operator dataclasses (CDF, Derivative, ..., SaveCheckpoint, Output, Render)
- apply_transform / transformed_names: pattern-matched transform application
- OpSeq: parsing, canonical prefixes and resume points
"""

from .operators import (
    CDF,
    Average,
    Derivative,
    Dump,
    FilterFinite,
    Integral,
    Merge,
    Operator,
    Output,
    Render,
    Rotate,
    SaveCheckpoint,
    Sort,
    Step,
    Transform,
    Unique,
    build_operator,
    format_number,
    is_transform,
)
from .transforms import apply_transform, transformed_names
from .opseq import OpSeq, check_opseq, parse_transforms

__all__ = [
    "CDF",
    "Average",
    "Derivative",
    "Dump",
    "FilterFinite",
    "Integral",
    "Merge",
    "Operator",
    "Output",
    "Render",
    "Rotate",
    "SaveCheckpoint",
    "Sort",
    "Step",
    "Transform",
    "Unique",
    "build_operator",
    "format_number",
    "is_transform",
    "apply_transform",
    "transformed_names",
    "OpSeq",
    "check_opseq",
    "parse_transforms",
]
