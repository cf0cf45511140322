"""
sheetplot - A spreadsheet-manipulation pipeline with incremental checkpoints.

Reads a numeric table, derives x and y columns from arithmetic expressions,
then applies a compact operator sequence (sort, CDF, derivative, ...). Runs
that share a transform prefix with an earlier checkpointed run resume from it.

Usage:
    >>> from sheetplot import PipelineConfig, run_pipeline
    >>> config = PipelineConfig(source="data.csv", xexpr="#1", yexpr="#2 / 1000", opseq="ocC")
    >>> result = run_pipeline(config)

Key components:
- Datasheet: the live two-column (x, y) table
- compile_expression / build_datasheet: the expression language
- OpSeq: operator-sequence parsing and canonical prefixes
- CheckpointCache: longest-prefix checkpoint lookup
- run_pipeline: the driver tying them together
"""

from .sheet import Column, Datasheet, DatasheetFormat
from .expr import build_datasheet, compile_expression, evaluate_columns, evaluate_row
from .ops import OpSeq, apply_transform, check_opseq
from .cache import Checkpoint, CheckpointCache, SourceIdentity
from .config import PipelineConfig
from .pipeline import Pipeline, PipelineResult, PipelineState, run_pipeline
from .exceptions import *

# Version
__version__ = "0.1.0"

__all__ = [
    "Column",
    "Datasheet",
    "DatasheetFormat",
    "build_datasheet",
    "compile_expression",
    "evaluate_columns",
    "evaluate_row",
    "OpSeq",
    "apply_transform",
    "check_opseq",
    "Checkpoint",
    "CheckpointCache",
    "SourceIdentity",
    "PipelineConfig",
    "Pipeline",
    "PipelineResult",
    "PipelineState",
    "run_pipeline",
]
