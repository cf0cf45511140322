"""
Pipeline driver.

Runs one invocation end to end::

    INIT --load--> LOADED --operators--> TRANSFORMING --done--> TERMINAL

Loading either restores the deepest usable checkpoint or reads the raw
input and evaluates the x/y expressions. The operators that remain are then
applied strictly in order against the single live datasheet: transforms
replace it, dumps read it. The first failure aborts the run; checkpoints
written before it stay valid for later runs.
"""

from __future__ import annotations

import io
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, List, Optional, Tuple

from sheetplot.cache.checkpoint import Checkpoint, SourceIdentity, read_header
from sheetplot.cache.store import CacheMatch, CheckpointCache
from sheetplot.collaborators.base import Renderer, RowFilter
from sheetplot.collaborators.gnuplot import GnuplotRenderer
from sheetplot.collaborators.miller import MillerRowFilter
from sheetplot.config import PipelineConfig
from sheetplot.exceptions import InputError, PipelineError, SheetplotError
from sheetplot.expr.evaluate import build_datasheet
from sheetplot.ops.operators import Output, Render, SaveCheckpoint
from sheetplot.ops.opseq import OpSeq
from sheetplot.ops.transforms import apply_transform
from sheetplot.sheet.csvio import read_table, write_datasheet
from sheetplot.sheet.model import Datasheet, DatasheetFormat

logger = logging.getLogger(__name__)

STDIN_SOURCE = "-"


class PipelineState(Enum):
    INIT = "init"
    LOADED = "loaded"
    TRANSFORMING = "transforming"
    TERMINAL = "terminal"


@dataclass
class PipelineResult:
    """Outcome of a completed run.

    Attributes:
        datasheet: The live datasheet after the last operator
        resumed_from: Canonical prefix of the checkpoint the run resumed from,
                      or None when it started from the raw input
        checkpoints: Paths of the checkpoints written by this run
    """

    datasheet: Datasheet
    resumed_from: Optional[str] = None
    checkpoints: List[Path] = field(default_factory=list)


class Pipeline:
    """Drives one pipeline run for a fixed configuration.

    Collaborators may be injected; by default rendering goes to gnuplot, row
    filtering (when ``config.row_filter`` is set) to Miller, ``O`` output to
    stdout and ``-`` input comes from stdin.
    """

    def __init__(
        self,
        config: PipelineConfig,
        renderer: Optional[Renderer] = None,
        row_filter: Optional[RowFilter] = None,
        output: Optional[IO[str]] = None,
        stdin: Optional[IO[bytes]] = None,
    ) -> None:
        self.config = config
        self.opseq: OpSeq = config.operators
        self.renderer = renderer
        self.row_filter = row_filter
        self.output = output
        self.stdin = stdin

        self.state = PipelineState.INIT
        self.datasheet: Optional[Datasheet] = None
        self.identity: Optional[SourceIdentity] = None
        self.history: Tuple[str, ...] = ()
        self.resumed_from: Optional[str] = None
        self.checkpoints: List[Path] = []
        self.start_index = 0

    def run(self) -> PipelineResult:
        """Load the input, apply every remaining operator, return the result.

        Raises:
            PipelineError: Any failure, chained to the underlying error
        """
        with CheckpointCache(self._cache_dir()) as cache:
            self.load(cache)
            self.state = PipelineState.TRANSFORMING
            for index in range(self.start_index, len(self.opseq)):
                self.step(cache, index)
        self.state = PipelineState.TERMINAL
        logger.info("Pipeline finished with %d rows", len(self.datasheet))
        return PipelineResult(self.datasheet, self.resumed_from, list(self.checkpoints))

    def _cache_dir(self) -> Path:
        if self.config.format.is_checkpoint:
            return Path(self.config.source).parent
        return Path(self.config.checkpoint_dir)

    def load(self, cache: CheckpointCache) -> None:
        """INIT -> LOADED: restore a checkpoint or build from the raw input."""
        try:
            if self.config.format.is_checkpoint:
                header = read_header(self.config.source)
                self.identity = header.identity
            else:
                self.identity = self.config.identity

            found = None
            if self.identity.source != STDIN_SOURCE:
                found = cache.find(self.identity, self.opseq)
            if found is not None:
                self.restore(found)
            else:
                self.datasheet = self.build_from_source(self.identity)
        except SheetplotError as e:
            raise PipelineError(f"Failed to load input {self.config.source}: {e}") from e
        self.state = PipelineState.LOADED

    def restore(self, match: CacheMatch) -> None:
        header = match.checkpoint.header
        self.datasheet = match.checkpoint.restore()
        self.history = header.history
        self.resumed_from = header.opstr
        self.start_index = match.resume_index
        logger.info("Resuming after %r at operator %d", header.opstr, self.start_index)

    def build_from_source(self, identity: SourceIdentity) -> Datasheet:
        """Read the raw table and evaluate the x/y expressions over it."""
        fmt = DatasheetFormat.parse(identity.input_format)
        row_filter = self.row_filter
        if row_filter is None and identity.row_filter:
            row_filter = MillerRowFilter(identity.row_filter, fmt.has_header)

        logger.info("Reading %s", identity.source)
        if row_filter is not None:
            if identity.source == STDIN_SOURCE:
                text = row_filter.filter(self._stdin())
            else:
                try:
                    with open(identity.source, "rb") as f:
                        text = row_filter.filter(f)
                except OSError as e:
                    raise InputError(f"Failed to read input table {identity.source}: {e}") from e
            titles, columns = read_table(io.StringIO(text), fmt.has_header)
        elif identity.source == STDIN_SOURCE:
            titles, columns = read_table(io.StringIO(self._stdin().read().decode("utf-8")), fmt.has_header)
        else:
            titles, columns = read_table(identity.source, fmt.has_header)

        # @title@ references only resolve against a real header row
        if not fmt.has_header:
            titles = []
        return build_datasheet(titles, columns, identity.xexpr, identity.yexpr)

    def step(self, cache: CheckpointCache, index: int) -> None:
        """Apply operator ``index`` to the live datasheet."""
        op = self.opseq[index]
        try:
            match op:
                case SaveCheckpoint():
                    self.save_checkpoint(cache, index)
                case Output():
                    write_datasheet(self.datasheet, self._output(), self.config.output_header)
                case Render():
                    self._renderer().render(self.datasheet)
                case _:
                    self.datasheet = apply_transform(op, self.datasheet)
        except SheetplotError as e:
            raise PipelineError(f"Operator #{index} '{op}' failed: {e}", index, op.code) from e

    def save_checkpoint(self, cache: CheckpointCache, index: int) -> None:
        opstr = self.opseq.prefix(index + 1, include_dumps=False)
        history = self.history
        if not history or history[-1] != opstr:
            history = history + (opstr,)
        checkpoint = Checkpoint.create(
            self.identity, opstr, history, self.datasheet, self.config.output_format
        )
        self.checkpoints.append(cache.save(checkpoint))
        self.history = history

    def _output(self) -> IO[str]:
        return self.output if self.output is not None else sys.stdout

    def _stdin(self) -> IO[bytes]:
        return self.stdin if self.stdin is not None else sys.stdin.buffer

    def _renderer(self) -> Renderer:
        if self.renderer is None:
            self.renderer = GnuplotRenderer(
                terminal=self.config.terminal,
                commands=self.config.gnuplot_commands,
                script_path=self.config.gnuplot_script,
                preserve=self.config.preserve,
            )
        return self.renderer


def run_pipeline(
    config: PipelineConfig,
    renderer: Optional[Renderer] = None,
    row_filter: Optional[RowFilter] = None,
    output: Optional[IO[str]] = None,
    stdin: Optional[IO[bytes]] = None,
) -> PipelineResult:
    """Run one pipeline invocation.

    Example:
        >>> config = PipelineConfig(source="data.csv", xexpr="#1", yexpr="#2", opseq="oCO")
        >>> result = run_pipeline(config)
        >>> result.datasheet.names
        ['#1', '#2']
    """
    return Pipeline(config, renderer, row_filter, output, stdin).run()
