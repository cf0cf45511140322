"""Command-line interface for sheetplot."""

import logging
import sys
from typing import Optional

import fire
from pydantic import ValidationError

from sheetplot.cache.store import CheckpointCache
from sheetplot.collaborators.gnuplot import DEFAULT_TERMINAL
from sheetplot.config import PipelineConfig
from sheetplot.exceptions import SheetplotError
from sheetplot.pipeline import run_pipeline

logger = logging.getLogger(__name__)


def _report(e: BaseException) -> None:
    while e is not None:
        print(f"Error: {e}", file=sys.stderr)
        e = e.__cause__


class SheetplotCLI:
    """Command-line interface for sheetplot pipelines."""

    def run(
        self,
        source: str,
        opseq: str = "",
        x: str = "",
        y: str = "",
        format: str = "csv",
        header: bool = False,
        output_header: bool = True,
        cache_dir: Optional[str] = None,
        output_dir: str = ".",
        filter: Optional[str] = None,
        gpcmd: Optional[str] = None,
        gpfile: Optional[str] = None,
        terminal: str = DEFAULT_TERMINAL,
        preserve: bool = False,
        verbose: bool = False,
    ) -> None:
        """Run a pipeline over a csv file or a checkpoint.

        Args:
            source: Input file, '-' for stdin, or a .lnk checkpoint with --format lnk
            opseq: Operator sequence, e.g. 'od5CP'
            x: x column expression, e.g. '#1' or '@time@ / 1000'
            y: y column expression
            format: Input format, 'csv' or 'lnk' (default: csv)
            header: The csv input has a header row
            output_header: Write a header row in csv output (default: True)
            cache_dir: Checkpoint directory (default: output_dir)
            output_dir: Output directory (default: .)
            filter: Miller filter expression applied to raw rows
            gpcmd: Extra gnuplot commands inserted before 'plot'
            gpfile: Complete gnuplot script to use instead of the template
            terminal: gnuplot terminal (default: x11 noenhanced)
            preserve: Keep gnuplot scratch files
            verbose: Log progress to stderr

        Example:
            sheetplot run data.csv --header --x '#1' --y '@latency@' --opseq 'ocCP'
        """
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        )
        try:
            config = PipelineConfig(
                source=str(source),
                xexpr=str(x),
                yexpr=str(y),
                opseq=str(opseq),
                input_format=format,
                has_header=header,
                output_header=output_header,
                cache_dir=cache_dir,
                output_dir=output_dir,
                row_filter=filter,
                gnuplot_commands=gpcmd,
                gnuplot_script=gpfile,
                terminal=terminal,
                preserve=preserve,
            )
            run_pipeline(config)
        except (SheetplotError, ValidationError) as e:
            _report(e)
            sys.exit(1)

    def prefixes(
        self,
        source: str,
        x: str,
        y: str,
        header: bool = False,
        cache_dir: str = ".",
        filter: Optional[str] = None,
    ) -> None:
        """List the operator prefixes checkpointed for a csv source.

        Example:
            sheetplot prefixes data.csv --x '#1' --y '#2' --cache_dir .cache
        """
        try:
            config = PipelineConfig(
                source=str(source),
                xexpr=str(x),
                yexpr=str(y),
                has_header=header,
                cache_dir=cache_dir,
                row_filter=filter,
            )
            for opstr in CheckpointCache(config.checkpoint_dir).stored_prefixes(config.identity):
                print(opstr)
        except (SheetplotError, ValidationError) as e:
            _report(e)
            sys.exit(1)


def main() -> None:
    fire.Fire(SheetplotCLI)


if __name__ == "__main__":
    main()
