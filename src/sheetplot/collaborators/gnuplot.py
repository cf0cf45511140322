"""
Gnuplot renderer.

Writes the datasheet and a generated gnuplot script into a scratch
directory, then runs ``gnuplot -p <script>``. The script comes either from
the built-in template (terminal, axis labels, optional extra commands) or
from a complete user script, which sees the data file and axis names as the
gnuplot variables ``input_file``, ``xaxis`` and ``yaxis``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Union

from sheetplot.exceptions import CollaboratorError
from sheetplot.sheet.csvio import write_datasheet
from sheetplot.sheet.model import Datasheet

logger = logging.getLogger(__name__)

DEFAULT_TERMINAL = "x11 noenhanced"

_TEMPLATE = """\
set terminal {terminal}
set datafile separator ','
set key autotitle columnhead
set xlabel {xlabel}
set ylabel {ylabel}
set grid
{commands}{output}plot {data} using 1:2 with linespoints title {ylabel}
"""


def gnuplot_quote(text: str) -> str:
    """Quote ``text`` as a gnuplot single-quoted string."""
    return "'" + text.replace("'", "''") + "'"


def build_script(
    data_path: Union[str, Path],
    xname: str,
    yname: str,
    terminal: str = DEFAULT_TERMINAL,
    commands: Optional[str] = None,
    output: Optional[Union[str, Path]] = None,
) -> str:
    """Fill the built-in plot template."""
    return _TEMPLATE.format(
        terminal=terminal,
        xlabel=gnuplot_quote(xname),
        ylabel=gnuplot_quote(yname),
        commands=f"{commands}\n" if commands else "",
        output=f"set output {gnuplot_quote(str(output))}\n" if output else "",
        data=gnuplot_quote(str(data_path)),
    )


def wrap_user_script(script: str, data_path: Union[str, Path], xname: str, yname: str) -> str:
    """Prefix a complete user script with the variables it may reference."""
    return (
        f"input_file = {gnuplot_quote(str(data_path))}\n"
        f"xaxis = {gnuplot_quote(xname)}\n"
        f"yaxis = {gnuplot_quote(yname)}\n"
        f"{script}"
    )


class GnuplotRenderer:
    """Renderer that plots through an external gnuplot process.

    Usage::

        renderer = GnuplotRenderer(terminal="dumb", commands="set logscale y")
        renderer.render(datasheet)
    """

    def __init__(
        self,
        terminal: str = DEFAULT_TERMINAL,
        commands: Optional[str] = None,
        script_path: Optional[Union[str, Path]] = None,
        output: Optional[Union[str, Path]] = None,
        preserve: bool = False,
        executable: str = "gnuplot",
    ) -> None:
        """Initialize the renderer.

        Args:
            terminal: gnuplot terminal, e.g. "pngcairo size 800,600"
            commands: Extra commands inserted before ``plot``
            script_path: Complete gnuplot script to use instead of the template
            output: File gnuplot should write to, if the terminal produces one
            preserve: Keep the scratch directory after rendering
            executable: gnuplot binary name or path
        """
        self.terminal = terminal
        self.commands = commands
        self.script_path = Path(script_path) if script_path is not None else None
        self.output = output
        self.preserve = preserve
        self.executable = executable

    def script_for(self, datasheet: Datasheet, data_path: Path) -> str:
        if self.script_path is not None:
            try:
                script = self.script_path.read_text(encoding="utf-8")
            except OSError as e:
                raise CollaboratorError(f"Cannot read gnuplot script {self.script_path}: {e}") from e
            return wrap_user_script(script, data_path, datasheet.x.name, datasheet.y.name)
        return build_script(
            data_path,
            datasheet.x.name,
            datasheet.y.name,
            terminal=self.terminal,
            commands=self.commands,
            output=self.output,
        )

    def render(self, datasheet: Datasheet) -> None:
        """Plot ``datasheet``.

        Raises:
            CollaboratorError: gnuplot is missing or exits with an error
        """
        if shutil.which(self.executable) is None:
            raise CollaboratorError(f"{self.executable} is not installed")

        workdir = Path(tempfile.mkdtemp(prefix="sheetplot-"))
        try:
            data_path = workdir / "data.csv"
            write_datasheet(datasheet, data_path, write_header=True)
            script_path = workdir / "plot.gp"
            script_path.write_text(self.script_for(datasheet, data_path), encoding="utf-8")
            logger.info("gnuplot script: %s", script_path)

            result = subprocess.run([self.executable, "-p", str(script_path)], check=False)
            if result.returncode != 0:
                raise CollaboratorError(f"{self.executable} exited with status {result.returncode}")
        finally:
            if self.preserve:
                logger.info("Preserved gnuplot files in %s", workdir)
            else:
                shutil.rmtree(workdir, ignore_errors=True)
