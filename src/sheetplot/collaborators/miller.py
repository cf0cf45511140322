"""
Miller row filter.

Runs ``mlr --csv filter EXPR`` over the raw input. Raw bytes are written to
the child's stdin from a helper thread while the calling thread drains its
stdout, so neither side can fill a pipe buffer and block the other. Both
sides are joined before the exit status is checked.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import subprocess
import threading
from typing import IO, List, Optional

from sheetplot.exceptions import CollaboratorError

logger = logging.getLogger(__name__)


class MillerRowFilter:
    """Row filter backed by Miller.

    Args:
        expression: Miller filter expression, e.g. ``'$price > 10'``
        has_header: Whether the input has a header row. Headerless input is
                    read with positional field names ``$1``, ``$2``, ... and
                    written back without a header.
        executable: mlr binary name or path
    """

    def __init__(self, expression: str, has_header: bool = True, executable: str = "mlr") -> None:
        self.expression = expression
        self.has_header = has_header
        self.executable = executable

    def command(self) -> List[str]:
        cmd = [self.executable, "--csv"]
        if not self.has_header:
            cmd += ["--implicit-csv-header", "--headerless-csv-output"]
        return cmd + ["filter", self.expression]

    def filter(self, stream: IO[bytes]) -> str:
        """Stream ``stream`` through mlr and return the filtered CSV text.

        Raises:
            CollaboratorError: mlr is missing, fails, or the input cannot be fed to it
        """
        if shutil.which(self.executable) is None:
            raise CollaboratorError(f"{self.executable} is not installed")

        cmd = self.command()
        logger.info("mlr command: %s", " ".join(cmd))
        proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stdout=subprocess.PIPE)

        write_error: List[Optional[BaseException]] = [None]

        def feed() -> None:
            try:
                shutil.copyfileobj(stream, proc.stdin)
            except (OSError, ValueError) as e:
                write_error[0] = e
            finally:
                # an early exit of mlr surfaces through its exit status
                with contextlib.suppress(BrokenPipeError):
                    proc.stdin.close()

        writer = threading.Thread(target=feed, name="mlr-stdin", daemon=True)
        writer.start()
        output = proc.stdout.read()
        proc.stdout.close()
        writer.join()
        returncode = proc.wait()

        if returncode != 0:
            raise CollaboratorError(f"mlr exited with status {returncode}")
        if write_error[0] is not None:
            raise CollaboratorError(f"Failed to feed input to mlr: {write_error[0]}") from write_error[0]
        return output.decode("utf-8")
