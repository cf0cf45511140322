"""
Checkpoint cache directory and longest-prefix matching.

A cache directory holds one ``<digest>.lnk`` file per (source identity,
canonical transform prefix). Writes go through a temporary file and
``os.replace``, so a concurrent writer of the same prefix simply wins last;
results are deterministic for identical inputs, and no locking is attempted.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

from sheetplot.cache.checkpoint import Checkpoint, CheckpointHeader, SourceIdentity, read_header
from sheetplot.exceptions import CacheError, OpSeqParseError
from sheetplot.ops.opseq import OpSeq, parse_transforms

logger = logging.getLogger(__name__)

CHECKPOINT_SUFFIX = ".lnk"


@dataclass(frozen=True)
class CacheMatch:
    """Result of a successful lookup.

    Attributes:
        checkpoint: The stored checkpoint
        transforms: Number of leading transforms the checkpoint already applied
        resume_index: Index of the first operator still to run
    """

    checkpoint: Checkpoint
    transforms: int
    resume_index: int


class CheckpointCache:
    """A directory of checkpoint files.

    Use as a context manager: while open, a descriptor on the directory is
    held so the directory stays reachable for the whole run.

    Example:
        >>> with CheckpointCache(".sheetplot") as cache:
        ...     match = cache.find(identity, OpSeq.parse("cod5"))
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self._fd: Optional[int] = None

    def open(self) -> "CheckpointCache":
        """Hold a descriptor on the directory if it exists.

        A missing directory is created by the first ``save``.
        """
        if self._fd is None and self.directory.is_dir():
            try:
                self._fd = os.open(self.directory, os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
            except OSError as e:
                raise CacheError(f"Cannot open cache directory {self.directory}: {e}") from e
            logger.debug("Opened cache directory %s", self.directory)
        return self

    def close(self) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> "CheckpointCache":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._fd is not None

    def path_for(self, identity: SourceIdentity, opstr: str) -> Path:
        return self.directory / f"{identity.digest(opstr)}{CHECKPOINT_SUFFIX}"

    def entries(self) -> Iterator[Path]:
        """Checkpoint files currently in the directory, in name order."""
        if not self.directory.is_dir():
            return iter(())
        return iter(sorted(self.directory.glob(f"*{CHECKPOINT_SUFFIX}")))

    def headers(self) -> Iterator[tuple[Path, CheckpointHeader]]:
        for path in self.entries():
            yield path, read_header(path)

    def save(self, checkpoint: Checkpoint) -> Path:
        """Write ``checkpoint`` atomically, replacing any same-prefix file."""
        path = self.path_for(checkpoint.header.identity, checkpoint.header.opstr)
        tmp_path = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self.open()
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.directory,
                prefix=".tmp-",
                suffix=CHECKPOINT_SUFFIX + ".part",
                encoding="utf-8",
                newline="",
                delete=False,
            ) as f:
                tmp_path = f.name
                checkpoint.write(f)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CacheError(f"Failed to write checkpoint {path}: {e}") from e
        logger.info("Checkpoint written: %s (opstr=%r)", path, checkpoint.header.opstr)
        return path

    def find(self, identity: SourceIdentity, opseq: OpSeq) -> Optional[CacheMatch]:
        """Find the checkpoint sharing the longest transform prefix with ``opseq``.

        A stored checkpoint is usable only when all of its transforms equal the
        leading transforms of ``opseq``; ties on length go to the most recently
        stored one. A zero-length prefix is never a match.

        Returns:
            CacheMatch, or None on a cache miss

        Raises:
            CacheError: If a checkpoint file of this source cannot be read
        """
        requested = opseq.transforms
        best: Optional[tuple[int, int, Path]] = None

        for path, header in self.headers():
            if header.identity != identity:
                continue
            try:
                stored = parse_transforms(header.opstr)
            except OpSeqParseError as e:
                raise CacheError(f"Checkpoint {path} has an invalid opstr {header.opstr!r}: {e}") from e
            length = len(stored)
            if length == 0 or length > len(requested) or requested[:length] != stored:
                continue
            candidate = (length, header.stored_at, path)
            if best is None or candidate[:2] > best[:2]:
                best = candidate

        if best is None:
            logger.info("Cache miss for %s", identity.source)
            return None

        length, _, path = best
        checkpoint = Checkpoint.load(path)
        logger.info(
            "Cache hit: %s covers %d transform(s) (opstr=%r)", path.name, length, checkpoint.header.opstr
        )
        return CacheMatch(checkpoint, length, opseq.resume_index(length))

    def stored_prefixes(self, identity: SourceIdentity) -> List[str]:
        """Canonical prefixes checkpointed for ``identity``, shortest first."""
        return sorted(
            (header.opstr for _, header in self.headers() if header.identity == identity),
            key=len,
        )
