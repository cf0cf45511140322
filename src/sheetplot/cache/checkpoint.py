"""
Checkpoint file format.

A checkpoint (``.lnk``) file is a YAML header block, a delimiter line, then
the datasheet payload as CSV::

    source: data.csv
    xexpr: '#1'
    yexpr: '#2 * 2'
    input_format: csv(true)
    output_format: csv(true)
    opstr: od5
    history: [o, od5]
    columns: ['#1', '#2 * 2:Derivation']
    sorted: [true, false]
    rows: 120
    stored_at: 1700000000000000000
    ENDOFMETADATAENDOFMETADATAENDOFMETADATAENDOFMETADATAENDOFMETADATA
    #1,#2 * 2:Derivation
    ...

The header is validated with pydantic; any malformed or inconsistent file is
a ``CacheError``.
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from sheetplot.exceptions import CacheError, InputError
from sheetplot.sheet.csvio import read_datasheet, write_datasheet
from sheetplot.sheet.model import Column, Datasheet, DatasheetFormat

logger = logging.getLogger(__name__)

METADATA_DELIMITER = "ENDOFMETADATA" * 5


@dataclass(frozen=True)
class SourceIdentity:
    """What a cached payload was derived from, before any transform.

    Two runs share checkpoints only when all of these agree.
    """

    source: str
    xexpr: str
    yexpr: str
    input_format: str
    row_filter: Optional[str] = None

    def digest(self, opstr: str) -> str:
        """Stable file key for this identity and a canonical transform prefix."""
        key = json.dumps(
            [self.source, self.xexpr, self.yexpr, self.input_format, self.row_filter, opstr]
        )
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]


class CheckpointHeader(BaseModel):
    """Metadata block of a checkpoint file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    xexpr: str
    yexpr: str
    input_format: str
    output_format: str = "csv(true)"
    row_filter: Optional[str] = None
    opstr: str
    history: Tuple[str, ...]
    columns: Tuple[str, str]
    sorted: Tuple[bool, bool] = (False, False)
    rows: int
    stored_at: int

    @field_validator("input_format", "output_format")
    @classmethod
    def validate_format(cls, v):
        """Normalize datasheet format strings."""
        return str(DatasheetFormat.parse(v))

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v):
        if DatasheetFormat.parse(v).is_checkpoint:
            raise ValueError("Checkpoint payload must be stored as csv")
        return v

    @field_validator("rows")
    @classmethod
    def validate_rows(cls, v):
        if v < 0:
            raise ValueError(f"rows must be non-negative, got: {v}")
        return v

    @model_validator(mode="after")
    def validate_history(self):
        """History must extend monotonically and end with opstr."""
        if not self.history or self.history[-1] != self.opstr:
            raise ValueError(f"history must end with opstr {self.opstr!r}, got {list(self.history)}")
        for earlier, later in zip(self.history, self.history[1:]):
            if not later.startswith(earlier):
                raise ValueError(f"history is not monotonic: {earlier!r} is not a prefix of {later!r}")
        return self

    @property
    def identity(self) -> SourceIdentity:
        return SourceIdentity(self.source, self.xexpr, self.yexpr, self.input_format, self.row_filter)

    @property
    def payload_format(self) -> DatasheetFormat:
        return DatasheetFormat.parse(self.output_format)


class Checkpoint:
    """A checkpoint header plus the datasheet it describes.

    The datasheet held here is never handed out directly; ``restore`` returns
    an owned copy.
    """

    def __init__(self, header: CheckpointHeader, datasheet: Datasheet) -> None:
        self.header = header
        self.datasheet = datasheet

    @classmethod
    def create(
        cls,
        identity: SourceIdentity,
        opstr: str,
        history: Tuple[str, ...],
        datasheet: Datasheet,
        output_format: Union[str, DatasheetFormat] = "csv(true)",
    ) -> "Checkpoint":
        """Snapshot ``datasheet`` after the transforms in ``opstr``."""
        try:
            header = CheckpointHeader(
                source=identity.source,
                xexpr=identity.xexpr,
                yexpr=identity.yexpr,
                input_format=identity.input_format,
                row_filter=identity.row_filter,
                output_format=str(output_format),
                opstr=opstr,
                history=tuple(history),
                columns=(datasheet.x.name, datasheet.y.name),
                sorted=(datasheet.x.sorted, datasheet.y.sorted),
                rows=len(datasheet),
                stored_at=time.time_ns(),
            )
        except ValidationError as e:
            raise CacheError(f"Invalid checkpoint header: {e}") from e
        return cls(header, datasheet.copy())

    def restore(self) -> Datasheet:
        """Return an owned copy of the payload."""
        return self.datasheet.copy()

    def write(self, stream: IO[str]) -> None:
        """Serialize header, delimiter and payload to a text stream."""
        stream.write(yaml.safe_dump(self.header.model_dump(mode="json"), sort_keys=False))
        stream.write(METADATA_DELIMITER + "\n")
        if len(self.datasheet) or self.header.payload_format.has_header:
            write_datasheet(self.datasheet, stream, self.header.payload_format.has_header)

    def save(self, path: Union[str, Path]) -> None:
        with open(path, "w", encoding="utf-8", newline="") as f:
            self.write(f)

    @classmethod
    def read(cls, stream: IO[str], name: str = "<stream>") -> "Checkpoint":
        """Parse a checkpoint from a text stream.

        Raises:
            CacheError: Missing delimiter, invalid header, or a payload that
                        does not match the header
        """
        header_text, payload = _split(stream.read(), name)
        header = _parse_header(header_text, name)

        if header.rows == 0:
            ds = Datasheet(Column(header.columns[0], []), Column(header.columns[1], []))
        else:
            try:
                ds = read_datasheet(
                    io.StringIO(payload), header.payload_format.has_header, names=header.columns
                )
            except InputError as e:
                raise CacheError(f"Invalid checkpoint payload in {name}: {e}") from e
        if len(ds) != header.rows:
            raise CacheError(
                f"Checkpoint {name} declares {header.rows} rows but holds {len(ds)}"
            )
        ds.x.sorted, ds.y.sorted = header.sorted
        return cls(header, ds)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Checkpoint":
        try:
            with open(path, encoding="utf-8", newline="") as f:
                return cls.read(f, str(path))
        except OSError as e:
            raise CacheError(f"Failed to read checkpoint {path}: {e}") from e

    def __repr__(self) -> str:
        return f"Checkpoint(source={self.header.source!r}, opstr={self.header.opstr!r}, rows={self.header.rows})"


def read_header(path: Union[str, Path]) -> CheckpointHeader:
    """Read only the header block of a checkpoint file."""
    lines = []
    try:
        with open(path, encoding="utf-8") as f:
            for line in f:
                if line.rstrip("\r\n") == METADATA_DELIMITER:
                    break
                lines.append(line)
            else:
                raise CacheError(f"Checkpoint {path} has no metadata delimiter")
    except (OSError, UnicodeDecodeError) as e:
        raise CacheError(f"Failed to read checkpoint {path}: {e}") from e
    return _parse_header("".join(lines), str(path))


def _split(text: str, name: str) -> Tuple[str, str]:
    header_lines = []
    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        if line.rstrip("\r\n") == METADATA_DELIMITER:
            return "".join(header_lines), "".join(lines[i + 1:])
        header_lines.append(line)
    raise CacheError(f"Checkpoint {name} has no metadata delimiter")


def _parse_header(text: str, name: str) -> CheckpointHeader:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CacheError(f"Malformed checkpoint header in {name}: {e}") from e
    if not isinstance(data, dict):
        raise CacheError(f"Malformed checkpoint header in {name}: expected a mapping")
    try:
        return CheckpointHeader.model_validate(data)
    except ValidationError as e:
        raise CacheError(f"Invalid checkpoint header in {name}: {e}") from e
