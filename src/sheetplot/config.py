"""Pydantic model for per-invocation pipeline configuration."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sheetplot.cache.checkpoint import SourceIdentity
from sheetplot.collaborators.gnuplot import DEFAULT_TERMINAL
from sheetplot.exceptions import OpSeqParseError
from sheetplot.ops.opseq import OpSeq, check_opseq
from sheetplot.sheet.model import DatasheetFormat


class PipelineConfig(BaseModel):
    """Everything one pipeline run needs, fixed for the whole run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str = Field(description="Input file path, or '-' for stdin")
    xexpr: str = Field("", description="x column expression, e.g. '#1'")
    yexpr: str = Field("", description="y column expression, e.g. '@price@ * 2'")
    opseq: str = Field("", description="Operator sequence, e.g. 'od5CP'")
    input_format: str = Field("csv", description="'csv' or 'lnk'")
    has_header: bool = Field(False, description="Whether the csv input has a header row")
    output_header: bool = Field(True, description="Write a header row in csv output and checkpoints")
    cache_dir: Optional[str] = Field(None, description="Checkpoint directory (default: output_dir)")
    output_dir: str = Field(".", description="Directory for produced files")
    row_filter: Optional[str] = Field(None, description="Miller filter expression applied to raw rows")
    gnuplot_commands: Optional[str] = Field(None, description="Extra gnuplot commands before 'plot'")
    gnuplot_script: Optional[str] = Field(None, description="Complete gnuplot script replacing the template")
    terminal: str = Field(DEFAULT_TERMINAL, description="gnuplot terminal")
    preserve: bool = Field(False, description="Keep gnuplot scratch files")

    @field_validator("input_format")
    @classmethod
    def validate_input_format(cls, v):
        """Accept 'csv' or 'lnk'."""
        fmt = DatasheetFormat.parse(v)
        return fmt.kind

    @field_validator("opseq")
    @classmethod
    def validate_opseq(cls, v):
        """Reject malformed operator sequences before anything runs."""
        if v:
            try:
                check_opseq(v)
            except OpSeqParseError as e:
                raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def validate_expressions(self):
        """csv input needs both column expressions."""
        if self.input_format == "csv" and (not self.xexpr or not self.yexpr):
            raise ValueError("x and y expressions are required for csv input")
        return self

    @property
    def format(self) -> DatasheetFormat:
        return DatasheetFormat(self.input_format, self.has_header)

    @property
    def output_format(self) -> DatasheetFormat:
        return DatasheetFormat("csv", self.output_header)

    @property
    def operators(self) -> OpSeq:
        return OpSeq.parse(self.opseq) if self.opseq else OpSeq([])

    @property
    def checkpoint_dir(self) -> str:
        return self.cache_dir if self.cache_dir is not None else self.output_dir

    @property
    def identity(self) -> SourceIdentity:
        """Identity of a csv source; lnk input takes its identity from the file."""
        return SourceIdentity(
            source=self.source,
            xexpr=self.xexpr,
            yexpr=self.yexpr,
            input_format=str(self.format),
            row_filter=self.row_filter,
        )
