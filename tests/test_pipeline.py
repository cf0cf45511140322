"""
Tests for the pipeline driver.

Runs whole pipelines against small CSV files with injected collaborators
(RecordingRenderer instead of gnuplot, RecordingRowFilter instead of mlr)
and checks that resuming from any checkpoint gives exactly the datasheet a
fresh run gives.
"""

import io

import pytest
from pydantic import ValidationError

from sheetplot.cache import read_header
from sheetplot.config import PipelineConfig
from sheetplot.exceptions import InputError, InvalidColumnReference, PipelineError, PreconditionError
from sheetplot.ops import OpSeq
from sheetplot.pipeline import Pipeline, PipelineState, run_pipeline
from tests.helpers.comparison import assert_datasheet_equal
from tests.helpers.recording_renderer import RecordingRenderer
from tests.helpers.recording_row_filter import RecordingRowFilter


def output_lines(config, **kwargs):
    buf = io.StringIO()
    run_pipeline(config, output=buf, **kwargs)
    return buf.getvalue().splitlines()


class TestFreshRun:
    """Test Suite for runs that start from the raw input."""

    def test_sort_and_output(self, make_config):
        assert output_lines(make_config(opseq="oO")) == [
            "@time@,@latency@ * 2",
            "1.0,1.0",
            "2.0,2.0",
            "3.0,5.0",
            "4.0,1.0",
            "5.0,3.0",
        ]

    def test_output_without_header(self, make_config):
        lines = output_lines(make_config(opseq="O", output_header=False))
        assert lines[0] == "5.0,3.0"
        assert len(lines) == 5

    def test_output_after_each_transform(self, make_config):
        lines = output_lines(make_config(opseq="OoiO"))
        assert lines[0] == "@time@,@latency@ * 2"
        assert lines[6] == "@time@,@latency@ * 2:Integral"
        assert lines[-1] == "5.0,12.0"

    def test_empty_operator_sequence(self, make_config):
        result = run_pipeline(make_config())
        assert result.datasheet.names == ["@time@", "@latency@ * 2"]
        assert list(result.datasheet.y.data) == [3.0, 1.0, 5.0, 2.0, 1.0]
        assert result.resumed_from is None
        assert result.checkpoints == []

    def test_render(self, make_config):
        renderer = RecordingRenderer()
        run_pipeline(make_config(opseq="PoPd1P"), renderer=renderer)
        assert renderer.calls == 3
        assert renderer.names == [
            ("@time@", "@latency@ * 2"),
            ("@time@", "@latency@ * 2"),
            ("@time@", "@latency@ * 2:Derivation"),
        ]
        x, y = renderer.columns(1)
        assert list(x) == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_names_match_prediction(self, make_config):
        opseq = "od1rcia0.5fum"
        result = run_pipeline(make_config(opseq=opseq))
        assert tuple(result.datasheet.names) == OpSeq.parse(opseq).column_names("@time@", "@latency@ * 2")

    def test_headless_input(self, headless_csv, cache_dir):
        config = PipelineConfig(source=str(headless_csv), xexpr="#2", yexpr="#A * 10", cache_dir=str(cache_dir))
        result = run_pipeline(config)
        assert list(result.datasheet.x.data) == [2.0, 4.0]
        assert list(result.datasheet.y.data) == [10.0, 30.0]

    def test_state_transitions(self, make_config):
        pipeline = Pipeline(make_config(opseq="o"))
        assert pipeline.state is PipelineState.INIT
        pipeline.run()
        assert pipeline.state is PipelineState.TERMINAL


class TestCheckpoints:
    """Test Suite for writing checkpoints and resuming from them."""

    def test_checkpoints_are_written(self, make_config, cache_dir):
        result = run_pipeline(make_config(opseq="oCiCO"), output=io.StringIO())
        assert len(result.checkpoints) == 2
        assert sorted(p.name for p in cache_dir.glob("*.lnk")) == sorted(p.name for p in result.checkpoints)

    def test_cache_dir_defaults_to_output_dir(self, latency_csv, tmp_path):
        out = tmp_path / "out"
        config = PipelineConfig(
            source=str(latency_csv), xexpr="#1", yexpr="#2", has_header=True, opseq="oC", output_dir=str(out)
        )
        result = run_pipeline(config)
        assert result.checkpoints[0].parent == out

    def test_second_run_resumes(self, make_config):
        first = run_pipeline(make_config(opseq="oid1C"))
        second = run_pipeline(make_config(opseq="oid1C"))
        assert first.resumed_from is None
        assert second.resumed_from == "oid1"
        assert second.checkpoints == first.checkpoints
        assert_datasheet_equal(second.datasheet, first.datasheet)

    @pytest.mark.parametrize("n", [1, 2, 3])
    def test_resume_from_every_prefix_matches_fresh_run(self, make_config, tmp_path, n):
        yexpr = "@bytes@ + @time@"
        opseq = OpSeq.parse("cod5")
        fresh = run_pipeline(make_config(opseq=str(opseq), yexpr=yexpr, cache_dir=str(tmp_path / "fresh")))

        stored = opseq.prefix(n)
        run_pipeline(make_config(opseq=stored + "C", yexpr=yexpr))
        resumed = run_pipeline(make_config(opseq=str(opseq), yexpr=yexpr))

        assert resumed.resumed_from == stored
        assert_datasheet_equal(resumed.datasheet, fresh.datasheet)

    def test_longest_prefix_is_used(self, make_config):
        yexpr = "@bytes@ + @time@"
        run_pipeline(make_config(opseq="cCoC", yexpr=yexpr))
        assert run_pipeline(make_config(opseq="cod5", yexpr=yexpr)).resumed_from == "co"
        assert run_pipeline(make_config(opseq="cd5", yexpr=yexpr)).resumed_from == "c"

    def test_dumps_inside_restored_prefix_are_not_replayed(self, make_config):
        run_pipeline(make_config(opseq="oiC"))
        renderer = RecordingRenderer()
        lines = output_lines(make_config(opseq="oPiOd1P"), renderer=renderer)
        assert renderer.calls == 1
        assert lines[0] == "@time@,@latency@ * 2:Integral"

    def test_history_extends_across_runs(self, make_config):
        run_pipeline(make_config(opseq="oC"))
        result = run_pipeline(make_config(opseq="oiC"))
        header = read_header(result.checkpoints[-1])
        assert header.history == ("o", "oi")

    def test_different_expressions_do_not_share_checkpoints(self, make_config):
        run_pipeline(make_config(opseq="oC"))
        assert run_pipeline(make_config(opseq="oC", yexpr="@latency@")).resumed_from is None

    def test_failure_keeps_earlier_checkpoints(self, make_config, cache_dir):
        config = make_config(opseq="oCd1", xexpr="@latency@")
        with pytest.raises(PipelineError) as excinfo:
            run_pipeline(config)
        assert excinfo.value.index == 2
        assert excinfo.value.opcode == "d"
        assert isinstance(excinfo.value.__cause__, PreconditionError)
        assert "duplicated values" in str(excinfo.value)
        assert len(list(cache_dir.glob("*.lnk"))) == 1

        result = run_pipeline(make_config(opseq="om", xexpr="@latency@"))
        assert result.resumed_from == "o"


class TestCheckpointInput:
    """Test Suite for runs whose input is a checkpoint file."""

    def test_resume_from_lnk(self, make_config, tmp_path):
        stored = run_pipeline(make_config(opseq="oiC")).checkpoints[0]
        fresh = run_pipeline(make_config(opseq="oid1", cache_dir=str(tmp_path / "fresh")))

        config = PipelineConfig(source=str(stored), input_format="lnk", opseq="oid1")
        result = run_pipeline(config)
        assert result.resumed_from == "oi"
        assert_datasheet_equal(result.datasheet, fresh.datasheet)

    def test_lnk_falls_back_to_original_source(self, make_config, tmp_path):
        stored = run_pipeline(make_config(opseq="oiC")).checkpoints[0]
        fresh = run_pipeline(make_config(opseq="c", cache_dir=str(tmp_path / "fresh")))

        result = run_pipeline(PipelineConfig(source=str(stored), input_format="lnk", opseq="c"))
        assert result.resumed_from is None
        assert_datasheet_equal(result.datasheet, fresh.datasheet)

    def test_corrupt_lnk(self, tmp_path):
        path = tmp_path / "broken.lnk"
        path.write_text("source: x\n")
        with pytest.raises(PipelineError, match="no metadata delimiter"):
            run_pipeline(PipelineConfig(source=str(path), input_format="lnk", opseq="o"))


class TestInputs:
    """Test Suite for raw input handling."""

    def test_row_filter(self, make_config):
        row_filter = RecordingRowFilter(lambda t: t >= 3)
        config = make_config(opseq="oC", row_filter="$time >= 3")
        result = run_pipeline(config, row_filter=row_filter)
        assert list(result.datasheet.x.data) == [3.0, 4.0, 5.0]
        assert row_filter.inputs[0].startswith(b"time,latency,bytes\n")

        run_pipeline(config, row_filter=row_filter)
        assert len(row_filter.inputs) == 1

    def test_row_filter_is_part_of_cache_identity(self, make_config):
        run_pipeline(make_config(opseq="oC"))
        config = make_config(opseq="oC", row_filter="$time >= 3")
        result = run_pipeline(config, row_filter=RecordingRowFilter(lambda t: t >= 3))
        assert result.resumed_from is None
        assert len(result.datasheet) == 3

    def test_stdin(self, cache_dir):
        config = PipelineConfig(source="-", xexpr="#2", yexpr="#1", opseq="CO", cache_dir=str(cache_dir))
        lines = output_lines(config, stdin=io.BytesIO(b"1,2\n3,4\n"))
        assert lines == ["#2,#1", "2.0,1.0", "4.0,3.0"]

    def test_stdin_is_never_resumed(self, cache_dir):
        config = PipelineConfig(source="-", xexpr="#1", yexpr="#2", opseq="oC", cache_dir=str(cache_dir))
        run_pipeline(config, stdin=io.BytesIO(b"1,2\n"))
        result = run_pipeline(config, stdin=io.BytesIO(b"5,6\n"))
        assert result.resumed_from is None
        assert list(result.datasheet.x.data) == [5.0]

    def test_stdin_with_row_filter(self, cache_dir):
        config = PipelineConfig(source="-", xexpr="#1", yexpr="#2", row_filter="$1 > 2", cache_dir=str(cache_dir))
        row_filter = RecordingRowFilter(lambda v: v > 2, has_header=False)
        result = run_pipeline(config, row_filter=row_filter, stdin=io.BytesIO(b"1,2\n3,4\n"))
        assert list(result.datasheet.x.data) == [3.0]

    def test_missing_source(self, tmp_path, cache_dir):
        config = PipelineConfig(source=str(tmp_path / "missing.csv"), xexpr="#1", yexpr="#2", cache_dir=str(cache_dir))
        with pytest.raises(PipelineError) as excinfo:
            run_pipeline(config)
        assert excinfo.value.index is None
        assert isinstance(excinfo.value.__cause__, InputError)

    def test_unknown_column_title(self, make_config):
        with pytest.raises(PipelineError) as excinfo:
            run_pipeline(make_config(yexpr="@nope@"))
        assert isinstance(excinfo.value.__cause__, InvalidColumnReference)
        assert "@nope@\n^" in str(excinfo.value)

    def test_title_reference_needs_header_row(self, tmp_path, cache_dir):
        path = tmp_path / "plain.csv"
        path.write_text("10,20\n30,40\n")
        config = PipelineConfig(source=str(path), xexpr="@1@", yexpr="@2@", cache_dir=str(cache_dir))
        with pytest.raises(PipelineError) as excinfo:
            run_pipeline(config)
        assert isinstance(excinfo.value.__cause__, InvalidColumnReference)
        assert "does the input have a header row?" in str(excinfo.value)

    def test_title_reference_on_headerless_stdin(self, cache_dir):
        config = PipelineConfig(source="-", xexpr="#1", yexpr="@2@", cache_dir=str(cache_dir))
        with pytest.raises(PipelineError) as excinfo:
            run_pipeline(config, stdin=io.BytesIO(b"1,2\n3,4\n"))
        assert isinstance(excinfo.value.__cause__, InvalidColumnReference)


class TestConfig:
    """Test Suite for PipelineConfig validation."""

    def test_defaults(self, latency_csv):
        config = PipelineConfig(source=str(latency_csv), xexpr="#1", yexpr="#2")
        assert config.checkpoint_dir == "."
        assert str(config.format) == "csv(false)"
        assert str(config.output_format) == "csv(true)"
        assert len(config.operators) == 0
        assert config.identity.input_format == "csv(false)"

    @pytest.mark.parametrize(
        "fields",
        [
            dict(xexpr="#1"),
            dict(xexpr="#1", yexpr="#2", opseq="q"),
            dict(xexpr="#1", yexpr="#2", opseq="d"),
            dict(xexpr="#1", yexpr="#2", input_format="tsv"),
            dict(xexpr="#1", yexpr="#2", colour="red"),
        ],
    )
    def test_invalid(self, fields):
        with pytest.raises(ValidationError):
            PipelineConfig(source="data.csv", **fields)

    def test_lnk_needs_no_expressions(self):
        config = PipelineConfig(source="a.lnk", input_format="lnk")
        assert config.format.is_checkpoint

    def test_frozen(self, latency_csv):
        config = PipelineConfig(source=str(latency_csv), xexpr="#1", yexpr="#2")
        with pytest.raises(ValidationError):
            config.opseq = "o"
