"""Tests for the fire command-line entry point."""

import pytest

from sheetplot.cli import SheetplotCLI


class TestCLI:
    """Test Suite for SheetplotCLI."""

    def test_run_writes_output(self, latency_csv, cache_dir, capsys):
        SheetplotCLI().run(
            str(latency_csv), opseq="oO", x="@time@", y="#3", header=True, cache_dir=str(cache_dir)
        )
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "@time@,#3"
        assert lines[1] == "1.0,300.0"

    def test_run_reports_errors(self, latency_csv, cache_dir, capsys):
        with pytest.raises(SystemExit) as excinfo:
            SheetplotCLI().run(str(latency_csv), opseq="oCd1", x="@latency@", y="#1", header=True, cache_dir=str(cache_dir))
        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert "Error: Operator #2 'd1' failed" in err
        assert "duplicated values" in err

    def test_run_rejects_bad_opseq(self, latency_csv, capsys):
        with pytest.raises(SystemExit):
            SheetplotCLI().run(str(latency_csv), opseq="z", x="#1", y="#2")
        assert "Unknown transform operator 'z'" in capsys.readouterr().err

    def test_prefixes(self, latency_csv, cache_dir, capsys):
        cli = SheetplotCLI()
        cli.run(str(latency_csv), opseq="oCiC", x="#1", y="#2", header=True, cache_dir=str(cache_dir))
        capsys.readouterr()
        cli.prefixes(str(latency_csv), x="#1", y="#2", header=True, cache_dir=str(cache_dir))
        assert capsys.readouterr().out.splitlines() == ["o", "oi"]
