"""Shared pytest configuration and fixtures for sheetplot tests."""

import numpy as np
import pytest

from sheetplot.config import PipelineConfig
from sheetplot.sheet.model import Datasheet


def pytest_addoption(parser):
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Include tests marked @pytest.mark.slow (e.g. real gnuplot / mlr)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow (skipped unless --run-slow)")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-slow"):
        return
    skip = pytest.mark.skip(reason="slow test, pass --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def latency_csv(tmp_path):
    """A small headed table: time, latency, bytes."""
    path = tmp_path / "latency.csv"
    path.write_text(
        "time,latency,bytes\n"
        "5,1.5,100\n"
        "1,0.5,300\n"
        "3,2.5,200\n"
        "2,1.0,100\n"
        "4,0.5,400\n"
    )
    return path


@pytest.fixture
def headless_csv(tmp_path):
    path = tmp_path / "plain.csv"
    path.write_text("1,2\n3,4\n")
    return path


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def make_config(latency_csv, cache_dir):
    """Build a PipelineConfig over ``latency_csv`` with overridable fields."""

    def _make(**overrides) -> PipelineConfig:
        fields = dict(
            source=str(latency_csv),
            xexpr="@time@",
            yexpr="@latency@ * 2",
            has_header=True,
            cache_dir=str(cache_dir),
        )
        fields.update(overrides)
        return PipelineConfig(**fields)

    return _make


@pytest.fixture
def merge_sheet() -> Datasheet:
    return Datasheet.from_arrays("x", [1, 1, 2, 2, 2, 3], "y", [1, 2, 3, 4, 5, 6])


@pytest.fixture
def random_sheet() -> Datasheet:
    rng = np.random.default_rng(7)
    return Datasheet.from_arrays("x", rng.permutation(50).astype(float), "y", rng.normal(size=50))
