"""
Unit tests for transform operators.

Tests cover:
- Each transform's data effect, output names and sortedness flags
- Precondition failures (duplicated x, INF/NAN)
- Operator construction and argument validation
"""

import numpy as np
import pytest

from sheetplot.exceptions import PreconditionError
from sheetplot.ops import (
    CDF,
    Average,
    Derivative,
    FilterFinite,
    Integral,
    Merge,
    Output,
    Rotate,
    SaveCheckpoint,
    Sort,
    Step,
    Unique,
    apply_transform,
    build_operator,
    format_number,
    is_transform,
    transformed_names,
)
from sheetplot.sheet.model import Datasheet
from tests.helpers.comparison import assert_datasheet_equal


def sheet(x, y, x_sorted=False):
    return Datasheet.from_arrays("x", x, "y", y, x_sorted=x_sorted)


class TestCDF:
    """Test Suite for the CDF operator."""

    def test_cdf(self):
        result = apply_transform(CDF(), sheet([0, 0, 0, 0], [3, 1, 2, 4]))
        assert list(result.x.data) == [1, 2, 3, 4]
        assert list(result.y.data) == [0.25, 0.5, 0.75, 1.0]
        assert result.names == ["y", "CDF"]
        assert result.x.sorted is True
        assert result.y.sorted is False

    def test_cdf_random(self, random_sheet):
        n = len(random_sheet)
        expected_x = np.sort(random_sheet.y.data)
        result = apply_transform(CDF(), random_sheet)
        assert np.array_equal(result.x.data, expected_x)
        assert np.allclose(result.y.data, np.arange(1, n + 1) / n)

    def test_cdf_rejects_non_finite(self):
        with pytest.raises(PreconditionError, match="INF/NAN"):
            apply_transform(CDF(), sheet([1, 2], [1, np.inf]))

    def test_cdf_empty(self):
        result = apply_transform(CDF(), sheet([], []))
        assert len(result) == 0


class TestDerivative:
    """Test Suite for the Derivative operator."""

    def test_window_anchor_walk(self):
        ds = sheet([0, 1, 2, 3, 4, 5], [0, 1, 4, 9, 16, 25])
        result = apply_transform(Derivative((2.0,)), ds)
        assert list(result.x.data) == [2, 4]
        assert list(result.y.data) == [2.0, 6.0]
        assert result.names == ["x", "y:Derivation"]
        assert result.x.sorted is True

    def test_window_sorts_first(self):
        ds = sheet([3, 1, 2], [9, 1, 4])
        result = apply_transform(Derivative((1.0,)), ds)
        assert list(result.x.data) == [2, 3]
        assert list(result.y.data) == [3.0, 5.0]

    def test_left_right_windows(self):
        ds = sheet([0, 1, 2, 3, 4], [0, 2, 4, 6, 8])
        result = apply_transform(Derivative((1.0, 1.0)), ds)
        assert list(result.x.data) == [1, 2, 3]
        assert list(result.y.data) == [2.0, 2.0, 2.0]

    def test_asymmetric_windows(self):
        ds = sheet([0, 1, 2, 3], [0, 1, 4, 9])
        result = apply_transform(Derivative((0.0, 1.0)), ds)
        # forward differences: (x_i, x_{i+1})
        assert list(result.x.data) == [0, 1, 2]
        assert list(result.y.data) == [1.0, 3.0, 5.0]

    def test_duplicated_x(self):
        with pytest.raises(PreconditionError, match="duplicated values"):
            apply_transform(Derivative((1.0,)), sheet([1, 1, 2], [1, 2, 3]))

    def test_non_finite_x(self):
        with pytest.raises(PreconditionError, match="INF/NAN"):
            apply_transform(Derivative((1.0,)), sheet([1, np.nan], [1, 2]))

    def test_non_finite_x_already_flagged_sorted(self):
        with pytest.raises(PreconditionError, match="INF/NAN"):
            apply_transform(Derivative((1.0,)), sheet([1, np.inf], [1, 2], x_sorted=True))

    @pytest.mark.parametrize("args", [(0.0,), (-1.0,), (0.0, 0.0), (1.0, 2.0, 3.0), ()])
    def test_invalid_windows(self, args):
        with pytest.raises(ValueError):
            Derivative(args)


class TestIntegral:
    """Test Suite for the Integral operator."""

    def test_integral(self):
        result = apply_transform(Integral(), sheet([3, 1, 2], [30, 10, 20]))
        assert list(result.x.data) == [1, 2, 3]
        assert list(result.y.data) == [10, 30, 60]
        assert result.names == ["x", "y:Integral"]
        assert result.x.sorted is True

    def test_duplicated_x(self):
        with pytest.raises(PreconditionError, match="duplicated values"):
            apply_transform(Integral(), sheet([2, 1, 2], [1, 2, 3]))


class TestMerge:
    """Test Suite for the Merge operator."""

    def test_merge(self, merge_sheet):
        result = apply_transform(Merge(), merge_sheet)
        assert list(result.x.data) == [1, 2, 3]
        assert list(result.y.data) == [3, 12, 6]
        assert result.names == ["x", "y:Merge"]

    def test_merge_only_folds_consecutive_runs(self):
        result = apply_transform(Merge(), sheet([1, 2, 1], [1, 1, 1]))
        assert list(result.x.data) == [1, 2, 1]

    def test_merge_resets_flags(self):
        result = apply_transform(Merge(), sheet([1, 1, 2], [1, 2, 3], x_sorted=True))
        assert result.x.sorted is False
        assert result.y.sorted is False

    def test_merge_empty(self):
        assert len(apply_transform(Merge(), sheet([], []))) == 0


class TestRotate:
    """Test Suite for the Rotate operator."""

    def test_rotate(self):
        result = apply_transform(Rotate(), sheet([1, 2], [3, 4], x_sorted=True))
        assert result.names == ["y", "x"]
        assert list(result.x.data) == [3, 4]
        assert result.y.sorted is True

    def test_rotate_twice_is_identity(self, random_sheet):
        expected = random_sheet.copy()
        result = apply_transform(Rotate(), apply_transform(Rotate(), random_sheet))
        assert_datasheet_equal(result, expected)


class TestStep:
    """Test Suite for the Step operator."""

    def test_step(self):
        result = apply_transform(Step(), sheet([1, 2, 3], [10, 12, 15]))
        assert list(result.x.data) == [2, 3]
        assert list(result.y.data) == [2, 3]
        assert result.names == ["x", "y:Step"]

    @pytest.mark.parametrize("n", [0, 1])
    def test_step_short(self, n):
        assert len(apply_transform(Step(), sheet(range(n), range(n)))) == 0


class TestSort:
    """Test Suite for the Sort operator."""

    def test_sort(self):
        result = apply_transform(Sort(), sheet([3, 1, 2], [1, 2, 3]))
        assert list(result.x.data) == [1, 2, 3]
        assert list(result.y.data) == [2, 3, 1]
        assert result.names == ["x", "y"]
        assert result.x.sorted is True
        assert result.y.sorted is False

    def test_sort_is_idempotent(self, random_sheet):
        once = apply_transform(Sort(), random_sheet.copy())
        twice = apply_transform(Sort(), apply_transform(Sort(), random_sheet))
        assert_datasheet_equal(twice, once)

    def test_sort_rejects_non_finite(self):
        with pytest.raises(PreconditionError, match="INF/NAN"):
            apply_transform(Sort(), sheet([1, np.nan], [1, 2]))


class TestAverage:
    """Test Suite for the Average operator."""

    def test_symmetric_window(self):
        result = apply_transform(Average((1.0,)), sheet([0, 1, 2, 3], [0, 3, 6, 9]))
        assert list(result.y.data) == [1.5, 3.0, 6.0, 7.5]
        assert result.names == ["x", "y:Average"]

    def test_keeps_row_order(self):
        result = apply_transform(Average((0.0, 1.0)), sheet([2, 0, 1], [6, 0, 3]))
        assert list(result.x.data) == [2, 0, 1]
        assert list(result.y.data) == [6.0, 1.5, 4.5]

    def test_zero_window_averages_equal_x(self):
        result = apply_transform(Average((0.0,)), sheet([1, 1, 2], [2, 4, 7]))
        assert list(result.y.data) == [3.0, 3.0, 7.0]

    def test_nan_x_gives_nan(self):
        result = apply_transform(Average((1.0,)), sheet([np.nan, 0], [1, 2]))
        assert np.isnan(result.y.data[0])
        assert result.y.data[1] == 2.0

    def test_negative_window_rejected(self):
        with pytest.raises(ValueError):
            Average((-1.0,))


class TestFilterFinite:
    """Test Suite for the FilterFinite operator."""

    def test_filter(self):
        result = apply_transform(FilterFinite(), sheet([1, 2, 3, 4], [1, np.nan, np.inf, 4], x_sorted=True))
        assert list(result.x.data) == [1, 4]
        assert list(result.y.data) == [1, 4]
        assert result.names == ["x", "y:Finite"]
        assert result.x.sorted is True


class TestUnique:
    """Test Suite for the Unique operator."""

    def test_unique_keeps_first_of_each_run(self, merge_sheet):
        result = apply_transform(Unique(), merge_sheet)
        assert list(result.x.data) == [1, 2, 3]
        assert list(result.y.data) == [1, 3, 6]
        assert result.names == ["x", "y:Unique"]


class TestOperatorValues:
    """Test Suite for operator construction and rendering."""

    def test_build_operator(self):
        assert build_operator("c") == CDF()
        assert build_operator("d", [1.0]) == Derivative((1.0,))
        assert build_operator("C") == SaveCheckpoint()

    @pytest.mark.parametrize(
        "code,args,match",
        [
            ("x", [], "Unknown transform"),
            ("X", [], "Unknown dump"),
            ("c", [1.0], "takes 0"),
            ("d", [], "takes 1 or 2"),
            ("O", [2.0], "takes 0"),
        ],
    )
    def test_build_operator_errors(self, code, args, match):
        with pytest.raises(ValueError, match=match):
            build_operator(code, args)

    def test_str(self):
        assert str(Derivative((1.0,))) == "d1"
        assert str(Derivative((0.5, 2.0))) == "d0.5,2"
        assert str(Sort()) == "o"
        assert str(Output()) == "O"

    @pytest.mark.parametrize("value,text", [(1.0, "1"), (0.25, "0.25"), (1e-05, "0.00001"), (120.0, "120")])
    def test_format_number(self, value, text):
        assert format_number(value) == text

    def test_is_transform(self):
        assert is_transform(Merge())
        assert not is_transform(SaveCheckpoint())

    def test_transformed_names_chain(self):
        names = ("t", "v")
        for op in (Sort(), Derivative((1.0,)), CDF(), Rotate()):
            names = transformed_names(op, *names)
        assert names == ("CDF", "v:Derivation")
