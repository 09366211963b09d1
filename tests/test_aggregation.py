"""Tests for collapsing and quantile-band aggregation."""

import polars as pl
import pytest
from hypothesis import given, settings, strategies as st

from trajectory_summary.core.aggregation import (
    QuantileBands,
    collapse_duplicates,
    mark_single,
    summary_dims,
)
from trajectory_summary.core.timeaxis import TimeAxis
from trajectory_summary.core.types import Discretization, TrendKind


def scenario():
    """Two draws of ``x`` at two times."""
    table = pl.DataFrame(
        {
            "var": ["x"] * 4,
            "np": [0, 1, 0, 1],
            "time": [0, 0, 1, 1],
            "value": [1.0, 3.0, 2.0, 4.0],
        }
    )
    return TimeAxis().normalize(table)


class TestCollapse:
    def test_duplicates_summed(self):
        table = pl.DataFrame(
            {"np": [0, 0, 0], "time": [0, 0, 1], "age": ["a", "b", "a"], "value": [1.0, 2.0, 5.0]}
        )
        out = collapse_duplicates(TimeAxis().normalize(table)).sort("time")
        assert out["value"].to_list() == [3.0, 5.0]
        assert "age" not in out.columns

    def test_extra_dims_kept(self):
        table = pl.DataFrame(
            {"np": [0, 0], "time": [0, 0], "age": ["a", "b"], "value": [1.0, 2.0]}
        )
        out = collapse_duplicates(TimeAxis().normalize(table), ["age"])
        assert out.height == 2

    def test_missing_dims_filled(self):
        table = pl.DataFrame({"np": [0, 1], "value": [1.0, 2.0]})
        out = collapse_duplicates(table, ["age"])
        assert out["time"].to_list() == [None, None]
        assert out["time_next"].to_list() == [None, None]
        assert out["age"].to_list() == ["n/a", "n/a"]

    def test_timeless_variable_keeps_time_dtype(self):
        timed = collapse_duplicates(scenario().drop("var"))
        timeless = collapse_duplicates(pl.DataFrame({"np": [0, 1], "value": [1.0, 2.0]}))
        stacked = pl.concat([timed, timeless], how="diagonal_relaxed")
        assert stacked.schema["time"] == pl.Int64

    def test_summary_dims(self):
        assert summary_dims(["age", "time"]) == ["np", "time", "time_next", "age"]


class TestQuantileBands:
    def test_two_draw_scenario(self):
        bands = QuantileBands(trend=TrendKind.MEAN, quantiles=(0.5,))
        out = bands.aggregate(scenario())
        assert out["time"].to_list() == [0, 1]
        assert out["value"].to_list() == [2.0, 3.0]
        assert out["min_1"].to_list() == [1.0, 2.0]
        assert out["max_1"].to_list() == [3.0, 4.0]
        assert out["single"].to_list() == [False, False]

    def test_columns(self):
        out = QuantileBands().aggregate(scenario())
        assert out.columns == [
            "var", "time", "time_next", "value", "min_1", "max_1", "min_2", "max_2", "single"
        ]

    def test_median_trend(self, state_table):
        table = TimeAxis().normalize(state_table).with_columns(pl.lit("x").alias("var"))
        out = QuantileBands().aggregate(table)
        # draws 0..9 plus time
        assert out["value"].to_list() == [4.5, 5.5, 6.5]

    def test_no_trend_gives_null_value(self):
        out = QuantileBands(trend=TrendKind.NONE).aggregate(scenario())
        assert out["value"].null_count() == 2
        assert out.schema["value"] == pl.Float64

    def test_single_group(self):
        table = pl.DataFrame({"var": ["x"], "np": [0], "time": [4], "value": [7.0]})
        out = QuantileBands(quantiles=(0.5, 0.95)).aggregate(TimeAxis().normalize(table))
        row = out.row(0, named=True)
        assert row["single"] is True
        assert row["value"] == 7.0
        assert row["min_1"] == row["max_1"] == row["min_2"] == row["max_2"] == 7.0

    def test_stepped_nulls_bounds_at_last_time(self):
        bands = QuantileBands(quantiles=(0.5,), discretization=Discretization.STEPPED)
        out = bands.aggregate(scenario())
        assert out["min_1"].to_list() == [1.0, None]
        assert out["max_1"].to_list() == [3.0, None]
        assert out["value"].to_list() == [2.0, 3.0]

    def test_stepped_with_timeless_variable(self):
        timed = pl.DataFrame(
            {
                "np": [n for n in range(2) for _ in range(12)],
                "time": list(range(12)) * 2,
                "value": [float(t) for t in range(24)],
            }
        )
        frames = [
            collapse_duplicates(TimeAxis().normalize(timed)).with_columns(pl.lit("x").alias("var")),
            collapse_duplicates(
                pl.DataFrame({"np": [0, 1], "value": [1.0, 2.0]})
            ).with_columns(pl.lit("w").alias("var")),
        ]
        bands = QuantileBands(quantiles=(0.5,), discretization=Discretization.STEPPED)
        out = bands.aggregate(pl.concat(frames, how="diagonal_relaxed"))
        x = out.filter(pl.col("var") == "x")
        assert x.filter(pl.col("min_1").is_null())["time"].to_list() == [11]
        assert out.filter(pl.col("var") == "w")["min_1"].to_list() == [1.0]

    def test_groups_by_extra_dims(self):
        table = pl.DataFrame(
            {
                "var": ["x"] * 4,
                "np": [0, 1, 0, 1],
                "time": [0, 0, 0, 0],
                "age": ["a", "a", "b", "b"],
                "value": [1.0, 3.0, 10.0, 30.0],
            }
        )
        out = QuantileBands(trend=TrendKind.MEAN).aggregate(TimeAxis().normalize(table), ["age"])
        assert out.sort("age")["value"].to_list() == [2.0, 20.0]

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Quantile level"):
            QuantileBands(quantiles=(0.0,))

    @settings(max_examples=50, deadline=None)
    @given(
        values=st.lists(
            st.floats(min_value=-1e6, max_value=1e6, allow_nan=False),
            min_size=3,
            max_size=40,
            unique=True,
        ),
        levels=st.lists(
            st.floats(min_value=0.01, max_value=1.0), min_size=2, max_size=2, unique=True
        ),
    )
    def test_wider_level_contains_narrower(self, values, levels):
        narrow, wide = sorted(levels)
        table = pl.DataFrame(
            {
                "var": ["x"] * len(values),
                "np": list(range(len(values))),
                "time": [0] * len(values),
                "value": values,
            }
        )
        row = QuantileBands(quantiles=(narrow, wide)).aggregate(table).row(0, named=True)
        assert row["min_2"] <= row["min_1"] <= row["max_1"] <= row["max_2"]


class TestMarkSingle:
    def test_draw_with_one_row_flagged(self):
        table = pl.DataFrame(
            {"var": ["x", "x", "y"], "np": [0, 0, 0], "time": [0, 1, 0], "value": [1.0, 2.0, 3.0]}
        )
        out = mark_single(table)
        assert out["single"].to_list() == [False, False, True]
