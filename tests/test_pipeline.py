"""End-to-end tests of the summary pipeline on in-memory samples."""

from datetime import date

import polars as pl
import pytest

from trajectory_summary.config import SummaryConfig
from trajectory_summary.errors import (
    DroppedVariableWarning,
    InvalidTypeError,
    NotFoundError,
)
from trajectory_summary.pipeline import SummaryResult, summarize
from trajectory_summary.sources import InMemorySampleSource, ParquetDirectorySource

from conftest import trajectory


def var_times(table, name):
    return sorted(table.filter(pl.col("var") == name)["time"].unique().to_list())


class FlakySource(InMemorySampleSource):
    """Loses its parameter files between listing and reading."""

    def read(self, variables, *, init_to_param=False):
        if "theta" in variables:
            raise NotFoundError("theta.parquet vanished")
        return super().read(variables, init_to_param=init_to_param)


class TestSummarize:
    def test_all_categories(self, source, model):
        result = summarize(source, model=model)
        assert isinstance(result, SummaryResult)
        assert set(result.tables()) == {
            "trajectories",
            "raw_trajectories",
            "observations",
            "params",
            "param_wide",
            "correlations",
            "logevals",
        }

    def test_trajectories_restricted_to_observed_times(self, source, model):
        result = summarize(source, model=model)
        summary = result.trajectories
        assert sorted(summary["var"].unique().to_list()) == ["eps", "x", "y_obs"]
        assert var_times(summary, "y_obs") == [0, 2]
        assert var_times(summary, "x") == [0, 1, 2]

    def test_observations_conformed(self, source, model):
        result = summarize(source, model=model)
        obs = result.observations
        assert obs["var"].to_list() == ["y_obs", "y_obs"]
        assert obs["min_1"].to_list() == [0.0, 0.0]
        assert set(obs.columns) <= set(result.trajectories.columns)

    def test_trend_and_bands(self, source, model):
        config = SummaryConfig(categories=["state"], trend="mean", quantiles=[1.0])
        summary = summarize(source, config, model=model).trajectories
        assert summary["value"].to_list() == [4.5, 5.5, 6.5]
        assert summary["min_1"].to_list() == [0.0, 1.0, 2.0]
        assert summary["max_1"].to_list() == [9.0, 10.0, 11.0]
        assert not summary["single"].any()

    def test_all_times(self, source, model):
        config = SummaryConfig(categories=["obs"], all_times=True)
        summary = summarize(source, config, model=model).trajectories
        assert var_times(summary, "y_obs") == [0, 1, 2]

    def test_limit_to_data(self, source, model):
        config = SummaryConfig(categories=["state", "obs"], limit_to_data=True)
        summary = summarize(source, config, model=model).trajectories
        assert var_times(summary, "x") == [0, 2]

    def test_observations_given_explicitly(self, source, model):
        config = SummaryConfig(categories=["state"])
        obs = {"x": pl.DataFrame({"time": [1], "value": [0.0]})}
        result = summarize(source, config, model=model, observations=obs)
        assert var_times(result.trajectories, "x") == [1]
        assert result.observations.height == 1

    def test_burn_in(self, source, model):
        result = summarize(source, SummaryConfig(burn=5), model=model)
        assert result.raw_trajectories["np"].min() == 5
        assert result.params["np"].min() == 5
        assert result.logevals["np"].min() == 5

    def test_threshold_removes_time_slice(self, source, model):
        config = SummaryConfig(categories=["state"], threshold={"x": {"upper": 10}})
        result = summarize(source, config, model=model)
        assert var_times(result.trajectories, "x") == [0, 1]
        assert var_times(result.raw_trajectories, "x") == [0, 1]

    def test_draw_selection(self, source, model):
        config = SummaryConfig(selection={"np": [1, 2]})
        result = summarize(source, config, model=model)
        assert sorted(result.raw_trajectories["np"].unique().to_list()) == [1, 2]
        # parameters have no time dimension, so every draw is kept
        assert result.params.filter(pl.col("parameter") == "theta").height == 10
        assert result.correlations is None
        assert result.param_wide is None

    def test_time_selection_on_calendar_axis(self, source, model):
        config = SummaryConfig(
            categories=["state"],
            date_unit="day",
            date_origin="2020-01-01",
            selection={"time": [1]},
        )
        summary = summarize(source, config, model=model).trajectories
        assert summary["time"].to_list() == [date(2020, 1, 2)]
        assert summary["time_next"].to_list() == [date(2020, 1, 3)]

    def test_color_np_for_draw_overlays(self, model):
        tables = {"x": trajectory(n_draws=3).with_columns(pl.lit("red").alias("color"))}
        config = SummaryConfig(
            categories=["state"], extra_dims=["color"], selection={"np": [0, 1]}
        )
        raw = summarize(InMemorySampleSource(tables), config, model=model).raw_trajectories
        assert sorted(raw["color_np"].unique().to_list()) == ["red_0", "red_1"]

    def test_single_draw_marked(self, model):
        tables = {"x": pl.DataFrame({"np": [0], "time": [0], "value": [4.0]})}
        config = SummaryConfig(categories=["state"])
        result = summarize(InMemorySampleSource(tables), config, model=model)
        assert result.trajectories["single"].to_list() == [True]
        assert result.raw_trajectories["single"].to_list() == [True]

    def test_parameters_with_initial_values(self, source, model):
        params = summarize(source, SummaryConfig(categories=["param"]), model=model).params
        assert params["parameter"].unique(maintain_order=True).to_list() == ["theta", "sigma", "x_0"]
        varying = dict(params.group_by("parameter").agg(pl.col("varying").first()).rows())
        assert varying == {"theta": True, "sigma": False, "x_0": True}

    def test_prior(self, source, model):
        prior = InMemorySampleSource({"theta": pl.DataFrame({"np": [0, 1], "value": [5.0, 6.0]})})
        config = SummaryConfig(categories=["param"], correlations=False)
        result = summarize(source, config, model=model, prior=prior)
        counts = dict(result.params.group_by("distribution").len().rows())
        assert counts["prior"] == 2
        assert result.correlations is None

    def test_threshold_removes_time_across_extra_dims(self, model):
        x = pl.DataFrame({
            "np": [0, 0, 0, 0],
            "grp": ["a", "b", "a", "b"],
            "time": [4, 4, 5, 5],
            "value": [1.0, 2.0, 3.0, 12.0],
        })
        config = SummaryConfig(
            categories=["state"], extra_dims=["grp"], threshold={"x": {"upper": 10}}
        )
        result = summarize(InMemorySampleSource({"x": x}), config, model=model)
        assert var_times(result.trajectories, "x") == [4]
        assert sorted(result.trajectories["grp"].to_list()) == ["a", "b"]
        assert result.raw_trajectories["time"].to_list() == [4, 4]

    def test_model_file(self, source, tmp_path):
        path = tmp_path / "model.bi"
        path.write_text("model M {\n  state x\n  obs y_obs\n}\n")
        result = summarize(source, SummaryConfig(categories=["state"]), model=path)
        assert result.trajectories["var"].unique().to_list() == ["x"]


class TestPartialResults:
    def test_categories_without_rows_absent(self, source, model):
        result = summarize(source, SummaryConfig(categories=["logeval"]), model=model)
        assert list(result.tables()) == ["logevals"]
        assert result.trajectories is None

    def test_without_model_only_logevals(self, source):
        result = summarize(source)
        assert list(result.tables()) == ["logevals"]

    def test_burn_beyond_data_drops_everything(self, source, model):
        with pytest.warns(DroppedVariableWarning):
            result = summarize(source, SummaryConfig(burn=50), model=model)
        assert result.is_empty()
        assert "empty" in repr(result)

    def test_missing_parameter_file_scoped_to_category(self, tables, observations, model):
        source = FlakySource(tables, observations=InMemorySampleSource(observations))
        with pytest.warns(DroppedVariableWarning, match="vanished"):
            result = summarize(source, model=model)
        assert result.params is None
        assert result.trajectories is not None
        assert result.logevals is not None

    def test_missing_prior_scoped_to_prior(self, source, model, tmp_path):
        prior = ParquetDirectorySource(tmp_path / "no_prior")
        with pytest.warns(DroppedVariableWarning, match="prior"):
            result = summarize(source, model=model, prior=prior)
        assert "prior" not in result.params["distribution"].to_list()
        assert result.trajectories is not None
        assert result.logevals is not None

    def test_missing_observations_fatal(self, source, model, tmp_path):
        with pytest.raises(NotFoundError):
            summarize(source, model=model, observations=tmp_path / "absent")

    def test_invalid_category_fails_before_running(self):
        with pytest.raises(InvalidTypeError):
            SummaryConfig(categories=["trajectories"])
