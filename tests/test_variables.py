"""Tests for category parsing and variable resolution."""

import pytest

from trajectory_summary.core.types import Category
from trajectory_summary.core.variables import (
    ResolvedVariables,
    initial_value_variants,
    parse_categories,
    resolve_variables,
)
from trajectory_summary.errors import (
    InvalidTypeError,
    MissingVariableWarning,
    UnmatchedCategoryWarning,
)

EXISTING = ["x", "eps", "y_obs", "theta", "sigma", "loglikelihood", "logprior"]


class TestParseCategories:
    def test_known_names(self):
        assert parse_categories(["state", "param"]) == (Category.STATE, Category.PARAM)

    def test_duplicates_removed_in_order(self):
        assert parse_categories(["obs", "state", "obs"]) == (Category.OBS, Category.STATE)

    def test_accepts_members(self):
        assert parse_categories([Category.NOISE]) == (Category.NOISE,)

    def test_unknown_raises(self):
        with pytest.raises(InvalidTypeError, match="bogus"):
            parse_categories(["state", "bogus"])

    def test_invalid_type_is_value_error(self):
        with pytest.raises(ValueError):
            parse_categories(["states"])


class TestInitialValueVariants:
    def test_proposal_names_extracted(self, model):
        assert initial_value_variants(model, ["theta", "sigma"]) == ["x"]

    def test_declared_init_names_left_out(self, model):
        # theta_0 is the initial value of a declared parameter
        assert "theta_0" not in initial_value_variants(model, ["theta"])
        assert "theta_0" in initial_value_variants(model, ["sigma"])


class TestResolveVariables:
    def test_defaults_from_model(self, model):
        resolved = resolve_variables([Category.STATE, Category.OBS], EXISTING, model)
        assert resolved.by_category[Category.STATE] == ("x",)
        assert resolved.by_category[Category.OBS] == ("y_obs",)

    def test_trajectory_categories_merge(self, model):
        resolved = resolve_variables(
            [Category.STATE, Category.NOISE, Category.OBS], EXISTING, model
        )
        assert resolved.trajectories == ("x", "eps", "y_obs")
        assert resolved.has_trajectories()

    def test_param_defaults_include_initial_values(self, model):
        resolved = resolve_variables([Category.PARAM], EXISTING, model)
        assert resolved.params == ("theta", "sigma", "x")
        assert resolved.init_vars == ("x",)

    def test_defaults_missing_from_source_dropped_silently(self, model, recwarn):
        resolved = resolve_variables([Category.STATE], ["theta"], model)
        assert resolved.by_category[Category.STATE] == ()
        assert not [w for w in recwarn if issubclass(w.category, MissingVariableWarning)]

    def test_logeval_defaults(self):
        resolved = resolve_variables([Category.LOGEVAL], EXISTING)
        assert resolved.logevals == ("loglikelihood", "logprior")

    def test_explicit_missing_variable_warns(self, model):
        with pytest.warns(MissingVariableWarning, match="z"):
            resolved = resolve_variables(
                [Category.STATE], EXISTING, model, explicit={Category.STATE: ["x", "z"]}
            )
        assert resolved.by_category[Category.STATE] == ("x",)

    def test_explicit_for_unrequested_category_warns(self, model):
        with pytest.warns(UnmatchedCategoryWarning, match="obs"):
            resolved = resolve_variables(
                [Category.STATE], EXISTING, model, explicit={Category.OBS: ["y_obs"]}
            )
        assert Category.OBS not in resolved.by_category

    def test_without_model_only_explicit_found(self):
        resolved = resolve_variables(
            [Category.STATE, Category.NOISE], EXISTING, explicit={Category.STATE: ["x"]}
        )
        assert resolved.trajectories == ("x",)
        assert resolved.by_category[Category.NOISE] == ()


class TestResolvedVariables:
    def test_frozen_mapping(self):
        resolved = ResolvedVariables({Category.STATE: ["x"]})
        with pytest.raises(TypeError):
            resolved.by_category[Category.OBS] = ("y",)

    def test_no_trajectories(self):
        resolved = ResolvedVariables({Category.PARAM: ["theta"]})
        assert not resolved.has_trajectories()
        assert resolved.trajectories == ()
