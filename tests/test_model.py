"""Tests for model metadata and the model text parser."""

import textwrap

import pytest

from trajectory_summary.core.model import StaticModel, parse_model
from trajectory_summary.errors import NotFoundError

MODEL_TEXT = textwrap.dedent("""
    /**
     * Phytoplankton-zooplankton model.
     */
    model PZ {
      const c = 0.25  // zooplankton clearance rate
      param mu, sigma
      state P, Z
      noise alpha
      obs P_obs
      input N[x, y]

      sub parameter {
        mu ~ uniform(0.0, 1.0)
        sigma ~ uniform(0.0, 0.5)
      }

      sub proposal_initial {
        P ~ gaussian(P, 1.0)
        Z ~ gaussian(Z, 0.1)
      }

      sub transition {
        alpha ~ normal(mu, sigma)
        if (P > 0) {
          P <- P + alpha
        }
      }
    }
""")


class TestParseModel:
    def test_roles(self):
        model = parse_model(MODEL_TEXT)
        assert model.var_names("param") == ["mu", "sigma"]
        assert model.var_names("state") == ["P", "Z"]
        assert model.var_names("noise") == ["alpha"]
        assert model.var_names("obs") == ["P_obs"]
        assert model.var_names("const") == ["c"]

    def test_dimensioned_declaration(self):
        model = parse_model(MODEL_TEXT)
        assert model.var_names("input") == ["N"]

    def test_block_lines(self):
        model = parse_model(MODEL_TEXT)
        assert model.get_block("proposal_initial") == [
            "P ~ gaussian(P, 1.0)",
            "Z ~ gaussian(Z, 0.1)",
        ]

    def test_nested_braces_kept_in_block(self):
        model = parse_model(MODEL_TEXT)
        assert "P <- P + alpha" in model.get_block("transition")
        assert model.get_block("transition")[-1] == "}"

    def test_unknown_role_and_block_empty(self):
        model = parse_model(MODEL_TEXT)
        assert model.var_names("state_aux") == []
        assert model.get_block("observation") == []

    def test_from_path(self, tmp_path):
        path = tmp_path / "PZ.bi"
        path.write_text(MODEL_TEXT)
        assert parse_model(path).var_names("state") == ["P", "Z"]

    def test_missing_path_raises(self, tmp_path):
        with pytest.raises(NotFoundError):
            parse_model(tmp_path / "missing.bi")


class TestStaticModel:
    def test_returns_copies(self):
        model = StaticModel(roles={"state": ["x"]})
        names = model.var_names("state")
        names.append("y")
        assert model.var_names("state") == ["x"]
