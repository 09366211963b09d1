"""Shared fixtures: small sample tables with known summaries."""

import polars as pl
import pytest

from trajectory_summary.core.model import StaticModel
from trajectory_summary.sources import InMemorySampleSource

N_DRAWS = 10
N_TIMES = 3


def trajectory(offset: float = 0.0, n_draws: int = N_DRAWS, n_times: int = N_TIMES) -> pl.DataFrame:
    """Draw ``np`` at time ``t`` has value ``np + t + offset``."""
    rows = [
        {"np": n, "time": t, "value": float(n + t) + offset}
        for n in range(n_draws)
        for t in range(n_times)
    ]
    return pl.DataFrame(rows)


@pytest.fixture
def state_table():
    return trajectory()


@pytest.fixture
def model():
    """Model declaring one variable per role and an initial-value proposal."""
    return StaticModel(
        roles={
            "state": ["x"],
            "noise": ["eps"],
            "obs": ["y_obs"],
            "param": ["theta", "sigma"],
        },
        blocks={
            "proposal_initial": [
                "x ~ gaussian(x, 0.1)",
                "theta_0 ~ gaussian(theta, 0.1)",
            ],
        },
    )


@pytest.fixture
def tables():
    return {
        "x": trajectory(),
        "eps": trajectory(offset=-5.0),
        "y_obs": trajectory(offset=1.0),
        "theta": pl.DataFrame({"np": list(range(N_DRAWS)), "value": [0.1 * n for n in range(N_DRAWS)]}),
        "sigma": pl.DataFrame({"np": list(range(N_DRAWS)), "value": [2.0] * N_DRAWS}),
        "loglikelihood": pl.DataFrame(
            {"np": list(range(N_DRAWS)), "value": [-100.0 + n for n in range(N_DRAWS)]}
        ),
    }


@pytest.fixture
def observations():
    return {"y_obs": pl.DataFrame({"time": [0, 2], "value": [1.5, 3.5]})}


@pytest.fixture
def source(tables, observations):
    return InMemorySampleSource(
        tables, observations=InMemorySampleSource(observations)
    )
