"""trajectory-summary: summaries and charts of stochastic simulation runs.

Turns long-format sample tables of states, observations, noise, parameters
and log-evaluations into trend and quantile-band tables aligned with
observed data, ready for charting.
"""

# Export the public API
from .api import *  # noqa: F403, F401
from .api import __all__, __version__  # noqa: F401
