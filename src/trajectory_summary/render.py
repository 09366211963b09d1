"""Charts of a summary run.

Every function here draws from the tables of a ``SummaryResult``; none of
them computes statistics of its own. Figures can be collected with
``render`` or written to a multi-page PDF with ``write_pdf``.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
import polars as pl
from matplotlib.axes import Axes
from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from scipy.stats import gaussian_kde

from .constants import (
    COLOR_NP_COL,
    DENSITY_COL,
    DISTRIBUTION_COL,
    NA_FILL,
    NP_COL,
    PARAMETER_COL,
    SINGLE_COL,
    TIME_COL,
    TIME_NEXT_COL,
    VALUE_COL,
    VAR_COL,
    VARYING_COL,
    max_col,
    min_col,
)
from .core.posterior import POSTERIOR, PRIOR
from .core.types import DensityKind, Discretization
from .pipeline import SummaryResult

BAND_COLOR = 'steelblue'
OBS_COLOR = 'black'
DIST_COLORS = {POSTERIOR: 'darkblue', PRIOR: 'gray'}


def facet_grid(n: int) -> Tuple[int, int]:
    """Rows and columns for ``n`` facets, with ``round(sqrt(n))`` columns."""
    ncols = max(1, round(math.sqrt(n)))
    return math.ceil(n / ncols), ncols


def _facets(n: int, width: float = 4.2, height: float = 3.4) -> Tuple[Figure, List[Axes]]:
    nrows, ncols = facet_grid(n)
    fig, axes = plt.subplots(nrows, ncols, figsize=(ncols * width, nrows * height), squeeze=False)
    axes = list(np.asarray(axes).reshape(-1))
    for j in range(n, nrows * ncols):
        fig.delaxes(axes[j])
    return fig, axes[:n]


def _timeless_as_label(rows: pl.DataFrame) -> pl.DataFrame:
    """Rows of a variable without a time dimension, placed at a single ``"n/a"`` tick."""
    if rows.height == 0 or rows[TIME_COL].null_count() < rows.height:
        return rows
    return rows.with_columns(
        [pl.lit(NA_FILL).alias(c) for c in (TIME_COL, TIME_NEXT_COL) if c in rows.columns]
    )


def _series(table: pl.DataFrame, col: str) -> np.ndarray:
    return table[col].cast(pl.Float64, strict=False).to_numpy()


def _group_keys(table: pl.DataFrame, dims: Sequence[str]) -> List[Tuple[str, pl.DataFrame]]:
    present = [d for d in dims if d in table.columns]
    if not present:
        return [("", table)]
    out = []
    for key, part in table.group_by(present, maintain_order=True):
        out.append((", ".join(str(k) for k in key), part))
    return out


def _draw_bands(ax: Axes, rows: pl.DataFrame, n_levels: int, stepped: bool, color) -> None:
    alpha = 0.5
    for i in range(1, n_levels + 1):
        lo, hi = _series(rows, min_col(i)), _series(rows, max_col(i))
        if stepped:
            for t, tn, a, b in zip(rows[TIME_COL], rows[TIME_NEXT_COL], lo, hi):
                if not (np.isnan(a) or np.isnan(b)):
                    ax.fill_between([t, tn], [a, a], [b, b], color=color, alpha=alpha, lw=0)
        else:
            ax.fill_between(rows[TIME_COL].to_list(), lo, hi, color=color, alpha=alpha, lw=0)
        alpha /= 2


def _draw_trend(ax: Axes, rows: pl.DataFrame, stepped: bool, color, label: str) -> None:
    values = _series(rows, VALUE_COL)
    if np.all(np.isnan(values)):
        return
    if stepped:
        ax.hlines(values, rows[TIME_COL].to_list(), rows[TIME_NEXT_COL].to_list(),
                  colors=color, lw=1.5, label=label or None)
    else:
        ax.plot(rows[TIME_COL].to_list(), values, lw=1.5, color=color, label=label or None)


def _draw_point_groups(ax: Axes, rows: pl.DataFrame, n_levels: int, color) -> None:
    """Groups with one time point: interval as error bar, trend as marker."""
    x = rows[TIME_COL].to_list()
    value = _series(rows, VALUE_COL)
    if n_levels:
        lo, hi = _series(rows, min_col(n_levels)), _series(rows, max_col(n_levels))
        centre = np.where(np.isnan(value), (lo + hi) / 2, value)
        ax.errorbar(x, centre, yerr=[centre - lo, hi - centre], fmt='none',
                    ecolor=color, capsize=3, lw=1)
    ax.scatter(x, value, marker='x', color=color, zorder=5)


def _draw_draws(ax: Axes, raw: pl.DataFrame, color) -> None:
    line_key = COLOR_NP_COL if COLOR_NP_COL in raw.columns else NP_COL
    if line_key not in raw.columns:
        return
    for _, draw in raw.group_by(line_key, maintain_order=True):
        draw = draw.sort(TIME_COL)
        if draw.height == 1:
            ax.scatter(draw[TIME_COL].to_list(), _series(draw, VALUE_COL),
                       marker='x', s=12, color=color, alpha=0.5)
        else:
            ax.plot(draw[TIME_COL].to_list(), _series(draw, VALUE_COL),
                    lw=0.6, color=color, alpha=0.5)


def plot_trajectories(result: SummaryResult) -> Optional[Figure]:
    """One facet per variable: quantile bands, trend, draws, observations and reference lines."""
    summary = result.trajectories
    if summary is None:
        return None
    config = result.config
    n_levels = len(config.quantiles)
    stepped = config.discretization is Discretization.STEPPED
    names = summary[VAR_COL].unique(maintain_order=True).to_list()
    colors = plt.rcParams['axes.prop_cycle'].by_key()['color']

    fig, axes = _facets(len(names))
    for ax, name in zip(axes, names):
        rows = _timeless_as_label(summary.filter(pl.col(VAR_COL) == name).sort(TIME_COL))
        for k, (label, group) in enumerate(_group_keys(rows, config.extra_dims)):
            color = colors[k % len(colors)] if label else BAND_COLOR
            points = group.filter(pl.col(SINGLE_COL))
            lines = group.filter(~pl.col(SINGLE_COL))
            if group[TIME_COL].n_unique() == 1:
                _draw_point_groups(ax, group, n_levels, color)
                continue
            if lines.height:
                _draw_bands(ax, lines, n_levels, stepped, color)
                _draw_trend(ax, lines, stepped, color, label)
            if points.height:
                ax.scatter(points[TIME_COL].to_list(), _series(points, VALUE_COL),
                           marker='x', color=color, zorder=5)

        if config.selects_draws and result.raw_trajectories is not None:
            raw = _timeless_as_label(result.raw_trajectories.filter(pl.col(VAR_COL) == name))
            _draw_draws(ax, raw, 'gray')

        if result.observations is not None:
            obs = result.observations.filter(pl.col(VAR_COL) == name)
            if obs.height:
                ax.scatter(obs[TIME_COL].to_list(), _series(obs, VALUE_COL),
                           s=10, color=OBS_COLOR, zorder=6, label='Observed')

        for y in (config.hline.get(name), *config.hline_global):
            if y is not None:
                ax.axhline(y, ls="--", lw=1, color='red', alpha=0.7)

        ax.set_title(name, fontsize=11, fontweight='bold', loc='center')
        ax.set_xlabel("Time")
        ax.set_ylabel("Value")
        ax.grid(True, alpha=0.3)
        if ax.get_legend_handles_labels()[1]:
            ax.legend(loc='upper right', fontsize=8)

    fig.suptitle("Trajectories", fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def _varying_parameters(result: SummaryResult) -> Optional[pl.DataFrame]:
    if result.params is None:
        return None
    varying = result.params.filter(pl.col(VARYING_COL))
    return varying if varying.height else None


def _selected_draws(result: SummaryResult) -> List[Any]:
    """Draw indices picked out with an ``np`` selection, in selection order."""
    return list(result.config.selection.get(NP_COL, ()))


def _draw_histogram(ax: Axes, values: np.ndarray, color, label: str) -> None:
    ax.hist(values, bins=30, density=True, alpha=0.5, color=color, label=label)


def _draw_density(ax: Axes, values: np.ndarray, color, label: str) -> None:
    """Gaussian kernel density; samples without spread fall back to a histogram."""
    if values.size < 2 or np.ptp(values) == 0:
        _draw_histogram(ax, values, color, label)
        return
    grid = np.linspace(values.min(), values.max(), 200)
    density = gaussian_kde(values)(grid)
    ax.plot(grid, density, lw=1.5, color=color, label=label)
    ax.fill_between(grid, density, color=color, alpha=0.2, lw=0)


_DENSITY_GEOMS = {
    DensityKind.HISTOGRAM: _draw_histogram,
    DensityKind.DENSITY: _draw_density,
}


def plot_parameters(result: SummaryResult) -> Optional[Figure]:
    """Density of every varying parameter, prior overlaid on posterior.

    The geometry follows ``config.densities``. Selected draws are marked
    with vertical lines at their posterior values.
    """
    params = _varying_parameters(result)
    if params is None:
        return None
    names = params[PARAMETER_COL].unique(maintain_order=True).to_list()
    draw_density = _DENSITY_GEOMS[result.config.densities]
    selected = _selected_draws(result)

    fig, axes = _facets(len(names))
    for ax, name in zip(axes, names):
        rows = params.filter(pl.col(PARAMETER_COL) == name)
        for dist in (PRIOR, POSTERIOR):
            values = _series(rows.filter(pl.col(DISTRIBUTION_COL) == dist), VALUE_COL)
            if values.size:
                draw_density(ax, values, DIST_COLORS[dist], dist)
        if selected:
            marked = rows.filter(
                (pl.col(DISTRIBUTION_COL) == POSTERIOR) & pl.col(NP_COL).is_in(selected)
            )
            for x in _series(marked, VALUE_COL):
                ax.axvline(x, lw=1, color='black')
        ax.set_title(name, fontsize=11, fontweight='bold', loc='center')
        ax.set_xlabel("Value")
        ax.set_ylabel("Density")
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right', fontsize=8)

    fig.suptitle("Parameter Densities", fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def plot_traces(result: SummaryResult) -> Optional[Figure]:
    """Posterior draws of every varying parameter against the draw index."""
    params = _varying_parameters(result)
    if params is None:
        return None
    params = params.filter(pl.col(DISTRIBUTION_COL) == POSTERIOR)
    if params.height == 0:
        return None
    names = params[PARAMETER_COL].unique(maintain_order=True).to_list()
    selected = _selected_draws(result)

    fig, axes = _facets(len(names), height=2.6)
    for ax, name in zip(axes, names):
        rows = params.filter(pl.col(PARAMETER_COL) == name).sort(NP_COL)
        ax.plot(_series(rows, NP_COL), _series(rows, VALUE_COL), lw=0.8, color='darkblue')
        for n in selected:
            ax.axvline(n, lw=1, color='black')
        ax.set_title(name, fontsize=11, fontweight='bold', loc='center')
        ax.set_xlabel("Iteration")
        ax.grid(True, alpha=0.3)

    fig.suptitle("Parameter Traces", fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def plot_logevals(result: SummaryResult) -> Optional[Figure]:
    """Trace and histogram side by side for each log-evaluation."""
    logevals = result.logevals
    if logevals is None:
        return None
    names = logevals[DENSITY_COL].unique(maintain_order=True).to_list()
    selected = _selected_draws(result)

    fig, axes = plt.subplots(len(names), 2, figsize=(10, 2.8 * len(names)), squeeze=False)
    for (trace_ax, hist_ax), name in zip(axes, names):
        rows = logevals.filter(pl.col(DENSITY_COL) == name).sort(NP_COL)
        values = _series(rows, VALUE_COL)
        trace_ax.plot(_series(rows, NP_COL), values, lw=0.8, color='darkblue')
        trace_ax.set_title(name, fontsize=11, fontweight='bold', loc='center')
        trace_ax.set_xlabel("Iteration")
        trace_ax.grid(True, alpha=0.3)

        finite = values[np.isfinite(values)]
        if finite.size:
            hist_ax.hist(finite, bins=30, color='darkblue', alpha=0.6)
        hist_ax.set_xlabel(name)
        hist_ax.grid(True, alpha=0.3)

        if selected:
            for n in selected:
                trace_ax.axvline(n, lw=1, color='black')
            marked = _series(rows.filter(pl.col(NP_COL).is_in(selected)), VALUE_COL)
            for x in marked[np.isfinite(marked)]:
                hist_ax.axvline(x, lw=1, color='black')

    fig.suptitle("Log-evaluations", fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def plot_pairs(result: SummaryResult) -> Optional[Figure]:
    """Scatter matrix of the varying posterior parameters, histograms on the diagonal."""
    wide = result.param_wide
    if wide is None or wide.width == 0:
        return None
    names = wide.columns
    n = len(names)

    size = max(4.0, 2.2 * n)
    fig, axes = plt.subplots(n, n, figsize=(size, size), squeeze=False)
    for i, row_name in enumerate(names):
        y = _series(wide, row_name)
        for j, col_name in enumerate(names):
            ax = axes[i][j]
            x = _series(wide, col_name)
            if i == j:
                ax.hist(x[np.isfinite(x)], bins=20, color='darkblue', alpha=0.6)
            else:
                ax.scatter(x, y, s=6, color='darkblue', alpha=0.5)
            if i == n - 1:
                ax.set_xlabel(col_name)
            if j == 0:
                ax.set_ylabel(row_name)
            ax.tick_params(labelsize=7)

    fig.suptitle("Parameter Pairs", fontsize=14, fontweight='bold')
    plt.tight_layout()
    return fig


def plot_correlations(result: SummaryResult) -> Optional[Figure]:
    """Heatmap of the parameter correlation matrix."""
    corr = result.correlations
    if corr is None:
        return None
    names = corr[PARAMETER_COL].to_list()
    matrix = corr.select(names).to_numpy().astype(float)

    size = max(4.0, 0.6 * len(names) + 2)
    fig, ax = plt.subplots(figsize=(size, size))
    im = ax.imshow(matrix, vmin=-1, vmax=1, cmap='RdBu_r')
    ax.set_xticks(range(len(names)))
    ax.set_xticklabels(names, rotation=45, ha='right')
    ax.set_yticks(range(len(names)))
    ax.set_yticklabels(names)
    for i in range(len(names)):
        for j in range(len(names)):
            if np.isfinite(matrix[i, j]):
                ax.text(j, i, f"{matrix[i, j]:.2f}", ha='center', va='center', fontsize=8)
    fig.colorbar(im, ax=ax, label="Correlation")

    ax.set_title("Parameter Correlations", fontsize=12, fontweight='bold', loc='center')
    plt.tight_layout()
    return fig


def render(result: SummaryResult) -> Dict[str, Figure]:
    """All charts the result has data for, by name."""
    pages = {
        "trajectories": plot_trajectories,
        "densities": plot_parameters,
        "traces": plot_traces,
        "correlations": plot_correlations,
        "pairs": plot_pairs,
        "logevals": plot_logevals,
    }
    figures = {}
    for name, draw in pages.items():
        fig = draw(result)
        if fig is not None:
            figures[name] = fig
    return figures


def write_pdf(result: SummaryResult, output_path: Path, title: str = "Summary") -> Path:
    """Write every chart of ``result`` to a multi-page PDF."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with PdfPages(str(output_path)) as pdf:
        d = pdf.infodict()
        d['Title'] = title
        d['Subject'] = 'Trajectory Summary'
        d['Creator'] = 'ts summarize'

        for fig in render(result).values():
            pdf.savefig(fig, bbox_inches="tight")
            plt.close(fig)

    return output_path
