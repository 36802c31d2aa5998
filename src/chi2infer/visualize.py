"""
Plots of simulation-based and theoretical chi-squared null distributions.
"""
from typing import Optional, Union

import matplotlib.pyplot as plt
import numpy as np

from chi2infer.statistics import NullDistribution, TheoreticalDistribution, normalize_direction

METHODS = ('simulation', 'theoretical', 'both')

TITLES = {
    'simulation': 'Simulation-Based Null Distribution',
    'theoretical': 'Theoretical Chi-Square Null Distribution',
    'both': 'Simulation-Based and Theoretical Chi-Square Null Distributions',
}

HIST_COLOR = 'dimgray'
CURVE_COLOR = 'steelblue'
SHADE_COLOR = 'red'


def _density_grid(theory: TheoreticalDistribution, upper: float, n_points: int = 400) -> np.ndarray:
    # 99.9th percentile keeps the right tail on the plot
    upper = max(upper, float(theory.ppf(0.999)))
    # pdf is unbounded at 0 for df=1
    return np.linspace(upper / n_points, upper, n_points)


def shade_p_value(
    ax: plt.Axes,
    obs_stat: float,
    direction: Optional[str] = 'greater',
    center: Optional[float] = None
) -> plt.Axes:
    """
    Mark the observed statistic and shade the tail(s) counted by the p-value.

    Parameters:
    -----------
    ax : plt.Axes
        Axes holding a null distribution plot.
    obs_stat : float
        Observed statistic.
    direction : str, optional
        'greater', 'less', 'two_sided' or an alias. None draws only the line.
    center : float, optional
        Point the observed statistic is mirrored around for a two-sided
        region (default: middle of the current x-limits).

    Returns:
    --------
    plt.Axes
    """
    obs_stat = float(obs_stat)
    xmin, xmax = ax.get_xlim()
    xmax = max(xmax, obs_stat)

    if direction is not None:
        direction = normalize_direction(direction)
        if direction == 'greater':
            ax.axvspan(obs_stat, xmax, color=SHADE_COLOR, alpha=0.25, lw=0)
        elif direction == 'less':
            ax.axvspan(xmin, obs_stat, color=SHADE_COLOR, alpha=0.25, lw=0)
        else:
            if center is None:
                center = (xmin + xmax) / 2
            mirror = 2 * center - obs_stat
            low, high = sorted((obs_stat, mirror))
            ax.axvspan(xmin, low, color=SHADE_COLOR, alpha=0.25, lw=0)
            ax.axvspan(high, xmax, color=SHADE_COLOR, alpha=0.25, lw=0)

    ax.axvline(obs_stat, color=SHADE_COLOR, linewidth=2)
    ax.set_xlim(xmin, xmax)
    return ax


def visualize(
    dist: Union[NullDistribution, TheoreticalDistribution],
    method: str = 'simulation',
    obs_stat: Optional[float] = None,
    direction: Optional[str] = None,
    bins: int = 15,
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """
    Plot a null distribution, optionally marking an observed statistic.

    Parameters:
    -----------
    dist : NullDistribution or TheoreticalDistribution
        Output of calculate() on generated replicates, or of assume().
    method : str, optional
        'simulation' (histogram), 'theoretical' (density curve) or 'both'
        (density-scaled histogram with the curve overlaid). Default: 'simulation'.
    obs_stat : float, optional
        Observed statistic to mark on the plot.
    direction : str, optional
        Tail(s) to shade beyond obs_stat.
    bins : int, optional
        Histogram bins (default: 15).
    ax : plt.Axes, optional
        Axes to draw on (default: a new figure).

    Returns:
    --------
    plt.Figure
    """
    if method not in METHODS:
        raise ValueError(f"method must be one of {METHODS}, got {method!r}")
    if method in ('simulation', 'both') and not isinstance(dist, NullDistribution):
        raise ValueError(f"method={method!r} needs a generated null distribution")
    if not isinstance(dist, (NullDistribution, TheoreticalDistribution)):
        raise TypeError(f"Cannot visualize {type(dist).__name__}")

    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 5))
    else:
        fig = ax.figure

    upper = 0.0 if obs_stat is None else float(obs_stat) * 1.05
    center = None

    if method == 'simulation':
        ax.hist(dist.stats, bins=bins, color=HIST_COLOR, edgecolor='white')
        ax.set_ylabel('count')
        center = float(np.median(dist.stats))
    else:
        theory = dist if isinstance(dist, TheoreticalDistribution) else dist.theoretical()
        if method == 'both':
            ax.hist(dist.stats, bins=bins, density=True, color=HIST_COLOR, edgecolor='white')
            upper = max(upper, float(dist.stats.max()))
        grid = _density_grid(theory, upper)
        ax.plot(grid, theory.pdf(grid), color=CURVE_COLOR, linewidth=2)
        ax.set_ylabel('density')
        center = float(theory.ppf(0.5))

    ax.set_title(TITLES[method])
    ax.set_xlabel('Chi-Square stat')

    if obs_stat is not None:
        shade_p_value(ax, obs_stat, direction, center=center)

    return fig
