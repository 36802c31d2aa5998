"""
Chi-squared statistics, null distributions and p-values.
"""
import warnings
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np
import polars as pl
from scipy import stats

from chi2infer.resample import Replicates
from chi2infer.specify import Specification, contingency_table, hypothesize, specify

STAT_ALIASES = {'chisq': 'Chisq', 'chi2': 'Chisq', 'chi-squared': 'Chisq'}

DIRECTIONS = {
    'greater': 'greater',
    'right': 'greater',
    'less': 'less',
    'left': 'less',
    'two_sided': 'two_sided',
    'two-sided': 'two_sided',
    'two sided': 'two_sided',
    'both': 'two_sided',
}


def _resolve_stat(stat: str) -> str:
    resolved = STAT_ALIASES.get(str(stat).lower())
    if resolved is None:
        raise ValueError(f"Unsupported statistic {stat!r}; only 'Chisq' is available")
    return resolved


def normalize_direction(direction: str) -> str:
    """Map direction aliases ('right', 'both', ...) onto greater / less / two_sided."""
    resolved = DIRECTIONS.get(str(direction).lower())
    if resolved is None:
        raise ValueError(
            f"direction must be one of {sorted(DIRECTIONS)}, got {direction!r}"
        )
    return resolved


def chisq_statistics(tables: np.ndarray, probabilities: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Chi-squared statistic of every table in a stack.

    Computes: sum((observed - expected)^2 / expected). Cells with zero expected
    and zero observed count are skipped; zero expected with a positive observed
    count makes the statistic infinite.

    Parameters:
    -----------
    tables : np.ndarray
        Counts with shape (n_tables, n_rows, n_cols).
    probabilities : np.ndarray, optional
        Null probabilities of the rows. When given, each table is treated as a
        single goodness-of-fit column with expected counts total * p.
        Otherwise expected counts come from the table margins (independence).

    Returns:
    --------
    np.ndarray
        Float array of length n_tables.
    """
    observed = np.asarray(tables, dtype=np.float64)
    totals = observed.sum(axis=(1, 2))

    if probabilities is not None:
        p = np.asarray(probabilities, dtype=np.float64).reshape(1, -1, 1)
        expected = totals[:, None, None] * p
    else:
        row_totals = observed.sum(axis=2)
        col_totals = observed.sum(axis=1)
        expected = row_totals[:, :, None] * col_totals[:, None, :] / totals[:, None, None]

    with np.errstate(divide='ignore', invalid='ignore'):
        cells = np.where(expected > 0, (observed - expected) ** 2 / expected, 0.0)
        cells = np.where((expected == 0) & (observed > 0), np.inf, cells)
    return cells.sum(axis=(1, 2))


def chisq_statistic(table: np.ndarray, probabilities: Optional[np.ndarray] = None) -> float:
    """Chi-squared statistic of a single (n_rows, n_cols) table."""
    return float(chisq_statistics(np.asarray(table)[None, :, :], probabilities)[0])


def _gof_probabilities(spec: Specification) -> Optional[np.ndarray]:
    if spec.explanatory is not None:
        return None
    return spec.null_probabilities()


@dataclass(eq=False)
class TheoreticalDistribution:
    """Chi-squared reference distribution with df degrees of freedom."""
    df: int
    distribution: str = 'Chisq'

    def pdf(self, x):
        return stats.chi2.pdf(x, self.df)

    def cdf(self, x):
        return stats.chi2.cdf(x, self.df)

    def sf(self, x):
        return stats.chi2.sf(x, self.df)

    def ppf(self, q):
        return stats.chi2.ppf(q, self.df)

    def p_value(self, obs_stat: float, direction: str = 'greater') -> float:
        direction = normalize_direction(direction)
        right = float(self.sf(obs_stat))
        left = float(self.cdf(obs_stat))
        if direction == 'greater':
            return right
        if direction == 'less':
            return left
        return min(1.0, 2 * min(left, right))


@dataclass(eq=False)
class NullDistribution:
    """
    One chi-squared statistic per replicate of a generated null.

    theory_df is kept so the matching theoretical distribution can be overlaid.
    """
    stats: np.ndarray
    theory_df: int
    type: str
    stat: str = 'Chisq'

    @property
    def reps(self) -> int:
        return len(self.stats)

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame({
            'replicate': np.arange(1, self.reps + 1),
            'stat': self.stats,
        })

    def theoretical(self) -> TheoreticalDistribution:
        return TheoreticalDistribution(df=self.theory_df)

    def p_value(self, obs_stat: float, direction: str = 'greater') -> float:
        direction = normalize_direction(direction)
        right = float(np.mean(self.stats >= obs_stat))
        left = float(np.mean(self.stats <= obs_stat))
        if direction == 'greater':
            pvalue = right
        elif direction == 'less':
            pvalue = left
        else:
            pvalue = min(1.0, 2 * min(left, right))

        if pvalue == 0:
            warnings.warn(
                f"Please be cautious in reporting a p-value of 0. This result is an "
                f"approximation based on the number of reps ({self.reps}); the true "
                f"p-value is below 1/{self.reps}.",
                UserWarning,
                stacklevel=3,
            )
        return pvalue


def calculate(
    x: Union[Specification, Replicates],
    stat: str = 'Chisq'
) -> Union[float, NullDistribution]:
    """
    Calculate the chi-squared statistic.

    Parameters:
    -----------
    x : Specification or Replicates
        A specification gives the observed statistic; generated replicates
        give the null distribution of the statistic.
    stat : str, optional
        Statistic name (default: 'Chisq').

    Returns:
    --------
    float or NullDistribution
    """
    _resolve_stat(stat)

    if isinstance(x, Replicates):
        probabilities = _gof_probabilities(x.spec)
        return NullDistribution(
            stats=chisq_statistics(x.tables, probabilities),
            theory_df=x.spec.theory_df,
            type=x.type,
        )

    if isinstance(x, Specification):
        return chisq_statistic(contingency_table(x), _gof_probabilities(x))

    raise TypeError(
        f"calculate() expects a Specification or Replicates, got {type(x).__name__}"
    )


def observe(
    data: pl.DataFrame,
    formula: Optional[str] = None,
    response: Optional[str] = None,
    explanatory: Optional[str] = None,
    null: Optional[str] = None,
    p: Optional[Union[Dict[str, float], Sequence[float]]] = None,
    stat: str = 'Chisq'
) -> float:
    """Observed statistic in one call: specify, optionally hypothesize, then calculate."""
    spec = specify(data, formula=formula, response=response, explanatory=explanatory)
    if null is not None:
        spec = hypothesize(spec, null=null, p=p)
    return calculate(spec, stat=stat)


def assume(spec: Specification, distribution: str = 'Chisq') -> TheoreticalDistribution:
    """Theoretical chi-squared distribution matching the specification's degrees of freedom."""
    if not isinstance(spec, Specification):
        raise TypeError(f"assume() expects a Specification, got {type(spec).__name__}")
    _resolve_stat(distribution)
    return TheoreticalDistribution(df=spec.theory_df)


def _as_float(obs_stat) -> float:
    if isinstance(obs_stat, pl.DataFrame):
        if 'stat' not in obs_stat.columns or obs_stat.height != 1:
            raise ValueError("obs_stat frame must have exactly one row and a 'stat' column")
        value = float(obs_stat['stat'][0])
    else:
        value = float(obs_stat)
    if not np.isfinite(value):
        raise ValueError(f"obs_stat must be finite, got {obs_stat}")
    return value


def get_p_value(
    dist: Union[NullDistribution, TheoreticalDistribution],
    obs_stat,
    direction: str = 'greater'
) -> float:
    """
    P-value of an observed statistic against a null distribution.

    Parameters:
    -----------
    dist : NullDistribution or TheoreticalDistribution
        Output of calculate() on generated replicates, or of assume().
    obs_stat : float or pl.DataFrame
        Observed statistic, or a one-row frame with a 'stat' column.
    direction : str, optional
        'greater' (default), 'less' or 'two_sided', or one of their aliases.

    Returns:
    --------
    float
        P-value in [0, 1].
    """
    if not isinstance(dist, (NullDistribution, TheoreticalDistribution)):
        raise TypeError(
            f"get_p_value() expects a null or theoretical distribution, got {type(dist).__name__}"
        )
    return dist.p_value(_as_float(obs_stat), direction)
