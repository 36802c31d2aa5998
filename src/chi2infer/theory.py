"""
Theory-based chi-squared tests.

chisq_test() runs the whole pipeline against the theoretical chi-squared
distribution in one call, without resampling.
"""
import warnings
from typing import Dict, Optional, Sequence, Union

import numpy as np
import polars as pl

from chi2infer.specify import Specification, contingency_table, hypothesize, specify
from chi2infer.statistics import assume, calculate, get_p_value


def expected_counts(spec: Specification) -> np.ndarray:
    """
    Expected cell counts under the specification's null.

    Independence uses the table margins; goodness-of-fit uses n * p.
    """
    table = contingency_table(spec)
    if spec.explanatory is None:
        return (spec.n * spec.null_probabilities()).reshape(-1, 1)

    row_totals = table.sum(axis=1)
    col_totals = table.sum(axis=0)
    return np.outer(row_totals, col_totals) / table.sum()


def check_minimum_expected_frequency(expected: np.ndarray, min_count: int = 5) -> bool:
    """
    Check if all expected frequencies meet the minimum threshold.

    Parameters:
    -----------
    expected : np.ndarray
        Expected counts, as returned by expected_counts().
    min_count : int, optional
        Minimum expected count threshold (default: 5).

    Returns:
    --------
    bool
        True if all expected frequencies >= min_count, False otherwise.
    """
    return bool(np.all(expected >= min_count))


def chisq_test(
    data: pl.DataFrame,
    formula: Optional[str] = None,
    response: Optional[str] = None,
    explanatory: Optional[str] = None,
    p: Optional[Union[Dict[str, float], Sequence[float]]] = None,
    min_expected_count: int = 5
) -> pl.DataFrame:
    """
    Chi-squared test against the theoretical distribution.

    A test of independence when an explanatory variable is given, a
    goodness-of-fit test otherwise.

    Parameters:
    -----------
    data : pl.DataFrame
        Tabular data.
    formula : str, optional
        "response ~ explanatory" (or "response ~ NULL" for goodness-of-fit).
    response, explanatory : str, optional
        Variable names, as an alternative to formula.
    p : dict or sequence, optional
        Goodness-of-fit probabilities (default: uniform over response levels).
    min_expected_count : int, optional
        Warn when any expected count falls below this (default: 5).

    Returns:
    --------
    pl.DataFrame
        One row with columns statistic, chisq_df, p_value.
    """
    spec = specify(data, formula=formula, response=response, explanatory=explanatory)

    if spec.explanatory is not None:
        if p is not None:
            raise ValueError("p only applies to a goodness-of-fit test (no explanatory variable)")
        spec = hypothesize(spec, null='independence')
    elif p is not None:
        spec = hypothesize(spec, null='point', p=p)

    if not check_minimum_expected_frequency(expected_counts(spec), min_count=min_expected_count):
        warnings.warn(
            f"Chi-squared approximation may be incorrect: some expected counts are "
            f"below {min_expected_count}",
            UserWarning,
            stacklevel=2,
        )

    statistic = calculate(spec)
    pvalue = get_p_value(assume(spec), statistic, direction='greater')

    return pl.DataFrame({
        'statistic': [statistic],
        'chisq_df': [spec.theory_df],
        'p_value': [pvalue],
    })
