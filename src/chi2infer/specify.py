"""
Variable specification and null hypotheses for chi-squared inference.

A Specification records which column is the response, which (if any) is the
explanatory variable, and the null hypothesis declared for them. It is the
first stage of the pipeline:

    specify -> hypothesize -> generate -> calculate -> get_p_value
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl

NULL_TYPES = ('independence', 'point')
P_TOLERANCE = 1e-8

_CATEGORICAL_DTYPES = (pl.Utf8, pl.Categorical, pl.Enum, pl.Boolean)


@dataclass(frozen=True, eq=False)
class Specification:
    """
    Response/explanatory variables of a dataset plus an optional null hypothesis.

    Instances are immutable; hypothesize() returns a new one.
    """
    data: pl.DataFrame
    response: str
    explanatory: Optional[str]
    response_levels: Tuple[str, ...]
    explanatory_levels: Tuple[str, ...] = ()
    null: Optional[str] = None
    p: Optional[Dict[str, float]] = field(default=None)

    @property
    def kind(self) -> str:
        return 'independence' if self.explanatory is not None else 'goodness_of_fit'

    @property
    def n(self) -> int:
        return self.data.height

    @property
    def theory_df(self) -> int:
        """Degrees of freedom of the theoretical chi-squared distribution."""
        if self.explanatory is None:
            return len(self.response_levels) - 1
        return (len(self.response_levels) - 1) * (len(self.explanatory_levels) - 1)

    @property
    def is_hypothesized(self) -> bool:
        return self.null is not None

    def response_codes(self) -> np.ndarray:
        """Integer code of the response level of every row."""
        return _encode(self.data[self.response], self.response_levels)

    def explanatory_codes(self) -> np.ndarray:
        if self.explanatory is None:
            return np.zeros(self.n, dtype=np.int64)
        return _encode(self.data[self.explanatory], self.explanatory_levels)

    def null_probabilities(self) -> np.ndarray:
        """Point-null probabilities aligned with response_levels (uniform if none declared)."""
        k = len(self.response_levels)
        if self.p is None:
            return np.full(k, 1.0 / k)
        return np.array([self.p[level] for level in self.response_levels], dtype=np.float64)


def parse_formula(formula: str) -> Tuple[str, Optional[str]]:
    """
    Split a "response ~ explanatory" formula into its two variable names.

    Parameters:
    -----------
    formula : str
        Formula such as "origin ~ season" or "origin ~ NULL".

    Returns:
    --------
    tuple
        (response, explanatory); explanatory is None for "~ NULL" or "~ 1".
    """
    if not isinstance(formula, str) or formula.count('~') != 1:
        raise ValueError(f"Formula must have the form 'response ~ explanatory', got {formula!r}")

    lhs, rhs = (part.strip() for part in formula.split('~'))
    if not lhs:
        raise ValueError(f"Formula {formula!r} has no response variable")
    if rhs in ('', 'NULL', '1'):
        return lhs, None
    if '+' in rhs or '*' in rhs or ':' in rhs:
        raise ValueError(f"Only a single explanatory variable is supported, got {rhs!r}")
    return lhs, rhs


def _encode(series: pl.Series, levels: Sequence[str]) -> np.ndarray:
    values = series.to_numpy().astype(str)
    return np.searchsorted(np.asarray(levels), values).astype(np.int64)


def _check_categorical(data: pl.DataFrame, column: str, role: str):
    if column not in data.columns:
        raise ValueError(f"The {role} variable {column!r} cannot be found in the data")
    dtype = data.schema[column]
    if dtype not in _CATEGORICAL_DTYPES:
        raise TypeError(
            f"The {role} variable {column!r} must be categorical for a chi-squared test, "
            f"got dtype {dtype}"
        )


def _levels(series: pl.Series, role: str) -> Tuple[str, ...]:
    levels = tuple(sorted(series.unique().to_list()))
    if len(levels) < 2:
        raise ValueError(
            f"The {role} variable {series.name!r} needs at least two levels, found {list(levels)}"
        )
    return levels


def specify(
    data: pl.DataFrame,
    formula: Optional[str] = None,
    response: Optional[str] = None,
    explanatory: Optional[str] = None,
) -> Specification:
    """
    Specify the response (and optional explanatory) variable of a dataset.

    Parameters:
    -----------
    data : pl.DataFrame
        Tabular data containing the variables of interest.
    formula : str, optional
        "response ~ explanatory" formula. Mutually exclusive with the
        response/explanatory arguments.
    response : str, optional
        Name of the categorical response column.
    explanatory : str, optional
        Name of the categorical explanatory column. Omit it for a
        goodness-of-fit test.

    Returns:
    --------
    Specification
        Rows with a null in either variable are dropped.
    """
    if not isinstance(data, pl.DataFrame):
        raise TypeError(f"data must be a polars DataFrame, got {type(data).__name__}")

    if formula is not None:
        if response is not None or explanatory is not None:
            raise ValueError("Give either a formula or response/explanatory arguments, not both")
        response, explanatory = parse_formula(formula)
    elif response is None:
        raise ValueError("Supply the response variable, either through formula or response")

    if explanatory is not None and explanatory == response:
        raise ValueError(f"The response and explanatory variables are the same column: {response!r}")

    columns = [response] if explanatory is None else [response, explanatory]
    _check_categorical(data, response, 'response')
    if explanatory is not None:
        _check_categorical(data, explanatory, 'explanatory')

    # Levels are compared as strings from here on
    subset = (
        data.select(columns)
        .drop_nulls()
        .with_columns([pl.col(c).cast(pl.Utf8) for c in columns])
    )
    if subset.height == 0:
        raise ValueError(f"No complete rows remain for columns {columns}")

    return Specification(
        data=subset,
        response=response,
        explanatory=explanatory,
        response_levels=_levels(subset[response], 'response'),
        explanatory_levels=_levels(subset[explanatory], 'explanatory') if explanatory else (),
    )


def _normalize_p(
    p: Union[Dict[str, float], Sequence[float]],
    levels: Tuple[str, ...]
) -> Dict[str, float]:
    if isinstance(p, dict):
        # Boolean columns are cast to "true"/"false"
        given = {
            (str(k).lower() if isinstance(k, bool) else str(k)): float(v)
            for k, v in p.items()
        }
        missing = [level for level in levels if level not in given]
        unknown = [k for k in given if k not in levels]
        if missing or unknown:
            raise ValueError(
                f"p must name exactly the response levels {list(levels)}; "
                f"missing {missing}, unknown {unknown}"
            )
    else:
        values = [float(v) for v in p]
        if len(values) != len(levels):
            raise ValueError(
                f"p has {len(values)} values but the response has {len(levels)} levels"
            )
        given = dict(zip(levels, values))

    if any(v < 0 or not np.isfinite(v) for v in given.values()):
        raise ValueError(f"p must contain non-negative finite probabilities, got {given}")
    # Every level was observed, so a zero probability makes the data impossible under the null
    impossible = [level for level, v in given.items() if v == 0]
    if impossible:
        raise ValueError(
            f"p gives probability 0 to observed response levels {impossible}"
        )
    total = sum(given.values())
    if abs(total - 1.0) > P_TOLERANCE:
        raise ValueError(f"p must sum to 1, got {total}")

    return {level: given[level] for level in levels}


def hypothesize(
    spec: Specification,
    null: str,
    p: Optional[Union[Dict[str, float], Sequence[float]]] = None
) -> Specification:
    """
    Declare the null hypothesis for a specification.

    Parameters:
    -----------
    spec : Specification
        Output of specify().
    null : str
        'independence' (response and explanatory are unrelated) or
        'point' (the response follows the probabilities p).
    p : dict or sequence, optional
        Point-null probabilities, keyed by response level or aligned with
        the sorted response levels. Required for null='point'.

    Returns:
    --------
    Specification
        A new specification carrying the null hypothesis.
    """
    if not isinstance(spec, Specification):
        raise TypeError("hypothesize() expects the output of specify()")
    if null not in NULL_TYPES:
        raise ValueError(f"null must be one of {NULL_TYPES}, got {null!r}")

    if null == 'independence':
        if spec.explanatory is None:
            raise ValueError("An independence null needs an explanatory variable")
        if p is not None:
            raise ValueError("p is only meaningful for a point null")
        return replace(spec, null=null, p=None)

    if spec.explanatory is not None:
        raise ValueError("A point null on a categorical response takes no explanatory variable")
    if p is None:
        raise ValueError("A point null needs the hypothesized probabilities p")
    return replace(spec, null=null, p=_normalize_p(p, spec.response_levels))


def contingency_table(spec: Specification) -> np.ndarray:
    """
    Observed counts with response levels as rows and explanatory levels as columns.

    Goodness-of-fit specifications give a single column.
    """
    n_rows = len(spec.response_levels)
    n_cols = max(len(spec.explanatory_levels), 1)
    combined = spec.response_codes() * n_cols + spec.explanatory_codes()
    return np.bincount(combined, minlength=n_rows * n_cols).reshape(n_rows, n_cols)
