"""
Flights example data: loading, derived categorical variables and a synthetic generator.

The analysis table has columns arr_delay, dep_delay, season, day_hour, origin
and carrier, derived from raw flight records with month and scheduled hour.
"""
from pathlib import Path
from typing import Optional

import numpy as np
import polars as pl

RAW_COLUMNS = ['month', 'hour', 'arr_delay', 'dep_delay', 'origin', 'carrier']
ANALYSIS_COLUMNS = ['arr_delay', 'dep_delay', 'season', 'day_hour', 'origin', 'carrier']

ORIGINS = ['EWR', 'JFK', 'LGA']
CARRIERS = [
    '9E', 'AA', 'AS', 'B6', 'DL', 'EV', 'F9', 'FL',
    'HA', 'MQ', 'OO', 'UA', 'US', 'VX', 'WN', 'YV',
]
WINTER_MONTHS = [10, 11, 12, 1, 2, 3]


def read_table(file_path: str) -> pl.DataFrame:
    """Read a CSV, TSV or Parquet file; "NA" cells in text files are read as missing."""
    suffix = Path(file_path).suffix.lower()
    if suffix == '.parquet':
        return pl.read_parquet(file_path)
    separator = '\t' if suffix in ('.tsv', '.tab') else ','
    return pl.read_csv(file_path, separator=separator, null_values=['NA', ''])


def load_flights(file_path: str) -> pl.DataFrame:
    """
    Load raw flight records from a CSV, TSV or Parquet file.

    Parameters:
    -----------
    file_path : str
        Path to the file.

    Returns:
    --------
    pl.DataFrame
        Raw records with at least the columns month, hour, arr_delay,
        dep_delay, origin, carrier.
    """
    df = read_table(file_path)

    # Validate required columns
    missing_cols = [col for col in RAW_COLUMNS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns: {missing_cols}")

    return df


def prepare_flights(
    df: pl.DataFrame,
    sample_size: Optional[int] = None,
    seed: Optional[int] = None
) -> pl.DataFrame:
    """
    Derive season and day_hour and keep the analysis columns.

    season is "winter" for October through March and "summer" otherwise.
    day_hour is "morning" for scheduled hours 1-12, "not morning" for 13-24,
    and missing for anything else (e.g. hour 0).

    Parameters:
    -----------
    df : pl.DataFrame
        Raw flight records.
    sample_size : int, optional
        Keep a random sample of this many complete rows (default: all rows).
    seed : int, optional
        Random seed for the sample.

    Returns:
    --------
    pl.DataFrame
        Columns arr_delay, dep_delay, season, day_hour, origin, carrier.
    """
    missing_cols = [col for col in RAW_COLUMNS if col not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing required columns: {missing_cols}")

    complete = df.drop_nulls(RAW_COLUMNS)
    if sample_size is not None:
        if sample_size > complete.height:
            raise ValueError(
                f"sample_size={sample_size} exceeds the {complete.height} complete rows"
            )
        complete = complete.sample(n=sample_size, seed=seed)

    return complete.with_columns(
        pl.when(pl.col('month').is_in(WINTER_MONTHS))
        .then(pl.lit('winter'))
        .otherwise(pl.lit('summer'))
        .alias('season'),
        pl.when(pl.col('hour').is_between(1, 12))
        .then(pl.lit('morning'))
        .when(pl.col('hour').is_between(13, 24))
        .then(pl.lit('not morning'))
        .otherwise(pl.lit(None, dtype=pl.Utf8))
        .alias('day_hour'),
        pl.col('arr_delay').cast(pl.Float64),
        pl.col('dep_delay').cast(pl.Float64),
        pl.col('origin').cast(pl.Utf8),
        pl.col('carrier').cast(pl.Utf8),
    ).select(ANALYSIS_COLUMNS)


def simulate_flights(n: int = 1000, seed: Optional[int] = None) -> pl.DataFrame:
    """
    Synthetic raw flight records shaped like the three-airport New York data.

    Carriers favour different origin airports, so origin and carrier are
    associated while origin and season are not.

    Parameters:
    -----------
    n : int, optional
        Number of flights (default: 1000).
    seed : int, optional
        Random seed for reproducibility.

    Returns:
    --------
    pl.DataFrame
        Columns month, hour, arr_delay, dep_delay, origin, carrier.
    """
    rng = np.random.default_rng(seed)

    carrier_idx = rng.integers(0, len(CARRIERS), size=n)
    origin_weights = rng.dirichlet(np.full(len(ORIGINS), 0.8), size=len(CARRIERS))
    origin_idx = np.array([rng.choice(len(ORIGINS), p=origin_weights[c]) for c in carrier_idx])

    dep_delay = np.round(rng.gamma(shape=1.2, scale=15.0, size=n) - 10.0)
    arr_delay = np.round(dep_delay + rng.normal(-5.0, 12.0, size=n))

    return pl.DataFrame({
        'month': rng.integers(1, 13, size=n),
        'hour': rng.integers(5, 24, size=n),
        'arr_delay': arr_delay,
        'dep_delay': dep_delay,
        'origin': [ORIGINS[i] for i in origin_idx],
        'carrier': [CARRIERS[i] for i in carrier_idx],
    })
