"""
Null distribution generation by permutation and simulation.

Two generation types are supported:
1. permute  - shuffle response labels against explanatory labels (independence null)
2. simulate - draw multinomial counts from the hypothesized probabilities (point null)

Replicates are produced in batches. Every batch gets its own child seed from a
single seed sequence, so results are reproducible whether the batches run
sequentially or in parallel worker processes.
"""
import multiprocessing
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import polars as pl
from tqdm import tqdm

from chi2infer.specify import Specification

GENERATE_TYPES = ('permute', 'simulate')

try:
    from numba import njit
except ImportError:
    NUMBA_AVAILABLE = False
else:
    NUMBA_AVAILABLE = True


def _reconstruct_table(row_codes, col_codes, n_rows, n_cols):
    """
    Count (row, column) code pairs into a contingency table.

    Plain loop so that numba can compile it; the numpy path uses bincount instead.
    """
    table = np.zeros((n_rows, n_cols), dtype=np.int64)
    for i in range(len(row_codes)):
        table[row_codes[i], col_codes[i]] += 1
    return table


if NUMBA_AVAILABLE:
    _reconstruct_table_numba = njit(_reconstruct_table)


@dataclass(eq=False)
class Replicates:
    """
    Resampled contingency tables under the null hypothesis.

    tables has shape (reps, n_response_levels, n_explanatory_levels); a
    goodness-of-fit specification has a single column.
    """
    spec: Specification
    type: str
    reps: int
    seed: Optional[int]
    tables: np.ndarray
    engine: str = 'numpy'

    def to_frame(self) -> pl.DataFrame:
        """Long frame of counts: replicate, response level, [explanatory level], n."""
        reps, n_rows, n_cols = self.tables.shape
        replicate = np.repeat(np.arange(1, reps + 1), n_rows * n_cols)
        response = np.tile(np.repeat(np.asarray(self.spec.response_levels), n_cols), reps)
        columns = {'replicate': replicate, self.spec.response: response}
        if self.spec.explanatory is not None:
            explanatory = np.tile(np.asarray(self.spec.explanatory_levels), n_rows * reps)
            columns[self.spec.explanatory] = explanatory
        columns['n'] = self.tables.reshape(-1)
        return pl.DataFrame(columns)


def permute_tables(
    response_codes: np.ndarray,
    explanatory_codes: np.ndarray,
    n_rows: int,
    n_cols: int,
    n_reps: int,
    rng: np.random.Generator,
    use_numba: bool = None
) -> np.ndarray:
    """
    Build n_reps contingency tables with the response labels shuffled.

    Both margins of every table equal those of the observed table.

    Parameters:
    -----------
    response_codes : np.ndarray
        Integer response level per observation.
    explanatory_codes : np.ndarray
        Integer explanatory level per observation.
    n_rows, n_cols : int
        Number of response and explanatory levels.
    n_reps : int
        Number of permutations.
    rng : np.random.Generator
        Source of randomness.
    use_numba : bool, optional
        Whether to use the numba-compiled counter (default: None = auto-detect).

    Returns:
    --------
    np.ndarray
        Integer array of shape (n_reps, n_rows, n_cols).
    """
    if use_numba is None:
        use_numba = NUMBA_AVAILABLE

    tables = np.empty((n_reps, n_rows, n_cols), dtype=np.int64)
    for rep in range(n_reps):
        permuted = rng.permutation(response_codes)
        if use_numba and NUMBA_AVAILABLE:
            tables[rep] = _reconstruct_table_numba(permuted, explanatory_codes, n_rows, n_cols)
        else:
            combined = permuted * n_cols + explanatory_codes
            tables[rep] = np.bincount(combined, minlength=n_rows * n_cols).reshape(n_rows, n_cols)
    return tables


def simulate_tables(
    n: int,
    probabilities: np.ndarray,
    n_reps: int,
    rng: np.random.Generator
) -> np.ndarray:
    """
    Draw n_reps single-column tables of n observations from the given probabilities.

    Returns:
    --------
    np.ndarray
        Integer array of shape (n_reps, len(probabilities), 1).
    """
    counts = rng.multinomial(n, probabilities, size=n_reps)
    return counts.astype(np.int64).reshape(n_reps, len(probabilities), 1)


def _generate_batch(
    gen_type: str,
    response_codes: np.ndarray,
    explanatory_codes: np.ndarray,
    probabilities: np.ndarray,
    n_rows: int,
    n_cols: int,
    n_reps: int,
    seed_seq: np.random.SeedSequence,
    use_numba: bool
) -> np.ndarray:
    """
    Worker function producing one batch of replicate tables.

    Module-level so that spawned worker processes can import it.
    """
    rng = np.random.default_rng(seed_seq)
    if gen_type == 'permute':
        return permute_tables(
            response_codes, explanatory_codes, n_rows, n_cols, n_reps, rng, use_numba
        )
    return simulate_tables(len(response_codes), probabilities, n_reps, rng)


def _resolve_type(spec: Specification, gen_type: Optional[str]) -> str:
    if not spec.is_hypothesized:
        raise ValueError(
            "generate() needs a null hypothesis; call hypothesize() on the specification first"
        )

    expected = 'permute' if spec.null == 'independence' else 'simulate'
    if gen_type is None:
        return expected
    if gen_type not in GENERATE_TYPES:
        raise ValueError(f"type must be one of {GENERATE_TYPES}, got {gen_type!r}")
    if gen_type != expected:
        raise ValueError(
            f"type={gen_type!r} does not match a {spec.null!r} null; use type={expected!r}"
        )
    return gen_type


def generate(
    spec: Specification,
    reps: int = 1000,
    type: Optional[str] = None,
    seed: Optional[int] = None,
    n_workers: Optional[int] = 1,
    batch_size: int = 1000,
    show_progress: bool = False,
    use_numba: bool = None
) -> Replicates:
    """
    Generate replicate tables under the specification's null hypothesis.

    Parameters:
    -----------
    spec : Specification
        Hypothesized specification (output of hypothesize()).
    reps : int, optional
        Number of replicates (default: 1000).
    type : str, optional
        'permute' or 'simulate' (default: None = chosen from the null).
    seed : int, optional
        Random seed for reproducibility (default: None).
    n_workers : int, optional
        Number of worker processes. None uses every CPU core; 1 runs
        sequentially (default: 1).
    batch_size : int, optional
        Replicates per batch (default: 1000). Together with seed it fixes the
        random streams, so results do not depend on n_workers.
    show_progress : bool, optional
        Show a tqdm progress bar (default: False).
    use_numba : bool, optional
        Whether to use numba if available (default: None = auto-detect).

    Returns:
    --------
    Replicates
    """
    gen_type = _resolve_type(spec, type)
    if reps < 1:
        raise ValueError(f"reps must be a positive integer, got {reps}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size}")

    if n_workers is None:
        n_workers = multiprocessing.cpu_count()
    if n_workers < 1:
        raise ValueError(f"n_workers must be a positive integer or None, got {n_workers}")
    if use_numba is None:
        use_numba = NUMBA_AVAILABLE

    n_rows = len(spec.response_levels)
    n_cols = max(len(spec.explanatory_levels), 1)
    response_codes = spec.response_codes()
    explanatory_codes = spec.explanatory_codes()
    probabilities = spec.null_probabilities()

    batch_sizes = [min(batch_size, reps - start) for start in range(0, reps, batch_size)]
    child_seeds = np.random.SeedSequence(seed).spawn(len(batch_sizes))
    batch_args = [
        (gen_type, response_codes, explanatory_codes, probabilities,
         n_rows, n_cols, size, child_seed, use_numba)
        for size, child_seed in zip(batch_sizes, child_seeds)
    ]

    progress_bar = None
    if show_progress:
        progress_bar = tqdm(total=reps, desc=f"Generating ({gen_type})", unit="rep")

    batches: List[Optional[np.ndarray]] = [None] * len(batch_args)
    try:
        if n_workers == 1 or len(batch_args) == 1:
            for idx, args in enumerate(batch_args):
                batches[idx] = _generate_batch(*args)
                if progress_bar:
                    progress_bar.update(batch_sizes[idx])
        else:
            # spawn avoids fork-related deadlocks under pytest and threaded callers
            ctx = multiprocessing.get_context('spawn')
            with ProcessPoolExecutor(max_workers=n_workers, mp_context=ctx) as executor:
                future_to_idx = {
                    executor.submit(_generate_batch, *args): idx
                    for idx, args in enumerate(batch_args)
                }
                for future in as_completed(future_to_idx):
                    idx = future_to_idx[future]
                    batches[idx] = future.result()
                    if progress_bar:
                        progress_bar.update(batch_sizes[idx])
    finally:
        if progress_bar:
            progress_bar.close()

    engine = 'numba' if gen_type == 'permute' and use_numba and NUMBA_AVAILABLE else 'numpy'
    return Replicates(
        spec=spec,
        type=gen_type,
        reps=reps,
        seed=seed,
        tables=np.concatenate(batches, axis=0),
        engine=engine,
    )
