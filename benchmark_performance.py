"""
Performance benchmarking script for permutation null distributions.

This script measures:
1. Vectorized numpy table reconstruction
2. Numba JIT compilation (if installed)
3. Parallel batches across worker processes

Usage:
    python benchmark_performance.py [n_flights] [reps]

Example:
    python benchmark_performance.py 20000 5000
"""

import multiprocessing
import sys
import time

import numpy as np

from chi2infer import (
    NUMBA_AVAILABLE,
    calculate,
    generate,
    hypothesize,
    prepare_flights,
    simulate_flights,
    specify,
)


def format_time(seconds):
    """Format time in human-readable format."""
    if seconds < 1:
        return f"{seconds * 1000:.1f} ms"
    elif seconds < 60:
        return f"{seconds:.2f} s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"


def time_generate(spec, reps, **kwargs):
    start = time.time()
    replicates = generate(spec, reps=reps, seed=42, **kwargs)
    return time.time() - start, replicates


def benchmark_permutations(n_flights=20000, reps=5000):
    """
    Time permutation generation for origin ~ carrier under each engine.
    """
    print("=" * 80)
    print("PERFORMANCE BENCHMARK")
    print("=" * 80)
    print(f"Flights: {n_flights}")
    print(f"Replicates: {reps}")
    print(f"Numba available: {NUMBA_AVAILABLE}")
    print()

    fli = prepare_flights(simulate_flights(n=n_flights, seed=2013))
    spec = hypothesize(specify(fli, formula="origin ~ carrier"), null='independence')

    results = {}

    print("Benchmark 1: Vectorized numpy, single worker")
    print("-" * 80)
    time_numpy, numpy_reps = time_generate(spec, reps, use_numba=False, n_workers=1)
    results['numpy'] = time_numpy
    print(f"Time: {format_time(time_numpy)}")
    print()

    if NUMBA_AVAILABLE:
        print("Benchmark 2: Numba, single worker")
        print("-" * 80)
        # First call compiles; time the second
        generate(spec, reps=1, seed=0, use_numba=True)
        time_numba, numba_reps = time_generate(spec, reps, use_numba=True, n_workers=1)
        results['numba'] = time_numba
        print(f"Time: {format_time(time_numba)}")
        print(f"Speedup: {time_numpy / time_numba:.2f}x faster than numpy")
        same = np.array_equal(numpy_reps.tables, numba_reps.tables)
        print(f"{'✓' if same else '✗'} Identical tables with the same seed")
        print()

    n_cpus = multiprocessing.cpu_count()
    print(f"Benchmark 3: Parallel batches, {n_cpus} workers")
    print("-" * 80)
    time_par, par_reps = time_generate(
        spec, reps, n_workers=n_cpus, batch_size=max(1, reps // n_cpus)
    )
    results['parallel'] = time_par
    print(f"Time: {format_time(time_par)}")
    print(f"Speedup: {time_numpy / time_par:.2f}x faster than single-worker numpy")
    print()

    print("Verifying null distribution...")
    print("-" * 80)
    null_dist = calculate(par_reps)
    print(f"Mean statistic: {null_dist.stats.mean():.3f} (theoretical mean: {spec.theory_df})")
    print()

    print("=" * 80)
    print("SUMMARY")
    print("=" * 80)
    for name, seconds in results.items():
        print(f"{name:<10} {format_time(seconds)}")
    if not NUMBA_AVAILABLE:
        print("\n⚠ Install numba for faster permutations:")
        print("  pip install chi2infer[numba]")
    print("=" * 80)

    return results


def main():
    n_flights = int(sys.argv[1]) if len(sys.argv) > 1 else 20000
    reps = int(sys.argv[2]) if len(sys.argv) > 2 else 5000
    benchmark_permutations(n_flights, reps)


if __name__ == '__main__':
    main()
