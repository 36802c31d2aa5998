"""
CLI entry point for chi2infer.

Usage:
    chi2infer independence input.csv output.tsv --response origin --explanatory season
    chi2infer gof input.csv output.tsv --response origin [--p EWR=0.3 JFK=0.3 LGA=0.4]
"""

import argparse
import multiprocessing
import time
import warnings
from datetime import datetime
from pathlib import Path

import matplotlib.pyplot as plt
import polars as pl

from chi2infer.flights import prepare_flights, read_table
from chi2infer.resample import NUMBA_AVAILABLE, generate
from chi2infer.specify import hypothesize, specify
from chi2infer.statistics import assume, calculate, get_p_value, normalize_direction
from chi2infer.visualize import visualize


def parse_probabilities(pairs):
    """Turn ["EWR=0.3", "JFK=0.7"] into {"EWR": 0.3, "JFK": 0.7}."""
    probabilities = {}
    for pair in pairs:
        level, sep, value = pair.rpartition('=')
        if not sep or not level:
            raise ValueError(f"Expected LEVEL=PROBABILITY, got {pair!r}")
        try:
            probabilities[level] = float(value)
        except ValueError:
            raise ValueError(f"Probability for {level!r} is not a number: {value!r}") from None
    return probabilities


def build_parser():
    parser = argparse.ArgumentParser(
        prog='chi2infer',
        description='Run a resampling-based chi-squared test on categorical data.'
    )
    subparsers = parser.add_subparsers(dest='test', required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        'input_file',
        type=str,
        help='Path to the input CSV/TSV/Parquet file'
    )
    common.add_argument(
        'output_file',
        type=str,
        help='Path to the output TSV file for results'
    )
    common.add_argument(
        '--response',
        type=str,
        required=True,
        help='Categorical response column'
    )
    common.add_argument(
        '--reps',
        type=int,
        default=1000,
        help='Number of replicates in the null distribution (default: 1000)'
    )
    common.add_argument(
        '--random-seed',
        type=int,
        default=42,
        help='Random seed for reproducibility (default: 42)'
    )
    common.add_argument(
        '--n-workers',
        type=int,
        default=1,
        help='Number of parallel worker processes, 0 for all CPU cores; negative values are rejected (default: 1)'
    )
    common.add_argument(
        '--batch-size',
        type=int,
        default=1000,
        help='Number of replicates generated per batch (default: 1000)'
    )
    common.add_argument(
        '--direction',
        type=str,
        default='greater',
        help='Direction of the p-value: greater, less or two_sided (default: greater)'
    )
    common.add_argument(
        '--raw-flights',
        action='store_true',
        help='Input holds raw flight records; derive season and day_hour first'
    )
    common.add_argument(
        '--plot',
        type=str,
        default=None,
        help='Save a plot of the null distribution to this path'
    )
    common.add_argument(
        '--show-progress',
        action='store_true',
        help='Show a progress bar while generating replicates'
    )

    independence = subparsers.add_parser(
        'independence',
        parents=[common],
        help='Chi-squared test of independence between two categorical variables'
    )
    independence.add_argument(
        '--explanatory',
        type=str,
        required=True,
        help='Categorical explanatory column'
    )

    gof = subparsers.add_parser(
        'gof',
        parents=[common],
        help='Chi-squared goodness-of-fit test of one categorical variable'
    )
    gof.add_argument(
        '--p',
        nargs='+',
        default=None,
        metavar='LEVEL=PROB',
        help='Hypothesized probabilities per level (default: uniform)'
    )
    return parser


def run_test(args):
    """
    Run the pipeline for parsed arguments.

    Returns the one-row results frame, the null distribution and any
    warnings raised along the way.
    """
    normalize_direction(args.direction)

    df = read_table(args.input_file)
    if args.raw_flights:
        df = prepare_flights(df)

    explanatory = getattr(args, 'explanatory', None)
    spec = specify(df, response=args.response, explanatory=explanatory)

    if explanatory is not None:
        spec = hypothesize(spec, null='independence')
    else:
        p = parse_probabilities(args.p) if args.p else None
        if p is None:
            levels = spec.response_levels
            p = {level: 1.0 / len(levels) for level in levels}
        spec = hypothesize(spec, null='point', p=p)

    if args.n_workers < 0:
        raise ValueError(f"--n-workers must be 0 (all CPU cores) or positive, got {args.n_workers}")
    n_workers = args.n_workers if args.n_workers > 0 else None

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter('always')
        obs_stat = calculate(spec)
        replicates = generate(
            spec,
            reps=args.reps,
            seed=args.random_seed,
            n_workers=n_workers,
            batch_size=args.batch_size,
            show_progress=args.show_progress,
        )
        null_dist = calculate(replicates)
        p_sim = get_p_value(null_dist, obs_stat, direction=args.direction)
        p_theory = get_p_value(assume(spec), obs_stat, direction=args.direction)

    results = pl.DataFrame({
        'test': [spec.kind],
        'response': [spec.response],
        'explanatory': [explanatory],
        'n': [spec.n],
        'statistic': [obs_stat],
        'chisq_df': [spec.theory_df],
        'p_value_simulation': [p_sim],
        'p_value_theory': [p_theory],
        'reps': [null_dist.reps],
        'method': [f"{replicates.type}_{replicates.engine}"],
    }, schema_overrides={'explanatory': pl.Utf8})

    return results, null_dist, [str(w.message) for w in caught]


def write_summary(summary_file, args, results, notes, elapsed_time):
    row = results.row(0, named=True)
    with open(summary_file, 'w') as f:
        f.write("=" * 80 + "\n")
        f.write("CHI-SQUARED TEST - DETAILED SUMMARY REPORT\n")
        f.write("=" * 80 + "\n\n")

        f.write(f"Input file: {args.input_file}\n")
        f.write(f"Output file: {args.output_file}\n")
        f.write(f"Analysis date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        f.write(f"Processing time: {elapsed_time:.2f} seconds\n\n")

        f.write("-" * 80 + "\n")
        f.write("TEST\n")
        f.write("-" * 80 + "\n")
        f.write(f"Test: {row['test']}\n")
        f.write(f"Response: {row['response']}\n")
        if row['explanatory'] is not None:
            f.write(f"Explanatory: {row['explanatory']}\n")
        f.write(f"Observations: {row['n']}\n")
        f.write(f"Direction: {args.direction}\n\n")

        f.write("-" * 80 + "\n")
        f.write("RESULTS\n")
        f.write("-" * 80 + "\n")
        f.write(f"Chi-squared statistic: {row['statistic']:.4f}\n")
        f.write(f"Degrees of freedom: {row['chisq_df']}\n")
        f.write(f"Simulation p-value ({row['reps']} reps, {row['method']}): "
                f"{row['p_value_simulation']:.6f}\n")
        f.write(f"Theoretical p-value: {row['p_value_theory']:.6g}\n\n")

        if notes:
            f.write("-" * 80 + "\n")
            f.write("NOTES\n")
            f.write("-" * 80 + "\n")
            for note in notes:
                f.write(f"  - {note}\n")
            f.write("\n")

        f.write("=" * 80 + "\n")
        f.write("END OF REPORT\n")
        f.write("=" * 80 + "\n")


def main(argv=None):
    """
    Main function to run a chi-squared test from the command line.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    print(f"Chi-Squared {'Independence' if args.test == 'independence' else 'Goodness-of-Fit'} Test")
    print("=" * 80)
    print(f"Input file: {args.input_file}")
    print(f"Output file: {args.output_file}")

    n_cpus = multiprocessing.cpu_count()
    n_workers_display = args.n_workers if args.n_workers > 0 else n_cpus
    print(f"Available CPU cores: {n_cpus}")
    print(f"Generating {args.reps} replicates using {n_workers_display} worker(s)...")

    if NUMBA_AVAILABLE:
        print("Numba JIT compilation: ENABLED (faster permutations)")
    else:
        print("Numba JIT compilation: Not installed (using vectorized numpy)")
        print("  Install numba for faster permutations: pip install chi2infer[numba]")
    print()

    start_time = time.time()
    try:
        results, null_dist, notes = run_test(args)
    except (ValueError, TypeError) as exc:
        parser.error(str(exc))
    elapsed_time = time.time() - start_time

    print("Results:")
    print("=" * 80)
    print(results)
    print()

    for note in notes:
        print(f"Note: {note}")

    results.write_csv(args.output_file, separator='\t')
    print(f"Results saved to: {args.output_file}")

    if args.plot:
        fig = visualize(
            null_dist,
            method='both',
            obs_stat=results['statistic'][0],
            direction=args.direction,
        )
        fig.savefig(args.plot, dpi=150, bbox_inches='tight')
        plt.close(fig)
        print(f"Plot saved to: {args.plot}")

    print(f"Processing time: {elapsed_time:.2f} seconds")

    output_path = Path(args.output_file)
    summary_file = output_path.with_name(output_path.stem + '_summary.txt')
    write_summary(summary_file, args, results, notes, elapsed_time)
    print(f"\nDetailed summary report saved to: {summary_file}")


if __name__ == '__main__':
    main()
