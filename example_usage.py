"""
Example usage of chi2infer: chi-squared tests on flight records.

Walks through a test of independence (is the origin airport related to the
season?) and a goodness-of-fit test (are flights spread evenly across the
three airports?), each by resampling and by the theoretical approximation.

Usage:
    python example_usage.py [flights.csv] [plot_dir]

Without a file, synthetic flights from simulate_flights() are used.
"""

import sys
from pathlib import Path

import matplotlib.pyplot as plt

from chi2infer import (
    assume,
    calculate,
    chisq_test,
    generate,
    get_p_value,
    hypothesize,
    load_flights,
    prepare_flights,
    simulate_flights,
    specify,
    visualize,
)


def load_example_data(file_path=None):
    """Prepared sample of 500 flights."""
    raw = load_flights(file_path) if file_path else simulate_flights(n=5000, seed=2013)
    return prepare_flights(raw, sample_size=500, seed=1)


def save(fig, plot_dir, name):
    if plot_dir is not None:
        path = Path(plot_dir) / name
        fig.savefig(path, dpi=150, bbox_inches='tight')
        print(f"  Plot saved to: {path}")
    plt.close(fig)


def example_1_independence(fli_small, plot_dir=None):
    """Example 1: Test of independence between origin and season."""
    print("=" * 80)
    print("Example 1: Test of Independence (origin ~ season)")
    print("=" * 80)

    # Observed statistic
    observed_indep_statistic = calculate(specify(fli_small, formula="origin ~ season"))
    print(f"\nObserved chi-squared statistic: {observed_indep_statistic:.4f}")

    # Null distribution by permutation
    spec = hypothesize(specify(fli_small, formula="origin ~ season"), null='independence')
    null_dist_sim = calculate(generate(spec, reps=1000, type='permute', seed=42))

    fig = visualize(null_dist_sim, obs_stat=observed_indep_statistic, direction='greater')
    save(fig, plot_dir, 'independence_simulation.png')

    p_sim = get_p_value(null_dist_sim, observed_indep_statistic, direction='greater')
    print(f"Permutation p-value (1000 reps): {p_sim:.4f}")

    # Theoretical null distribution
    null_dist_theory = assume(spec)
    fig = visualize(
        null_dist_theory,
        method='theoretical',
        obs_stat=observed_indep_statistic,
        direction='greater',
    )
    save(fig, plot_dir, 'independence_theoretical.png')

    p_theory = get_p_value(null_dist_theory, observed_indep_statistic, direction='greater')
    print(f"Theoretical p-value (df={null_dist_theory.df}): {p_theory:.4f}")

    # Both overlaid
    fig = visualize(null_dist_sim, method='both', obs_stat=observed_indep_statistic,
                    direction='greater')
    save(fig, plot_dir, 'independence_both.png')

    # One-call wrapper
    print("\nchisq_test(fli_small, formula='origin ~ season'):")
    print(chisq_test(fli_small, formula="origin ~ season"))


def example_2_goodness_of_fit(fli_small, plot_dir=None):
    """Example 2: Goodness-of-fit of origin against near-uniform probabilities."""
    print("\n\n" + "=" * 80)
    print("Example 2: Goodness-of-Fit (origin)")
    print("=" * 80)

    p = {'EWR': 0.33, 'JFK': 0.33, 'LGA': 0.34}
    spec = hypothesize(specify(fli_small, response='origin'), null='point', p=p)

    observed_gof_statistic = calculate(spec)
    print(f"\nObserved chi-squared statistic: {observed_gof_statistic:.4f}")

    null_dist_gof = calculate(generate(spec, reps=1000, type='simulate', seed=42))
    fig = visualize(null_dist_gof, obs_stat=observed_gof_statistic, direction='greater')
    save(fig, plot_dir, 'gof_simulation.png')

    p_sim = get_p_value(null_dist_gof, observed_gof_statistic, direction='greater')
    print(f"Simulation p-value (1000 reps): {p_sim:.4f}")

    p_theory = get_p_value(assume(spec), observed_gof_statistic, direction='greater')
    print(f"Theoretical p-value (df={spec.theory_df}): {p_theory:.4f}")

    print("\nchisq_test(fli_small, response='origin', p=...):")
    print(chisq_test(fli_small, response='origin', p=p))


def main():
    file_path = sys.argv[1] if len(sys.argv) > 1 else None
    plot_dir = sys.argv[2] if len(sys.argv) > 2 else None
    if plot_dir is not None:
        Path(plot_dir).mkdir(parents=True, exist_ok=True)

    fli_small = load_example_data(file_path)
    print(f"Loaded {fli_small.height} flights")
    print(fli_small.head())
    print()

    example_1_independence(fli_small, plot_dir)
    example_2_goodness_of_fit(fli_small, plot_dir)


if __name__ == '__main__':
    main()
