"""
Chi-squared tests of independence and goodness-of-fit by resampling.

Pipeline:
1. specify     - choose the response (and explanatory) variable
2. hypothesize - declare an independence or point null
3. generate    - permute or simulate replicates under the null
4. calculate   - chi-squared statistic, observed or per replicate
5. visualize / get_p_value
"""

from chi2infer.flights import load_flights, prepare_flights, simulate_flights
from chi2infer.resample import NUMBA_AVAILABLE, Replicates, generate
from chi2infer.specify import Specification, contingency_table, hypothesize, specify
from chi2infer.statistics import (
    NullDistribution,
    TheoreticalDistribution,
    assume,
    calculate,
    get_p_value,
    observe,
)
from chi2infer.theory import chisq_test
from chi2infer.visualize import shade_p_value, visualize

__all__ = [
    "specify",
    "hypothesize",
    "generate",
    "calculate",
    "observe",
    "assume",
    "get_p_value",
    "chisq_test",
    "visualize",
    "shade_p_value",
    "contingency_table",
    "load_flights",
    "prepare_flights",
    "simulate_flights",
    "Specification",
    "Replicates",
    "NullDistribution",
    "TheoreticalDistribution",
    "NUMBA_AVAILABLE",
]
