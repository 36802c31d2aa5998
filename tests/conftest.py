"""Shared fixtures for chi2infer tests."""

import matplotlib

matplotlib.use('Agg')

import polars as pl
import pytest

from chi2infer.flights import prepare_flights, simulate_flights


@pytest.fixture
def flights():
    """Prepared synthetic flights table - origin depends on carrier, not on season."""
    return prepare_flights(simulate_flights(n=600, seed=7))


@pytest.fixture
def balanced_data():
    """Every (group, outcome) combination equally often - observed chi-squared is 0."""
    groups = ['a', 'a', 'b', 'b'] * 20
    outcomes = ['x', 'y', 'x', 'y'] * 20
    return pl.DataFrame({'group': groups, 'outcome': outcomes})


@pytest.fixture
def associated_data():
    """Outcome fully determined by group - strongest possible association."""
    return pl.DataFrame({
        'group': ['a'] * 50 + ['b'] * 50,
        'outcome': ['x'] * 50 + ['y'] * 50,
    })


@pytest.fixture
def small_table_data():
    """Small sample with expected counts below 5."""
    return pl.DataFrame({
        'group': ['a', 'a', 'a', 'b', 'b', 'b', 'c', 'c'],
        'outcome': ['x', 'y', 'x', 'y', 'y', 'x', 'x', 'y'],
    })


@pytest.fixture
def gof_data():
    """Single categorical column with counts A=30, B=50, C=20."""
    return pl.DataFrame({
        'letter': ['A'] * 30 + ['B'] * 50 + ['C'] * 20,
    })
