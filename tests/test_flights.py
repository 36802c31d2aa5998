"""
Unit tests for the flights example data.
"""
import polars as pl
import pytest

from chi2infer.flights import (
    ANALYSIS_COLUMNS,
    CARRIERS,
    ORIGINS,
    RAW_COLUMNS,
    load_flights,
    prepare_flights,
    simulate_flights,
)


class TestSimulateFlights:
    """Test the synthetic generator."""

    def test_columns(self):
        df = simulate_flights(n=50, seed=1)

        assert df.columns == RAW_COLUMNS
        assert df.height == 50

    def test_levels(self):
        df = simulate_flights(n=2000, seed=1)

        assert set(df['origin'].unique().to_list()) <= set(ORIGINS)
        assert set(df['carrier'].unique().to_list()) == set(CARRIERS)
        assert len(CARRIERS) == 16

    def test_reproducible(self):
        assert simulate_flights(n=100, seed=5).equals(simulate_flights(n=100, seed=5))


class TestPrepareFlights:
    """Test derived variables."""

    def test_season_and_day_hour(self):
        raw = pl.DataFrame({
            'month': [1, 4, 10, 7],
            'hour': [0, 5, 12, 13],
            'arr_delay': [1.0, 2.0, 3.0, 4.0],
            'dep_delay': [0.0, 1.0, 2.0, 3.0],
            'origin': ['EWR', 'JFK', 'LGA', 'EWR'],
            'carrier': ['UA', 'B6', 'DL', 'AA'],
        })
        prepared = prepare_flights(raw)

        assert prepared.columns == ANALYSIS_COLUMNS
        assert prepared['season'].to_list() == ['winter', 'summer', 'winter', 'summer']
        assert prepared['day_hour'].to_list() == [None, 'morning', 'morning', 'not morning']

    def test_drops_incomplete_rows(self):
        raw = pl.DataFrame({
            'month': [1, 2],
            'hour': [9, 9],
            'arr_delay': [None, 2.0],
            'dep_delay': [0.0, 1.0],
            'origin': ['EWR', 'JFK'],
            'carrier': ['UA', 'B6'],
        })

        assert prepare_flights(raw).height == 1

    def test_sample_size(self):
        prepared = prepare_flights(simulate_flights(n=300, seed=2), sample_size=100, seed=3)

        assert prepared.height == 100

    def test_sample_size_too_large(self):
        with pytest.raises(ValueError, match="exceeds"):
            prepare_flights(simulate_flights(n=10, seed=2), sample_size=100)

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Missing required columns"):
            prepare_flights(pl.DataFrame({'month': [1]}))


class TestLoadFlights:
    """Test file loading."""

    def test_load_csv_with_na(self, tmp_path):
        test_file = tmp_path / "flights.csv"
        test_file.write_text("month,hour,arr_delay,dep_delay,origin,carrier\n"
                             "1,5,NA,3,EWR,UA\n"
                             "7,14,12,10,JFK,B6\n")

        df = load_flights(str(test_file))

        assert df.height == 2
        assert df['arr_delay'].null_count() == 1

    def test_load_tsv(self, tmp_path):
        test_file = tmp_path / "flights.tsv"
        simulate_flights(n=20, seed=1).write_csv(test_file, separator='\t')

        assert load_flights(str(test_file)).height == 20

    def test_load_parquet(self, tmp_path):
        test_file = tmp_path / "flights.parquet"
        simulate_flights(n=20, seed=1).write_parquet(test_file)

        assert load_flights(str(test_file)).columns == RAW_COLUMNS

    def test_missing_columns(self, tmp_path):
        test_file = tmp_path / "flights.csv"
        test_file.write_text("month,hour\n1,5\n")

        with pytest.raises(ValueError, match="Missing required columns"):
            load_flights(str(test_file))
