"""
Unit tests for variable specification and null hypotheses.
"""
import numpy as np
import polars as pl
import pytest

from chi2infer.specify import (
    Specification,
    contingency_table,
    hypothesize,
    parse_formula,
    specify,
)


class TestParseFormula:
    """Test formula parsing."""

    def test_two_variables(self):
        assert parse_formula("origin ~ season") == ('origin', 'season')

    def test_null_explanatory(self):
        assert parse_formula("origin ~ NULL") == ('origin', None)
        assert parse_formula("origin ~ 1") == ('origin', None)

    def test_missing_tilde(self):
        with pytest.raises(ValueError):
            parse_formula("origin season")

    def test_multiple_explanatory_rejected(self):
        with pytest.raises(ValueError, match="single explanatory"):
            parse_formula("origin ~ season + carrier")


class TestSpecify:
    """Test specify()."""

    def test_formula_and_arguments_agree(self, flights):
        by_formula = specify(flights, formula="origin ~ season")
        by_args = specify(flights, response='origin', explanatory='season')

        assert by_formula.response == by_args.response == 'origin'
        assert by_formula.explanatory == by_args.explanatory == 'season'
        assert by_formula.response_levels == by_args.response_levels

    def test_levels_are_sorted(self, flights):
        spec = specify(flights, formula="origin ~ season")

        assert spec.response_levels == ('EWR', 'JFK', 'LGA')
        assert spec.explanatory_levels == ('summer', 'winter')

    def test_kind_and_degrees_of_freedom(self, flights):
        independence = specify(flights, formula="origin ~ season")
        gof = specify(flights, formula="origin ~ NULL")

        assert independence.kind == 'independence'
        assert independence.theory_df == 2
        assert gof.kind == 'goodness_of_fit'
        assert gof.theory_df == 2

    def test_drops_rows_with_nulls(self):
        df = pl.DataFrame({
            'group': ['a', 'b', None, 'a'],
            'outcome': ['x', 'y', 'x', None],
        })
        spec = specify(df, response='outcome', explanatory='group')

        assert spec.n == 2

    def test_boolean_levels(self):
        df = pl.DataFrame({'flag': [True, False, True]})
        spec = specify(df, response='flag')

        assert spec.response_levels == ('false', 'true')

    def test_categorical_columns(self):
        df = pl.DataFrame({
            'group': pl.Series(['b', 'a', 'b', 'a'], dtype=pl.Categorical),
            'outcome': pl.Series(['y', 'x', 'x', 'y'], dtype=pl.Categorical),
        })
        spec = specify(df, formula="outcome ~ group")

        assert spec.response_levels == ('x', 'y')
        assert spec.explanatory_levels == ('a', 'b')
        np.testing.assert_array_equal(contingency_table(spec), [[1, 1], [1, 1]])

    def test_enum_columns(self):
        season = pl.Enum(['winter', 'summer'])
        df = pl.DataFrame({
            'season': pl.Series(['winter', 'summer', 'summer'], dtype=season),
            'origin': ['EWR', 'JFK', 'JFK'],
        })
        spec = specify(df, response='origin', explanatory='season')

        # Levels are sorted as strings, not in enum category order
        assert spec.explanatory_levels == ('summer', 'winter')
        np.testing.assert_array_equal(contingency_table(spec), [[0, 1], [2, 0]])

    def test_numeric_response_rejected(self, flights):
        with pytest.raises(TypeError, match="categorical"):
            specify(flights, formula="arr_delay ~ season")

    def test_unknown_column_rejected(self, flights):
        with pytest.raises(ValueError, match="cannot be found"):
            specify(flights, response='tailnum')

    def test_formula_and_response_together_rejected(self, flights):
        with pytest.raises(ValueError, match="not both"):
            specify(flights, formula="origin ~ season", response='origin')

    def test_no_response_rejected(self, flights):
        with pytest.raises(ValueError):
            specify(flights)

    def test_same_column_rejected(self, flights):
        with pytest.raises(ValueError, match="same column"):
            specify(flights, response='origin', explanatory='origin')

    def test_single_level_rejected(self):
        df = pl.DataFrame({'outcome': ['x', 'x', 'x']})
        with pytest.raises(ValueError, match="at least two levels"):
            specify(df, response='outcome')


class TestHypothesize:
    """Test hypothesize()."""

    def test_independence(self, flights):
        spec = specify(flights, formula="origin ~ season")
        hypothesized = hypothesize(spec, null='independence')

        assert hypothesized.null == 'independence'
        assert hypothesized.is_hypothesized
        # The input specification is left untouched
        assert spec.null is None

    def test_independence_needs_explanatory(self, flights):
        spec = specify(flights, response='origin')
        with pytest.raises(ValueError, match="explanatory"):
            hypothesize(spec, null='independence')

    def test_point_with_mapping(self, gof_data):
        spec = specify(gof_data, response='letter')
        hypothesized = hypothesize(spec, null='point', p={'C': 0.2, 'A': 0.3, 'B': 0.5})

        assert hypothesized.p == {'A': 0.3, 'B': 0.5, 'C': 0.2}
        np.testing.assert_allclose(hypothesized.null_probabilities(), [0.3, 0.5, 0.2])

    def test_point_with_sequence(self, gof_data):
        spec = specify(gof_data, response='letter')
        hypothesized = hypothesize(spec, null='point', p=[0.25, 0.25, 0.5])

        assert hypothesized.p == {'A': 0.25, 'B': 0.25, 'C': 0.5}

    def test_point_probabilities_must_sum_to_one(self, gof_data):
        spec = specify(gof_data, response='letter')
        with pytest.raises(ValueError, match="sum to 1"):
            hypothesize(spec, null='point', p={'A': 0.5, 'B': 0.5, 'C': 0.5})

    def test_point_probabilities_must_cover_levels(self, gof_data):
        spec = specify(gof_data, response='letter')
        with pytest.raises(ValueError, match="missing"):
            hypothesize(spec, null='point', p={'A': 0.5, 'B': 0.5})

    def test_point_probabilities_non_negative(self, gof_data):
        spec = specify(gof_data, response='letter')
        with pytest.raises(ValueError, match="non-negative"):
            hypothesize(spec, null='point', p=[-0.5, 1.0, 0.5])

    def test_point_zero_probability_for_observed_level_rejected(self):
        df = pl.DataFrame({'letter': ['A'] * 50 + ['B'] * 50 + ['C'] * 5})
        spec = specify(df, response='letter')
        with pytest.raises(ValueError, match=r"probability 0 .*\['C'\]"):
            hypothesize(spec, null='point', p={'A': 0.5, 'B': 0.5, 'C': 0.0})

    def test_point_with_boolean_keys(self):
        df = pl.DataFrame({'flag': [True, False, True, True, False]})
        spec = specify(df, response='flag')
        hypothesized = hypothesize(spec, null='point', p={True: 0.6, False: 0.4})

        assert hypothesized.p == {'false': 0.4, 'true': 0.6}
        np.testing.assert_allclose(hypothesized.null_probabilities(), [0.4, 0.6])

    def test_point_needs_p(self, gof_data):
        spec = specify(gof_data, response='letter')
        with pytest.raises(ValueError):
            hypothesize(spec, null='point')

    def test_point_with_explanatory_rejected(self, flights):
        spec = specify(flights, formula="origin ~ season")
        with pytest.raises(ValueError):
            hypothesize(spec, null='point', p=[0.3, 0.3, 0.4])

    def test_unknown_null_rejected(self, flights):
        spec = specify(flights, formula="origin ~ season")
        with pytest.raises(ValueError, match="null must be one of"):
            hypothesize(spec, null='paired')

    def test_requires_specification(self, flights):
        with pytest.raises(TypeError):
            hypothesize(flights, null='independence')


class TestContingencyTable:
    """Test contingency table creation."""

    def test_counts(self):
        df = pl.DataFrame({
            'group': ['a', 'a', 'b', 'b', 'b'],
            'outcome': ['x', 'y', 'x', 'x', 'y'],
        })
        table = contingency_table(specify(df, response='outcome', explanatory='group'))

        # Rows are outcome levels (x, y), columns group levels (a, b)
        np.testing.assert_array_equal(table, [[1, 2], [1, 1]])

    def test_goodness_of_fit_single_column(self, gof_data):
        table = contingency_table(specify(gof_data, response='letter'))

        assert table.shape == (3, 1)
        np.testing.assert_array_equal(table[:, 0], [30, 50, 20])

    def test_total_matches_rows(self, flights):
        spec = specify(flights, formula="origin ~ carrier")

        assert isinstance(spec, Specification)
        assert contingency_table(spec).sum() == spec.n
