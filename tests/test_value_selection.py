import pytest
import numpy as np
import sys
import os
import logging
from numpy.random import default_rng

# Add parent directory to path to import from src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.pipeline.mice.schema import CATEGORICAL, NUMERIC
from src.pipeline.mice.value_selection import (
    eligible_donors, mean_match_numeric, mean_match_categorical, select_values
)
from src.pipeline.mice.variable_specs import VariableSpec, DIRECT, MEAN_MATCH


def numeric_spec(strategy=MEAN_MATCH, candidates=2):
    return VariableSpec('v', NUMERIC, ('w',), strategy, candidates if strategy == MEAN_MATCH else None)


def test_direct_prediction_is_unchanged():
    raw = np.array([-3.7, 0.25, 1e6])
    out = select_values(numeric_spec(DIRECT), raw, donors=np.array([1.0, 2.0]), rng=default_rng(0))
    np.testing.assert_array_equal(out, raw)


def test_eligible_donors_include_ties():
    distances = np.array([0.5, 0.1, 0.5, 0.9, 0.1])
    assert list(eligible_donors(distances, 1)) == [1, 4]
    assert list(eligible_donors(distances, 3)) == [0, 1, 2, 4]
    assert list(eligible_donors(distances, 10)) == [0, 1, 2, 3, 4]


def test_numeric_mean_match_picks_nearest_donors():
    donors = np.array([1.0, 2.0, 3.0, 10.0, 11.0])
    out = mean_match_numeric(np.full(50, 10.4), donors, candidates=2, rng=default_rng(1))
    assert set(out) <= {10.0, 11.0}


def test_numeric_mean_match_ties_are_uniform():
    """Equidistant donors must all be reachable, not just the first one listed."""
    donors = np.array([0.0, 2.0, 5.0])
    out = mean_match_numeric(np.full(400, 1.0), donors, candidates=1, rng=default_rng(2))
    counts = {v: int(np.sum(out == v)) for v in (0.0, 2.0)}
    assert set(out) == {0.0, 2.0}
    assert 120 < counts[0.0] < 280


def test_numeric_mean_match_output_is_a_donor():
    rng = default_rng(3)
    donors = rng.normal(0, 1, 40)
    out = mean_match_numeric(rng.normal(0, 3, 100), donors, candidates=5, rng=rng)
    assert np.isin(out, donors).all()


def test_candidates_larger_than_pool_warns(caplog):
    donors = np.array([1.0, 2.0])
    with caplog.at_level(logging.WARNING):
        out = select_values(numeric_spec(candidates=5), np.array([1.4]), donors, default_rng(4))
    assert out[0] in donors
    assert any("exceeds donor pool size" in record.message for record in caplog.records)


def test_categorical_mean_match_prefers_probable_class():
    classes = np.array(['a', 'b', 'c'])
    donors = np.array(['a', 'b', 'b', 'c'], dtype=object)
    probabilities = np.tile([0.1, 0.8, 0.1], (30, 1))
    out = mean_match_categorical(probabilities, classes, donors, candidates=1, rng=default_rng(5))
    assert set(out) == {'b'}


def test_categorical_mean_match_widens_with_candidates():
    """With more candidates than donors of the top class, the next class becomes eligible."""
    classes = np.array(['a', 'b'])
    donors = np.array(['a', 'b', 'b', 'b'], dtype=object)
    probabilities = np.tile([0.6, 0.4], (300, 1))
    out = mean_match_categorical(probabilities, classes, donors, candidates=2, rng=default_rng(6))
    assert set(out) == {'a', 'b'}


def test_select_values_dispatches_categorical():
    spec = VariableSpec('g', CATEGORICAL, ('w',), MEAN_MATCH, 1)
    out = select_values(spec, np.array([[0.9, 0.1]]), np.array(['x', 'y'], dtype=object),
                        default_rng(7), classes=np.array(['x', 'y']))
    assert list(out) == ['x']
