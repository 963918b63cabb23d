import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add parent directory to path to import from src
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.pipeline.mice.exceptions import SchemaMismatchError
from src.pipeline.mice.schema import (
    CATEGORICAL, NUMERIC, check_columns, compute_missingness_mask, infer_categories,
    infer_column_kinds, normalize_frame, restore_dtypes
)


@pytest.fixture
def mixed():
    return pd.DataFrame({
        'age': [30, 41, 25, 60],
        'income': [1.5, np.nan, 2.5, 4.0],
        'city': ['b', 'a', None, 'b'],
        'flag': [True, False, True, True],
        'code': [1, 2, 1, 3],
    })


def test_infer_column_kinds(mixed):
    kinds = infer_column_kinds(mixed, categorical=['code'])
    assert kinds == {'age': NUMERIC, 'income': NUMERIC, 'city': CATEGORICAL, 'flag': CATEGORICAL, 'code': CATEGORICAL}
    with pytest.raises(SchemaMismatchError):
        infer_column_kinds(mixed, categorical=['zip'])


def test_categories_are_observed_and_sorted(mixed):
    kinds = infer_column_kinds(mixed, categorical=['code'])
    categories = infer_categories(mixed, kinds)
    assert categories['city'] == ['a', 'b']
    assert categories['code'] == [1, 2, 3]


def test_normalize_and_restore(mixed):
    kinds = infer_column_kinds(mixed, categorical=['code'])
    frame = normalize_frame(mixed, kinds, infer_categories(mixed, kinds))
    assert frame['age'].dtype == np.float64
    assert isinstance(frame['city'].dtype, pd.CategoricalDtype)
    assert frame['city'].isna().tolist() == [False, False, True, False]

    restored = restore_dtypes(frame, mixed.dtypes.to_dict(), kinds)
    assert restored['age'].dtype == mixed['age'].dtype
    assert restored['flag'].dtype == bool
    assert restored['code'].tolist() == [1, 2, 1, 3]
    assert restored['code'].dtype == mixed['code'].dtype
    assert restored['city'].tolist()[:2] == ['b', 'a']


def test_restore_keeps_float_for_non_integral_values(mixed):
    kinds = infer_column_kinds(mixed)
    frame = normalize_frame(mixed, kinds, infer_categories(mixed, kinds))
    frame.loc[0, 'age'] = 30.5
    restored = restore_dtypes(frame, mixed.dtypes.to_dict(), kinds)
    assert restored['age'].dtype == np.float64
    assert restored.loc[0, 'age'] == 30.5


def test_normalize_rejects_unseen_category(mixed):
    kinds = infer_column_kinds(mixed)
    categories = infer_categories(mixed, kinds)
    other = mixed.copy()
    other.loc[1, 'city'] = 'c'
    with pytest.raises(SchemaMismatchError) as exc_info:
        normalize_frame(other, kinds, categories)
    assert "'c'" in str(exc_info.value)


def test_normalize_rejects_text_in_numeric_column(mixed):
    kinds = infer_column_kinds(mixed)
    categories = infer_categories(mixed, kinds)
    other = mixed.copy()
    other['income'] = ['x', 'y', 'z', 'w']
    with pytest.raises(SchemaMismatchError):
        normalize_frame(other, kinds, categories)


def test_missingness_mask_is_positional_and_read_only(mixed):
    data = mixed.set_index(pd.Index([10, 20, 30, 40]))
    mask = compute_missingness_mask(data)
    assert sorted(mask) == ['city', 'income']
    assert mask['income'].tolist() == [1]
    assert mask['city'].tolist() == [2]
    with pytest.raises(ValueError):
        mask['income'][0] = 3


def test_check_columns():
    check_columns(['a', 'b'], ['a', 'b'])
    with pytest.raises(SchemaMismatchError) as exc_info:
        check_columns(['b', 'a'], ['a', 'b'])
    assert "different order" in str(exc_info.value)
    with pytest.raises(SchemaMismatchError) as exc_info:
        check_columns(['a'], ['a', 'b'])
    assert "missing=['b']" in str(exc_info.value)


def test_restore_coded_categorical_with_imputed_values():
    data = pd.DataFrame({'grade': [1.0, np.nan, 3.0, 2.0]})
    kinds = infer_column_kinds(data, categorical=['grade'])
    frame = normalize_frame(data, kinds, infer_categories(data, kinds))
    frame.iloc[1, 0] = 3.0
    restored = restore_dtypes(frame, data.dtypes.to_dict(), kinds)
    assert restored['grade'].dtype == np.float64
    assert restored['grade'].tolist() == [1.0, 3.0, 3.0, 2.0]
