"""Column typing and missingness bookkeeping.

These helpers give every frame that enters the engine a **stable schema**:

- each column is either ``numeric`` or ``categorical``;
- numeric columns are held as ``float64`` so imputed values can be written
  back in place (nullable ``Int64`` columns would reject them);
- categorical columns are held as ``pd.Categorical`` whose category set is
  taken from the observed values of the *original* data, so one-hot feature
  layouts never change between training and prediction.

The original dtypes are remembered so completed datasets can be handed back
in the shape the caller passed in.
"""

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .exceptions import SchemaMismatchError

NUMERIC = 'numeric'
CATEGORICAL = 'categorical'


def infer_column_kinds(data: pd.DataFrame, categorical: Optional[List[str]] = None) -> Dict[str, str]:
    """Return ``{column: kind}`` for every column of ``data``.

    Numeric, non-boolean dtypes are ``numeric``; everything else (object,
    string, category, bool) is ``categorical``. Columns listed in
    ``categorical`` are forced to ``categorical`` (integer-coded labels).
    """
    forced = set(categorical or [])
    unknown = forced - set(data.columns)
    if unknown:
        raise SchemaMismatchError(f"Categorical columns not found in data: {sorted(unknown)}")
    kinds = {}
    for col in data.columns:
        dtype = data[col].dtype
        if col in forced or pd.api.types.is_bool_dtype(dtype) or not pd.api.types.is_numeric_dtype(dtype):
            kinds[col] = CATEGORICAL
        else:
            kinds[col] = NUMERIC
    return kinds


def infer_categories(data: pd.DataFrame, kinds: Dict[str, str]) -> Dict[str, list]:
    """Observed category set of each categorical column, sorted when sortable."""
    categories = {}
    for col, kind in kinds.items():
        if kind != CATEGORICAL:
            continue
        cats = pd.Series(data[col].dropna().unique()).tolist()
        try:
            cats = sorted(cats)
        except TypeError:
            pass
        categories[col] = cats
    return categories


def normalize_frame(data: pd.DataFrame, kinds: Dict[str, str], categories: Dict[str, list]) -> pd.DataFrame:
    """Cast ``data`` to the engine's working dtypes.

    Raises SchemaMismatchError if a categorical column holds a value outside
    its known category set.
    """
    out = pd.DataFrame(index=data.index)
    for col in data.columns:
        series = data[col]
        if kinds[col] == NUMERIC:
            try:
                out[col] = series.to_numpy(dtype='float64', na_value=np.nan)
            except (TypeError, ValueError) as e:
                raise SchemaMismatchError(f"Column '{col}' is numeric in the training schema but holds non-numeric values: {e}") from e
        else:
            cats = pd.Categorical(series.astype(object).where(series.notna(), None), categories=categories[col])
            unseen = pd.isna(cats) & series.notna().to_numpy()
            if unseen.any():
                bad = series[unseen].unique().tolist()
                raise SchemaMismatchError(f"Column '{col}' contains categories never observed in training data: {bad}")
            out[col] = cats
    return out


def _restore_numeric(values: pd.Series, dtype) -> pd.Series:
    if pd.api.types.is_integer_dtype(dtype):
        if values.notna().all() and np.all(np.mod(values.to_numpy(), 1) == 0):
            return values.astype(dtype)
        return values
    if pd.api.types.is_float_dtype(dtype):
        return values.astype(dtype)
    return values


def restore_dtypes(frame: pd.DataFrame, dtypes: Dict[str, object], kinds: Dict[str, str]) -> pd.DataFrame:
    """Cast a completed working frame back to the caller's original dtypes.

    Integer columns only go back to integer when every value is integral;
    otherwise they stay ``float64``. This also holds for integer-coded
    columns that were treated as categorical.
    """
    out = frame.copy()
    for col, dtype in dtypes.items():
        values = out[col]
        if kinds[col] == CATEGORICAL:
            if isinstance(dtype, pd.CategoricalDtype):
                out[col] = values.astype(dtype)
            elif pd.api.types.is_bool_dtype(dtype):
                out[col] = values.astype(bool)
            elif pd.api.types.is_numeric_dtype(dtype):
                out[col] = _restore_numeric(values.astype(object).astype('float64'), dtype)
            elif dtype != object and pd.api.types.is_string_dtype(dtype):
                out[col] = values.astype(object).astype(dtype)
            else:
                out[col] = values.astype(object)
        else:
            out[col] = _restore_numeric(values, dtype)
    return out


def compute_missingness_mask(data: pd.DataFrame) -> Dict[str, np.ndarray]:
    """Positional row indices of missing cells, for each column that has any.

    The returned arrays are read-only: the mask never changes once computed.
    """
    mask = {}
    isna = data.isna()
    for col in data.columns:
        rows = np.flatnonzero(isna[col].to_numpy())
        if len(rows) > 0:
            rows.setflags(write=False)
            mask[col] = rows
    return mask


def check_columns(columns, expected, context='data'):
    """Raise SchemaMismatchError unless ``columns`` equals ``expected`` in order."""
    columns = list(columns)
    expected = list(expected)
    if columns == expected:
        return
    missing = [c for c in expected if c not in columns]
    extra = [c for c in columns if c not in expected]
    if missing or extra:
        raise SchemaMismatchError(f"{context} columns do not match training schema (missing={missing}, unexpected={extra})")
    raise SchemaMismatchError(f"{context} columns are in a different order than the training schema: {columns} != {expected}")
