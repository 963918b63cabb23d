"""Resolution of per-variable imputation settings.

Every column that will be imputed gets one :class:`VariableSpec` describing
which columns predict it, how raw model output becomes an imputed value, and
(for mean matching) how many nearest donors are eligible. Specs are resolved
once, up front, so invalid settings surface before any model is trained.
"""

import logging
import numbers
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .exceptions import ConfigurationError
from .schema import CATEGORICAL, NUMERIC

logger = logging.getLogger(__name__)

DIRECT = 'direct'
MEAN_MATCH = 'mean_match'
STRATEGIES = (DIRECT, MEAN_MATCH)

IMPUTATION_ORDERS = ('roman', 'ascending', 'descending')

OVERRIDE_KEYS = ('predictors', 'strategy', 'candidates')


@dataclass(frozen=True)
class VariableSpec:
    variable: str
    kind: str
    predictors: Tuple[str, ...]
    strategy: str = MEAN_MATCH
    candidates: Optional[int] = 5

    @property
    def is_categorical(self) -> bool:
        return self.kind == CATEGORICAL


def _validate_strategy(strategy, where):
    if strategy not in STRATEGIES:
        raise ConfigurationError(f"Unknown value-selection strategy {strategy!r} for {where}. Expected one of {STRATEGIES}.")


def _validate_candidates(candidates, where):
    if isinstance(candidates, bool) or not isinstance(candidates, numbers.Integral) or candidates < 1:
        raise ConfigurationError(f"Mean-match candidate count for {where} must be a positive integer. Got {candidates!r}.")


def order_variables(variables: List[str], columns: List[str], mask: Dict[str, object], imputation_order: str = 'roman') -> List[str]:
    """Return ``variables`` in the order they are visited during each iteration.

    ``roman`` keeps column order; ``ascending``/``descending`` sort by the
    number of missing cells, column order breaking ties.
    """
    if imputation_order not in IMPUTATION_ORDERS:
        raise ConfigurationError(f"imputation_order must be one of {IMPUTATION_ORDERS}. Got {imputation_order!r}.")
    position = {col: i for i, col in enumerate(columns)}
    ordered = sorted(variables, key=lambda v: position[v])
    if imputation_order == 'ascending':
        ordered = sorted(ordered, key=lambda v: len(mask[v]))
    elif imputation_order == 'descending':
        ordered = sorted(ordered, key=lambda v: -len(mask[v]))
    return ordered


def resolve_variable_specs(columns, kinds, mask, n_rows, variable_specs=None, variables=None,
                           default_strategy=MEAN_MATCH, default_candidates=5, imputation_order='roman'):
    """
    Build one validated VariableSpec per imputed column.

    Parameters:
    -----------
    columns : list of str
        All dataset columns, in order.
    kinds : dict
        ``{column: 'numeric' | 'categorical'}``.
    mask : dict
        Missingness mask ``{column: missing row positions}``.
    n_rows : int
        Dataset row count, used to reject columns with nothing observed.
    variable_specs : dict, optional
        ``{variable: {'predictors': [...], 'strategy': ..., 'candidates': k}}``.
        Any key may be omitted to take the default.
    variables : list of str, optional
        Subset of missing-valued columns to impute. Defaults to all of them.
    default_strategy : str
        Strategy for variables without an override.
    default_candidates : int
        Candidate count for mean-matching variables without an override.
    imputation_order : str
        See :func:`order_variables`.

    Returns:
    --------
    dict : ``{variable: VariableSpec}`` in imputation order

    Raises:
    -------
    ConfigurationError
        On any unknown column, self-prediction, bad strategy or candidate
        count, or a variable that cannot be imputed at all.
    """
    columns = list(columns)
    overrides = dict(variable_specs or {})
    _validate_strategy(default_strategy, 'default_strategy')
    _validate_candidates(default_candidates, 'default_candidates')

    if variables is None:
        variables = [col for col in columns if col in mask]
    else:
        variables = list(variables)
        unknown = [v for v in variables if v not in columns]
        if unknown:
            raise ConfigurationError(f"Variables to impute not found in data: {unknown}")
        if len(set(variables)) != len(variables):
            raise ConfigurationError(f"Variables to impute contain duplicates: {variables}")
        complete = [v for v in variables if v not in mask]
        if complete:
            raise ConfigurationError(f"Variables requested for imputation have no missing values: {complete}")

    stray = [v for v in overrides if v not in variables]
    if stray:
        raise ConfigurationError(f"Variable specs given for columns that are not being imputed: {stray}")

    specs = {}
    for var in order_variables(variables, columns, mask, imputation_order):
        if len(mask[var]) >= n_rows:
            raise ConfigurationError(f"Column '{var}' has no observed values; it cannot be seeded or modelled.")
        override = overrides.get(var) or {}
        bad_keys = [k for k in override if k not in OVERRIDE_KEYS]
        if bad_keys:
            raise ConfigurationError(f"Unknown keys in variable spec for '{var}': {bad_keys}")

        predictors = override.get('predictors')
        if predictors is None:
            predictors = [col for col in columns if col != var]
        else:
            predictors = list(predictors)
            missing_cols = [p for p in predictors if p not in columns]
            if missing_cols:
                raise ConfigurationError(f"Predictors for '{var}' not found in data: {missing_cols}")
            if var in predictors:
                raise ConfigurationError(f"Predictors for '{var}' include the variable itself.")
            if len(set(predictors)) != len(predictors):
                raise ConfigurationError(f"Predictors for '{var}' contain duplicates: {predictors}")
        if not predictors:
            raise ConfigurationError(f"Variable '{var}' has no predictor columns.")

        strategy = override.get('strategy', default_strategy)
        _validate_strategy(strategy, f"'{var}'")
        candidates = override.get('candidates')
        if strategy == MEAN_MATCH:
            candidates = default_candidates if candidates is None else candidates
            _validate_candidates(candidates, f"'{var}'")
        elif candidates is not None:
            raise ConfigurationError(f"Candidate count given for '{var}' but its strategy is '{DIRECT}'.")

        specs[var] = VariableSpec(
            variable=var,
            kind=kinds.get(var, NUMERIC),
            predictors=tuple(predictors),
            strategy=strategy,
            candidates=None if candidates is None else int(candidates),
        )
        logger.debug(f"Resolved spec for {var}: {specs[var]}")
    return specs
