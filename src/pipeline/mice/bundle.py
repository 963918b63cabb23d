"""The ImputationBundle: everything a run produced, reusable after the fact."""

import logging
from pathlib import Path

import joblib
import numpy as np
import pandas as pd

from .exceptions import SchemaMismatchError
from .executors import ChainContext
from .schema import restore_dtypes

logger = logging.getLogger(__name__)


def build_donor_pools(data, mask, variables):
    """Originally observed values of each imputed variable."""
    pools = {}
    for var in variables:
        observed = np.ones(len(data), dtype=bool)
        observed[mask[var]] = False
        values = data[var].iloc[observed]
        if isinstance(values.dtype, pd.CategoricalDtype):
            pools[var] = values.astype(object).to_numpy()
        else:
            pools[var] = values.to_numpy(dtype=float)
    return pools


class ImputationBundle:
    """
    Original data, missingness mask, resolved specs, and every chain's models.

    The bundle exclusively owns its chains. It grows in place when iterations
    or chains are added and is read-only for completed-data extraction and
    replay against new data.

    Attributes:
    -----------
    data : pd.DataFrame
        Original data in working dtypes (missing cells are NaN).
    mask : dict
        ``{column: positional rows missing in data}``.
    specs : dict
        ``{variable: VariableSpec}`` in imputation order.
    chains : dict
        ``{chain_id: ChainState}`` for chains that completed.
    failed_chains : dict
        ``{chain_id: ChainFailure}`` for chains that were aborted.
    iterations : int
        Iteration depth shared by every chain in ``chains``.
    """

    def __init__(self, data, dtypes, kinds, categories, mask, specs, trainer, rng, entropy):
        self.data = data
        self.dtypes = dict(dtypes)
        self.kinds = dict(kinds)
        self.categories = dict(categories)
        self.mask = mask
        self.specs = specs
        self.trainer = trainer
        self.rng = rng
        self.entropy = entropy
        self.donor_pools = build_donor_pools(data, mask, list(specs))
        self.chains = {}
        self.failed_chains = {}
        self.iterations = 0
        self.next_chain_id = 0

    @property
    def columns(self):
        return list(self.data.columns)

    @property
    def imputation_order(self):
        return list(self.specs)

    @property
    def chain_ids(self):
        return sorted(self.chains)

    def context(self):
        return ChainContext(self.data, self.mask, self.specs, self.donor_pools, self.trainer)

    def validate(self):
        """Raise SchemaMismatchError if specs or chains disagree with the stored data layout."""
        columns = set(self.data.columns)
        for var, spec in self.specs.items():
            absent = [c for c in (var,) + spec.predictors if c not in columns]
            if absent:
                raise SchemaMismatchError(f"Spec for '{var}' refers to columns absent from the bundle data: {absent}")
        for chain_id, chain in self.chains.items():
            if chain.working is not None and list(chain.working.columns) != self.columns:
                raise SchemaMismatchError(f"Chain {chain_id} working copy columns differ from the bundle data")

    def complete_data(self, dataset=None):
        """
        Completed dataset(s): observed cells untouched, missing cells from the latest iteration.

        Args:
            dataset: Chain id, or None for all chains

        Returns:
            pd.DataFrame for a single chain, otherwise a list ordered by chain id
        """
        if dataset is not None:
            if dataset not in self.chains:
                raise KeyError(f"No completed chain with id {dataset}")
            return restore_dtypes(self.chains[dataset].working, self.dtypes, self.kinds)
        return [restore_dtypes(self.chains[cid].working, self.dtypes, self.kinds) for cid in self.chain_ids]

    def get_model(self, dataset, variable, iteration=None):
        """Trained model of chain ``dataset`` for ``variable`` (latest iteration when None)."""
        if dataset not in self.chains:
            raise KeyError(f"No completed chain with id {dataset}")
        return self.chains[dataset].get_model(variable, iteration)

    def convergence_summary(self):
        """Mean imputed value per (chain, iteration, numeric variable), as a long DataFrame."""
        rows = []
        for cid in self.chain_ids:
            for (iteration, variable), mean in sorted(self.chains[cid].imputed_means.items()):
                rows.append({'chain': cid, 'iteration': iteration, 'variable': variable, 'mean': mean})
        return pd.DataFrame(rows, columns=['chain', 'iteration', 'variable', 'mean'])

    def save(self, path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        logger.info(f"Saved imputation bundle with {len(self.chains)} chains to {path}")
        return path

    @classmethod
    def load(cls, path):
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Bundle file not found: {path}")
        bundle = joblib.load(path)
        if not isinstance(bundle, cls):
            raise TypeError(f"{path} does not contain an ImputationBundle")
        logger.info(f"Loaded imputation bundle with {len(bundle.chains)} chains from {path}")
        return bundle

    def __repr__(self):
        return (f"ImputationBundle(chains={self.chain_ids}, iterations={self.iterations}, "
                f"variables={self.imputation_order}, failed={sorted(self.failed_chains)})")
