"""Imputation orchestration: running, extending and collecting chains."""

import logging
import numbers

from numpy.random import Generator, default_rng

from .bundle import ImputationBundle
from .chain import ChainState
from .exceptions import ConfigurationError
from .executors import make_executor, run_chain_task, spawn_rngs
from .models import VariableModelTrainer, make_backend
from .schema import compute_missingness_mask, infer_categories, infer_column_kinds, normalize_frame
from .variable_specs import MEAN_MATCH, resolve_variable_specs

logger = logging.getLogger(__name__)


def _check_count(value, name):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
        raise ConfigurationError(f"{name} must be a positive integer. Got {value!r}.")
    return int(value)


class ImputationOrchestrator:
    """
    Runs independent chains of chained-equations imputation.

    Parameters:
    -----------
    parallel : bool or ChainExecutor, default=False
        Run chains in worker processes (True), sequentially (False), or with
        a custom ChainExecutor.
    n_jobs : int, optional
        Worker processes when ``parallel`` is True.
    """

    def __init__(self, parallel=False, n_jobs=None):
        self.executor = make_executor(parallel, n_jobs)

    def run(self, data, chain_count=5, iteration_count=5, variable_specs=None, variables=None,
            categorical=None, default_strategy=MEAN_MATCH, default_candidates=5,
            imputation_order='roman', backend='linear', backend_params=None, random_state=None):
        """
        Impute ``data`` with ``chain_count`` chains of ``iteration_count`` iterations.

        Parameters:
        -----------
        data : pd.DataFrame
            Dataset with missing values.
        chain_count : int
            Number of independently seeded chains (completed datasets).
        iteration_count : int
            Passes over all imputed variables per chain.
        variable_specs : dict, optional
            Per-variable overrides, see resolve_variable_specs.
        variables : list of str, optional
            Subset of missing-valued columns to impute.
        categorical : list of str, optional
            Numeric-typed columns to treat as categorical.
        default_strategy, default_candidates, imputation_order
            Defaults for spec resolution.
        backend : str or ModelBackend
            'linear', 'random_forest', or a ModelBackend instance.
        backend_params : dict, optional
            ``{'regressor': {...}, 'classifier': {...}}`` estimator params.
        random_state : int, Generator or None
            Root of every random draw in the run.

        Returns:
        --------
        ImputationBundle

        Raises:
        -------
        ConfigurationError
            Before any training, for invalid counts or variable specs.
        """
        chain_count = _check_count(chain_count, 'chain_count')
        iteration_count = _check_count(iteration_count, 'iteration_count')
        kinds = infer_column_kinds(data, categorical)
        categories = infer_categories(data, kinds)
        frame = normalize_frame(data, kinds, categories)
        mask = compute_missingness_mask(frame)
        specs = resolve_variable_specs(
            frame.columns, kinds, mask, len(frame),
            variable_specs=variable_specs, variables=variables,
            default_strategy=default_strategy, default_candidates=default_candidates,
            imputation_order=imputation_order,
        )
        if not specs:
            raise ConfigurationError("Data has no missing values to impute.")

        rng = random_state if isinstance(random_state, Generator) else default_rng(random_state)
        trainer = VariableModelTrainer(make_backend(backend, backend_params), kinds)
        bundle = ImputationBundle(
            frame, data.dtypes.to_dict(), kinds, categories, mask, specs, trainer,
            rng=rng, entropy=rng.bit_generator.seed_seq.entropy,
        )
        logger.info(f"Starting imputation of {list(specs)} with {chain_count} chains x {iteration_count} iterations "
                    f"({trainer.backend.name} backend, {self.executor.name} execution)")
        self._run_new_chains(bundle, chain_count, iteration_count)
        bundle.iterations = iteration_count
        logger.info(f"Imputation complete: {len(bundle.chains)} chains succeeded, {len(bundle.failed_chains)} failed")
        return bundle

    def add_iterations(self, bundle, extra_iterations):
        """Resume every chain of ``bundle`` for ``extra_iterations`` more passes, in place."""
        extra_iterations = _check_count(extra_iterations, 'extra_iterations')
        bundle.validate()
        context = bundle.context()
        tasks = [(bundle.chains[cid], context, extra_iterations) for cid in bundle.chain_ids]
        self._collect(bundle, tasks)
        bundle.iterations += extra_iterations
        logger.info(f"Added {extra_iterations} iterations; {len(bundle.chains)} chains now at iteration {bundle.iterations}")
        return bundle

    def add_datasets(self, bundle, extra_count):
        """Append ``extra_count`` freshly seeded chains, iterated to the bundle's current depth."""
        extra_count = _check_count(extra_count, 'extra_count')
        bundle.validate()
        self._run_new_chains(bundle, extra_count, bundle.iterations)
        logger.info(f"Added {extra_count} chains; bundle now holds {len(bundle.chains)} chains")
        return bundle

    def _run_new_chains(self, bundle, count, iterations):
        rngs = spawn_rngs(bundle.rng, count)
        chains = [ChainState(bundle.next_chain_id + i, chain_rng) for i, chain_rng in enumerate(rngs)]
        bundle.next_chain_id += count
        context = bundle.context()
        self._collect(bundle, [(chain, context, iterations) for chain in chains])

    def _collect(self, bundle, tasks):
        for chain_id, chain, failure in self.executor.map(run_chain_task, tasks):
            if failure is not None:
                bundle.chains.pop(chain_id, None)
                bundle.failed_chains[chain_id] = failure
            else:
                bundle.chains[chain_id] = chain


def run_imputation(dataset, chain_count, iteration_count, variable_specs=None, parallel=False, n_jobs=None, **kwargs):
    """Functional entry point: see ImputationOrchestrator.run."""
    orchestrator = ImputationOrchestrator(parallel=parallel, n_jobs=n_jobs)
    return orchestrator.run(dataset, chain_count, iteration_count, variable_specs=variable_specs, **kwargs)


def add_iterations(bundle, extra_iterations, parallel=False, n_jobs=None):
    return ImputationOrchestrator(parallel=parallel, n_jobs=n_jobs).add_iterations(bundle, extra_iterations)


def add_datasets(bundle, extra_count, parallel=False, n_jobs=None):
    return ImputationOrchestrator(parallel=parallel, n_jobs=n_jobs).add_datasets(bundle, extra_count)


def complete_data(bundle, dataset=None):
    return bundle.complete_data(dataset)
