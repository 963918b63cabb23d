"""Multiple imputation by chained equations (MICE) with independent, replayable chains.

This package imputes every missing-valued column of a DataFrame from the other
columns, cycling through the columns for a number of iterations, in several
independently seeded chains. The trained models are kept in a bundle that can
be extended (more iterations, more chains) or replayed against new data.

Basic Usage
-----------
>>> from src.pipeline.mice import run_imputation, add_iterations, complete_data, impute
>>> bundle = run_imputation(data, chain_count=6, iteration_count=5, random_state=42)
>>> completed = complete_data(bundle)        # list of 6 DataFrames
>>> add_iterations(bundle, 2)                # resume every chain
>>> new_completed = impute(new_data, bundle) # no retraining

Modules
-------
exceptions : Error taxonomy
schema : Column kinds, categorical normalisation, missingness mask
variable_specs : Per-variable spec resolution
models : Learning backends and per-variable trainer
value_selection : Direct prediction and mean matching
chain : Chain state
iteration : Iteration controller
executors : Sequential / multiprocessing chain execution
bundle : ImputationBundle
orchestrator : Run and extend imputations
replay : Impute new data with a bundle
config : JSON run configuration
data_generators : Synthetic demo data
amputation : Demo missingness patterns
"""

from .exceptions import (
    ImputationError,
    ConfigurationError,
    DependencyError,
    SchemaMismatchError,
    TrainingFailure,
    ChainFailure
)
from .variable_specs import VariableSpec, resolve_variable_specs, DIRECT, MEAN_MATCH
from .models import ModelBackend, LinearBackend, RandomForestBackend, VariableModelTrainer, TrainedModel
from .value_selection import select_values
from .chain import ChainState
from .iteration import IterationController
from .executors import ChainExecutor, SequentialExecutor, PoolExecutor
from .bundle import ImputationBundle
from .orchestrator import (
    ImputationOrchestrator,
    run_imputation,
    add_iterations,
    add_datasets,
    complete_data
)
from .replay import impute
from .config import load_config
from .data_generators import generate_data
from .amputation import MissingnessPattern, MCARPattern

__version__ = '1.0.0'

__all__ = [
    # Errors
    'ImputationError',
    'ConfigurationError',
    'DependencyError',
    'SchemaMismatchError',
    'TrainingFailure',
    'ChainFailure',

    # Specs and models
    'VariableSpec',
    'resolve_variable_specs',
    'DIRECT',
    'MEAN_MATCH',
    'ModelBackend',
    'LinearBackend',
    'RandomForestBackend',
    'VariableModelTrainer',
    'TrainedModel',
    'select_values',

    # Chains and execution
    'ChainState',
    'IterationController',
    'ChainExecutor',
    'SequentialExecutor',
    'PoolExecutor',

    # Entry points
    'ImputationBundle',
    'ImputationOrchestrator',
    'run_imputation',
    'add_iterations',
    'add_datasets',
    'complete_data',
    'impute',
    'load_config',

    # Demo data
    'generate_data',
    'MissingnessPattern',
    'MCARPattern',
]
