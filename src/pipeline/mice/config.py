"""JSON run configuration."""

import copy
import json
import logging
import os
from pathlib import Path

from .executors import resolve_n_jobs
from .variable_specs import MEAN_MATCH

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ['chain_count', 'iteration_count', 'seed']

DEFAULTS = {
    'parallel': False,
    'n_jobs': None,
    'categorical': [],
    'variables': None,
    'variable_specs': {},
    'default_strategy': MEAN_MATCH,
    'default_candidates': 5,
    'imputation_order': 'roman',
    'model': {'backend': 'linear', 'params': {}},
}


def load_config(config_path):
    """
    Load an imputation run configuration from a JSON file.

    Parameters:
    -----------
    config_path : str or Path
        Path to the JSON configuration file

    Returns:
    --------
    dict : Configuration with every optional key filled in

    Example JSON structure:
    {
        "chain_count": 6,
        "iteration_count": 5,
        "seed": 123,
        "parallel": false,
        "categorical": ["species"],
        "variable_specs": {
            "petal_width": {"strategy": "direct"},
            "sepal_length": {"predictors": ["sepal_width", "species"], "candidates": 3}
        },
        "model": {"backend": "random_forest", "params": {"regressor": {"n_estimators": 50}}}
    }
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = json.load(f)

    missing_keys = [key for key in REQUIRED_KEYS if key not in config]
    if missing_keys:
        raise ValueError(f"Missing required configuration keys: {missing_keys}")
    unknown_keys = [key for key in config if key not in REQUIRED_KEYS and key not in DEFAULTS]
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    for key, value in DEFAULTS.items():
        if key not in config:
            config[key] = copy.deepcopy(value)
    model = config['model']
    model.setdefault('backend', 'linear')
    model.setdefault('params', {})

    if config['parallel']:
        if config['n_jobs'] is None and 'NUM_PROCESSES' in os.environ:
            logger.info(f"Using NUM_PROCESSES={os.environ['NUM_PROCESSES']} from environment")
        config['n_jobs'] = resolve_n_jobs(config['n_jobs'], config['chain_count'])

    logger.info(f"Loaded configuration from {config_path}")
    return config


def run_kwargs(config):
    """Keyword arguments for ImputationOrchestrator.run from a loaded config."""
    return {
        'chain_count': config['chain_count'],
        'iteration_count': config['iteration_count'],
        'variable_specs': config['variable_specs'],
        'variables': config['variables'],
        'categorical': config['categorical'],
        'default_strategy': config['default_strategy'],
        'default_candidates': config['default_candidates'],
        'imputation_order': config['imputation_order'],
        'backend': config['model']['backend'],
        'backend_params': config['model']['params'],
        'random_state': config['seed'],
    }
