import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))  # project root, for run_imputation

import json
import logging

import pytest
import pandas as pd
from numpy.random import default_rng

from run_imputation import run_from_config
from src.pipeline.mice.amputation import MCARPattern
from src.pipeline.mice.bundle import ImputationBundle
from src.pipeline.mice.config import load_config, run_kwargs
from src.pipeline.mice.data_generators import generate_data
from src.pipeline.mice.orchestrator import run_imputation, complete_data


def write_config(tmp_path, **config):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(config))
    return path


@pytest.fixture
def data_csv(tmp_path):
    complete = generate_data(n=80, rng=default_rng(3))
    dat_miss = MCARPattern(columns=['X1', 'group'], proportion=0.2).apply(complete, rng=default_rng(4))
    path = tmp_path / 'data.csv'
    dat_miss.to_csv(path, index=False)
    return path


def test_load_config_fills_defaults(tmp_path):
    config = load_config(write_config(tmp_path, chain_count=4, iteration_count=3, seed=1))
    assert config['parallel'] is False
    assert config['n_jobs'] is None
    assert config['default_strategy'] == 'mean_match'
    assert config['default_candidates'] == 5
    assert config['model'] == {'backend': 'linear', 'params': {}}


def test_load_config_partial_model_section(tmp_path):
    config = load_config(write_config(tmp_path, chain_count=2, iteration_count=2, seed=1,
                                      model={'backend': 'random_forest'}))
    assert config['model'] == {'backend': 'random_forest', 'params': {}}


def test_load_config_missing_keys(tmp_path):
    with pytest.raises(ValueError) as exc_info:
        load_config(write_config(tmp_path, chain_count=4))
    assert "Missing required configuration keys" in str(exc_info.value)
    assert "seed" in str(exc_info.value)


def test_load_config_unknown_keys(tmp_path):
    with pytest.raises(ValueError) as exc_info:
        load_config(write_config(tmp_path, chain_count=4, iteration_count=3, seed=1, chians=2))
    assert "Unknown configuration keys" in str(exc_info.value)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / 'nope.json')


def test_load_config_num_processes(tmp_path, monkeypatch):
    monkeypatch.setenv('NUM_PROCESSES', '3')
    config = load_config(write_config(tmp_path, chain_count=6, iteration_count=2, seed=1, parallel=True))
    assert config['n_jobs'] == 3
    config = load_config(write_config(tmp_path, chain_count=2, iteration_count=2, seed=1, parallel=True))
    assert config['n_jobs'] == 2


def test_run_kwargs(tmp_path):
    config = load_config(write_config(tmp_path, chain_count=4, iteration_count=3, seed=11,
                                      variable_specs={'X1': {'strategy': 'direct'}}))
    kwargs = run_kwargs(config)
    assert kwargs['random_state'] == 11
    assert kwargs['backend'] == 'linear'
    assert kwargs['variable_specs'] == {'X1': {'strategy': 'direct'}}
    assert 'parallel' not in kwargs


def test_run_from_config(tmp_path, data_csv, caplog):
    config_path = write_config(tmp_path, chain_count=2, iteration_count=2, seed=5)
    output_dir = tmp_path / 'out'
    with caplog.at_level(logging.INFO):
        bundle = run_from_config(data_csv, config_path, output_dir)
    assert "Imputation run complete" in caplog.text
    assert sorted(os.listdir(output_dir)) == ['bundle.joblib', 'completed_chain_0.csv', 'completed_chain_1.csv']

    saved = pd.read_csv(output_dir / 'completed_chain_1.csv')
    assert saved.isna().sum().sum() == 0
    assert saved.shape == (80, 5)

    loaded = ImputationBundle.load(output_dir / 'bundle.joblib')
    assert loaded.chain_ids == bundle.chain_ids
    assert loaded.iterations == 2


def test_run_from_config_matches_direct_call(tmp_path, data_csv):
    config_path = write_config(tmp_path, chain_count=2, iteration_count=2, seed=5,
                               variable_specs={'X1': {'candidates': 3}})
    bundle = run_from_config(data_csv, config_path, tmp_path / 'out')
    direct = run_imputation(pd.read_csv(data_csv), chain_count=2, iteration_count=2,
                            variable_specs={'X1': {'candidates': 3}}, random_state=5)
    for a, b in zip(complete_data(bundle), complete_data(direct)):
        pd.testing.assert_frame_equal(a, b)
