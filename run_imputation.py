import argparse
import logging
import os
from pathlib import Path

import pandas as pd

from src.pipeline.mice.config import load_config, run_kwargs
from src.pipeline.mice.orchestrator import ImputationOrchestrator

logger = logging.getLogger()


def configure_logging(log_file='imputation.log.txt'):
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def run_from_config(data_path, config_path, output_dir='results/imputation'):
    """
    Impute a CSV file according to a JSON configuration.

    Parameters:
    -----------
    data_path : str or Path
        CSV file with missing values
    config_path : str or Path
        JSON configuration (see src.pipeline.mice.config.load_config)
    output_dir : str or Path
        Directory for completed datasets and the saved bundle

    Returns:
    --------
    bundle : ImputationBundle
    """
    config = load_config(config_path)
    data = pd.read_csv(data_path)
    logger.info(f"Loaded {data.shape[0]} rows x {data.shape[1]} columns from {data_path}")

    orchestrator = ImputationOrchestrator(parallel=config['parallel'], n_jobs=config['n_jobs'])
    bundle = orchestrator.run(data, **run_kwargs(config))

    if bundle.failed_chains:
        for failure in bundle.failed_chains.values():
            logger.warning(f"Chain {failure.chain_id} failed with {failure.error_type}: {failure.message}")

    os.makedirs(output_dir, exist_ok=True)
    for chain_id, completed in zip(bundle.chain_ids, bundle.complete_data()):
        out_path = os.path.join(output_dir, f'completed_chain_{chain_id}.csv')
        completed.to_csv(out_path, index=False)
        logger.info(f"Saved completed dataset for chain {chain_id} to {out_path}")
    bundle.save(Path(output_dir) / 'bundle.joblib')

    logger.info(f"Imputation run complete. Results saved in {output_dir}")
    return bundle


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Multiple imputation by chained equations")
    parser.add_argument('data', help="CSV file with missing values")
    parser.add_argument('--config', required=True, help="JSON configuration file")
    parser.add_argument('--output-dir', default='results/imputation')
    args = parser.parse_args()

    configure_logging()
    run_from_config(args.data, args.config, args.output_dir)
