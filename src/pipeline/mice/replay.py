"""Imputing new data with a bundle's trained models, without retraining."""

import logging

from numpy.random import default_rng

from .exceptions import SchemaMismatchError
from .schema import check_columns, compute_missingness_mask, normalize_frame, restore_dtypes
from .value_selection import select_values

logger = logging.getLogger(__name__)


def impute(new_data, bundle, datasets=None, random_state=None):
    """
    Complete ``new_data`` once per chain using each chain's final-iteration models.

    Missing cells are seeded with draws from the bundle's original observed
    values, then every imputed variable is predicted once, in the stored
    order. Mean matching draws donors from the original training data, never
    from ``new_data``.

    Args:
        new_data (pd.DataFrame): Data with the same columns as the training data.
        bundle (ImputationBundle): Result of a previous run.
        datasets (list, optional): Chain ids to use. Defaults to every chain.
        random_state (int, optional): Replay seed. Defaults to the bundle's own
            entropy, so repeated calls give identical output.

    Returns:
        list: One completed DataFrame per chain, in ``datasets`` order.

    Raises:
        SchemaMismatchError: If columns, dtypes or categories disagree with the
            training data, or a missing column has no trained model.
    """
    check_columns(new_data.columns, bundle.columns, context='new data')
    frame = normalize_frame(new_data, bundle.kinds, bundle.categories)
    mask = compute_missingness_mask(frame)
    unmodelled = [col for col in mask if col not in bundle.specs]
    if unmodelled:
        raise SchemaMismatchError(f"New data has missing values in columns without trained models: {unmodelled}")

    chain_ids = bundle.chain_ids if datasets is None else list(datasets)
    unknown = [cid for cid in chain_ids if cid not in bundle.chains]
    if unknown:
        raise KeyError(f"No completed chains with ids {unknown}")

    seed = bundle.entropy if random_state is None else random_state
    variables = [var for var in bundle.specs if var in mask]
    logger.info(f"Imputing {len(new_data)} new rows ({variables}) with {len(chain_ids)} chains")

    completed = []
    for cid in chain_ids:
        chain = bundle.chains[cid]
        rng = default_rng([seed, cid])
        working = frame.copy()
        for var in variables:
            col = working.columns.get_loc(var)
            working.iloc[mask[var], col] = rng.choice(bundle.donor_pools[var], size=len(mask[var]))
        for var in variables:
            spec = bundle.specs[var]
            rows = mask[var]
            model = chain.get_model(var)
            raw = bundle.trainer.predict(model, working, rows, spec.strategy)
            values = select_values(spec, raw, bundle.donor_pools[var], rng, classes=model.classes)
            working.iloc[rows, working.columns.get_loc(var)] = values
        completed.append(restore_dtypes(working, bundle.dtypes, bundle.kinds))
    return completed
