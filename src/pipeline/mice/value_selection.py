"""Turning raw model output into imputed values.

Two strategies are supported:

- ``direct``: the raw prediction is the imputed value.
- ``mean_match``: for each prediction, the ``candidates`` donors (originally
  observed values of the column) closest to it are eligible, and one is drawn
  uniformly at random. Donors tied with the k-th nearest distance are all
  eligible, so equal distances never favour whichever donor comes first.

For categorical targets the prediction is a row of class probabilities and
the distance to a donor of class ``c`` is ``1 - p(c)``, the total-variation
distance between the predicted distribution and a point mass on ``c``.
"""

import logging

import numpy as np

from .variable_specs import DIRECT, MEAN_MATCH

logger = logging.getLogger(__name__)


def eligible_donors(distances, candidates):
    """Indices of donors within the ``candidates`` nearest, ties included."""
    k = min(candidates, len(distances))
    kth = np.partition(distances, k - 1)[k - 1]
    return np.flatnonzero(distances <= kth)


def mean_match_numeric(predictions, donors, candidates, rng):
    """
    Mean matching for numeric predictions.

    Args:
        predictions: Raw predictions (n_mis,)
        donors: Originally observed values of the column (n_obs,)
        candidates: Number of nearest donors eligible for each prediction
        rng: numpy Generator used for the uniform draw

    Returns:
        np.ndarray: Imputed values, every one a member of ``donors``
    """
    donors = np.asarray(donors, dtype=float)
    out = np.empty(len(predictions), dtype=float)
    for j, pred in enumerate(np.asarray(predictions, dtype=float)):
        eligible = eligible_donors(np.abs(donors - pred), candidates)
        out[j] = donors[rng.choice(eligible)]
    return out


def mean_match_categorical(probabilities, classes, donors, candidates, rng):
    """
    Mean matching for categorical predictions (nearest class probability).

    Args:
        probabilities: Class probabilities (n_mis, n_classes), columns ordered as ``classes``
        classes: Class labels known to the model
        donors: Originally observed labels of the column (n_obs,)
        candidates: Number of nearest donors eligible for each prediction
        rng: numpy Generator used for the uniform draw

    Returns:
        np.ndarray: Imputed labels (object dtype), every one a member of ``donors``
    """
    donors = np.asarray(donors, dtype=object)
    class_index = {c: i for i, c in enumerate(classes)}
    donor_cols = np.array([class_index.get(d, -1) for d in donors])
    out = np.empty(len(probabilities), dtype=object)
    for j, proba in enumerate(np.asarray(probabilities, dtype=float)):
        # donors of a class the model never saw get probability 0
        donor_proba = np.where(donor_cols >= 0, proba[np.clip(donor_cols, 0, None)], 0.0)
        eligible = eligible_donors(1.0 - donor_proba, candidates)
        out[j] = donors[rng.choice(eligible)]
    return out


def select_values(spec, raw, donors, rng, classes=None):
    """
    Apply a VariableSpec's value-selection strategy to raw predictions.

    Args:
        spec: VariableSpec of the variable being imputed
        raw: Raw predictions from VariableModelTrainer.predict
        donors: Originally observed values of the variable
        rng: numpy Generator (consumed only by mean matching)
        classes: Model class labels, required for categorical mean matching

    Returns:
        np.ndarray: Final imputed values
    """
    if spec.strategy == DIRECT:
        return np.asarray(raw)
    if spec.strategy != MEAN_MATCH:
        raise ValueError(f"Unknown value-selection strategy {spec.strategy!r}")
    if spec.candidates > len(donors):
        logger.warning(f"Candidate count {spec.candidates} for '{spec.variable}' exceeds donor pool size {len(donors)}; using all donors.")
    if spec.is_categorical:
        return mean_match_categorical(raw, classes, donors, spec.candidates, rng)
    return mean_match_numeric(raw, donors, spec.candidates, rng)
