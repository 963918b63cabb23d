"""Synthetic mixed-type data for demos and tests."""

import numpy as np
import pandas as pd
from numpy.random import default_rng

GROUPS = np.array(['a', 'b', 'c'])


def generate_data(n=150, rng=None):
    """
    Generate a complete dataset with correlated numeric and categorical columns.

    Parameters:
    - n: Sample size
    - rng: numpy Generator (defaults to default_rng(123))

    Returns:
    - data: DataFrame with columns X1, X2 (continuous), X3 (integer count),
      group (categorical 'a'/'b'/'c'), X5 (continuous)
    """
    if rng is None:
        rng = default_rng(123)

    latent = rng.normal(0, 1, n)
    x1 = 50 + 10 * latent + rng.normal(0, 3, n)
    x2 = 0.5 * x1 + rng.normal(0, 4, n)
    x3 = rng.poisson(np.exp(1 + 0.4 * latent))

    # group depends on the latent factor so it is predictable from X1/X2
    logits = np.column_stack([-latent, np.zeros(n), latent]) * 2
    probs = np.exp(logits) / np.exp(logits).sum(axis=1, keepdims=True)
    group = GROUPS[[rng.choice(3, p=p) for p in probs]]

    x5 = rng.normal(0, 1, n) + (group == 'c') * 1.5

    return pd.DataFrame({
        'X1': x1,
        'X2': x2,
        'X3': x3,
        'group': group,
        'X5': x5,
    })
