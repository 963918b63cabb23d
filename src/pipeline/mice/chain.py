"""State of one independently evolving imputation chain."""

import logging

import numpy as np

logger = logging.getLogger(__name__)

SEEDED = 'seeded'
ITERATING = 'iterating'
DONE = 'done'


class ChainState:
    """One completed copy of the dataset and the models that produced it.

    The chain exclusively owns its working copy, its random generator and its
    model history. Models are logged append-only under
    ``(iteration, variable)``; iteration 0 is the seeded state and carries no
    models.
    """

    def __init__(self, chain_id, rng):
        self.chain_id = chain_id
        self.rng = rng
        self.working = None
        self.iteration = 0
        self.state = None
        self.current_variable = None
        self.models = {}
        self.imputed_means = {}

    def seed(self, data, mask, variables, donor_pools):
        """Fill each imputed variable's missing cells with random draws from its observed values."""
        self.working = data.copy()
        for var in variables:
            rows = mask[var]
            draws = self.rng.choice(donor_pools[var], size=len(rows))
            self.set_values(var, rows, draws)
        self.iteration = 0
        self.state = SEEDED
        logger.debug(f"Chain {self.chain_id} seeded {len(variables)} variables")

    def set_values(self, variable, rows, values):
        self.working.iloc[rows, self.working.columns.get_loc(variable)] = values

    def record(self, iteration, variable, model, values):
        self.models[(iteration, variable)] = model
        if np.issubdtype(np.asarray(values).dtype, np.number):
            self.imputed_means[(iteration, variable)] = float(np.mean(values))

    def get_model(self, variable, iteration=None):
        """Model for ``variable`` at ``iteration`` (latest iteration when None)."""
        if iteration is None:
            iteration = self.iteration
        try:
            return self.models[(iteration, variable)]
        except KeyError:
            raise KeyError(f"Chain {self.chain_id} has no model for variable '{variable}' at iteration {iteration}") from None

    def __repr__(self):
        return f"ChainState(chain_id={self.chain_id}, iteration={self.iteration}, state={self.state!r})"
