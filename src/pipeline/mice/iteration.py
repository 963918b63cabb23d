"""The chained-equations loop for a single chain."""

import logging

from .chain import DONE, ITERATING
from .value_selection import select_values

logger = logging.getLogger(__name__)


class IterationController:
    """Drives full passes over the imputed variables of one chain.

    Variables are visited in the order of ``specs``. Each variable's imputed
    values are written into the working copy before the next variable is
    trained, so later variables in a pass see the fresh values of earlier ones.
    """

    def __init__(self, chain, specs, mask, donor_pools, trainer):
        self.chain = chain
        self.specs = specs
        self.mask = mask
        self.donor_pools = donor_pools
        self.trainer = trainer

    def step(self, variable):
        chain = self.chain
        spec = self.specs[variable]
        rows = self.mask[variable]
        iteration = chain.iteration + 1
        chain.current_variable = variable
        model = self.trainer.train(chain.working, spec, rows, chain.rng)
        raw = self.trainer.predict(model, chain.working, rows, spec.strategy)
        values = select_values(spec, raw, self.donor_pools[variable], chain.rng, classes=model.classes)
        chain.set_values(variable, rows, values)
        chain.record(iteration, variable, model, values)
        logger.debug(f"Chain {chain.chain_id} iteration {iteration}: imputed {len(rows)} cells of {variable}")

    def run(self, iterations):
        """Run ``iterations`` more passes, continuing from the chain's current iteration."""
        chain = self.chain
        if chain.working is None:
            raise RuntimeError(f"Chain {chain.chain_id} must be seeded before iterating")
        for _ in range(iterations):
            chain.state = ITERATING
            for variable in self.specs:
                self.step(variable)
            chain.iteration += 1
            chain.current_variable = None
        chain.state = DONE
        return chain
