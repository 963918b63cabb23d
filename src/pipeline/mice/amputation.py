"""Missingness patterns for building demo and test data."""

import numpy as np
from abc import ABC, abstractmethod
from numpy.random import default_rng


class MissingnessPattern(ABC):
    """Abstract base class for missingness patterns.

    All missingness patterns must implement:
    - apply(data, rng=None): Apply missingness to data
    - name: Property for descriptive name
    """

    @abstractmethod
    def apply(self, data, rng=None):
        """Apply missingness to the data.

        Parameters:
        - data: Input DataFrame
        - rng: numpy Generator

        Returns:
        - dat_miss: DataFrame with missing values
        """
        pass

    @property
    @abstractmethod
    def name(self):
        """Return descriptive name of the pattern."""
        pass


class MCARPattern(MissingnessPattern):
    """Remove exactly ``round(proportion * n)`` values, completely at random, from each column."""

    def __init__(self, columns, proportion=0.25):
        if not 0 <= proportion < 1:
            raise ValueError(f"proportion must be in [0, 1). Got {proportion}.")
        self.columns = list(columns)
        self.proportion = proportion

    def apply(self, data, rng=None):
        if rng is None:
            rng = default_rng(123)
        dat_miss = data.copy()
        n_missing = int(round(self.proportion * len(dat_miss)))
        for var in self.columns:
            rows = rng.choice(len(dat_miss), size=n_missing, replace=False)
            keep = np.ones(len(dat_miss), dtype=bool)
            keep[rows] = False
            dat_miss[var] = dat_miss[var].where(keep, np.nan)
        return dat_miss

    @property
    def name(self):
        return 'mcar'
