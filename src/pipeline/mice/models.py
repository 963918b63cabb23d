"""Per-variable model training on top of scikit-learn estimators."""

import logging
import warnings
from abc import ABC, abstractmethod

import numpy as np
import pandas as pd
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LinearRegression, LogisticRegression

from .exceptions import ConfigurationError, DependencyError, ImputationError, SchemaMismatchError, TrainingFailure
from .schema import CATEGORICAL, NUMERIC
from .variable_specs import MEAN_MATCH

logger = logging.getLogger(__name__)


class ModelBackend(ABC):
    """Abstract base class for learning backends.

    All backends must implement:
    - make_regressor(random_state): unfitted estimator for numeric targets
    - make_classifier(random_state): unfitted estimator with predict_proba for categorical targets
    - name: Property for descriptive name
    """

    def __init__(self, **params):
        self.params = params

    @abstractmethod
    def make_regressor(self, random_state):
        pass

    @abstractmethod
    def make_classifier(self, random_state):
        pass

    @property
    @abstractmethod
    def name(self):
        pass


class LinearBackend(ModelBackend):
    def make_regressor(self, random_state):
        return LinearRegression(**self.params.get('regressor', {}))

    def make_classifier(self, random_state):
        params = {'max_iter': 1000, 'random_state': random_state}
        params.update(self.params.get('classifier', {}))
        return LogisticRegression(**params)

    @property
    def name(self):
        return 'linear'


class RandomForestBackend(ModelBackend):
    def make_regressor(self, random_state):
        params = {'n_estimators': 100, 'random_state': random_state}
        params.update(self.params.get('regressor', {}))
        return RandomForestRegressor(**params)

    def make_classifier(self, random_state):
        params = {'n_estimators': 100, 'random_state': random_state}
        params.update(self.params.get('classifier', {}))
        return RandomForestClassifier(**params)

    @property
    def name(self):
        return 'random_forest'


BACKENDS = {
    'linear': LinearBackend,
    'random_forest': RandomForestBackend,
}


def make_backend(backend='linear', params=None):
    """Return a ModelBackend instance from a name (or pass an instance through)."""
    if isinstance(backend, ModelBackend):
        return backend
    if backend not in BACKENDS:
        raise ConfigurationError(f"Unknown model backend {backend!r}. Expected one of {sorted(BACKENDS)}.")
    return BACKENDS[backend](**(params or {}))


def build_features(frame, predictors, kinds):
    """Numeric design matrix for ``predictors``; categorical columns are one-hot expanded.

    Categorical columns must already be ``pd.Categorical`` with a fixed
    category set, so the expanded layout only depends on the schema.
    """
    parts = []
    for col in predictors:
        if kinds[col] == CATEGORICAL:
            parts.append(pd.get_dummies(frame[col], prefix=col, prefix_sep='=', dtype=float))
        else:
            parts.append(frame[[col]].astype(float))
    return pd.concat(parts, axis=1)


class TrainedModel:
    """A fitted estimator plus the feature layout it was trained on.

    Categorical estimators are fitted on category codes; ``labels`` maps a
    code back to its category value.
    """

    def __init__(self, variable, kind, predictors, feature_names, estimator, labels=None):
        self.variable = variable
        self.kind = kind
        self.predictors = tuple(predictors)
        self.feature_names = list(feature_names)
        self.estimator = estimator
        self.labels = None if labels is None else np.asarray(labels, dtype=object)

    @property
    def classes(self):
        if self.kind != CATEGORICAL:
            return None
        return self.labels[np.asarray(self.estimator.classes_, dtype=int)]

    def decode(self, codes):
        return self.labels[np.asarray(codes, dtype=int)]

    def __repr__(self):
        return f"TrainedModel(variable={self.variable!r}, kind={self.kind!r}, estimator={type(self.estimator).__name__})"


class VariableModelTrainer:
    """Trains and applies one model per (chain, iteration, variable).

    Parameters:
    -----------
    backend : ModelBackend
        Supplies unfitted estimators.
    kinds : dict
        ``{column: 'numeric' | 'categorical'}`` of the training data.
    """

    def __init__(self, backend, kinds):
        self.backend = backend
        self.kinds = dict(kinds)

    def _check_predictors(self, frame, spec):
        absent = [p for p in spec.predictors if p not in frame.columns]
        if absent:
            raise SchemaMismatchError(f"Predictor columns for '{spec.variable}' are absent: {absent}")

    def train(self, working, spec, missing_rows, rng):
        """
        Fit a model for ``spec.variable`` on the current working copy.

        Only rows observed in the original data are used as training rows;
        predictor values may be previously imputed.

        Raises:
        -------
        DependencyError
            If any predictor column still has missing cells.
        TrainingFailure
            If the backend estimator fails to fit.
        """
        self._check_predictors(working, spec)
        predictors = list(spec.predictors)
        incomplete = [p for p in predictors if working[p].isna().any()]
        if incomplete:
            raise DependencyError(
                f"Cannot train model for '{spec.variable}': predictors {incomplete} still contain missing values."
            )

        observed = np.ones(len(working), dtype=bool)
        observed[missing_rows] = False
        train_frame = working.iloc[observed]
        X = build_features(train_frame, predictors, self.kinds)
        random_state = int(rng.integers(0, 2**32))

        labels = None
        if spec.kind == CATEGORICAL:
            # fitted on codes so bool and numeric labels stay a multiclass target
            target = train_frame[spec.variable]
            labels = target.cat.categories
            y = target.cat.codes.to_numpy(dtype=int)
            if len(np.unique(y)) == 1:
                estimator = DummyClassifier(strategy='most_frequent')
            else:
                estimator = self.backend.make_classifier(random_state)
        else:
            y = train_frame[spec.variable].to_numpy(dtype=float)
            estimator = self.backend.make_regressor(random_state)

        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', category=ConvergenceWarning)
                estimator.fit(X.to_numpy(), y)
        except ImputationError:
            raise
        except Exception as e:
            raise TrainingFailure(f"{self.backend.name} backend failed to fit '{spec.variable}': {e}") from e

        return TrainedModel(spec.variable, spec.kind, predictors, X.columns, estimator, labels=labels)

    def predict(self, model, frame, rows, strategy):
        """
        Raw predictions for ``rows`` (positional) of ``frame``.

        Returns numeric predictions for numeric targets, class-probability rows
        (columns ordered as ``model.classes``) for categorical targets under
        mean matching, and class labels for categorical targets otherwise.

        Raises SchemaMismatchError if the feature layout differs from training.
        """
        absent = [p for p in model.predictors if p not in frame.columns]
        if absent:
            raise SchemaMismatchError(f"Predictor columns for '{model.variable}' are absent: {absent}")
        X = build_features(frame.iloc[rows], model.predictors, self.kinds)
        if list(X.columns) != model.feature_names:
            raise SchemaMismatchError(
                f"Feature layout for '{model.variable}' differs from training: {list(X.columns)} != {model.feature_names}"
            )
        try:
            if model.kind == NUMERIC:
                return np.asarray(model.estimator.predict(X.to_numpy()), dtype=float)
            if strategy == MEAN_MATCH:
                return model.estimator.predict_proba(X.to_numpy())
            return model.decode(model.estimator.predict(X.to_numpy()))
        except Exception as e:
            raise TrainingFailure(f"{self.backend.name} backend failed to predict '{model.variable}': {e}") from e
