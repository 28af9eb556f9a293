#!/usr/bin/env python
"""
Regression learners behind a uniform train/predict interface.

Every learner is configured at construction time. ``train`` always fits
from scratch and returns a FittedState; ``predict`` takes that state.
Degenerate inputs and backend errors surface as TrainingFailure so the
benchmark runner can record them per cell.

Author: najahpokkiri
Date: 2025-06-13
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
from sklearn.ensemble import GradientBoostingRegressor, RandomForestRegressor
from sklearn.linear_model import TweedieRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from ..utils.errors import ParameterError, TrainingFailure
from .loss_functions import LOSS_FUNCTIONS
from .neural import fit_network

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FittedState:
    """Fitted parameters of one training call."""

    learner: str
    learner_type: str
    estimator: Any
    n_features: int
    n_samples: int


class LearnerAdapter(ABC):
    """Base class for regression learners.

    Args:
        name: Learner name used in reports, defaults to the learner type
        **params: Hyperparameters; unknown keys raise ParameterError
    """

    learner_type = None
    default_params: Dict[str, Any] = {}
    min_samples = 2

    def __init__(self, name: Optional[str] = None, **params):
        defaults = {"random_state": 0, **self.default_params}
        unknown = sorted(set(params) - set(defaults))
        if unknown:
            raise ParameterError(
                f"Unknown hyperparameter(s) for {self.learner_type}: {unknown}",
                suggestion=f"Valid hyperparameters: {sorted(defaults)}",
            )
        self.name = name or self.learner_type
        self.params = {**defaults, **params}
        self._check_params()

    def __repr__(self):
        return f"{type(self).__name__}(name='{self.name}', params={self.params})"

    def _check_params(self):
        """Validate hyperparameters; subclasses raise ParameterError."""

    def clone(self, **overrides) -> "LearnerAdapter":
        """Fresh, unfitted learner with the same configuration."""
        return type(self)(name=self.name, **{**self.params, **overrides})

    def train(self, features, target) -> FittedState:
        """Fit the learner from scratch.

        Args:
            features: Array of shape (n, p)
            target: Array of shape (n,)

        Returns:
            FittedState: Fitted parameters for ``predict``

        Raises:
            TrainingFailure: On degenerate input or a backend error
        """
        features, target = self._check_training_data(features, target)
        try:
            estimator = self._fit(features, target)
        except TrainingFailure:
            raise
        except (ValueError, ArithmeticError, np.linalg.LinAlgError, RuntimeError) as e:
            raise TrainingFailure(self.name, f"{type(e).__name__}: {e}") from e

        logger.debug("Trained '%s' on %d samples", self.name, features.shape[0])
        return FittedState(learner=self.name, learner_type=self.learner_type,
                           estimator=estimator, n_features=features.shape[1],
                           n_samples=features.shape[0])

    def predict(self, state: FittedState, features) -> np.ndarray:
        """Predict targets for new feature vectors."""
        if state.learner_type != self.learner_type:
            raise ValueError(
                f"State of a '{state.learner_type}' learner passed to '{self.learner_type}'"
            )
        features = np.asarray(features, dtype=float)
        if features.ndim != 2 or features.shape[1] != state.n_features:
            raise ValueError(
                f"Expected features of shape (n, {state.n_features}), got {features.shape}"
            )
        if features.shape[0] == 0:
            return np.empty(0)

        predictions = np.asarray(self._predict(state.estimator, features), dtype=float).ravel()
        if not np.all(np.isfinite(predictions)):
            raise TrainingFailure(self.name, "model produced non-finite predictions")
        return predictions

    def _check_training_data(self, features, target):
        features = np.asarray(features, dtype=float)
        target = np.asarray(target, dtype=float).ravel()

        if features.ndim != 2 or features.shape[0] != target.shape[0]:
            raise TrainingFailure(
                self.name,
                f"features {features.shape} and target {target.shape} do not align",
            )
        if features.shape[0] < self.min_samples:
            raise TrainingFailure(
                self.name, f"{features.shape[0]} training samples, need at least {self.min_samples}"
            )
        if not (np.all(np.isfinite(features)) and np.all(np.isfinite(target))):
            raise TrainingFailure(self.name, "training data contains non-finite values")
        if np.ptp(target) == 0:
            raise TrainingFailure(self.name, "target has zero variance")
        return features, target

    @abstractmethod
    def _fit(self, features: np.ndarray, target: np.ndarray) -> Any:
        """Fit and return the backend estimator."""

    def _predict(self, estimator, features: np.ndarray) -> np.ndarray:
        return estimator.predict(features)


class GradientBoostingLearner(LearnerAdapter):
    """Gradient-boosted regression trees (scikit-learn)."""

    learner_type = "gbm"
    default_params = {
        "n_estimators": 200,
        "max_depth": 3,
        "learning_rate": 0.05,
        "subsample": 1.0,
        "min_samples_leaf": 1,
    }

    def _check_params(self):
        if not 0 < self.params["learning_rate"] <= 1:
            raise ParameterError(f"learning_rate must be in (0, 1], got {self.params['learning_rate']}")
        if self.params["max_depth"] < 1:
            raise ParameterError(f"max_depth must be >= 1, got {self.params['max_depth']}")

    def _fit(self, features, target):
        model = GradientBoostingRegressor(**self.params)
        return model.fit(features, target)


class RandomForestLearner(LearnerAdapter):
    """Random forest regression (scikit-learn)."""

    learner_type = "random_forest"
    default_params = {
        "n_estimators": 300,
        "max_depth": None,
        "min_samples_leaf": 1,
        "max_features": 1.0,
    }

    def _fit(self, features, target):
        model = RandomForestRegressor(n_jobs=1, **self.params)
        return model.fit(features, target)


GLM_FAMILIES = {"gaussian": 0, "poisson": 1, "gamma": 2}
GLM_LINKS = ("auto", "identity", "log")


class GLMLearner(LearnerAdapter):
    """Generalized linear model on standardized features.

    ``family`` selects the Tweedie power (gaussian, poisson, gamma) and
    ``link`` the link function. A rank-deficient design matrix is
    reported as a TrainingFailure instead of being silently regularised.
    """

    learner_type = "glm"
    default_params = {
        "family": "gaussian",
        "link": "auto",
        "alpha": 0.0,
        "max_iter": 1000,
    }

    def _check_params(self):
        if self.params["family"] not in GLM_FAMILIES:
            raise ParameterError(f"Unknown GLM family '{self.params['family']}'",
                                 suggestion=f"Use one of {sorted(GLM_FAMILIES)}")
        if self.params["link"] not in GLM_LINKS:
            raise ParameterError(f"Unknown GLM link '{self.params['link']}'",
                                 suggestion=f"Use one of {list(GLM_LINKS)}")
        if self.params["alpha"] < 0:
            raise ParameterError(f"alpha must be >= 0, got {self.params['alpha']}")

    def _fit(self, features, target):
        family = self.params["family"]
        if family == "poisson" and np.any(target < 0):
            raise TrainingFailure(self.name, "poisson family requires non-negative targets")
        if family == "gamma" and np.any(target <= 0):
            raise TrainingFailure(self.name, "gamma family requires positive targets")

        design = np.column_stack([np.ones(features.shape[0]), features])
        rank = np.linalg.matrix_rank(design)
        if rank < design.shape[1]:
            raise TrainingFailure(
                self.name,
                f"singular design matrix (rank {rank} < {design.shape[1]} columns)",
            )

        model = Pipeline([
            ("scale", StandardScaler()),
            ("glm", TweedieRegressor(power=GLM_FAMILIES[family], link=self.params["link"],
                                     alpha=self.params["alpha"],
                                     max_iter=self.params["max_iter"])),
        ])
        return model.fit(features, target)


class NeuralNetLearner(LearnerAdapter):
    """Small feed-forward network (PyTorch)."""

    learner_type = "mlp"
    default_params = {
        "hidden_sizes": (64, 32),
        "learning_rate": 1e-3,
        "weight_decay": 1e-4,
        "epochs": 200,
        "batch_size": 32,
        "loss": "mse",
        "huber_delta": 1.0,
    }

    def _check_params(self):
        if self.params["loss"] not in LOSS_FUNCTIONS:
            raise ParameterError(f"Unknown loss '{self.params['loss']}'",
                                 suggestion=f"Use one of {list(LOSS_FUNCTIONS)}")
        if self.params["epochs"] < 1:
            raise ParameterError(f"epochs must be >= 1, got {self.params['epochs']}")
        self.params["hidden_sizes"] = tuple(self.params["hidden_sizes"])

    def _fit(self, features, target):
        params = dict(self.params)
        seed = params.pop("random_state")
        return fit_network(features, target, seed=seed, **params)


LEARNER_TYPES = {
    cls.learner_type: cls
    for cls in (GradientBoostingLearner, GLMLearner, RandomForestLearner, NeuralNetLearner)
}


def create_learner(learner_type: str, name: Optional[str] = None, **params) -> LearnerAdapter:
    """Create a learner from its type name."""
    learner_type = learner_type.lower()
    if learner_type not in LEARNER_TYPES:
        raise ValueError(f"Unsupported learner type: {learner_type} "
                         f"(available: {sorted(LEARNER_TYPES)})")
    return LEARNER_TYPES[learner_type](name=name, **params)
