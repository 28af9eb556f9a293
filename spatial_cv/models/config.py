#!/usr/bin/env python
"""
Configuration class for spatial cross-validation benchmarking.

Author: najahpokkiri
Date: 2025-06-12
"""

import logging
import os

from ..preprocessing.samples import SampleSchema
from ..resampling.partitioner import FALLBACK_OPTIONS
from ..utils.errors import ParameterError
from .learners import LEARNER_TYPES, create_learner
from .metrics import PRIMARY_METRICS, R2_MODES

logger = logging.getLogger(__name__)


class BenchmarkConfig:
    """Configuration for a spatial CV benchmark run."""

    def __init__(self):
        """Initialize configuration with default parameters."""

        # Paths
        self.data_path = None                 # CSV, Parquet or point vector file
        self.results_dir = "results/benchmark"

        # Sample schema
        self.feature_columns = []
        self.target_column = "target"
        self.coordinate_columns = ["x", "y"]
        self.time_column = None

        # Cross-validation settings
        self.folds = 5                        # Spatial folds per repeat
        self.repeats = 1                      # Re-partitioned repeats
        self.seed = 42                        # Base seed of the whole run
        self.kmeans_n_init = 10
        self.degenerate_fallback = "raise"    # Options: "raise", "random"

        # Evaluation
        self.primary_metric = "rmse"          # Options: "rmse", "mse", "bias", "r2"
        self.r2_mode = "mean_per_split"       # Options: "mean_per_split", "pooled"
        self.tie_decimals = 4

        # Execution
        self.n_jobs = 1                       # Worker threads, -1 for all CPUs
        self.show_progress = True

        # Learners, benchmarked in this order
        self.learners = [
            {"name": "gbm", "type": "gbm",
             "params": {"n_estimators": 200, "max_depth": 3, "learning_rate": 0.05}},
            {"name": "glm", "type": "glm", "params": {"family": "gaussian"}},
        ]

        # Outputs
        self.make_plots = True
        self.save_predictions = True
        self.prediction_raster = None         # Covariate raster to predict with the best learner
        self.prediction_output = None

    def create_directories(self):
        """Create output directories if they don't exist."""
        os.makedirs(self.results_dir, exist_ok=True)

    def validate(self):
        """Check option values.

        Raises:
            ParameterError: On the first invalid option
        """
        if not isinstance(self.folds, int) or self.folds < 2:
            raise ParameterError(f"folds must be an integer >= 2, got {self.folds}")
        if not isinstance(self.repeats, int) or self.repeats < 1:
            raise ParameterError(f"repeats must be an integer >= 1, got {self.repeats}")
        if not isinstance(self.seed, int):
            raise ParameterError(f"seed must be an integer, got {self.seed!r}")
        if self.primary_metric not in PRIMARY_METRICS:
            raise ParameterError(f"Unknown primary_metric '{self.primary_metric}'",
                                 suggestion=f"Use one of {list(PRIMARY_METRICS)}")
        if self.r2_mode not in R2_MODES:
            raise ParameterError(f"Unknown r2_mode '{self.r2_mode}'",
                                 suggestion=f"Use one of {list(R2_MODES)}")
        if self.degenerate_fallback not in FALLBACK_OPTIONS:
            raise ParameterError(f"Unknown degenerate_fallback '{self.degenerate_fallback}'",
                                 suggestion=f"Use one of {list(FALLBACK_OPTIONS)}")
        if self.n_jobs == 0 or self.n_jobs < -1:
            raise ParameterError(f"n_jobs must be >= 1 or -1, got {self.n_jobs}")
        if not self.learners:
            raise ParameterError("At least one learner must be configured")

        names = []
        for spec in self.learners:
            if spec.get("type", "").lower() not in LEARNER_TYPES:
                raise ParameterError(f"Unknown learner type '{spec.get('type')}'",
                                     suggestion=f"Use one of {sorted(LEARNER_TYPES)}")
            names.append(spec.get("name") or spec["type"])
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ParameterError(f"Duplicate learner names: {duplicates}")

    def schema(self) -> SampleSchema:
        """Sample schema described by this configuration."""
        return SampleSchema(
            feature_columns=tuple(self.feature_columns),
            target_column=self.target_column,
            coordinate_columns=tuple(self.coordinate_columns),
            time_column=self.time_column,
        )

    def build_learners(self):
        """Instantiate the configured learners as (name, learner) pairs."""
        learners = []
        for spec in self.learners:
            learner = create_learner(spec["type"], name=spec.get("name"),
                                     **spec.get("params", {}))
            learners.append((learner.name, learner))
        return learners

    def to_dict(self) -> dict:
        """Convert configuration to dictionary.

        Returns:
            dict: Configuration as dictionary
        """
        return {attr: getattr(self, attr) for attr in dir(self)
                if not attr.startswith('_') and not callable(getattr(self, attr))}

    @classmethod
    def from_dict(cls, config_dict: dict):
        """Create configuration from dictionary.

        Args:
            config_dict: Configuration dictionary

        Returns:
            BenchmarkConfig: Configuration instance
        """
        config = cls()

        for key, value in config_dict.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning("Ignoring unknown configuration option '%s'", key)

        return config
