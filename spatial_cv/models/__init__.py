"""
Learners, benchmark runner and metric aggregation for spatial cross-validation.
"""

from .learners import (
    LearnerAdapter,
    FittedState,
    GradientBoostingLearner,
    GLMLearner,
    RandomForestLearner,
    NeuralNetLearner,
    create_learner,
)
from .benchmark import (
    BenchmarkRunner,
    BenchmarkResult,
    PredictionRecord,
    FailedCell,
    run_benchmark,
)
from .metrics import MetricsAggregator, BenchmarkReport, compute_metric
from .config import BenchmarkConfig

__all__ = [
    "LearnerAdapter",
    "FittedState",
    "GradientBoostingLearner",
    "GLMLearner",
    "RandomForestLearner",
    "NeuralNetLearner",
    "create_learner",
    "BenchmarkRunner",
    "BenchmarkResult",
    "PredictionRecord",
    "FailedCell",
    "run_benchmark",
    "MetricsAggregator",
    "BenchmarkReport",
    "compute_metric",
    "BenchmarkConfig",
]
