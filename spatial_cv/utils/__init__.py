"""
Utility functions for spatial cross-validation benchmarking.
"""

from .errors import (
    SpatialCVError,
    DataValidationError,
    ParameterError,
    InvalidFoldCount,
    DegenerateCoordinates,
    EmptySplit,
    TrainingFailure,
)
from .data_utils import load_yaml_config, save_benchmark_report, export_results_summary

__all__ = [
    "SpatialCVError",
    "DataValidationError",
    "ParameterError",
    "InvalidFoldCount",
    "DegenerateCoordinates",
    "EmptySplit",
    "TrainingFailure",
    "load_yaml_config",
    "save_benchmark_report",
    "export_results_summary",
]
