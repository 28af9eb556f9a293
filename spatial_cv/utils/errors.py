#!/usr/bin/env python
"""
Exception types for spatial cross-validation benchmarking.

Partitioning and plan errors abort a run before any training starts.
TrainingFailure is raised by learners and recorded per cell by the
benchmark runner instead of aborting the whole run.

Author: najahpokkiri
Date: 2025-06-12
"""

from typing import Any, Optional


class SpatialCVError(Exception):
    """Base exception for spatial CV benchmarking errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None,
                 details: Optional[dict] = None):
        """Initialize error.

        Args:
            message: Primary error message
            suggestion: Optional hint on how to fix the problem
            details: Optional dictionary with additional context
        """
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class DataValidationError(SpatialCVError):
    """Sample table or coordinates failed validation."""


class ParameterError(SpatialCVError):
    """A configuration value is out of range or unknown."""


class InvalidFoldCount(SpatialCVError):
    """Requested fold count is < 2 or larger than the number of samples."""

    def __init__(self, n_folds: int, n_samples: int):
        super().__init__(
            f"Invalid fold count {n_folds} for {n_samples} samples",
            suggestion="Use 2 <= folds <= number of samples",
            details={"n_folds": n_folds, "n_samples": n_samples},
        )
        self.n_folds = n_folds
        self.n_samples = n_samples


class DegenerateCoordinates(SpatialCVError):
    """Coordinates cannot be separated into the requested number of clusters."""

    def __init__(self, n_distinct: int, n_folds: int):
        super().__init__(
            f"Only {n_distinct} distinct coordinate(s) for {n_folds} spatial folds",
            suggestion="Set degenerate_fallback='random' to accept a random fold "
                       "assignment, or reduce the number of folds",
            details={"n_distinct": n_distinct, "n_folds": n_folds},
        )
        self.n_distinct = n_distinct
        self.n_folds = n_folds


class EmptySplit(SpatialCVError):
    """A train or test set is empty after partitioning."""


class TrainingFailure(SpatialCVError):
    """A learner could not be trained on the given data."""

    def __init__(self, learner: str, diagnostic: Any):
        super().__init__(f"Training of learner '{learner}' failed: {diagnostic}",
                         details={"learner": learner})
        self.learner = learner
        self.diagnostic = str(diagnostic)
