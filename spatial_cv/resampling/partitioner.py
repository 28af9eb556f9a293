#!/usr/bin/env python
"""
Spatial fold assignment by k-means clustering of sample coordinates.

Points that are close to each other end up in the same fold, so a
held-out fold is spatially separated from most of its training data.

Author: najahpokkiri
Date: 2025-06-12
"""

import logging
import warnings
from typing import Optional

import numpy as np
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning

from ..utils.errors import (
    DataValidationError,
    DegenerateCoordinates,
    EmptySplit,
    InvalidFoldCount,
    ParameterError,
)

logger = logging.getLogger(__name__)

FALLBACK_OPTIONS = ("raise", "random")


def fold_sizes(assignment: np.ndarray, n_folds: int) -> np.ndarray:
    """Number of samples per fold id."""
    return np.bincount(np.asarray(assignment, dtype=int), minlength=n_folds)


def _validate_coordinates(coordinates) -> np.ndarray:
    coords = np.asarray(coordinates, dtype=float)
    if coords.ndim != 2 or coords.shape[1] != 2:
        raise DataValidationError(f"Coordinates must have shape (n, 2), got {coords.shape}")
    if not np.all(np.isfinite(coords)):
        raise DataValidationError("Coordinates contain missing or non-finite values")
    return coords


class SpatialPartitioner:
    """Cluster 2-D coordinates into k spatially coherent folds.

    Args:
        n_folds: Default number of folds
        seed: Default random seed for the clustering
        n_init: Number of k-means initialisations
        degenerate_fallback: ``"raise"`` to fail on coordinates that cannot
            be clustered into k groups, ``"random"`` to fall back to a
            seeded balanced random assignment (logged as a warning)
    """

    def __init__(self, n_folds: int = 5, seed: int = 0, n_init: int = 10,
                 degenerate_fallback: str = "raise"):
        if degenerate_fallback not in FALLBACK_OPTIONS:
            raise ParameterError(
                f"Unknown degenerate_fallback '{degenerate_fallback}'",
                suggestion=f"Use one of {FALLBACK_OPTIONS}",
            )
        if n_init < 1:
            raise ParameterError(f"n_init must be >= 1, got {n_init}")
        self.n_folds = n_folds
        self.seed = seed
        self.n_init = n_init
        self.degenerate_fallback = degenerate_fallback

    def __repr__(self):
        return (f"SpatialPartitioner(n_folds={self.n_folds}, seed={self.seed}, "
                f"n_init={self.n_init}, degenerate_fallback='{self.degenerate_fallback}')")

    def assign(self, coordinates, n_folds: Optional[int] = None,
               seed: Optional[int] = None) -> np.ndarray:
        """Assign every sample to a fold.

        Args:
            coordinates: Array-like of shape (n, 2)
            n_folds: Number of folds, defaults to ``self.n_folds``
            seed: Clustering seed, defaults to ``self.seed``

        Returns:
            np.ndarray: Integer fold id in [0, n_folds) for each sample

        Raises:
            InvalidFoldCount: If n_folds < 2 or n_folds > n
            DegenerateCoordinates: If fewer than n_folds distinct coordinates
                exist and no fallback is configured
            EmptySplit: If clustering leaves a fold without samples
        """
        coords = _validate_coordinates(coordinates)
        k = self.n_folds if n_folds is None else n_folds
        seed = self.seed if seed is None else seed
        n = coords.shape[0]

        if k < 2 or k > n:
            raise InvalidFoldCount(k, n)

        n_distinct = np.unique(coords, axis=0).shape[0]
        if n_distinct < k:
            if self.degenerate_fallback == "random":
                logger.warning(
                    "Only %d distinct coordinates for %d folds; using random fold assignment",
                    n_distinct, k,
                )
                return self._random_assignment(n, k, seed)
            raise DegenerateCoordinates(n_distinct, k)

        kmeans = KMeans(n_clusters=k, random_state=seed, n_init=self.n_init)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            assignment = kmeans.fit_predict(coords).astype(int)

        sizes = fold_sizes(assignment, k)
        if np.any(sizes == 0):
            raise EmptySplit(
                f"Spatial clustering produced empty folds: {np.flatnonzero(sizes == 0).tolist()}",
                details={"fold_sizes": sizes.tolist()},
            )

        logger.debug("Spatial folds (seed=%d): sizes %s", seed, sizes.tolist())
        return assignment

    @staticmethod
    def _random_assignment(n: int, k: int, seed: int) -> np.ndarray:
        rng = np.random.default_rng(seed)
        assignment = np.empty(n, dtype=int)
        assignment[rng.permutation(n)] = np.arange(n) % k
        return assignment
