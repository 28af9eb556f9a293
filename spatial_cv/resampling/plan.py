#!/usr/bin/env python
"""
Repeated spatial cross-validation plans.

Author: najahpokkiri
Date: 2025-06-12
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional

import numpy as np

from ..utils.errors import EmptySplit, ParameterError
from .partitioner import SpatialPartitioner, _validate_coordinates, fold_sizes

logger = logging.getLogger(__name__)


def derive_seed(base_seed: int, repeat: int) -> int:
    """Seed for one repeat, reproducible from the base seed."""
    return int(np.random.SeedSequence([base_seed, repeat]).generate_state(1)[0])


@dataclass(frozen=True, eq=False)
class Split:
    """One train/test split of a resampling plan."""

    index: int
    repeat: int
    fold: int
    train: np.ndarray
    test: np.ndarray

    def __repr__(self):
        return (f"Split(index={self.index}, repeat={self.repeat}, fold={self.fold}, "
                f"n_train={len(self.train)}, n_test={len(self.test)})")


class ResamplingPlan:
    """Ordered, cached sequence of spatial train/test splits.

    Splits are ordered repeat-major: all folds of repeat 0, then all folds
    of repeat 1, and so on. Generation is lazy and cached, so iterating the
    plan twice yields identical splits.

    Args:
        partitioner: Spatial partitioner used for every repeat
        coordinates: Array of shape (n, 2)
        n_folds: Folds per repeat
        n_repeats: Number of repeats, each with a distinct derived seed
        seed: Base seed of the plan
    """

    def __init__(self, partitioner: SpatialPartitioner, coordinates, n_folds: int,
                 n_repeats: int = 1, seed: int = 0):
        if n_repeats < 1:
            raise ParameterError(f"repeats must be >= 1, got {n_repeats}")
        self.partitioner = partitioner
        self.coordinates = _validate_coordinates(coordinates)
        self.n_folds = n_folds
        self.n_repeats = n_repeats
        self.seed = seed

        self._splits: Optional[List[Split]] = None
        self._assignments: Optional[List[np.ndarray]] = None
        self._lock = threading.Lock()

    @classmethod
    def from_samples(cls, samples, n_folds: int, n_repeats: int = 1, seed: int = 0,
                     partitioner: Optional[SpatialPartitioner] = None) -> "ResamplingPlan":
        partitioner = partitioner or SpatialPartitioner(n_folds=n_folds, seed=seed)
        return cls(partitioner, samples.coordinates, n_folds, n_repeats, seed)

    @property
    def n_samples(self) -> int:
        return self.coordinates.shape[0]

    @property
    def n_splits(self) -> int:
        return self.n_folds * self.n_repeats

    def __len__(self):
        return self.n_splits

    def __iter__(self) -> Iterator[Split]:
        return iter(self.splits)

    def __getitem__(self, index: int) -> Split:
        return self.splits[index]

    def build(self) -> "ResamplingPlan":
        """Generate and cache all splits; later calls are no-ops."""
        if self._splits is None:
            with self._lock:
                if self._splits is None:
                    self._build()
        return self

    @property
    def splits(self) -> List[Split]:
        self.build()
        return list(self._splits)

    @property
    def assignments(self) -> List[np.ndarray]:
        """Fold assignment of every sample, one array per repeat."""
        self.build()
        return list(self._assignments)

    def repeat_seed(self, repeat: int) -> int:
        return derive_seed(self.seed, repeat)

    def _build(self):
        all_indices = np.arange(self.n_samples)
        splits = []
        assignments = []

        for repeat in range(self.n_repeats):
            assignment = self.partitioner.assign(
                self.coordinates, n_folds=self.n_folds, seed=self.repeat_seed(repeat)
            )
            assignment.setflags(write=False)
            assignments.append(assignment)

            for fold in range(self.n_folds):
                test_mask = assignment == fold
                train = all_indices[~test_mask]
                test = all_indices[test_mask]
                if len(train) == 0 or len(test) == 0:
                    raise EmptySplit(
                        f"Repeat {repeat}, fold {fold} has an empty "
                        f"{'train' if len(train) == 0 else 'test'} set",
                        details={"repeat": repeat, "fold": fold},
                    )
                train.setflags(write=False)
                test.setflags(write=False)
                splits.append(Split(index=len(splits), repeat=repeat, fold=fold,
                                    train=train, test=test))

            logger.info("Repeat %d/%d fold sizes: %s", repeat + 1, self.n_repeats,
                        fold_sizes(assignment, self.n_folds).tolist())

        self._assignments = assignments
        self._splits = splits
