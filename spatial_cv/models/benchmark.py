#!/usr/bin/env python
"""
Spatial Cross-Validation Benchmark Runner

Trains and evaluates several learners on every split of a spatial
resampling plan. Each (split, learner) cell is independent: it gets its
own fresh learner instance and only reads the shared samples and plan,
so cells can run concurrently on a thread pool.

Author: najahpokkiri
Date: 2025-06-14
"""

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Tuple, Union

import pandas as pd
from tqdm import tqdm

from ..resampling.partitioner import SpatialPartitioner
from ..resampling.plan import ResamplingPlan, Split, derive_seed
from ..utils.errors import ParameterError, TrainingFailure
from .learners import LearnerAdapter
from .metrics import MetricsAggregator

logger = logging.getLogger(__name__)

PREDICTION_COLUMNS = ["sample_index", "split_index", "learner", "predicted", "truth"]


@dataclass(frozen=True)
class PredictionRecord:
    """Out-of-fold prediction of one sample by one learner on one split."""

    sample_index: int
    split_index: int
    learner: str
    predicted: float
    truth: float


@dataclass(frozen=True)
class FailedCell:
    """A (learner, split) cell whose training or prediction failed."""

    learner: str
    split_index: int
    reason: str


@dataclass
class BenchmarkResult:
    """Raw outcome of a benchmark run."""

    learner_names: List[str]
    n_splits: int
    records: List[PredictionRecord] = field(default_factory=list)
    failed_cells: List[FailedCell] = field(default_factory=list)
    successful_cells: List[Tuple[str, int]] = field(default_factory=list)
    skipped_cells: int = 0
    cancelled: bool = False

    def predictions_frame(self) -> pd.DataFrame:
        if not self.records:
            return pd.DataFrame(columns=PREDICTION_COLUMNS)
        return pd.DataFrame(
            [(r.sample_index, r.split_index, r.learner, r.predicted, r.truth)
             for r in self.records],
            columns=PREDICTION_COLUMNS,
        )


LearnerInput = Union[Mapping[str, LearnerAdapter], Sequence[Tuple[str, LearnerAdapter]],
                     Sequence[LearnerAdapter]]


def _named_learners(learners: LearnerInput) -> Dict[str, LearnerAdapter]:
    if isinstance(learners, Mapping):
        pairs = list(learners.items())
    else:
        pairs = [(item.name, item) if isinstance(item, LearnerAdapter) else tuple(item)
                 for item in learners]

    if not pairs:
        raise ParameterError("At least one learner is required")
    names = [name for name, _ in pairs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ParameterError(f"Duplicate learner names: {duplicates}")
    return dict(pairs)


class BenchmarkRunner:
    """Run every learner on every split of a resampling plan.

    Args:
        plan: Resampling plan over ``samples``
        samples: SampleSet shared read-only by all cells
        learners: Named learners, as a mapping, (name, learner) pairs or
            learners carrying their own names
        n_jobs: Worker threads; 1 runs sequentially, -1 uses all CPUs
        seed: Run seed; each cell trains with a seed derived from it
        show_progress: Show a tqdm progress bar over cells
    """

    def __init__(self, plan: ResamplingPlan, samples, learners: LearnerInput,
                 n_jobs: int = 1, seed: int = 0, show_progress: bool = False):
        if plan.n_samples != len(samples):
            raise ParameterError(
                f"Plan covers {plan.n_samples} samples but the sample set has {len(samples)}"
            )
        if n_jobs == 0 or n_jobs < -1:
            raise ParameterError(f"n_jobs must be >= 1 or -1, got {n_jobs}")

        self.plan = plan
        self.samples = samples
        self.learners = _named_learners(learners)
        self.n_jobs = (os.cpu_count() or 1) if n_jobs == -1 else n_jobs
        self.seed = seed
        self.show_progress = show_progress
        self._cancel_event = threading.Event()

    @property
    def learner_names(self) -> List[str]:
        return list(self.learners)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self):
        """Stop scheduling new cells; cells already running finish."""
        logger.info("Benchmark cancellation requested")
        self._cancel_event.set()

    def run_cell(self, split: Split, learner_name: str):
        """Train one fresh learner on a split and predict its test set.

        Returns:
            tuple: (list of PredictionRecord, FailedCell or None)
        """
        learner = self.learners[learner_name].clone(
            random_state=derive_seed(self.seed, split.index)
        )
        features = self.samples.features
        target = self.samples.target

        try:
            state = learner.train(features[split.train], target[split.train])
            predictions = learner.predict(state, features[split.test])
        except TrainingFailure as e:
            logger.warning("Learner '%s' failed on split %d: %s",
                           learner_name, split.index, e.diagnostic)
            return [], FailedCell(learner_name, split.index, e.diagnostic)

        records = [
            PredictionRecord(int(i), split.index, learner_name, float(p), float(t))
            for i, p, t in zip(split.test, predictions, target[split.test])
        ]
        return records, None

    def run(self) -> BenchmarkResult:
        """Run all cells and collect prediction records and failures."""
        splits = self.plan.splits
        cells = [(split, name) for split in splits for name in self.learners]
        logger.info("Running %d cells (%d splits x %d learners) with %d worker(s)",
                    len(cells), len(splits), len(self.learners), self.n_jobs)

        outcomes = {}
        progress = tqdm(total=len(cells), desc="Benchmark cells", disable=not self.show_progress)
        try:
            if self.n_jobs == 1:
                for split, name in cells:
                    if self.cancelled:
                        break
                    outcomes[(split.index, name)] = self.run_cell(split, name)
                    progress.update(1)
            else:
                self._run_concurrent(cells, outcomes, progress)
        finally:
            progress.close()

        result = BenchmarkResult(learner_names=self.learner_names, n_splits=len(splits))
        # Plan order, independent of completion order
        for split, name in cells:
            key = (split.index, name)
            if key not in outcomes:
                continue
            records, failure = outcomes[key]
            if failure is not None:
                result.failed_cells.append(failure)
            else:
                result.records.extend(records)
                result.successful_cells.append((name, split.index))

        result.skipped_cells = len(cells) - len(outcomes)
        result.cancelled = self.cancelled
        if result.cancelled:
            logger.warning("Benchmark cancelled: %d of %d cells skipped",
                           result.skipped_cells, len(cells))
        logger.info("Benchmark finished: %d successful, %d failed cells",
                    len(result.successful_cells), len(result.failed_cells))
        return result

    def _run_concurrent(self, cells, outcomes, progress):
        pending = {}
        queue = iter(cells)

        with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
            while True:
                while len(pending) < self.n_jobs and not self.cancelled:
                    cell = next(queue, None)
                    if cell is None:
                        break
                    split, name = cell
                    future = executor.submit(self.run_cell, split, name)
                    pending[future] = (split.index, name)

                if not pending:
                    break

                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    key = pending.pop(future)
                    outcomes[key] = future.result()
                    progress.update(1)


def run_benchmark(samples, learners: LearnerInput, n_folds: int = 5, n_repeats: int = 1,
                  seed: int = 0, n_jobs: int = 1, primary_metric: str = "rmse",
                  r2_mode: str = "mean_per_split", tie_decimals: int = 4,
                  degenerate_fallback: str = "raise", show_progress: bool = False):
    """Partition, benchmark and aggregate in one call.

    Returns:
        tuple: (BenchmarkReport, ResamplingPlan)
    """
    aggregator = MetricsAggregator(primary_metric=primary_metric, r2_mode=r2_mode,
                                   tie_decimals=tie_decimals)
    partitioner = SpatialPartitioner(n_folds=n_folds, seed=seed,
                                     degenerate_fallback=degenerate_fallback)
    plan = ResamplingPlan(partitioner, samples.coordinates, n_folds, n_repeats, seed)
    # Fail fast on partitioning errors before any learner is trained
    plan.build()

    runner = BenchmarkRunner(plan, samples, learners, n_jobs=n_jobs, seed=seed,
                             show_progress=show_progress)
    result = runner.run()
    return aggregator.build_report(result), plan
