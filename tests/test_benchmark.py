#!/usr/bin/env python
"""
Tests for the benchmark runner and metric aggregation.

Author: najahpokkiri
Date: 2025-06-16
"""

import sys
import json
import math
import pytest
import numpy as np
import pandas as pd
from pathlib import Path
from sklearn.metrics import r2_score

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from spatial_cv.models import (
    BenchmarkResult,
    BenchmarkRunner,
    GLMLearner,
    GradientBoostingLearner,
    LearnerAdapter,
    MetricsAggregator,
    PredictionRecord,
    compute_metric,
    run_benchmark,
)
from spatial_cv.preprocessing import SampleSet
from spatial_cv.resampling import ResamplingPlan, SpatialPartitioner
from spatial_cv.utils.errors import DegenerateCoordinates, ParameterError


def make_samples(n=120, seed=0):
    rng = np.random.default_rng(seed)
    coordinates = rng.uniform(0, 100, size=(n, 2))
    features = np.column_stack([
        coordinates[:, 0] / 100 + rng.normal(0, 0.1, n),
        rng.normal(size=n),
        rng.normal(size=n),
    ])
    target = 3.0 * features[:, 0] + features[:, 1] + rng.normal(0, 0.2, n)
    return SampleSet(features=features, target=target, coordinates=coordinates,
                     feature_names=("trend", "noise_a", "noise_b"))


class BrokenLearner(LearnerAdapter):
    """Learner whose backend always raises."""

    learner_type = "broken"

    def _fit(self, features, target):
        raise RuntimeError("backend exploded")


class EvenSizeFailingLearner(GLMLearner):
    """GLM that refuses training sets with an even number of rows."""

    def _fit(self, features, target):
        if features.shape[0] % 2 == 0:
            raise ValueError("even training set")
        return super()._fit(features, target)


class CancellingLearner(GLMLearner):
    """GLM that calls a hook every time it trains."""

    on_train = None

    def _fit(self, features, target):
        if CancellingLearner.on_train is not None:
            CancellingLearner.on_train()
        return super()._fit(features, target)


class TestMetrics:
    """Test single metric computation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.y_pred = np.array([1.0, 2.0, 3.0])
        self.y_true = np.array([1.0, 2.0, 5.0])

    def test_metric_values(self):
        """Test rmse, mse, mae, bias and r2 values."""
        assert compute_metric("mse", self.y_pred, self.y_true) == pytest.approx(4 / 3)
        assert compute_metric("rmse", self.y_pred, self.y_true) == pytest.approx(math.sqrt(4 / 3))
        assert compute_metric("mae", self.y_pred, self.y_true) == pytest.approx(2 / 3)
        assert compute_metric("bias", self.y_pred, self.y_true) == pytest.approx(-2 / 3)
        assert compute_metric("r2", self.y_pred, self.y_true) == pytest.approx(
            r2_score(self.y_true, self.y_pred))

    def test_empty_input_is_nan(self):
        """Metrics of an empty split are NaN."""
        for name in ("rmse", "mse", "mae", "bias", "r2"):
            assert math.isnan(compute_metric(name, [], []))

    def test_r2_single_sample_is_nan(self):
        """R² is undefined for a single sample."""
        assert math.isnan(compute_metric("r2", [1.0], [2.0]))


class TestMetricsAggregator:
    """Test aggregation and ranking."""

    def setup_method(self):
        """Set up test fixtures."""
        self.aggregator = MetricsAggregator(tie_decimals=4)
        self.missing = {m: None for m in self.aggregator.metrics}

    def test_invalid_arguments(self):
        """Unknown metrics, primary metrics and R² modes are rejected."""
        with pytest.raises(ParameterError):
            MetricsAggregator(metrics=("rmse", "mape"))
        with pytest.raises(ParameterError):
            MetricsAggregator(primary_metric="mae")
        with pytest.raises(ParameterError):
            MetricsAggregator(r2_mode="weighted")

    def test_rank_lower_rmse_first(self):
        """Lower RMSE ranks first."""
        aggregates = {"a": {"rmse": 2.0, "r2": 0.5}, "b": {"rmse": 1.0, "r2": 0.4}}

        assert self.aggregator.rank(aggregates, ["a", "b"]) == ["b", "a"]

    def test_tie_broken_by_r2(self):
        """Equal RMSE at the tie precision goes to the higher R²."""
        aggregates = {"a": {"rmse": 1.00001, "r2": 0.5}, "b": {"rmse": 1.00002, "r2": 0.7}}

        assert self.aggregator.rank(aggregates, ["a", "b"]) == ["b", "a"]

    def test_full_tie_keeps_learner_order(self):
        """Identical results keep the configured order."""
        aggregates = {"a": {"rmse": 1.0, "r2": 0.5}, "b": {"rmse": 1.0, "r2": 0.5}}

        assert self.aggregator.rank(aggregates, ["b", "a"]) == ["b", "a"]

    def test_r2_primary_tie_broken_by_rmse(self):
        """Ranking by R² breaks ties with the lower RMSE."""
        aggregator = MetricsAggregator(primary_metric="r2")
        aggregates = {"a": {"r2": 0.8, "rmse": 2.0}, "b": {"r2": 0.8, "rmse": 1.0},
                      "c": {"r2": 0.9, "rmse": 3.0}}

        assert aggregator.rank(aggregates, ["a", "b", "c"]) == ["c", "b", "a"]

    def test_bias_ranked_by_magnitude(self):
        """Bias closest to zero ranks first."""
        aggregator = MetricsAggregator(primary_metric="bias")
        aggregates = {"a": {"bias": -0.5}, "b": {"bias": 0.2}, "c": {"bias": 0.3}}

        assert aggregator.rank(aggregates, ["a", "b", "c"]) == ["b", "c", "a"]

    def test_missing_and_nan_rank_last(self):
        """NaN aggregates rank after numbers, missing ones after NaN."""
        aggregates = {
            "missing": self.missing,
            "nan": {"rmse": float("nan"), "r2": float("nan")},
            "ok": {"rmse": 5.0, "r2": 0.1},
        }

        assert self.aggregator.rank(aggregates, ["missing", "nan", "ok"]) == ["ok", "nan", "missing"]

    def test_pooled_and_mean_r2(self):
        """Pooled R² uses all predictions, mean R² averages splits."""
        truth_0, pred_0 = [1.0, 2.0, 3.0], [1.5, 2.0, 2.5]
        truth_1, pred_1 = [10.0, 12.0, 14.0], [11.0, 12.0, 12.0]
        records = [PredictionRecord(i, 0, "a", p, t) for i, (p, t) in enumerate(zip(pred_0, truth_0))]
        records += [PredictionRecord(i + 3, 1, "a", p, t)
                    for i, (p, t) in enumerate(zip(pred_1, truth_1))]
        result = BenchmarkResult(learner_names=["a"], n_splits=2, records=records,
                                 successful_cells=[("a", 0), ("a", 1)])

        mean_report = MetricsAggregator(r2_mode="mean_per_split").build_report(result)
        pooled_report = MetricsAggregator(r2_mode="pooled").build_report(result)

        expected_mean = np.mean([r2_score(truth_0, pred_0), r2_score(truth_1, pred_1)])
        expected_pooled = r2_score(truth_0 + truth_1, pred_0 + pred_1)
        assert mean_report.aggregates["a"]["r2"] == pytest.approx(expected_mean)
        assert pooled_report.aggregates["a"]["r2"] == pytest.approx(expected_pooled)
        assert pooled_report.aggregate_std["a"]["r2"] is None
        assert pooled_report.combination_rules["r2"] == "pooled"
        assert mean_report.combination_rules["rmse"] == "mean_per_split"

    def test_empty_split_flagged(self):
        """A successful cell without predictions yields NaN and a warning."""
        records = [PredictionRecord(0, 0, "a", 1.0, 1.5), PredictionRecord(1, 0, "a", 2.0, 2.5)]
        result = BenchmarkResult(learner_names=["a"], n_splits=2, records=records,
                                 successful_cells=[("a", 0), ("a", 1)])

        report = MetricsAggregator().build_report(result)
        empty_row = report.split_metrics[report.split_metrics["split_index"] == 1].iloc[0]

        assert empty_row["n_test"] == 0
        assert math.isnan(empty_row["rmse"])
        assert math.isnan(report.aggregates["a"]["rmse"])
        assert report.status["a"] == "ok"
        assert any("no test predictions" in w for w in report.warnings)

    def test_non_finite_r2_is_null_in_summary(self):
        """Constant test truths give an undefined R² that serialises as null."""
        records = [PredictionRecord(i, 0, "a", p, 2.0) for i, p in enumerate([1.0, 2.0, 3.0])]
        records += [PredictionRecord(i + 3, 1, "a", p, t)
                    for i, (p, t) in enumerate(zip([1.0, 2.5, 2.5], [1.0, 2.0, 3.0]))]
        result = BenchmarkResult(learner_names=["a"], n_splits=2, records=records,
                                 successful_cells=[("a", 0), ("a", 1)])

        report = MetricsAggregator().build_report(result)
        summary = report.to_dict()

        assert math.isinf(report.split_metrics.iloc[0]["r2"])
        assert summary["split_metrics"][0]["r2"] is None
        assert summary["split_metrics"][1]["r2"] == pytest.approx(0.75)
        assert summary["aggregates"]["a"]["metrics"]["r2"] is None
        assert summary["aggregates"]["a"]["metrics"]["rmse"] is not None
        json.dumps(summary, allow_nan=False)
        assert any("undefined r2 on split 0" in w for w in report.warnings)


class TestBenchmarkRunner:
    """Test running learners across a resampling plan."""

    def setup_method(self):
        """Set up test fixtures."""
        self.samples = make_samples()
        self.plan = ResamplingPlan(SpatialPartitioner(), self.samples.coordinates,
                                   n_folds=4, n_repeats=2, seed=5)

    def teardown_method(self):
        """Clean up test fixtures."""
        CancellingLearner.on_train = None

    def test_every_cell_runs(self):
        """Each learner predicts every sample once per repeat."""
        runner = BenchmarkRunner(self.plan, self.samples,
                                 [GLMLearner(), GradientBoostingLearner(n_estimators=20)], seed=5)
        result = runner.run()

        assert result.n_splits == 8
        assert len(result.successful_cells) == 16
        assert not result.failed_cells
        assert not result.cancelled
        assert result.skipped_cells == 0

        frame = result.predictions_frame()
        assert len(frame) == 120 * 2 * 2
        counts = frame.groupby(["learner", "sample_index"]).size()
        assert (counts == 2).all()

    def test_failing_learner_is_isolated(self):
        """A learner that always fails gets missing aggregates, others are unaffected."""
        runner = BenchmarkRunner(self.plan, self.samples,
                                 {"glm": GLMLearner(), "broken": BrokenLearner()})
        report = MetricsAggregator().build_report(runner.run())

        assert len(report.failed_cells) == 8
        assert all(c.learner == "broken" for c in report.failed_cells)
        assert "backend exploded" in report.failed_cells[0].reason
        assert report.status == {"glm": "ok", "broken": "missing"}
        assert report.aggregates["broken"]["rmse"] is None
        assert report.ranking == ["glm", "broken"]
        assert report.best_learner == "glm"
        assert report.to_dict()["aggregates"]["broken"]["metrics"]["rmse"] is None
        assert any("no successful split" in w for w in report.warnings)

    def test_partial_failures(self):
        """Failed cells are recorded and excluded from the split table."""
        learner = EvenSizeFailingLearner(name="picky")
        runner = BenchmarkRunner(self.plan, self.samples, [learner])
        result = runner.run()

        expected_failed = [s.index for s in self.plan if len(s.train) % 2 == 0]
        assert [c.split_index for c in result.failed_cells] == expected_failed
        assert [i for _, i in result.successful_cells] == [
            s.index for s in self.plan if len(s.train) % 2 == 1]

        report = MetricsAggregator().build_report(result)
        assert len(report.split_metrics) == 8 - len(expected_failed)

    def test_concurrent_matches_sequential(self):
        """Worker count does not change the outcome."""
        learners = [GLMLearner(), GradientBoostingLearner(n_estimators=20, subsample=0.8),
                    BrokenLearner()]
        sequential = BenchmarkRunner(self.plan, self.samples, learners, n_jobs=1, seed=3).run()
        concurrent = BenchmarkRunner(self.plan, self.samples, learners, n_jobs=3, seed=3).run()

        pd.testing.assert_frame_equal(sequential.predictions_frame(),
                                      concurrent.predictions_frame())
        assert sequential.failed_cells == concurrent.failed_cells
        assert sequential.successful_cells == concurrent.successful_cells

    def test_cancellation(self):
        """Cancelling stops scheduling; finished cells are kept."""
        runner = BenchmarkRunner(self.plan, self.samples, [CancellingLearner(name="glm")])
        CancellingLearner.on_train = runner.cancel

        result = runner.run()

        assert result.cancelled
        assert result.successful_cells == [("glm", 0)]
        assert result.skipped_cells == 7

        report = MetricsAggregator().build_report(result)
        assert report.cancelled
        assert report.skipped_cells == 7
        assert report.status["glm"] == "ok"

    def test_invalid_runner_arguments(self):
        """Mismatched samples, duplicate names and bad n_jobs are rejected."""
        with pytest.raises(ParameterError):
            BenchmarkRunner(self.plan, make_samples(n=50), [GLMLearner()])
        with pytest.raises(ParameterError):
            BenchmarkRunner(self.plan, self.samples, [GLMLearner(), GLMLearner()])
        with pytest.raises(ParameterError):
            BenchmarkRunner(self.plan, self.samples, [GLMLearner()], n_jobs=0)
        with pytest.raises(ParameterError):
            BenchmarkRunner(self.plan, self.samples, [])


class TestRunBenchmark:
    """Test the one-call benchmark."""

    def test_run_benchmark(self):
        """Partition, train and rank in one call."""
        samples = make_samples()
        report, plan = run_benchmark(
            samples, [GLMLearner(), GradientBoostingLearner(n_estimators=30)],
            n_folds=3, n_repeats=2, seed=1,
        )

        assert report.n_splits == 6
        assert len(plan) == 6
        assert len(report.split_metrics) == 12
        assert sorted(report.ranking) == ["gbm", "glm"]
        assert report.best_learner == report.ranking[0]
        assert report.primary_metric == "rmse"

        table = report.aggregate_table()
        assert list(table["learner"]) == report.ranking
        assert list(table["rank"]) == [1, 2]

    def test_degenerate_coordinates_fail_before_training(self):
        """Partitioning errors abort the run before any learner trains."""
        samples = SampleSet(features=np.random.default_rng(0).normal(size=(12, 2)),
                            target=np.arange(12, dtype=float),
                            coordinates=np.zeros((12, 2)),
                            feature_names=("a", "b"))
        calls = []
        CancellingLearner.on_train = lambda: calls.append(1)
        try:
            with pytest.raises(DegenerateCoordinates):
                run_benchmark(samples, [CancellingLearner()], n_folds=3)
        finally:
            CancellingLearner.on_train = None
        assert not calls

    def test_degenerate_coordinates_random_fallback(self):
        """The random fallback lets a benchmark proceed on stacked points."""
        rng = np.random.default_rng(0)
        features = rng.normal(size=(30, 2))
        samples = SampleSet(features=features, target=features[:, 0] + rng.normal(0, 0.1, 30),
                            coordinates=np.zeros((30, 2)), feature_names=("a", "b"))

        report, _ = run_benchmark(samples, [GLMLearner()], n_folds=3,
                                  degenerate_fallback="random")
        assert report.status["glm"] == "ok"

    def test_singleton_test_fold_warns(self):
        """An isolated point forms its own fold and its R² is reported as undefined."""
        rng = np.random.default_rng(0)
        coordinates = np.vstack([rng.normal(0, 1, size=(59, 2)), [[1000.0, 1000.0]]])
        features = rng.normal(size=(60, 2))
        target = 2.0 * features[:, 0] - features[:, 1] + rng.normal(0, 0.1, 60)
        samples = SampleSet(features=features, target=target, coordinates=coordinates,
                            feature_names=("a", "b"))

        report, _ = run_benchmark(samples, [GLMLearner()], n_folds=3)
        table = report.split_metrics
        singleton = table[table["n_test"] == 1].iloc[0]

        assert math.isnan(singleton["r2"])
        assert math.isfinite(singleton["rmse"])
        assert report.status["glm"] == "ok"
        assert report.to_dict()["aggregates"]["glm"]["metrics"]["r2"] is None
        expected = f"undefined r2 on split {singleton['split_index']} (1 test sample(s))"
        assert any(expected in w for w in report.warnings)


if __name__ == "__main__":
    pytest.main([__file__])
