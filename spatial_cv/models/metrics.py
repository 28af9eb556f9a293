#!/usr/bin/env python
"""
Regression metrics, per-learner aggregation and ranking of benchmark results.

Per-split values are combined by arithmetic mean for rmse, mse, mae and
bias. R² is combined either as the mean of per-split R² values
(``mean_per_split``, the default) or as one R² over all pooled
out-of-fold predictions of a learner (``pooled``).

Author: najahpokkiri
Date: 2025-06-14
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from ..utils.errors import ParameterError

logger = logging.getLogger(__name__)


def _mse(y_pred, y_true):
    return float(mean_squared_error(y_true, y_pred))


def _rmse(y_pred, y_true):
    return math.sqrt(_mse(y_pred, y_true))


def _mae(y_pred, y_true):
    return float(mean_absolute_error(y_true, y_pred))


def _bias(y_pred, y_true):
    return float(np.mean(np.asarray(y_pred) - np.asarray(y_true)))


def _r2(y_pred, y_true):
    if len(y_true) < 2:
        return float("nan")
    return float(r2_score(y_true, y_pred, force_finite=False))


METRIC_FUNCTIONS = {
    "rmse": _rmse,
    "mse": _mse,
    "mae": _mae,
    "bias": _bias,
    "r2": _r2,
}

# "min": lower is better, "max": higher is better, "abs_min": closest to zero
METRIC_DIRECTIONS = {
    "rmse": "min",
    "mse": "min",
    "mae": "min",
    "bias": "abs_min",
    "r2": "max",
}

PRIMARY_METRICS = ("rmse", "mse", "bias", "r2")
R2_MODES = ("mean_per_split", "pooled")
DEFAULT_METRICS = ("rmse", "mse", "mae", "bias", "r2")


def compute_metric(name: str, y_pred, y_true) -> float:
    """Compute one metric; empty inputs give NaN."""
    y_pred = np.asarray(y_pred, dtype=float)
    y_true = np.asarray(y_true, dtype=float)
    if y_true.size == 0:
        return float("nan")
    return METRIC_FUNCTIONS[name](y_pred, y_true)


def _to_report_value(value) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


def _json_safe(value):
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (float, np.floating)):
        return _to_report_value(value)
    return value


@dataclass
class BenchmarkReport:
    """Structured outcome of a benchmark run."""

    split_metrics: pd.DataFrame
    aggregates: Dict[str, Dict[str, Optional[float]]]
    aggregate_std: Dict[str, Dict[str, Optional[float]]]
    status: Dict[str, str]
    ranking: List[str]
    failed_cells: list
    metrics: Sequence[str]
    primary_metric: str
    r2_mode: str
    combination_rules: Dict[str, str]
    n_splits: int
    predictions: pd.DataFrame = field(repr=False, default_factory=pd.DataFrame)
    warnings: List[str] = field(default_factory=list)
    cancelled: bool = False
    skipped_cells: int = 0
    diagnostics: dict = field(default_factory=dict)

    @property
    def best_learner(self) -> Optional[str]:
        """Top-ranked learner with a defined primary metric."""
        for name in self.ranking:
            if self.aggregates[name].get(self.primary_metric) is not None:
                return name
        return None

    def aggregate_table(self) -> pd.DataFrame:
        """One row per learner in ranking order; missing values stay empty."""
        rows = []
        for rank, name in enumerate(self.ranking, start=1):
            row = {"rank": rank, "learner": name, "status": self.status[name]}
            for metric in self.metrics:
                row[metric] = self.aggregates[name].get(metric)
                row[f"{metric}_std"] = self.aggregate_std[name].get(metric)
            row["failed_splits"] = sum(1 for c in self.failed_cells if c.learner == name)
            rows.append(row)
        return pd.DataFrame(rows)

    def to_dict(self) -> dict:
        """JSON-friendly summary; missing and non-finite values are None."""
        finite = self.split_metrics.replace([np.inf, -np.inf], np.nan)
        split_rows = finite.astype(object).where(finite.notna(), None).to_dict(orient="records")
        return {
            "primary_metric": self.primary_metric,
            "r2_mode": self.r2_mode,
            "combination_rules": dict(self.combination_rules),
            "n_splits": self.n_splits,
            "ranking": list(self.ranking),
            "best_learner": self.best_learner,
            "aggregates": {
                name: {
                    "status": self.status[name],
                    "metrics": {m: _to_report_value(v) for m, v in values.items()},
                    "std": {m: _to_report_value(v)
                            for m, v in self.aggregate_std[name].items()},
                }
                for name, values in self.aggregates.items()
            },
            "split_metrics": split_rows,
            "failed_cells": [
                {"learner": c.learner, "split_index": c.split_index, "reason": c.reason}
                for c in self.failed_cells
            ],
            "warnings": list(self.warnings),
            "cancelled": self.cancelled,
            "skipped_cells": self.skipped_cells,
            "diagnostics": _json_safe(self.diagnostics),
        }


class MetricsAggregator:
    """Compute per-split metrics, combine them per learner and rank learners.

    Args:
        metrics: Metrics to report; rmse and r2 are always computed for ranking
        primary_metric: Ranking metric, one of rmse, mse, bias, r2
        r2_mode: ``"mean_per_split"`` or ``"pooled"``
        tie_decimals: Primary values equal at this many decimals are ties
    """

    def __init__(self, metrics: Sequence[str] = DEFAULT_METRICS, primary_metric: str = "rmse",
                 r2_mode: str = "mean_per_split", tie_decimals: int = 4):
        unknown = [m for m in metrics if m not in METRIC_FUNCTIONS]
        if unknown:
            raise ParameterError(f"Unknown metric(s): {unknown}",
                                 suggestion=f"Use any of {sorted(METRIC_FUNCTIONS)}")
        if primary_metric not in PRIMARY_METRICS:
            raise ParameterError(f"Unknown primary metric '{primary_metric}'",
                                 suggestion=f"Use one of {list(PRIMARY_METRICS)}")
        if r2_mode not in R2_MODES:
            raise ParameterError(f"Unknown r2_mode '{r2_mode}'",
                                 suggestion=f"Use one of {list(R2_MODES)}")

        ordered = list(dict.fromkeys(list(metrics) + [primary_metric, "rmse", "r2"]))
        self.metrics = tuple(ordered)
        self.primary_metric = primary_metric
        self.r2_mode = r2_mode
        self.tie_decimals = tie_decimals

    @property
    def combination_rules(self) -> Dict[str, str]:
        rules = {m: "mean_per_split" for m in self.metrics}
        if "r2" in rules:
            rules["r2"] = self.r2_mode
        return rules

    def split_metrics(self, predictions: pd.DataFrame, cells) -> pd.DataFrame:
        """Metric table with one row per successful (learner, split) cell.

        Args:
            predictions: Prediction records as a DataFrame
            cells: Ordered (learner, split_index) pairs that completed

        Cells without any prediction get NaN metrics and ``n_test == 0``.
        """
        groups = {}
        if len(predictions):
            groups = {key: frame for key, frame in predictions.groupby(["learner", "split_index"])}

        rows = []
        for learner, split_index in cells:
            frame = groups.get((learner, split_index))
            y_pred = frame["predicted"].to_numpy() if frame is not None else np.empty(0)
            y_true = frame["truth"].to_numpy() if frame is not None else np.empty(0)
            row = {"learner": learner, "split_index": int(split_index), "n_test": len(y_true)}
            for metric in self.metrics:
                row[metric] = compute_metric(metric, y_pred, y_true)
            rows.append(row)

        columns = ["learner", "split_index", "n_test", *self.metrics]
        return pd.DataFrame(rows, columns=columns)

    def aggregate(self, split_table: pd.DataFrame, predictions: pd.DataFrame,
                  learners: Sequence[str]):
        """Combine per-split metrics for every learner.

        Returns:
            tuple: (aggregates, std, status) dictionaries keyed by learner.
            Learners without a successful split have every metric set to None.
        """
        aggregates, stds, status = {}, {}, {}

        for learner in learners:
            table = split_table[split_table["learner"] == learner]
            if table.empty:
                aggregates[learner] = {m: None for m in self.metrics}
                stds[learner] = {m: None for m in self.metrics}
                status[learner] = "missing"
                continue

            values, spread = {}, {}
            for metric in self.metrics:
                column = table[metric].to_numpy(dtype=float)
                # NaN from an empty split propagates into the mean
                values[metric] = float(np.mean(column))
                spread[metric] = float(np.std(column)) if len(column) > 1 else 0.0

            if self.r2_mode == "pooled" and "r2" in self.metrics:
                ok_splits = set(table["split_index"])
                pooled = predictions[(predictions["learner"] == learner) &
                                     (predictions["split_index"].isin(ok_splits))]
                values["r2"] = compute_metric("r2", pooled["predicted"], pooled["truth"])
                spread["r2"] = None

            aggregates[learner] = values
            stds[learner] = spread
            status[learner] = "ok"

        return aggregates, stds, status

    def _sort_key(self, value, r2, rmse, order):
        direction = METRIC_DIRECTIONS[self.primary_metric]
        if value is None:
            return (2, 0.0, 0.0, order)
        if math.isnan(value):
            return (1, 0.0, 0.0, order)

        if direction == "abs_min":
            value = abs(value)
        primary = round(value, self.tie_decimals)
        if direction == "max":
            primary = -primary

        if self.primary_metric == "r2":
            tie_break = rmse if rmse is not None and not math.isnan(rmse) else math.inf
        else:
            tie_break = -r2 if r2 is not None and not math.isnan(r2) else math.inf
        return (0, primary, tie_break, order)

    def rank(self, aggregates: Dict[str, Dict[str, Optional[float]]],
             learners: Sequence[str]) -> List[str]:
        """Order learners by the primary metric.

        Primary values are compared after rounding to ``tie_decimals``;
        ties go to the higher R² (lower RMSE when ranking by R²), then to
        learner order. Learners with missing aggregates rank last.
        """
        keyed = []
        for order, learner in enumerate(learners):
            values = aggregates[learner]
            keyed.append((self._sort_key(values.get(self.primary_metric), values.get("r2"),
                                         values.get("rmse"), order), learner))
        return [learner for _, learner in sorted(keyed)]

    def build_report(self, result) -> BenchmarkReport:
        """Turn a BenchmarkResult into a BenchmarkReport."""
        predictions = result.predictions_frame()
        learners = list(result.learner_names)

        split_table = self.split_metrics(predictions, result.successful_cells)
        aggregates, stds, status = self.aggregate(split_table, predictions, learners)
        ranking = self.rank(aggregates, learners)

        warnings = []
        for row in split_table[split_table["n_test"] == 0].itertuples():
            warnings.append(f"Learner '{row.learner}' has no test predictions for split "
                            f"{row.split_index}; its metrics are NaN")
        for row in split_table[split_table["n_test"] > 0].itertuples():
            undefined = [m for m in self.metrics if not math.isfinite(getattr(row, m))]
            if undefined:
                warnings.append(f"Learner '{row.learner}' has undefined {', '.join(undefined)} "
                                f"on split {row.split_index} ({row.n_test} test sample(s))")
        for learner in learners:
            if status[learner] == "missing":
                warnings.append(f"Learner '{learner}' has no successful split; "
                                f"aggregate metrics are missing")
        for message in warnings:
            logger.warning(message)

        return BenchmarkReport(
            split_metrics=split_table,
            aggregates=aggregates,
            aggregate_std=stds,
            status=status,
            ranking=ranking,
            failed_cells=list(result.failed_cells),
            metrics=self.metrics,
            primary_metric=self.primary_metric,
            r2_mode=self.r2_mode,
            combination_rules=self.combination_rules,
            n_splits=result.n_splits,
            predictions=predictions,
            warnings=warnings,
            cancelled=result.cancelled,
            skipped_cells=result.skipped_cells,
        )
