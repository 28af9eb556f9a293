#!/usr/bin/env python
"""
Loading configuration and persisting benchmark reports.

Author: najahpokkiri
Date: 2025-06-15
"""

import datetime
import json
import logging
import math
import os

import numpy as np
import pandas as pd
import yaml

logger = logging.getLogger(__name__)


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, (np.integer, np.floating, np.bool_)):
            return obj.item()
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, (tuple, set)):
            return list(obj)
        return super().default(obj)


def load_yaml_config(config_path):
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        config_dict = yaml.safe_load(f)

    return config_dict or {}


def save_benchmark_report(report, results_dir, config_dict=None, save_predictions=True):
    """Save a benchmark report to a timestamped directory.

    Writes ``benchmark_summary.json``, ``split_metrics.csv``,
    ``aggregate_metrics.csv``, ``failed_cells.csv``, optionally
    ``predictions.csv`` and, when given, ``config.json``.

    Args:
        report: BenchmarkReport
        results_dir: Parent directory for the run directory
        config_dict: Optional run configuration to store alongside
        save_predictions: Also write every out-of-fold prediction

    Returns:
        str: Path of the run directory
    """
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    result_dir = os.path.join(results_dir, timestamp)
    os.makedirs(result_dir, exist_ok=True)

    summary_path = os.path.join(result_dir, "benchmark_summary.json")
    with open(summary_path, 'w') as f:
        json.dump(report.to_dict(), f, cls=NumpyEncoder, indent=2)

    report.split_metrics.to_csv(os.path.join(result_dir, "split_metrics.csv"), index=False)
    report.aggregate_table().to_csv(os.path.join(result_dir, "aggregate_metrics.csv"), index=False)

    failed = pd.DataFrame(
        [(c.learner, c.split_index, c.reason) for c in report.failed_cells],
        columns=["learner", "split_index", "reason"],
    )
    failed.to_csv(os.path.join(result_dir, "failed_cells.csv"), index=False)

    if save_predictions:
        report.predictions.to_csv(os.path.join(result_dir, "predictions.csv"), index=False)

    if config_dict is not None:
        with open(os.path.join(result_dir, "config.json"), 'w') as f:
            json.dump(config_dict, f, cls=NumpyEncoder, indent=2)

    logger.info("Benchmark report saved to %s", result_dir)
    return result_dir


def load_benchmark_summary(summary_path):
    """Read a saved ``benchmark_summary.json``."""
    with open(summary_path, 'r') as f:
        return json.load(f)


def _format_value(value, digits=4):
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return "missing"
    return f"{value:.{digits}f}"


def export_results_summary(summary_path, output_path):
    """Export a human-readable summary of a saved benchmark."""
    summary = load_benchmark_summary(summary_path)

    lines = []
    lines.append("SPATIAL CROSS-VALIDATION BENCHMARK SUMMARY")
    lines.append("=" * 60)
    lines.append("")
    lines.append(f"Splits: {summary['n_splits']}")
    lines.append(f"Primary metric: {summary['primary_metric']}")
    lines.append(f"R² combination: {summary['r2_mode']}")
    if summary.get("cancelled"):
        lines.append(f"Run cancelled, {summary.get('skipped_cells', 0)} cell(s) skipped")
    lines.append("")

    lines.append("RANKING:")
    for rank, name in enumerate(summary["ranking"], start=1):
        entry = summary["aggregates"][name]
        metrics = entry["metrics"]
        stds = entry["std"]
        parts = []
        for metric, value in metrics.items():
            if value is None and entry["status"] == "ok":
                text = f"{metric.upper()}=undefined"
            else:
                text = f"{metric.upper()}={_format_value(value)}"
            if value is not None and stds.get(metric) is not None:
                text += f" ± {_format_value(stds[metric])}"
            parts.append(text)
        lines.append(f"  {rank}. {name} [{entry['status']}]: " + ", ".join(parts))

    if summary["failed_cells"]:
        lines.append("")
        lines.append("FAILED CELLS:")
        for cell in summary["failed_cells"]:
            lines.append(f"  {cell['learner']} / split {cell['split_index']}: {cell['reason']}")

    autocorrelation = summary.get("diagnostics", {}).get("spatial_autocorrelation")
    if autocorrelation:
        lines.append("")
        lines.append("Spatial autocorrelation (distance vs. |target difference|):")
        lines.append(f"  Spearman rho = {_format_value(autocorrelation.get('correlation'), 3)}, "
                     f"n = {autocorrelation.get('n_samples')}")

    if summary.get("warnings"):
        lines.append("")
        lines.append("WARNINGS:")
        for message in summary["warnings"]:
            lines.append(f"  - {message}")

    lines.append("")
    lines.append("=" * 60)

    with open(output_path, 'w') as f:
        f.write('\n'.join(lines))

    logger.info("Results summary exported to %s", output_path)
    return '\n'.join(lines)
