#!/usr/bin/env python
"""
Visualization utilities for spatial cross-validation benchmarks.

Author: najahpokkiri
Date: 2025-06-15
"""

import logging
import os

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

logger = logging.getLogger(__name__)


def plot_fold_map(coordinates, assignment, output_path, title="Spatial CV folds"):
    """Scatter the sample coordinates colored by fold id."""
    coordinates = np.asarray(coordinates)
    assignment = np.asarray(assignment)
    folds = np.unique(assignment)
    cmap = plt.get_cmap('tab10', max(len(folds), 1))

    fig, ax = plt.subplots(figsize=(8, 8))
    for i, fold in enumerate(folds):
        mask = assignment == fold
        ax.scatter(coordinates[mask, 0], coordinates[mask, 1], s=15, alpha=0.8,
                   color=cmap(i), label=f"Fold {fold + 1} (n={mask.sum()})")

    ax.set_xlabel('X coordinate')
    ax.set_ylabel('Y coordinate')
    ax.set_title(title)
    ax.set_aspect('equal', adjustable='datalim')
    ax.legend(loc='best', fontsize=8)
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def plot_split_metrics(report, output_path, metric=None):
    """Box plot of per-split metric values for every learner."""
    metric = metric or report.primary_metric
    table = report.split_metrics.dropna(subset=[metric])

    fig, ax = plt.subplots(figsize=(max(6, 1.5 * len(report.ranking)), 6))
    if table.empty:
        ax.text(0.5, 0.5, "No successful splits", ha='center', va='center',
                transform=ax.transAxes)
    else:
        order = [name for name in report.ranking if name in set(table['learner'])]
        sns.boxplot(data=table, x='learner', y=metric, order=order, ax=ax, color='lightgray')
        sns.stripplot(data=table, x='learner', y=metric, order=order, ax=ax,
                      color='black', size=4, alpha=0.7)

    ax.set_xlabel('Learner')
    ax.set_ylabel(metric.upper())
    ax.set_title(f"Per-split {metric.upper()} ({report.n_splits} splits)")
    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def plot_predictions(report, output_path):
    """Observed vs. out-of-fold predicted values, one panel per learner."""
    learners = [name for name in report.ranking if report.status[name] != "missing"]
    n_panels = max(len(learners), 1)

    fig, axes = plt.subplots(1, n_panels, figsize=(5 * n_panels, 5), squeeze=False)
    axes = axes[0]

    if not learners:
        axes[0].text(0.5, 0.5, "No predictions", ha='center', va='center',
                     transform=axes[0].transAxes)

    predictions = report.predictions
    for ax, name in zip(axes, learners):
        frame = predictions[predictions['learner'] == name]
        ax.scatter(frame['truth'], frame['predicted'], s=10, alpha=0.5)

        if len(frame):
            low = min(frame['truth'].min(), frame['predicted'].min())
            high = max(frame['truth'].max(), frame['predicted'].max())
            ax.plot([low, high], [low, high], 'k--', linewidth=1)

        values = report.aggregates[name]
        text = "\n".join(
            f"{m.upper()} = {values[m]:.4f}" for m in ('rmse', 'r2', 'bias')
            if m in values and values[m] is not None
        )
        ax.text(0.05, 0.95, text, transform=ax.transAxes, fontsize=10,
                verticalalignment='top',
                bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))
        ax.set_xlabel('Observed')
        ax.set_ylabel('Predicted')
        ax.set_title(name)

    fig.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path


def visualize_benchmark_results(report, plan, output_dir):
    """Create all benchmark figures in ``output_dir``.

    Returns:
        list: Paths of the written figures
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = []

    for repeat, assignment in enumerate(plan.assignments):
        path = os.path.join(output_dir, f"fold_map_repeat_{repeat + 1}.png")
        paths.append(plot_fold_map(plan.coordinates, assignment, path,
                                   title=f"Spatial CV folds (repeat {repeat + 1})"))

    paths.append(plot_split_metrics(report, os.path.join(output_dir, "split_metrics.png")))
    paths.append(plot_predictions(report, os.path.join(output_dir, "predictions.png")))

    logger.info("Saved %d figures to %s", len(paths), output_dir)
    return paths
