#!/usr/bin/env python
"""
End-to-end spatial CV benchmark: load samples, partition, benchmark,
report, plot and optionally predict a covariate raster with the
top-ranked learner.

Author: najahpokkiri
Date: 2025-06-15
"""

import argparse
import logging
import os
import sys
from typing import Optional

from .models.benchmark import BenchmarkRunner
from .models.config import BenchmarkConfig
from .models.metrics import MetricsAggregator
from .preprocessing.raster import predict_raster
from .preprocessing.samples import analyze_spatial_autocorrelation, load_samples
from .resampling.partitioner import SpatialPartitioner
from .resampling.plan import ResamplingPlan
from .utils.data_utils import export_results_summary, load_yaml_config, save_benchmark_report
from .utils.errors import SpatialCVError
from .utils.visualization import visualize_benchmark_results

logger = logging.getLogger(__name__)


def run_benchmark_pipeline(config: BenchmarkConfig, samples=None, runner_hook=None):
    """Run a configured benchmark.

    Args:
        config: Validated benchmark configuration
        samples: Optional SampleSet; loaded from ``config.data_path`` if None
        runner_hook: Optional callable receiving the BenchmarkRunner before
            it starts, e.g. to wire up cancellation

    Returns:
        tuple: (BenchmarkReport, path of the saved run directory)
    """
    config.validate()

    if samples is None:
        if not config.data_path:
            raise SpatialCVError("No sample data configured",
                                 suggestion="Set data_path or pass --data")
        samples = load_samples(config.data_path, config.schema())

    autocorrelation = analyze_spatial_autocorrelation(samples, seed=config.seed)

    partitioner = SpatialPartitioner(n_folds=config.folds, seed=config.seed,
                                     n_init=config.kmeans_n_init,
                                     degenerate_fallback=config.degenerate_fallback)
    plan = ResamplingPlan(partitioner, samples.coordinates, config.folds,
                          config.repeats, config.seed).build()

    runner = BenchmarkRunner(plan, samples, config.build_learners(), n_jobs=config.n_jobs,
                             seed=config.seed, show_progress=config.show_progress)
    if runner_hook is not None:
        runner_hook(runner)
    result = runner.run()

    aggregator = MetricsAggregator(primary_metric=config.primary_metric,
                                   r2_mode=config.r2_mode, tie_decimals=config.tie_decimals)
    report = aggregator.build_report(result)
    report.diagnostics["spatial_autocorrelation"] = autocorrelation

    config.create_directories()
    result_dir = save_benchmark_report(report, config.results_dir, config.to_dict(),
                                       save_predictions=config.save_predictions)
    export_results_summary(os.path.join(result_dir, "benchmark_summary.json"),
                           os.path.join(result_dir, "summary.txt"))

    if config.make_plots:
        visualize_benchmark_results(report, plan, result_dir)

    if config.prediction_raster:
        predict_with_best_learner(report, samples, config, result_dir)

    return report, result_dir


def predict_with_best_learner(report, samples, config: BenchmarkConfig,
                              result_dir: str) -> Optional[str]:
    """Refit the top-ranked learner on all samples and predict the raster."""
    best = report.best_learner
    if best is None:
        logger.warning("No learner has a defined %s; skipping raster prediction",
                       report.primary_metric)
        return None

    learner = dict(config.build_learners())[best].clone(random_state=config.seed)
    state = learner.train(samples.features, samples.target)

    output_path = config.prediction_output or os.path.join(result_dir, f"prediction_{best}.tif")
    logger.info("Predicting %s with learner '%s'", config.prediction_raster, best)
    return predict_raster(learner, state, config.prediction_raster, output_path,
                          feature_names=samples.feature_names,
                          show_progress=config.show_progress)


def build_parser():
    parser = argparse.ArgumentParser(description='Benchmark regression learners with spatial cross-validation')
    parser.add_argument('--config', type=str, help='Path to configuration YAML file')
    parser.add_argument('--data', type=str, help='Sample table (CSV, Parquet or point vector file)')
    parser.add_argument('--features', type=str, nargs='+', help='Feature column names')
    parser.add_argument('--target', type=str, help='Target column name')
    parser.add_argument('--coords', type=str, nargs=2, metavar=('X', 'Y'),
                        help='Coordinate column names')
    parser.add_argument('--output-dir', type=str, help='Output directory for results')
    parser.add_argument('--folds', type=int, help='Number of spatial folds')
    parser.add_argument('--repeats', type=int, help='Number of repeated partitions')
    parser.add_argument('--seed', type=int, help='Random seed')
    parser.add_argument('--n-jobs', type=int, help='Worker threads (-1 for all CPUs)')
    parser.add_argument('--primary-metric', type=str, choices=['rmse', 'mse', 'bias', 'r2'])
    parser.add_argument('--r2-mode', type=str, choices=['mean_per_split', 'pooled'])
    parser.add_argument('--predict-raster', type=str,
                        help='Covariate raster to predict with the best learner')
    parser.add_argument('--no-plots', action='store_true', help='Skip figures')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def config_from_args(args) -> BenchmarkConfig:
    if args.config:
        config_dict = load_yaml_config(args.config)
        config = BenchmarkConfig.from_dict(config_dict.get('benchmark', config_dict))
    else:
        config = BenchmarkConfig()

    overrides = {
        'data_path': args.data,
        'feature_columns': args.features,
        'target_column': args.target,
        'coordinate_columns': args.coords,
        'results_dir': args.output_dir,
        'folds': args.folds,
        'repeats': args.repeats,
        'seed': args.seed,
        'n_jobs': args.n_jobs,
        'primary_metric': args.primary_metric,
        'r2_mode': args.r2_mode,
        'prediction_raster': args.predict_raster,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, list(value) if isinstance(value, tuple) else value)
    if args.no_plots:
        config.make_plots = False
    return config


def main(argv=None):
    """Main function to run a benchmark from the command line."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        config = config_from_args(args)

        print("Benchmark Configuration:")
        print(f"  Data: {config.data_path}")
        print(f"  Output directory: {config.results_dir}")
        print(f"  Folds x repeats: {config.folds} x {config.repeats}")
        print(f"  Seed: {config.seed}")
        print(f"  Learners: {', '.join(s.get('name') or s['type'] for s in config.learners)}")
        print(f"  Primary metric: {config.primary_metric} (R² mode: {config.r2_mode})")

        report, result_dir = run_benchmark_pipeline(config)
    except SpatialCVError as e:
        logger.error("Benchmark failed: %s", e)
        return 1

    print("\n" + report.aggregate_table().to_string(index=False))
    print(f"\nBest learner: {report.best_learner}")
    print(f"Results saved to: {result_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
