"""
Spatial partitioning and repeated resampling plans.
"""

from .partitioner import SpatialPartitioner, fold_sizes
from .plan import ResamplingPlan, Split, derive_seed

__all__ = ["SpatialPartitioner", "fold_sizes", "ResamplingPlan", "Split", "derive_seed"]
