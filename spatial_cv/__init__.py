"""
Spatial Cross-Validation Benchmarking for Geospatial Regression

Spatially partitioned, repeated cross-validation of heterogeneous
regression learners (gradient boosting, GLM, random forest, neural
network) with failure-tolerant benchmarking and ranked metric reports.
"""

__version__ = "1.0.0"
__author__ = "najahpokkiri"
__email__ = "your.email@example.com"

from . import preprocessing, resampling, models, utils

__all__ = ["preprocessing", "resampling", "models", "utils"]
