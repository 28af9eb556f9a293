"""
Sample loading and raster collaborators for spatial benchmarking.
"""

from .samples import (
    SampleSchema,
    SampleSet,
    load_samples,
    read_sample_table,
    analyze_spatial_autocorrelation,
)
from .raster import extract_raster_values, predict_raster

__all__ = [
    "SampleSchema",
    "SampleSet",
    "load_samples",
    "read_sample_table",
    "analyze_spatial_autocorrelation",
    "extract_raster_values",
    "predict_raster",
]
