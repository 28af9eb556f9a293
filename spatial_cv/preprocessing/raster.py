#!/usr/bin/env python
"""
Raster helpers: sample covariate bands at point locations and predict a
fitted learner across a raster grid.

Author: najahpokkiri
Date: 2025-06-14
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import rasterio
from rasterio.windows import Window
from tqdm import tqdm

from ..utils.errors import DataValidationError

logger = logging.getLogger(__name__)

PREDICTION_NODATA = -9999.0


def raster_band_names(src) -> List[str]:
    """Band descriptions of an open dataset, falling back to band_<n>."""
    return [desc if desc else f"band_{i + 1}" for i, desc in enumerate(src.descriptions)]


def _check_band_names(src, feature_names: Optional[Sequence[str]]) -> None:
    if feature_names is None:
        return
    feature_names = list(feature_names)
    if src.count != len(feature_names):
        raise DataValidationError(
            f"Raster has {src.count} bands but {len(feature_names)} features are expected",
            details={"features": feature_names},
        )
    # Rasters without band descriptions are matched by position
    if all(src.descriptions):
        descriptions = list(src.descriptions)
        if descriptions != feature_names:
            raise DataValidationError(
                "Raster band descriptions do not match the feature schema",
                suggestion="Reorder the raster bands or the feature columns",
                details={"bands": descriptions, "features": feature_names},
            )


def extract_raster_values(raster_path: str, coordinates: np.ndarray,
                          band_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Sample every band of a raster at point coordinates.

    Args:
        raster_path: Path to the covariate raster
        coordinates: Array of shape (n, 2) in the raster CRS
        band_names: Optional column names; defaults to band descriptions

    Returns:
        pd.DataFrame: One row per coordinate, one column per band. Points
        outside the raster or on nodata pixels get NaN.
    """
    coordinates = np.asarray(coordinates, dtype=float)
    if coordinates.ndim != 2 or coordinates.shape[1] != 2:
        raise DataValidationError(f"Coordinates must have shape (n, 2), got {coordinates.shape}")

    with rasterio.open(raster_path) as src:
        names = list(band_names) if band_names is not None else raster_band_names(src)
        if len(names) != src.count:
            raise DataValidationError(
                f"{len(names)} band names given for a raster with {src.count} bands"
            )

        out = np.full((len(coordinates), src.count), np.nan)
        points = [(float(x), float(y)) for x, y in coordinates]
        for i, sample in enumerate(src.sample(points, masked=True)):
            out[i] = np.ma.filled(sample.astype(float), np.nan)

        left, bottom, right, top = src.bounds
        outside = ((coordinates[:, 0] < left) | (coordinates[:, 0] >= right) |
                   (coordinates[:, 1] <= bottom) | (coordinates[:, 1] > top))
        out[outside] = np.nan

    n_missing = int(np.isnan(out).any(axis=1).sum())
    if n_missing:
        logger.warning("%d of %d points have missing raster values", n_missing, len(out))
    return pd.DataFrame(out, columns=names)


def predict_raster(learner, state, raster_path: str, output_path: str,
                   feature_names: Optional[Sequence[str]] = None,
                   block_size: int = 512, show_progress: bool = False) -> str:
    """Predict a fitted learner for every valid pixel of a covariate raster.

    Pixels where any band is nodata or non-finite are written as nodata.

    Args:
        learner: Learner adapter that produced ``state``
        state: Fitted state returned by ``learner.train``
        raster_path: Covariate raster, one band per feature in schema order
        output_path: Destination GeoTIFF
        feature_names: Expected band order, validated against band descriptions
        block_size: Rows processed per block
        show_progress: Show a progress bar over blocks

    Returns:
        str: ``output_path``
    """
    with rasterio.open(raster_path) as src:
        _check_band_names(src, feature_names)

        profile = src.profile.copy()
        profile.update(count=1, dtype="float32", nodata=PREDICTION_NODATA)
        if profile.get("driver") != "GTiff":
            profile["driver"] = "GTiff"

        n_valid = 0
        row_starts = range(0, src.height, block_size)
        with rasterio.open(output_path, "w", **profile) as dst:
            for row in tqdm(row_starts, desc="Predicting", disable=not show_progress):
                height = min(block_size, src.height - row)
                window = Window(0, row, src.width, height)
                block = src.read(window=window, masked=True).astype(float)

                pixels = block.filled(np.nan).reshape(src.count, -1).T
                valid = np.all(np.isfinite(pixels), axis=1)

                prediction = np.full(pixels.shape[0], PREDICTION_NODATA, dtype="float32")
                if valid.any():
                    prediction[valid] = learner.predict(state, pixels[valid])
                    n_valid += int(valid.sum())

                dst.write(prediction.reshape(height, src.width), 1, window=window)

    logger.info("Predicted %d valid pixels to %s", n_valid, output_path)
    return output_path
