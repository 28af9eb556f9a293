#!/usr/bin/env python
"""
Typed sample schema and immutable sample sets for spatial benchmarking.

A SampleSet holds one row per sample: a feature vector, a target value,
a 2-D coordinate and an optional timestamp. Columns are resolved and
validated once, at load time.

Author: najahpokkiri
Date: 2025-06-12
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist
from scipy.stats import spearmanr

from ..utils.errors import DataValidationError

logger = logging.getLogger(__name__)

VECTOR_SUFFIXES = (".gpkg", ".geojson", ".json", ".shp", ".fgb")


@dataclass(frozen=True)
class SampleSchema:
    """Named columns of a sample table."""

    feature_columns: Tuple[str, ...]
    target_column: str
    coordinate_columns: Tuple[str, str] = ("x", "y")
    time_column: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "feature_columns", tuple(self.feature_columns))
        object.__setattr__(self, "coordinate_columns", tuple(self.coordinate_columns))

        if not self.feature_columns:
            raise DataValidationError("Schema needs at least one feature column")
        if len(set(self.feature_columns)) != len(self.feature_columns):
            raise DataValidationError("Duplicate feature columns in schema",
                                      details={"features": list(self.feature_columns)})
        if len(self.coordinate_columns) != 2:
            raise DataValidationError("Exactly two coordinate columns are required",
                                      details={"coordinates": list(self.coordinate_columns)})
        overlap = {self.target_column, *self.coordinate_columns} & set(self.feature_columns)
        if overlap:
            raise DataValidationError(
                f"Columns used both as feature and target/coordinate: {sorted(overlap)}"
            )

    @property
    def numeric_columns(self) -> Tuple[str, ...]:
        return self.feature_columns + (self.target_column,) + self.coordinate_columns

    def validate(self, frame: pd.DataFrame) -> None:
        """Check that a table satisfies the schema.

        Args:
            frame: Sample table

        Raises:
            DataValidationError: On missing, non-numeric or non-finite columns
        """
        if len(frame) == 0:
            raise DataValidationError("Sample table is empty")

        required = list(self.numeric_columns)
        if self.time_column is not None:
            required.append(self.time_column)
        missing = [c for c in required if c not in frame.columns]
        if missing:
            raise DataValidationError(
                f"Missing columns: {missing}",
                suggestion="Check the feature/target/coordinate column names",
                details={"available": list(frame.columns)},
            )

        for column in self.numeric_columns:
            if not pd.api.types.is_numeric_dtype(frame[column]):
                raise DataValidationError(f"Column '{column}' is not numeric",
                                          details={"dtype": str(frame[column].dtype)})
            values = frame[column].to_numpy(dtype=float)
            n_bad = int(np.sum(~np.isfinite(values)))
            if n_bad:
                raise DataValidationError(
                    f"Column '{column}' has {n_bad} missing or non-finite value(s)",
                    suggestion="Drop or impute incomplete rows before benchmarking",
                )

    def to_dict(self) -> dict:
        return {
            "feature_columns": list(self.feature_columns),
            "target_column": self.target_column,
            "coordinate_columns": list(self.coordinate_columns),
            "time_column": self.time_column,
        }


def _read_only(values: np.ndarray) -> np.ndarray:
    values = np.array(values, copy=True)
    values.setflags(write=False)
    return values


@dataclass(frozen=True, eq=False)
class SampleSet:
    """Immutable collection of samples."""

    features: np.ndarray
    target: np.ndarray
    coordinates: np.ndarray
    feature_names: Tuple[str, ...]
    timestamps: Optional[np.ndarray] = None
    schema: Optional[SampleSchema] = None

    def __post_init__(self):
        features = np.asarray(self.features, dtype=float)
        target = np.asarray(self.target, dtype=float).ravel()
        coordinates = np.asarray(self.coordinates, dtype=float)

        if features.ndim != 2:
            raise DataValidationError(f"Features must be 2-D, got shape {features.shape}")
        if coordinates.ndim != 2 or coordinates.shape[1] != 2:
            raise DataValidationError(
                f"Coordinates must have shape (n, 2), got {coordinates.shape}"
            )
        n = features.shape[0]
        if target.shape[0] != n or coordinates.shape[0] != n:
            raise DataValidationError(
                "Features, target and coordinates must have the same number of rows",
                details={"features": n, "target": target.shape[0],
                         "coordinates": coordinates.shape[0]},
            )
        if len(self.feature_names) != features.shape[1]:
            raise DataValidationError(
                f"{len(self.feature_names)} feature names for {features.shape[1]} feature columns"
            )

        object.__setattr__(self, "features", _read_only(features))
        object.__setattr__(self, "target", _read_only(target))
        object.__setattr__(self, "coordinates", _read_only(coordinates))
        object.__setattr__(self, "feature_names", tuple(self.feature_names))
        if self.timestamps is not None:
            object.__setattr__(self, "timestamps", _read_only(self.timestamps))

    def __len__(self):
        return self.target.shape[0]

    @property
    def n_features(self) -> int:
        return self.features.shape[1]

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame, schema: SampleSchema) -> "SampleSet":
        """Build a sample set from a validated table."""
        schema.validate(frame)
        timestamps = None
        if schema.time_column is not None:
            timestamps = pd.to_datetime(frame[schema.time_column]).to_numpy()
        return cls(
            features=frame[list(schema.feature_columns)].to_numpy(dtype=float),
            target=frame[schema.target_column].to_numpy(dtype=float),
            coordinates=frame[list(schema.coordinate_columns)].to_numpy(dtype=float),
            feature_names=schema.feature_columns,
            timestamps=timestamps,
            schema=schema,
        )

    def to_dataframe(self) -> pd.DataFrame:
        if self.schema is not None:
            x_col, y_col = self.schema.coordinate_columns
            target_col = self.schema.target_column
        else:
            x_col, y_col, target_col = "x", "y", "target"
        frame = pd.DataFrame(self.features, columns=list(self.feature_names))
        frame[target_col] = self.target
        frame[x_col] = self.coordinates[:, 0]
        frame[y_col] = self.coordinates[:, 1]
        if self.timestamps is not None:
            frame["time"] = self.timestamps
        return frame


def read_sample_table(path: str, schema: SampleSchema) -> pd.DataFrame:
    """Read a sample table from CSV, Parquet or a point vector file.

    For vector files the point geometry fills the coordinate columns.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Sample file not found: {path}")

    suffix = os.path.splitext(path)[1].lower()
    if suffix == ".csv":
        frame = pd.read_csv(path)
    elif suffix in (".parquet", ".pq"):
        frame = pd.read_parquet(path)
    elif suffix in VECTOR_SUFFIXES:
        gdf = gpd.read_file(path)
        if not (gdf.geom_type == "Point").all():
            raise DataValidationError(
                f"Vector file {path} must contain only point geometries",
                details={"geometry_types": sorted(gdf.geom_type.unique().tolist())},
            )
        frame = pd.DataFrame(gdf.drop(columns=gdf.geometry.name))
        x_col, y_col = schema.coordinate_columns
        frame[x_col] = gdf.geometry.x.to_numpy()
        frame[y_col] = gdf.geometry.y.to_numpy()
    else:
        raise DataValidationError(f"Unsupported sample file type: {suffix}",
                                  suggestion="Use CSV, Parquet or a point vector file")
    return frame


def load_samples(path: str, schema: SampleSchema) -> SampleSet:
    """Load and validate samples from disk."""
    frame = read_sample_table(path, schema)
    samples = SampleSet.from_dataframe(frame, schema)
    logger.info("Loaded %d samples with %d features from %s",
                len(samples), samples.n_features, path)
    return samples


def analyze_spatial_autocorrelation(samples: SampleSet, max_points: int = 2000,
                                    seed: int = 0) -> dict:
    """Correlate pairwise distance with absolute target difference.

    A positive Spearman correlation means nearby samples have similar
    targets, which is the leakage random CV does not account for.
    """
    n = len(samples)
    if n < 3:
        return {"correlation": float("nan"), "pvalue": float("nan"), "n_samples": n}

    indices = np.arange(n)
    if n > max_points:
        indices = np.sort(np.random.default_rng(seed).choice(n, max_points, replace=False))

    distances = pdist(samples.coordinates[indices])
    target_diffs = pdist(samples.target[indices].reshape(-1, 1))
    correlation, pvalue = spearmanr(distances, target_diffs)

    logger.info("Distance vs. target difference Spearman rho=%.3f (p=%.3g, n=%d)",
                correlation, pvalue, len(indices))
    return {
        "correlation": float(correlation),
        "pvalue": float(pvalue),
        "n_samples": int(len(indices)),
    }
