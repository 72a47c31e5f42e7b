"""Terrain Bounded Context - Value Objects.

Immutable data structures representing geographic concepts.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

import math
from enum import Enum
from types import MappingProxyType

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

# (longitude, latitude) in degrees. Plain tuple so that hot loops stay cheap.
Coordinate = tuple[float, float]


class BoundingBox(BaseModel):
    """Geographic extent in EPSG:4326 (Value Object).

    Invariants are enforced at construction time - invalid BoundingBox
    cannot be instantiated.
    """

    min_x: float  # Western boundary (longitude)
    min_y: float  # Southern boundary (latitude)
    max_x: float  # Eastern boundary (longitude)
    max_y: float  # Northern boundary (latitude)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        # Longitude range
        if not (-180 <= self.min_x <= 180):
            raise ValueError(f"min_x longitude out of range: {self.min_x}")
        if not (-180 <= self.max_x <= 180):
            raise ValueError(f"max_x longitude out of range: {self.max_x}")
        # Latitude range
        if not (-90 <= self.min_y <= 90):
            raise ValueError(f"min_y latitude out of range: {self.min_y}")
        if not (-90 <= self.max_y <= 90):
            raise ValueError(f"max_y latitude out of range: {self.max_y}")
        # Ordering
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )
        return self

    def contains(self, coordinate: Coordinate) -> bool:
        """Check if a (lon, lat) coordinate is within bounds (inclusive)."""
        lon, lat = coordinate
        return self.min_x <= lon <= self.max_x and self.min_y <= lat <= self.max_y


class SpeedGrid(BaseModel):
    """Immutable traversal speed raster with geographic metadata (Value Object).

    Each cell holds the power consumed per distance step while crossing it.
    Zero marks impassable cells (water). The data array is copied and made
    read-only at construction time.
    """

    data: NDArray[np.float32]  # 2D float32 array (height x width), read-only
    bounds: BoundingBox  # Geographic extent in EPSG:4326
    crs: str  # Always "EPSG:4326" (system CRS)
    resolution: tuple[float, float]  # (x_res, y_res) absolute values in degrees
    source_crs: str | None = None  # Original CRS before normalization

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "SpeedGrid":
        if self.data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {self.data.ndim}D")
        if self.data.shape[0] == 0 or self.data.shape[1] == 0:
            raise ValueError(f"Data cannot be empty: {self.data.shape}")
        if self.data.dtype != np.float32:
            raise ValueError(f"Data must be float32, got {self.data.dtype}")
        if self.crs != "EPSG:4326":
            raise ValueError(f"CRS must be EPSG:4326, got {self.crs}")
        if self.resolution[0] <= 0 or self.resolution[1] <= 0:
            raise ValueError(f"Resolution must be positive: {self.resolution}")
        if not np.isfinite(self.data).all():
            raise ValueError("Speeds must be finite (map NoData to 0 before building)")
        if (self.data < 0).any():
            raise ValueError("Speeds must be >= 0")

        # Owned, contiguous, read-only copy; caller arrays are never touched.
        immutable = np.array(self.data, dtype=np.float32, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)

        return self

    def passable_ratio(self) -> float:
        """Return fraction of cells with speed > 0 (0.0 to 1.0)."""
        return float((self.data > 0).mean())


class GeoPoint(BaseModel):
    """Geographic coordinate in WGS84 (Value Object).

    Invariants:
        GP-1: latitude in [-90, 90]
        GP-2: longitude in [-180, 180]
    """

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)

    def as_coordinate(self) -> Coordinate:
        return (self.longitude, self.latitude)

    @classmethod
    def from_coordinate(cls, coordinate: Coordinate) -> "GeoPoint":
        lon, lat = coordinate
        return cls(latitude=lat, longitude=lon)


class TerrainCategory(str, Enum):
    """Discrete terrain classes used by classification-derived speed fields."""

    WATER = "water"
    LAND = "land"
    LAKE = "lake"
    RIVER = "river"


# Lakes and rivers are water routes: passable and much faster than open land.
DEFAULT_CATEGORY_SPEEDS = MappingProxyType(
    {
        TerrainCategory.WATER: 0.0,
        TerrainCategory.LAND: 0.05,
        TerrainCategory.LAKE: 5.0,
        TerrainCategory.RIVER: 5.0,
    }
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))
