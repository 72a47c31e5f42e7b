"""Terrain Bounded Context - Error Hierarchy.

Custom exceptions for terrain operations.

Loading errors are raised by infrastructure adapters when a speed raster
cannot be turned into a valid SpeedGrid. Lookups never raise: a coordinate
without data simply has speed 0.
"""

from __future__ import annotations


class TerrainError(Exception):
    """Base error for terrain operations."""


class InvalidRasterError(TerrainError):
    """File is not a valid raster, wrong format, or corrupted."""


class MissingCRSError(TerrainError):
    """Raster has no CRS defined."""


class InvalidGeotransformError(TerrainError):
    """Raster has invalid or missing geotransform."""


class InvalidBoundsError(TerrainError):
    """Raster bounds are outside valid WGS84 range after reprojection."""


class InsufficientMemoryError(TerrainError):
    """Operation requires more memory than allowed or available."""


class InvalidSpeedValueError(TerrainError):
    """Speed raster contains negative or non-finite speeds.

    Attributes:
        count: Number of offending cells
    """

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"Speed raster has {count} negative or non-finite cell(s)")
