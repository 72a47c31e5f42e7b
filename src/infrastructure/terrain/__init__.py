"""Infrastructure adapters for the terrain bounded context.

This module provides the infrastructure layer implementations for terrain
operations, including loading speed rasters from GeoTIFF files.
"""

from .geotiff_adapter import GeoTiffSpeedAdapter

__all__ = ["GeoTiffSpeedAdapter"]
