"""Domain Port(s) for Terrain.

Defines interfaces (Protocols) that speed fields and infrastructure adapters
must implement. No concrete I/O here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .value_objects import Coordinate, SpeedGrid


class SpeedField(Protocol):
    """Port for querying traversal speed at a coordinate.

    Implementations must be pure for the duration of one territory
    computation. Returned speeds are >= 0; 0 means impassable.
    """

    def speed_at(self, coordinate: Coordinate) -> float:
        ...


class PassabilityField(Protocol):
    """Port for categorical on/off-land queries."""

    def is_passable(self, coordinate: Coordinate) -> bool:
        ...


class SpeedRasterRepository(Protocol):
    """Port for obtaining speed grids from external sources.

    Implementations live in infrastructure (e.g., GeoTIFF adapter).
    """

    def load_speed_grid(self, file_path: Path | str) -> SpeedGrid:
        """Load a speed raster and return a normalized SpeedGrid in EPSG:4326."""
        ...
