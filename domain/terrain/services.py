"""Terrain Bounded Context - Domain Services.

Pure domain logic for traversal speed lookups.
NO I/O operations - raster loading is implemented by infrastructure adapters
under `src/infrastructure/terrain/geotiff_adapter.py` via domain ports.

Two realizations of the SpeedField port are provided:
- discretized lookups (LatticeSpeedField, RasterSpeedField) that round a
  coordinate to a grid key or cell
- classification lookups (ClassifiedSpeedField) that map a coordinate to a
  TerrainCategory and then to a fixed speed
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

import numpy as np
import shapely
from numpy.typing import NDArray
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from domain.terrain.repositories import PassabilityField
from domain.terrain.value_objects import (
    DEFAULT_CATEGORY_SPEEDS,
    Coordinate,
    SpeedGrid,
    TerrainCategory,
    round_half_up,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Lattice builder defaults
# ---------------------------------------------------------------------------
DEFAULT_LATTICE_STEP_DEG = 1.0
DEFAULT_LAND_SPEED_RANGE = (0.03, 0.08)  # uniform draw, upper bound exclusive
DEFAULT_WATER_ROUTE_SPEED = 5.0  # lakes and rivers


# ---------------------------------------------------------------------------
# Discretized lookups
# ---------------------------------------------------------------------------
class LatticeSpeedField:
    """Speed lookup keyed by the nearest lattice node.

    Keys are integer lattice indices ``(lat_index, lon_index)`` where the node
    sits at ``(lat_index * step_deg, lon_index * step_deg)``. Missing keys
    are water (speed 0).
    """

    def __init__(
        self,
        speeds: Mapping[tuple[int, int], float],
        step_deg: float = DEFAULT_LATTICE_STEP_DEG,
    ) -> None:
        if step_deg <= 0:
            raise ValueError("step_deg must be positive")
        if any(v < 0 for v in speeds.values()):
            raise ValueError("Speeds must be >= 0")
        self._speeds = MappingProxyType(dict(speeds))
        self.step_deg = step_deg

    def __len__(self) -> int:
        return len(self._speeds)

    def key_for(self, coordinate: Coordinate) -> tuple[int, int]:
        lon, lat = coordinate
        return (round_half_up(lat / self.step_deg), round_half_up(lon / self.step_deg))

    def speed_at(self, coordinate: Coordinate) -> float:
        return self._speeds.get(self.key_for(coordinate), 0.0)


class RasterSpeedField:
    """Nearest-cell lookup over a SpeedGrid.

    Points outside the grid bounds are impassable. Points exactly on the
    east/south edge use the last column/row.
    """

    def __init__(self, grid: SpeedGrid) -> None:
        self.grid = grid

    def speed_at(self, coordinate: Coordinate) -> float:
        grid = self.grid
        if not grid.bounds.contains(coordinate):
            return 0.0
        lon, lat = coordinate
        height, width = grid.data.shape
        # Row 0 = north edge (max_y), so y is inverted
        col = int(math.floor((lon - grid.bounds.min_x) / grid.resolution[0]))
        row = int(math.floor((grid.bounds.max_y - lat) / grid.resolution[1]))
        col = max(0, min(col, width - 1))
        row = max(0, min(row, height - 1))
        return float(grid.data[row, col])


# ---------------------------------------------------------------------------
# Classification lookups
# ---------------------------------------------------------------------------
def _merge(geometries: BaseGeometry | Iterable[BaseGeometry] | None) -> BaseGeometry | None:
    if geometries is None:
        return None
    if isinstance(geometries, BaseGeometry):
        merged = geometries
    else:
        merged = unary_union(list(geometries))
    if merged.is_empty:
        return None
    shapely.prepare(merged)
    return merged


class GeometryClassifier:
    """Classify coordinates against land, lake and river geometry.

    A coordinate off land is WATER. On land, lake interiors win over river
    proximity, which wins over plain LAND. Boundaries count as inside.

    Args:
        land: Land polygon(s)
        lakes: Optional lake polygon(s)
        rivers: Optional river line(s)
        river_tolerance_deg: Max distance from a river line still counted as
            "on" the river. 0 requires an exact hit.
    """

    def __init__(
        self,
        land: BaseGeometry | Iterable[BaseGeometry] | None,
        lakes: BaseGeometry | Iterable[BaseGeometry] | None = None,
        rivers: BaseGeometry | Iterable[BaseGeometry] | None = None,
        river_tolerance_deg: float = 0.0,
    ) -> None:
        if river_tolerance_deg < 0:
            raise ValueError("river_tolerance_deg must be >= 0")
        self._land = _merge(land)
        self._lakes = _merge(lakes)
        self._rivers = _merge(rivers)
        self.river_tolerance_deg = river_tolerance_deg

    def masks(
        self, lons: NDArray[np.float64], lats: NDArray[np.float64]
    ) -> tuple[NDArray[np.bool_], NDArray[np.bool_], NDArray[np.bool_]]:
        """Return (on_land, in_lake, on_river) boolean masks for the given points."""
        lons = np.asarray(lons, dtype=np.float64)
        lats = np.asarray(lats, dtype=np.float64)
        nothing = np.zeros(lons.shape, dtype=bool)

        if self._land is None:
            return nothing, nothing.copy(), nothing.copy()
        on_land = shapely.intersects_xy(self._land, lons, lats)

        in_lake = nothing.copy()
        if self._lakes is not None:
            in_lake = shapely.intersects_xy(self._lakes, lons, lats)

        on_river = nothing.copy()
        if self._rivers is not None:
            if self.river_tolerance_deg > 0:
                points = shapely.points(lons, lats)
                on_river = shapely.distance(self._rivers, points) <= self.river_tolerance_deg
            else:
                on_river = shapely.intersects_xy(self._rivers, lons, lats)

        return on_land, in_lake & on_land, on_river & on_land

    def classify(self, coordinate: Coordinate) -> TerrainCategory:
        lon, lat = coordinate
        on_land, in_lake, on_river = self.masks(np.array([lon]), np.array([lat]))
        if not on_land[0]:
            return TerrainCategory.WATER
        if in_lake[0]:
            return TerrainCategory.LAKE
        if on_river[0]:
            return TerrainCategory.RIVER
        return TerrainCategory.LAND

    __call__ = classify


class ClassifiedSpeedField:
    """Speed field derived from a category classifier and a static speed table."""

    def __init__(
        self,
        classifier: Callable[[Coordinate], TerrainCategory],
        speeds: Mapping[TerrainCategory, float] = DEFAULT_CATEGORY_SPEEDS,
    ) -> None:
        missing = set(TerrainCategory) - set(speeds)
        if missing:
            raise ValueError(f"Speed table missing categories: {sorted(c.value for c in missing)}")
        if any(v < 0 for v in speeds.values()):
            raise ValueError("Speeds must be >= 0")
        self._classifier = classifier
        self._speeds = MappingProxyType(dict(speeds))

    def speed_at(self, coordinate: Coordinate) -> float:
        return self._speeds[self._classifier(coordinate)]


class PassabilitySpeedField:
    """Uniform-cost speed field over an on/off passability query."""

    def __init__(self, passability: PassabilityField, speed: float = 1.0) -> None:
        if speed <= 0:
            raise ValueError("speed must be positive")
        self._passability = passability
        self.speed = speed

    def speed_at(self, coordinate: Coordinate) -> float:
        return self.speed if self._passability.is_passable(coordinate) else 0.0


# ---------------------------------------------------------------------------
# Lattice builder
# ---------------------------------------------------------------------------
def build_lattice_speed_field(
    classifier: GeometryClassifier,
    *,
    step_deg: float = DEFAULT_LATTICE_STEP_DEG,
    land_speed_range: tuple[float, float] = DEFAULT_LAND_SPEED_RANGE,
    water_route_speed: float = DEFAULT_WATER_ROUTE_SPEED,
    lat_range: tuple[float, float] = (-90.0, 90.0),
    lon_range: tuple[float, float] = (-180.0, 180.0),
    seed: int | None = None,
) -> LatticeSpeedField:
    """Sample a lattice of nodes and assign each land node a traversal speed.

    Water nodes are left out of the lookup (speed 0). Plain land gets a
    random speed drawn uniformly from ``land_speed_range``; lake and river
    nodes get ``water_route_speed``.

    Args:
        classifier: Land/lake/river classifier
        step_deg: Lattice spacing in degrees
        land_speed_range: (low, high) for land speeds, high exclusive
        water_route_speed: Speed for lake and river nodes
        lat_range: Inclusive latitude extent to sample
        lon_range: Inclusive longitude extent to sample
        seed: Seed for numpy's default_rng; None for nondeterministic speeds

    Returns:
        LatticeSpeedField covering every land node

    Raises:
        ValueError: If step or speed parameters are invalid
    """
    if step_deg <= 0:
        raise ValueError("step_deg must be positive")
    low, high = land_speed_range
    if not (0 < low <= high):
        raise ValueError(f"Invalid land_speed_range: {land_speed_range}")
    if water_route_speed <= 0:
        raise ValueError("water_route_speed must be positive")

    lat_idx = np.arange(
        math.ceil(lat_range[0] / step_deg), math.floor(lat_range[1] / step_deg) + 1
    )
    lon_idx = np.arange(
        math.ceil(lon_range[0] / step_deg), math.floor(lon_range[1] / step_deg) + 1
    )
    lat_grid, lon_grid = np.meshgrid(lat_idx, lon_idx, indexing="ij")
    lat_grid = lat_grid.ravel()
    lon_grid = lon_grid.ravel()

    on_land, in_lake, on_river = classifier.masks(
        lon_grid * step_deg, lat_grid * step_deg
    )

    rng = np.random.default_rng(seed)
    speeds = rng.uniform(low, high, size=lat_grid.shape)
    speeds[in_lake | on_river] = water_route_speed

    selected = np.flatnonzero(on_land)
    lookup = {
        (int(lat_grid[i]), int(lon_grid[i])): float(speeds[i]) for i in selected
    }

    logger.info(
        "Built %.3g-degree speed lattice: %d land node(s) of %d sampled (%d water route)",
        step_deg,
        len(lookup),
        lat_grid.size,
        int(np.count_nonzero((in_lake | on_river) & on_land)),
    )
    return LatticeSpeedField(lookup, step_deg=step_deg)
