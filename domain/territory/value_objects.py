"""Territory Bounded Context - Value Objects.

Immutable data structures describing a territory claim.
Pydantic models validate at construction time; per-step records used inside
the ray loop are slotted dataclasses to keep marching cheap.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from domain.terrain.value_objects import Coordinate, GeoPoint
from domain.territory.errors import DegenerateGeometryError, InvalidGeometryInputError

# Tolerance so that steps like 0.1 do not add a spurious bearing at 360.
_BEARING_EPS = 1e-9


# ---------------------------------------------------------------------------
# ClaimConfig
# ---------------------------------------------------------------------------
class ClaimConfig(BaseModel):
    """Tunables for one territory claim (Value Object).

    Defaults reproduce the reference game settings: 200 power, 1 degree
    bearings, 100 m steps, 0.1 degree snap and river corridors.

    Invariants:
        CC-1: angle_step_deg in (0, 120] so the ring has at least 3 vertices
        CC-2: distance_step_km > 0
        CC-3: initial_power, refiner_snap_deg, river_buffer_deg >= 0
    """

    initial_power: float = Field(default=200.0, ge=0)
    angle_step_deg: float = Field(default=1.0, gt=0, le=120)
    distance_step_km: float = Field(default=0.1, gt=0)
    refiner_snap_deg: float = Field(default=0.1, ge=0)
    river_buffer_deg: float = Field(default=0.1, ge=0)
    coastline_iterations: int = Field(default=6, ge=0)
    max_steps_per_ray: int = Field(default=1_000_000, ge=1)
    yield_every: int = Field(default=1, ge=1)  # rays between cooperative yields

    model_config = ConfigDict(frozen=True)

    def bearings(self) -> tuple[float, ...]:
        """Bearings from 0 (inclusive) to 360 (exclusive) at angle_step_deg."""
        count = math.ceil(360.0 / self.angle_step_deg - _BEARING_EPS)
        return tuple(i * self.angle_step_deg for i in range(count))


# ---------------------------------------------------------------------------
# Ray records
# ---------------------------------------------------------------------------
class RayTermination(str, Enum):
    """Why a ray stopped."""

    EXHAUSTED = "exhausted"  # power ran out on passable terrain
    COASTLINE = "coastline"  # refined land/water transition
    STUCK = "stuck"  # started on impassable terrain
    STEP_LIMIT = "step_limit"  # hit max_steps_per_ray, treated as exhaustion


@dataclass(frozen=True, slots=True)
class RayStep:
    """Position and remaining power after one step of a ray."""

    position: Coordinate
    power: float


@dataclass(frozen=True, slots=True)
class RayResult:
    """Terminal state of one ray."""

    bearing: float
    point: Coordinate
    remaining_power: float
    steps: int
    termination: RayTermination


@dataclass(frozen=True, slots=True)
class SweepProgress:
    """Notification emitted after each completed ray."""

    bearing: float
    index: int  # 0-based position in the sweep
    total: int
    ray: RayResult


# ---------------------------------------------------------------------------
# RawTerritory
# ---------------------------------------------------------------------------
class RawTerritory(BaseModel):
    """Closed boundary ring produced by one bearing sweep (Value Object).

    Invariants:
        RT-1: ring has >= 4 points (3 vertices plus the closing duplicate)
        RT-2: ring[0] == ring[-1] (closed)
    """

    origin: GeoPoint
    ring: tuple[Coordinate, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_ring(self) -> "RawTerritory":
        if len(self.ring) < 4:
            raise ValueError(f"Ring must have >= 4 points, got {len(self.ring)}")
        if self.ring[0] != self.ring[-1]:
            raise ValueError("Ring must be closed (first point repeated as last)")
        return self

    @classmethod
    def close(cls, origin: GeoPoint, points: Iterable[Coordinate]) -> "RawTerritory":
        """Build a ring from boundary points in bearing order, appending the first."""
        pts = list(points)
        if not pts:
            raise ValueError("Cannot close an empty ring")
        return cls(origin=origin, ring=(*pts, pts[0]))

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        """Boundary points without the closing duplicate."""
        return self.ring[:-1]

    def is_degenerate(self) -> bool:
        """True when every vertex collapses to a single coordinate."""
        return len(set(self.ring)) == 1

    def to_polygon(self) -> Polygon:
        return Polygon(self.ring)


# ---------------------------------------------------------------------------
# GeometryInput
# ---------------------------------------------------------------------------
class GeometryInput(BaseModel):
    """Authoritative geometry normalized at the boundary (Value Object).

    Either a single geometry or an ordered collection of geometries.
    """

    kind: Literal["single", "collection"]
    geometries: tuple[BaseGeometry, ...]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_kind(self) -> "GeometryInput":
        if self.kind == "single" and len(self.geometries) != 1:
            raise ValueError(
                f"Single input must hold exactly 1 geometry, got {len(self.geometries)}"
            )
        return self

    @classmethod
    def single(cls, geometry: BaseGeometry) -> "GeometryInput":
        return cls(kind="single", geometries=(geometry,))

    @classmethod
    def collection(cls, geometries: Iterable[BaseGeometry]) -> "GeometryInput":
        return cls(kind="collection", geometries=tuple(geometries))

    @classmethod
    def from_any(cls, value: object) -> "GeometryInput | None":
        """Normalize a geometry, a sequence of geometries, or None.

        Raises:
            InvalidGeometryInputError: For anything else (including GeoJSON
                mappings, which the GeoJSON adapter converts first)
        """
        if value is None:
            return None
        if isinstance(value, GeometryInput):
            return value
        if isinstance(value, BaseGeometry):
            return cls.single(value)
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            raise InvalidGeometryInputError(
                f"Unsupported geometry input: {type(value).__name__}"
            )
        items = list(value)
        for item in items:
            if not isinstance(item, BaseGeometry):
                raise InvalidGeometryInputError(
                    f"Unsupported geometry in collection: {type(item).__name__}"
                )
        return cls.collection(items)

    def non_empty(self) -> tuple[BaseGeometry, ...]:
        return tuple(g for g in self.geometries if not g.is_empty)

    @property
    def is_empty(self) -> bool:
        return not self.non_empty()


# ---------------------------------------------------------------------------
# GeometryResult
# ---------------------------------------------------------------------------
class GeometryResult(BaseModel):
    """Outcome of one boolean geometry operation (Value Object).

    Exactly one of ``geometry`` and ``error`` is set. An empty geometry is a
    successful result; callers decide whether empty means "fall back".
    """

    operation: str
    geometry: BaseGeometry | None = None
    error: DegenerateGeometryError | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_exclusive(self) -> "GeometryResult":
        if (self.geometry is None) == (self.error is None):
            raise ValueError("GeometryResult needs exactly one of geometry or error")
        return self

    @classmethod
    def success(cls, operation: str, geometry: BaseGeometry) -> "GeometryResult":
        return cls(operation=operation, geometry=geometry)

    @classmethod
    def failure(cls, operation: str, reason: str) -> "GeometryResult":
        return cls(operation=operation, error=DegenerateGeometryError(operation, reason))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def has_area(self) -> bool:
        """True for a successful, non-empty result."""
        return self.ok and not self.geometry.is_empty

    def or_else(self, fallback: BaseGeometry | None) -> BaseGeometry | None:
        """Return the geometry on success, otherwise ``fallback``."""
        return self.geometry if self.ok else fallback


# ---------------------------------------------------------------------------
# LandPartition
# ---------------------------------------------------------------------------
class LandPartition(BaseModel):
    """A land feature piece inside (claimed) or outside a claim."""

    geometry: BaseGeometry
    claimed: bool
    source_index: int = Field(ge=0)  # index of the land feature it came from

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
