"""Territory Bounded Context - Boundary Refinement.

Post-processes a raw territory polygon against authoritative land, lake and
river geometry:

1. Union land polygons into ``land_union``; union lakes and buffered river
   corridors into it.
2. Intersect the territory with ``land_union`` so nothing is left in open water.
3. Buffer the on-land territory by ``snap_deg``, merge it with the on-land
   territory and clip to ``land_union`` again, pulling boundary segments out
   to coastline and river edges that are within ``snap_deg``. Inland edges
   grow by ``snap_deg`` as well, so refinement is only idempotent for
   ``snap_deg == 0``.

Every boolean operation is wrapped in a GeometryResult. A failure never
propagates: the pipeline falls back to the best geometry produced so far.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from domain.territory.value_objects import (
    GeometryInput,
    GeometryResult,
    LandPartition,
    RawTerritory,
)

logger = logging.getLogger(__name__)

DEFAULT_SNAP_DEG = 0.1
DEFAULT_RIVER_BUFFER_DEG = 0.1


# ---------------------------------------------------------------------------
# Guarded boolean operations
# ---------------------------------------------------------------------------
def _guarded(operation: str, fn: Callable[[], BaseGeometry]) -> GeometryResult:
    try:
        geometry = fn()
    except (ShapelyError, ValueError) as e:
        logger.warning("Geometry %s failed on degenerate input: %s", operation, e)
        return GeometryResult.failure(operation, str(e))
    return GeometryResult.success(operation, geometry)


def safe_union(a: BaseGeometry, b: BaseGeometry) -> GeometryResult:
    return _guarded("union", lambda: a.union(b))


def safe_intersection(a: BaseGeometry, b: BaseGeometry) -> GeometryResult:
    return _guarded("intersection", lambda: a.intersection(b))


def safe_difference(a: BaseGeometry, b: BaseGeometry) -> GeometryResult:
    return _guarded("difference", lambda: a.difference(b))


def safe_buffer(geometry: BaseGeometry, distance: float) -> GeometryResult:
    return _guarded("buffer", lambda: geometry.buffer(distance))


def safe_make_valid(geometry: BaseGeometry) -> GeometryResult:
    return _guarded("make_valid", lambda: shapely.make_valid(geometry))


def polygonal(geometry: BaseGeometry | None) -> BaseGeometry | None:
    """Keep only the areal part of a geometry; None if nothing has area."""
    if geometry is None or geometry.is_empty:
        return None
    if isinstance(geometry, (Polygon, MultiPolygon)):
        return geometry if geometry.area > 0 else None
    if isinstance(geometry, GeometryCollection):
        parts = [
            g
            for g in geometry.geoms
            if isinstance(g, (Polygon, MultiPolygon)) and g.area > 0
        ]
        if not parts:
            return None
        return parts[0] if len(parts) == 1 else unary_union(parts)
    return None


# ---------------------------------------------------------------------------
# Unions
# ---------------------------------------------------------------------------
def union_polygons(geometries: GeometryInput | None) -> BaseGeometry | None:
    """Union every geometry of the input into one geometry.

    Tries a single cascaded union first. If that fails, unions one at a time
    and stops at the first failure, keeping what was merged so far.
    """
    if geometries is None:
        return None
    parts = geometries.non_empty()
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]

    merged = _guarded("union_all", lambda: unary_union(list(parts)))
    if merged.ok:
        return merged.geometry

    result = parts[0]
    for index, part in enumerate(parts[1:], start=1):
        step = safe_union(result, part)
        if not step.ok:
            logger.warning(
                "Stopped land union at feature %d of %d", index, len(parts)
            )
            break
        result = step.geometry
    return result


def buffer_all(geometries: GeometryInput | None, distance: float) -> BaseGeometry | None:
    """Buffer each geometry by ``distance`` degrees and union the corridors.

    Features whose buffer fails are skipped.
    """
    if geometries is None or distance <= 0:
        return None
    out: BaseGeometry | None = None
    for part in geometries.non_empty():
        buffered = safe_buffer(part, distance)
        if not buffered.ok:
            continue
        out = buffered.geometry if out is None else merge_into(out, buffered.geometry)
    return out


def merge_into(base: BaseGeometry | None, extra: BaseGeometry | None) -> BaseGeometry | None:
    """Union ``extra`` into ``base``, keeping ``base`` if the union fails."""
    if extra is None:
        return base
    if base is None:
        return extra
    return safe_union(base, extra).or_else(base)


def build_land_union(
    land: object,
    lakes: object = None,
    rivers: object = None,
    river_buffer_deg: float = DEFAULT_RIVER_BUFFER_DEG,
) -> BaseGeometry | None:
    """Merge land, lakes and buffered rivers into one authoritative geometry.

    Inputs may be a shapely geometry, a sequence of geometries, a
    GeometryInput or None. Returns None when there is no geometry at all.
    """
    land_union = union_polygons(GeometryInput.from_any(land))

    # Lakes extend the land boundary rather than being cut out of it.
    land_union = merge_into(land_union, union_polygons(GeometryInput.from_any(lakes)))

    if river_buffer_deg > 0:
        corridors = buffer_all(GeometryInput.from_any(rivers), river_buffer_deg)
        land_union = merge_into(land_union, corridors)

    if land_union is not None and land_union.is_empty:
        return None
    return land_union


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------
def _as_geometry(raw: BaseGeometry | RawTerritory) -> BaseGeometry:
    if isinstance(raw, RawTerritory):
        return raw.to_polygon()
    return raw


def refine_territory(
    raw: BaseGeometry | RawTerritory | None,
    land: object,
    lakes: object = None,
    rivers: object = None,
    snap_deg: float = DEFAULT_SNAP_DEG,
    river_buffer_deg: float = DEFAULT_RIVER_BUFFER_DEG,
) -> BaseGeometry | None:
    """Clip a raw territory to land and snap it to nearby coast/river edges.

    Args:
        raw: Raw territory polygon (or RawTerritory ring)
        land: Land polygon(s); None or empty means "no authoritative data"
        lakes: Optional lake polygon(s), unioned into land
        rivers: Optional river line(s), buffered by ``river_buffer_deg``
        snap_deg: Snap tolerance in degrees; 0 disables snapping
        river_buffer_deg: River corridor half-width in degrees

    Returns:
        Refined Polygon/MultiPolygon, the raw polygon unchanged when there is
        no land data, or None when the territory has no land component.

    Raises:
        ValueError: If snap_deg or river_buffer_deg is negative
    """
    if snap_deg < 0 or river_buffer_deg < 0:
        raise ValueError("snap_deg and river_buffer_deg must be >= 0")
    if raw is None:
        return None
    territory = _as_geometry(raw)

    land_union = build_land_union(land, lakes, rivers, river_buffer_deg)
    if land_union is None:
        logger.debug("No land geometry supplied; territory left unchanged")
        return territory

    if not territory.is_valid:
        territory = safe_make_valid(territory).or_else(territory)

    clipped = safe_intersection(territory, land_union)
    if not clipped.ok:
        return territory
    on_land = polygonal(clipped.geometry)
    if on_land is None:
        logger.debug("Territory does not overlap land")
        return None

    if snap_deg > 0:
        buffered = safe_buffer(on_land, snap_deg)
        if buffered.ok:
            grown = safe_union(buffered.geometry, on_land).or_else(buffered.geometry)
            snapped = safe_intersection(grown, land_union)
            final = polygonal(snapped.or_else(None))
            if final is not None:
                return final

    return on_land


def split_land_by_claim(land: object, claim: BaseGeometry) -> list[LandPartition]:
    """Split each land feature into its claimed and unclaimed pieces.

    Pieces without area and operations that fail are skipped.
    """
    features = GeometryInput.from_any(land)
    if features is None:
        return []

    partitions: list[LandPartition] = []
    for index, feature in enumerate(features.geometries):
        inside = polygonal(safe_intersection(feature, claim).or_else(None))
        if inside is not None:
            partitions.append(
                LandPartition(geometry=inside, claimed=True, source_index=index)
            )
        outside = polygonal(safe_difference(feature, claim).or_else(None))
        if outside is not None:
            partitions.append(
                LandPartition(geometry=outside, claimed=False, source_index=index)
            )
    return partitions
