"""Territory Bounded Context - Domain Services.

Entry points for a full territory claim: sweep the bearings around an origin,
then refine the raw ring against authoritative geometry.

Each claim is independent: nothing is cached between calls and the speed
field and geometries are only read.
"""

from __future__ import annotations

import logging

from shapely.geometry.base import BaseGeometry

from domain.terrain.repositories import SpeedField
from domain.terrain.value_objects import GeoPoint
from domain.territory.refinement import refine_territory
from domain.territory.sweep import (
    CancelFlag,
    ProgressObserver,
    compute_raw_territory,
    compute_raw_territory_async,
)
from domain.territory.value_objects import ClaimConfig, RawTerritory

logger = logging.getLogger(__name__)


def _refine(
    raw: RawTerritory,
    config: ClaimConfig,
    land: object,
    lakes: object,
    rivers: object,
) -> BaseGeometry | None:
    result = refine_territory(
        raw,
        land,
        lakes=lakes,
        rivers=rivers,
        snap_deg=config.refiner_snap_deg,
        river_buffer_deg=config.river_buffer_deg,
    )
    if result is None:
        logger.info(
            "Claim at (%.4f, %.4f) has no land component",
            raw.origin.longitude,
            raw.origin.latitude,
        )
    return result


def compute_territory(
    origin: GeoPoint,
    field: SpeedField,
    config: ClaimConfig | None = None,
    *,
    land: object = None,
    lakes: object = None,
    rivers: object = None,
    on_progress: ProgressObserver | None = None,
) -> BaseGeometry | None:
    """Compute the refined territory claimed from ``origin``.

    Args:
        origin: Seed point (capital) of the claim
        field: Traversal speed field (0 = impassable)
        config: Claim tunables; defaults to ClaimConfig()
        land: Land polygon(s); without land the raw polygon is returned
        lakes: Optional lake polygon(s)
        rivers: Optional river line(s)
        on_progress: Called after each ray with a SweepProgress

    Returns:
        Polygon or MultiPolygon in (lon, lat) degrees, or None when no land
        is claimed

    Example:
        >>> field = PassabilitySpeedField(my_land_mask, speed=0.05)
        >>> territory = compute_territory(GeoPoint(latitude=48.8, longitude=2.3), field)
    """
    config = config or ClaimConfig()
    raw = compute_raw_territory(field, origin, config, on_progress=on_progress)
    return _refine(raw, config, land, lakes, rivers)


async def compute_territory_async(
    origin: GeoPoint,
    field: SpeedField,
    config: ClaimConfig | None = None,
    *,
    land: object = None,
    lakes: object = None,
    rivers: object = None,
    on_progress: ProgressObserver | None = None,
    cancel: CancelFlag | None = None,
) -> BaseGeometry | None:
    """Cooperative variant of compute_territory.

    Yields to the running event loop between rays and honours ``cancel``.

    Raises:
        SweepCancelledError: If the sweep is cancelled
    """
    config = config or ClaimConfig()
    raw = await compute_raw_territory_async(
        field, origin, config, on_progress=on_progress, cancel=cancel
    )
    return _refine(raw, config, land, lakes, rivers)
