"""Territory Bounded Context - Bearing Sweep.

Runs one ray per bearing from 0 to 360 degrees and closes the boundary
points into a RawTerritory ring.

The sweep is a generator so a driver can advance it one ray at a time. No
ray state survives between two yields, so suspending between rays is safe.
Each sweep owns its own point list; the speed field is only read.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import Protocol

from domain.terrain.repositories import SpeedField
from domain.terrain.value_objects import GeoPoint
from domain.territory.errors import SweepCancelledError
from domain.territory.raycast import march_ray
from domain.territory.value_objects import (
    ClaimConfig,
    RawTerritory,
    RayTermination,
    SweepProgress,
)

logger = logging.getLogger(__name__)

ProgressObserver = Callable[[SweepProgress], None]


class CancelFlag(Protocol):
    """Anything with ``is_set()``, e.g. asyncio.Event or threading.Event."""

    def is_set(self) -> bool:
        ...


def sweep_bearings(
    field: SpeedField, origin: GeoPoint, config: ClaimConfig
) -> Iterator[SweepProgress]:
    """Yield one SweepProgress per bearing, in increasing bearing order."""
    start = origin.as_coordinate()
    bearings = config.bearings()
    total = len(bearings)
    for index, bearing in enumerate(bearings):
        ray = march_ray(
            field,
            start,
            bearing,
            config.initial_power,
            config.distance_step_km,
            coastline_iterations=config.coastline_iterations,
            max_steps=config.max_steps_per_ray,
        )
        if ray.termination is RayTermination.STEP_LIMIT:
            logger.warning(
                "Ray at bearing %.2f hit the %d step limit", bearing, config.max_steps_per_ray
            )
        yield SweepProgress(bearing=bearing, index=index, total=total, ray=ray)


def _notify(observer: ProgressObserver | None, progress: SweepProgress) -> None:
    if observer is None:
        return
    try:
        observer(progress)
    except Exception:  # observers are fire-and-forget
        logger.warning(
            "Progress observer failed at bearing %.2f", progress.bearing, exc_info=True
        )


def _log_summary(origin: GeoPoint, rays: list[SweepProgress]) -> None:
    counts: dict[RayTermination, int] = {}
    for p in rays:
        counts[p.ray.termination] = counts.get(p.ray.termination, 0) + 1
    logger.info(
        "Swept %d bearings from (%.4f, %.4f): %s",
        len(rays),
        origin.longitude,
        origin.latitude,
        ", ".join(f"{k.value}={v}" for k, v in sorted(counts.items(), key=lambda kv: kv[0].value)),
    )


def compute_raw_territory(
    field: SpeedField,
    origin: GeoPoint,
    config: ClaimConfig | None = None,
    *,
    on_progress: ProgressObserver | None = None,
) -> RawTerritory:
    """Run a full sweep synchronously and return the closed ring.

    Args:
        field: Speed field (0 = impassable)
        origin: Seed point of the claim
        config: Claim tunables; defaults to ClaimConfig()
        on_progress: Called after each ray; exceptions are logged and ignored

    Returns:
        RawTerritory with one vertex per bearing plus the closing duplicate
    """
    config = config or ClaimConfig()
    rays: list[SweepProgress] = []
    for progress in sweep_bearings(field, origin, config):
        rays.append(progress)
        _notify(on_progress, progress)
    _log_summary(origin, rays)
    return RawTerritory.close(origin, (p.ray.point for p in rays))


async def compute_raw_territory_async(
    field: SpeedField,
    origin: GeoPoint,
    config: ClaimConfig | None = None,
    *,
    on_progress: ProgressObserver | None = None,
    cancel: CancelFlag | None = None,
) -> RawTerritory:
    """Run a full sweep, yielding to the event loop every ``config.yield_every`` rays.

    The cancel flag is checked before the first ray and at every yield point.

    Raises:
        SweepCancelledError: If ``cancel.is_set()`` is true at a yield point
    """
    config = config or ClaimConfig()
    total = len(config.bearings())
    rays: list[SweepProgress] = []

    if cancel is not None and cancel.is_set():
        raise SweepCancelledError(0, total)

    for progress in sweep_bearings(field, origin, config):
        rays.append(progress)
        _notify(on_progress, progress)
        if len(rays) % config.yield_every == 0 and len(rays) < total:
            await asyncio.sleep(0)
            if cancel is not None and cancel.is_set():
                logger.info("Sweep cancelled after %d/%d rays", len(rays), total)
                raise SweepCancelledError(len(rays), total)

    _log_summary(origin, rays)
    return RawTerritory.close(origin, (p.ray.point for p in rays))
