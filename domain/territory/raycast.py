"""Territory Bounded Context - Ray Marching.

Pure domain logic for one ray of a territory sweep. A ray starts at the
origin with a power budget and walks outward along a bearing in fixed
distance steps. Each step costs the speed of the cell it leaves. The ray
stops when the power runs out or the next position is impassable, in which
case the land/water transition is refined by bisection.

Positions are (longitude, latitude) tuples and steps use an equirectangular
approximation (111 km per degree), which is only valid for small steps.
"""

from __future__ import annotations

import math
from collections.abc import Iterator

from domain.terrain.repositories import SpeedField
from domain.terrain.value_objects import Coordinate
from domain.territory.value_objects import RayResult, RayStep, RayTermination

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
KM_PER_DEGREE = 111.0
# cos(latitude) is clamped here so longitude offsets stay finite near the poles
MAX_SCALING_LATITUDE = 89.9
DEFAULT_COASTLINE_ITERATIONS = 6
# Power left after a full step below this fraction of the initial budget is
# float residue and counts as spent
POWER_RESIDUE_FRACTION = 1e-12


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------
def fast_destination(
    position: Coordinate, distance_km: float, bearing_deg: float
) -> Coordinate:
    """Move a point ``distance_km`` along ``bearing_deg`` (0 = north, 90 = east).

    Latitude offset is ``d / 111 * cos(bearing)``; longitude offset is
    ``d / (111 * cos(lat)) * sin(bearing)`` with the latitude clamped to
    +/- MAX_SCALING_LATITUDE.
    """
    lon, lat = position
    bearing = math.radians(bearing_deg)
    scaling_lat = max(-MAX_SCALING_LATITUDE, min(MAX_SCALING_LATITUDE, lat))

    delta_lat = (distance_km / KM_PER_DEGREE) * math.cos(bearing)
    delta_lon = (
        distance_km / (KM_PER_DEGREE * math.cos(math.radians(scaling_lat)))
    ) * math.sin(bearing)

    return (lon + delta_lon, lat + delta_lat)


def interpolate(start: Coordinate, end: Coordinate, t: float) -> Coordinate:
    """Linear interpolation in lon/lat space (not great-circle)."""
    return (
        start[0] + (end[0] - start[0]) * t,
        start[1] + (end[1] - start[1]) * t,
    )


# ---------------------------------------------------------------------------
# Coastline refinement
# ---------------------------------------------------------------------------
def approximate_coastline(
    field: SpeedField,
    last_passable: Coordinate,
    first_impassable: Coordinate,
    iterations: int = DEFAULT_COASTLINE_ITERATIONS,
) -> Coordinate:
    """Bisect the segment between a passable and an impassable point.

    Runs a fixed number of iterations rather than converging, so the result
    is within ``segment_length / 2**iterations`` of the transition and is
    always a passable point (never past the coastline).

    Args:
        field: Speed field (0 = impassable)
        last_passable: Last point known to be passable
        first_impassable: First point known to be impassable
        iterations: Number of bisection steps

    Returns:
        The final passable bound
    """
    low, high = last_passable, first_impassable
    for _ in range(iterations):
        mid = interpolate(low, high, 0.5)
        if field.speed_at(mid) > 0:
            low = mid
        else:
            high = mid
    return low


# ---------------------------------------------------------------------------
# Ray marching
# ---------------------------------------------------------------------------
def iter_ray_steps(
    field: SpeedField,
    origin: Coordinate,
    bearing_deg: float,
    initial_power: float,
    distance_step_km: float,
    *,
    coastline_iterations: int = DEFAULT_COASTLINE_ITERATIONS,
    max_steps: int = 1_000_000,
) -> Iterator[RayStep | RayResult]:
    """Walk one ray, yielding a RayStep after every move and a final RayResult.

    The last item is always a RayResult. Power never increases between
    consecutive RaySteps and never goes below zero.

    Raises:
        ValueError: If initial_power < 0 or distance_step_km <= 0
    """
    if initial_power < 0:
        raise ValueError("initial_power must be >= 0")
    if distance_step_km <= 0:
        raise ValueError("distance_step_km must be positive")

    position = origin
    power = float(initial_power)
    residue = float(initial_power) * POWER_RESIDUE_FRACTION
    steps = 0

    def finish(point: Coordinate, termination: RayTermination) -> RayResult:
        return RayResult(
            bearing=bearing_deg,
            point=point,
            remaining_power=power,
            steps=steps,
            termination=termination,
        )

    while power > 0:
        speed = field.speed_at(position)
        if speed <= 0:
            # Only reachable at the origin: every move checks its target first
            yield finish(position, RayTermination.STUCK)
            return
        if steps >= max_steps:
            yield finish(position, RayTermination.STEP_LIMIT)
            return

        steps += 1
        if power > speed:
            power -= speed
            if power <= residue:
                power = 0.0
            next_pos = fast_destination(position, distance_step_km, bearing_deg)
        else:
            fraction = power / speed
            power = 0.0
            next_pos = fast_destination(
                position, distance_step_km * fraction, bearing_deg
            )

        if field.speed_at(next_pos) <= 0:
            boundary = approximate_coastline(
                field, position, next_pos, coastline_iterations
            )
            yield finish(boundary, RayTermination.COASTLINE)
            return

        position = next_pos
        yield RayStep(position=position, power=power)

    yield finish(position, RayTermination.EXHAUSTED)


def march_ray(
    field: SpeedField,
    origin: Coordinate,
    bearing_deg: float,
    initial_power: float,
    distance_step_km: float,
    *,
    coastline_iterations: int = DEFAULT_COASTLINE_ITERATIONS,
    max_steps: int = 1_000_000,
) -> RayResult:
    """Run one ray to completion and return its boundary point.

    Example:
        >>> field = LatticeSpeedField({(0, 0): 1.0})
        >>> result = march_ray(field, (0.0, 0.0), 90.0, 10.0, 1.0)
        >>> result.termination
        <RayTermination.EXHAUSTED: 'exhausted'>
    """
    result = None
    for item in iter_ray_steps(
        field,
        origin,
        bearing_deg,
        initial_power,
        distance_step_km,
        coastline_iterations=coastline_iterations,
        max_steps=max_steps,
    ):
        result = item
    assert isinstance(result, RayResult)
    return result
