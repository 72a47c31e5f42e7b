"""Tests for ray marching and coastline refinement.

Fields are plain functions of (lon, lat); no rasters or geometry involved.
"""

from __future__ import annotations

import math

import pytest

from domain.territory.raycast import (
    KM_PER_DEGREE,
    MAX_SCALING_LATITUDE,
    approximate_coastline,
    fast_destination,
    interpolate,
    iter_ray_steps,
    march_ray,
)
from domain.territory.value_objects import RayResult, RayStep, RayTermination

KM_STEP_DEG = 1.0 / KM_PER_DEGREE  # latitude degrees covered by a 1 km step


def coast_at_latitude(make_field, coast_lat: float, speed: float = 1.0):
    """Land south of coast_lat, water from coast_lat northwards."""
    return make_field(lambda c: speed if c[1] < coast_lat else 0.0)


# ===========================================================================
# fast_destination / interpolate
# ===========================================================================
def test_fast_destination_north():
    lon, lat = fast_destination((0.0, 0.0), KM_PER_DEGREE, 0.0)
    assert lon == pytest.approx(0.0, abs=1e-12)
    assert lat == pytest.approx(1.0)


def test_fast_destination_east_at_equator():
    lon, lat = fast_destination((0.0, 0.0), KM_PER_DEGREE, 90.0)
    assert lon == pytest.approx(1.0)
    assert lat == pytest.approx(0.0, abs=1e-12)


def test_fast_destination_scales_longitude_by_latitude():
    lon, _ = fast_destination((10.0, 60.0), KM_PER_DEGREE, 90.0)
    assert lon - 10.0 == pytest.approx(2.0)  # cos(60) = 0.5


def test_fast_destination_clamps_near_pole():
    lon, lat = fast_destination((0.0, 90.0), 1.0, 90.0)
    expected = 1.0 / (KM_PER_DEGREE * math.cos(math.radians(MAX_SCALING_LATITUDE)))
    assert math.isfinite(lon)
    assert lon == pytest.approx(expected)
    assert lat == pytest.approx(90.0)


def test_interpolate_is_linear_in_lon_lat():
    assert interpolate((0.0, 0.0), (2.0, 4.0), 0.25) == (0.5, 1.0)


# ===========================================================================
# approximate_coastline
# ===========================================================================
def test_coastline_within_bisection_tolerance(make_field):
    """A coastline between two samples is found to step / 2**iterations."""
    coast = 0.4 * KM_STEP_DEG
    field = coast_at_latitude(make_field, coast)

    low = (0.0, 0.0)
    high = (0.0, KM_STEP_DEG)
    point = approximate_coastline(field, low, high, iterations=6)

    assert point[1] <= coast  # never past the coastline
    assert coast - point[1] <= KM_STEP_DEG / 2**6
    assert field.speed_at(point) > 0


def test_coastline_more_iterations_is_tighter(make_field):
    coast = 0.37 * KM_STEP_DEG
    field = coast_at_latitude(make_field, coast)

    coarse = approximate_coastline(field, (0.0, 0.0), (0.0, KM_STEP_DEG), 3)
    fine = approximate_coastline(field, (0.0, 0.0), (0.0, KM_STEP_DEG), 12)

    assert coast - fine[1] <= coast - coarse[1]
    assert coast - fine[1] <= KM_STEP_DEG / 2**12


def test_coastline_zero_iterations_returns_last_passable(make_field):
    field = coast_at_latitude(make_field, 0.5)
    assert approximate_coastline(field, (1.0, 0.0), (1.0, 1.0), 0) == (1.0, 0.0)


# ===========================================================================
# march_ray - power exhaustion
# ===========================================================================
def test_ray_uniform_field_reaches_power_over_speed(uniform_field):
    result = march_ray(uniform_field(1.0), (0.0, 0.0), 0.0, 10.0, 1.0)

    assert result.termination is RayTermination.EXHAUSTED
    assert result.steps == 10
    assert result.remaining_power == 0.0
    assert result.point[1] == pytest.approx(10.0 * KM_STEP_DEG)
    assert result.point[0] == pytest.approx(0.0, abs=1e-12)


def test_ray_fractional_last_step(uniform_field):
    """P=10, s=3: three full steps then one third of a step."""
    result = march_ray(uniform_field(3.0), (0.0, 0.0), 0.0, 10.0, 1.0)

    assert result.steps == 4
    assert result.steps == math.ceil(10.0 / 3.0)
    assert result.point[1] == pytest.approx((10.0 / 3.0) * KM_STEP_DEG)


def test_ray_zero_power_stays_at_origin(uniform_field):
    result = march_ray(uniform_field(1.0), (5.0, 5.0), 45.0, 0.0, 1.0)

    assert result.termination is RayTermination.EXHAUSTED
    assert result.point == (5.0, 5.0)
    assert result.steps == 0


def test_ray_step_limit_treated_as_exhaustion(uniform_field):
    result = march_ray(uniform_field(1.0), (0.0, 0.0), 0.0, 100.0, 1.0, max_steps=5)

    assert result.termination is RayTermination.STEP_LIMIT
    assert result.steps == 5
    assert result.remaining_power == pytest.approx(95.0)
    assert result.point[1] == pytest.approx(5.0 * KM_STEP_DEG)


def test_ray_steps_bounded_by_min_speed(make_field):
    """Termination: steps <= ceil(P / min_speed) for a varying field."""
    field = make_field(lambda c: 0.5 + 0.4 * math.sin(c[1] * 500.0))
    result = march_ray(field, (0.0, 0.0), 30.0, 25.0, 0.5)

    assert result.termination is RayTermination.EXHAUSTED
    assert result.steps <= math.ceil(25.0 / 0.1)


@pytest.mark.parametrize(
    ("speed", "power"), [(0.1, 1.0), (0.1, 200.0), (0.3, 0.9), (0.7, 2.1), (0.05, 200.0)]
)
def test_ray_step_count_exact_for_inexact_speeds(uniform_field, speed, power):
    """Float residue after repeated subtraction does not cost an extra step."""
    result = march_ray(uniform_field(speed), (0.0, 0.0), 0.0, power, 1.0)

    assert result.termination is RayTermination.EXHAUSTED
    assert result.steps == round(power / speed)
    assert result.remaining_power == 0.0
    assert result.point[1] == pytest.approx(round(power / speed) * KM_STEP_DEG)


# ===========================================================================
# march_ray - water
# ===========================================================================
def test_ray_origin_in_water_is_stuck(uniform_field):
    result = march_ray(uniform_field(0.0), (3.0, 4.0), 90.0, 200.0, 0.1)

    assert result.termination is RayTermination.STUCK
    assert result.point == (3.0, 4.0)
    assert result.steps == 0
    assert result.remaining_power == 200.0


def test_ray_stops_at_refined_coastline(make_field):
    coast = 0.05
    field = coast_at_latitude(make_field, coast)

    result = march_ray(field, (0.0, 0.0), 0.0, 1000.0, 1.0)

    assert result.termination is RayTermination.COASTLINE
    assert result.point[1] < coast
    assert coast - result.point[1] <= KM_STEP_DEG / 2**6
    assert result.remaining_power > 0


def test_ray_fractional_step_into_water_is_refined(make_field):
    """P=1.5: one full step, then a half step that crosses the coast."""
    coast = 1.2 * KM_STEP_DEG
    field = coast_at_latitude(make_field, coast)

    result = march_ray(field, (0.0, 0.0), 0.0, 1.5, 1.0)

    assert result.termination is RayTermination.COASTLINE
    assert KM_STEP_DEG <= result.point[1] < coast
    assert result.remaining_power == 0.0


def test_ray_coastline_iterations_respected(make_field):
    coast = 0.05
    field = coast_at_latitude(make_field, coast)

    result = march_ray(field, (0.0, 0.0), 0.0, 1000.0, 1.0, coastline_iterations=0)

    # No bisection: the last full-step position before the water is returned
    steps_on_land = math.ceil(coast / KM_STEP_DEG) - 1
    assert result.point[1] == pytest.approx(steps_on_land * KM_STEP_DEG)


# ===========================================================================
# iter_ray_steps
# ===========================================================================
def test_power_is_monotonic_and_non_negative(make_field):
    field = make_field(lambda c: 0.3 + 0.2 * abs(math.cos(c[0] * 300.0)))
    items = list(iter_ray_steps(field, (0.0, 0.0), 90.0, 12.0, 0.5))

    steps = [i for i in items if isinstance(i, RayStep)]
    assert isinstance(items[-1], RayResult)
    assert all(isinstance(i, RayStep) for i in items[:-1])

    powers = [12.0] + [s.power for s in steps]
    assert all(b <= a for a, b in zip(powers, powers[1:]))
    assert all(p >= 0 for p in powers)
    assert items[-1].remaining_power == 0.0


def test_iter_ray_steps_validates_arguments(uniform_field):
    with pytest.raises(ValueError, match="distance_step_km"):
        list(iter_ray_steps(uniform_field(1.0), (0.0, 0.0), 0.0, 1.0, 0.0))
    with pytest.raises(ValueError, match="initial_power"):
        list(iter_ray_steps(uniform_field(1.0), (0.0, 0.0), 0.0, -1.0, 1.0))
