"""Tests for terrain value objects.

Value objects validate at construction; invalid instances cannot exist.
"""

from __future__ import annotations

import numpy as np
import pytest

from domain.terrain.value_objects import (
    DEFAULT_CATEGORY_SPEEDS,
    BoundingBox,
    GeoPoint,
    SpeedGrid,
    TerrainCategory,
    round_half_up,
)


def make_grid(data: np.ndarray) -> SpeedGrid:
    return SpeedGrid(
        data=data,
        bounds=BoundingBox(min_x=0.0, min_y=0.0, max_x=2.0, max_y=2.0),
        crs="EPSG:4326",
        resolution=(1.0, 1.0),
    )


# ===========================================================================
# BoundingBox
# ===========================================================================
def test_bounding_box_rejects_inverted_x():
    with pytest.raises(ValueError, match="Invalid x ordering"):
        BoundingBox(min_x=5.0, min_y=0.0, max_x=1.0, max_y=1.0)


def test_bounding_box_rejects_out_of_range_latitude():
    with pytest.raises(ValueError, match="latitude out of range"):
        BoundingBox(min_x=0.0, min_y=-91.0, max_x=1.0, max_y=1.0)


def test_bounding_box_contains_is_inclusive():
    bounds = BoundingBox(min_x=0.0, min_y=0.0, max_x=2.0, max_y=2.0)
    assert bounds.contains((0.0, 0.0))
    assert bounds.contains((2.0, 2.0))
    assert not bounds.contains((2.1, 1.0))


# ===========================================================================
# SpeedGrid
# ===========================================================================
def test_speed_grid_is_read_only_copy():
    data = np.ones((2, 2), dtype=np.float32)
    grid = make_grid(data)

    data[0, 0] = 9.0  # caller array stays independent
    assert grid.data[0, 0] == 1.0
    with pytest.raises(ValueError):
        grid.data[0, 0] = 5.0


def test_speed_grid_rejects_negative_speed():
    data = np.ones((2, 2), dtype=np.float32)
    data[1, 1] = -0.5
    with pytest.raises(ValueError, match=">= 0"):
        make_grid(data)


def test_speed_grid_rejects_nan():
    data = np.ones((2, 2), dtype=np.float32)
    data[0, 1] = np.nan
    with pytest.raises(ValueError, match="finite"):
        make_grid(data)


def test_speed_grid_rejects_wrong_dtype():
    with pytest.raises(ValueError, match="float32"):
        make_grid(np.ones((2, 2), dtype=np.float64))


def test_speed_grid_passable_ratio():
    data = np.array([[1.0, 0.0], [0.0, 0.0]], dtype=np.float32)
    assert make_grid(data).passable_ratio() == pytest.approx(0.25)


# ===========================================================================
# GeoPoint
# ===========================================================================
def test_geo_point_coordinate_round_trip():
    point = GeoPoint(latitude=48.85, longitude=2.35)
    assert point.as_coordinate() == (2.35, 48.85)
    assert GeoPoint.from_coordinate((2.35, 48.85)) == point


def test_geo_point_rejects_out_of_range():
    with pytest.raises(ValueError):
        GeoPoint(latitude=95.0, longitude=0.0)


# ===========================================================================
# Categories and rounding
# ===========================================================================
def test_default_category_speeds_cover_every_category():
    assert set(DEFAULT_CATEGORY_SPEEDS) == set(TerrainCategory)
    assert DEFAULT_CATEGORY_SPEEDS[TerrainCategory.WATER] == 0.0
    assert DEFAULT_CATEGORY_SPEEDS[TerrainCategory.LAKE] > DEFAULT_CATEGORY_SPEEDS[
        TerrainCategory.LAND
    ]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.5, 1), (1.49, 1), (2.5, 3), (-0.5, 0), (-1.5, -1), (-1.51, -2)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
