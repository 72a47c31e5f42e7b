import json

import pytest
from shapely.geometry import LineString, Polygon

from domain.territory.errors import InvalidGeometryInputError
from domain.territory.refinement import refine_territory
from infrastructure.geography.geojson_adapter import (
    GeoJsonGeometryAdapter,
    geometry_input_from_geojson,
)

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
}
RIVER = {"type": "LineString", "coordinates": [[0, 0], [5, 0]]}


def feature(geometry, **properties):
    return {"type": "Feature", "properties": properties, "geometry": geometry}


# ---------------------------------------------------------------------------
# geometry_input_from_geojson
# ---------------------------------------------------------------------------
def test_feature_collection_becomes_collection():
    document = {
        "type": "FeatureCollection",
        "features": [feature(SQUARE, name="a"), feature(RIVER, name="b")],
    }

    geometries = geometry_input_from_geojson(document)

    assert geometries.kind == "collection"
    assert isinstance(geometries.geometries[0], Polygon)
    assert isinstance(geometries.geometries[1], LineString)


def test_feature_collection_skips_null_and_invalid_geometry(caplog):
    document = {
        "type": "FeatureCollection",
        "features": [
            feature(None),
            feature({"type": "Polygon", "coordinates": "nope"}),
            feature(SQUARE),
        ],
    }
    caplog.set_level("WARNING")

    geometries = geometry_input_from_geojson(document)

    assert len(geometries.geometries) == 1
    assert "Skipping feature 1" in caplog.text


def test_feature_collection_skips_non_object_entries(caplog):
    document = {
        "type": "FeatureCollection",
        "features": [["not", "a", "feature"], None, feature(SQUARE)],
    }
    caplog.set_level("WARNING")

    geometries = geometry_input_from_geojson(document)

    assert len(geometries.geometries) == 1
    assert "Skipping feature 0: expected an object, got list" in caplog.text
    assert "Skipping feature 1: expected an object, got NoneType" in caplog.text


def test_empty_feature_collection():
    geometries = geometry_input_from_geojson({"type": "FeatureCollection", "features": []})
    assert geometries.is_empty


def test_single_feature_and_bare_geometry():
    from_feature = geometry_input_from_geojson(feature(SQUARE))
    from_geometry = geometry_input_from_geojson(SQUARE)

    assert from_feature.kind == "single"
    assert from_geometry.kind == "single"
    assert from_feature.geometries[0].equals(from_geometry.geometries[0])


def test_feature_without_geometry_is_empty_collection():
    geometries = geometry_input_from_geojson(feature(None))
    assert geometries.kind == "collection"
    assert geometries.is_empty


@pytest.mark.parametrize(
    "document",
    [
        {"features": []},
        {"type": "Topology", "objects": {}},
        ["not", "geojson"],
    ],
)
def test_non_geojson_rejected(document):
    with pytest.raises(InvalidGeometryInputError):
        geometry_input_from_geojson(document)


# ---------------------------------------------------------------------------
# GeoJsonGeometryAdapter
# ---------------------------------------------------------------------------
def test_load_geometries_from_file(tmp_path):
    p = tmp_path / "land.geojson"
    p.write_text(
        json.dumps({"type": "FeatureCollection", "features": [feature(SQUARE)]}),
        encoding="utf-8",
    )

    geometries = GeoJsonGeometryAdapter().load_geometries(p)

    assert len(geometries.geometries) == 1
    assert geometries.geometries[0].area == pytest.approx(1.0)


def test_loaded_land_feeds_refinement(tmp_path):
    p = tmp_path / "land.geojson"
    p.write_text(json.dumps(feature(SQUARE)), encoding="utf-8")
    land = GeoJsonGeometryAdapter().load_geometries(str(p))

    raw = Polygon([(0.5, 0.5), (2, 0.5), (2, 2), (0.5, 2)])
    territory = refine_territory(raw, land, snap_deg=0.0)

    assert territory.area == pytest.approx(0.25)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        GeoJsonGeometryAdapter().load_geometries(tmp_path / "missing.geojson")


def test_invalid_json_rejected(tmp_path):
    p = tmp_path / "broken.geojson"
    p.write_text("{not json", encoding="utf-8")

    with pytest.raises(InvalidGeometryInputError, match="Invalid JSON"):
        GeoJsonGeometryAdapter().load_geometries(p)


def test_binary_file_rejected(tmp_path):
    p = tmp_path / "binary.geojson"
    p.write_bytes(b"\xff\xfe\x00\x81")

    with pytest.raises(InvalidGeometryInputError):
        GeoJsonGeometryAdapter().load_geometries(p)
