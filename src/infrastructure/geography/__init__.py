"""Infrastructure adapters for authoritative land, lake and river geometry."""

from .geojson_adapter import GeoJsonGeometryAdapter, geometry_input_from_geojson

__all__ = ["GeoJsonGeometryAdapter", "geometry_input_from_geojson"]
