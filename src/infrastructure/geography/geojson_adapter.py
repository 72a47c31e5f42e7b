"""GeoJSON adapter for authoritative geometry.

Reads land, lake and river layers (Natural Earth style GeoJSON) and
normalizes them into a domain GeometryInput. Accepts a FeatureCollection,
a single Feature or a bare geometry object.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from shapely.errors import ShapelyError
from shapely.geometry import shape

from domain.territory.errors import InvalidGeometryInputError
from domain.territory.value_objects import GeometryInput

logger = logging.getLogger(__name__)


def _feature_geometry(feature: Any, index: int) -> Any:
    if not isinstance(feature, Mapping):
        logger.warning(
            "Skipping feature %d: expected an object, got %s", index, type(feature).__name__
        )
        return None
    geometry = feature.get("geometry")
    if not geometry:
        logger.debug("Skipping feature %d without geometry", index)
        return None
    try:
        return shape(geometry)
    except (ShapelyError, ValueError, TypeError, KeyError, AttributeError) as e:
        logger.warning("Skipping feature %d with invalid geometry: %s", index, e)
        return None


def geometry_input_from_geojson(document: Mapping[str, Any]) -> GeometryInput:
    """Convert a parsed GeoJSON object into a GeometryInput.

    Raises:
        InvalidGeometryInputError: If the object is not GeoJSON or a bare
            geometry cannot be built
    """
    if not isinstance(document, Mapping) or "type" not in document:
        raise InvalidGeometryInputError("Not a GeoJSON object")

    kind = document["type"]
    if kind == "FeatureCollection":
        geometries = []
        for index, feature in enumerate(document.get("features") or []):
            geometry = _feature_geometry(feature, index)
            if geometry is not None:
                geometries.append(geometry)
        return GeometryInput.collection(geometries)

    if kind == "Feature":
        geometry = _feature_geometry(document, 0)
        if geometry is None:
            return GeometryInput.collection(())
        return GeometryInput.single(geometry)

    try:
        return GeometryInput.single(shape(document))
    except (ShapelyError, ValueError, TypeError, KeyError, AttributeError) as e:
        raise InvalidGeometryInputError(f"Unsupported GeoJSON object: {kind}") from e


class GeoJsonGeometryAdapter:
    """Infrastructure adapter for loading geometry layers from GeoJSON files."""

    def load_geometries(self, file_path: Path | str) -> GeometryInput:
        """Load a GeoJSON file into a GeometryInput.

        Raises:
            FileNotFoundError: If the file does not exist
            InvalidGeometryInputError: If the file is not valid GeoJSON
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(str(path))

        try:
            with path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except json.JSONDecodeError as e:
            raise InvalidGeometryInputError(f"Invalid JSON in {path.name}: {e}") from e
        except UnicodeDecodeError as e:
            raise InvalidGeometryInputError(f"Not a text file: {path.name}") from e

        geometries = geometry_input_from_geojson(document)
        logger.debug(
            "GeoJSON %s: Loaded %d geometr%s",
            path.name,
            len(geometries.geometries),
            "y" if len(geometries.geometries) == 1 else "ies",
        )
        return geometries
