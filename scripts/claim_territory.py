#!/usr/bin/env python3
"""Compute a territory claim from the command line.

Loads a speed field (a GeoTIFF speed raster, or a lattice classified from the
land/lake/river layers), sweeps the bearings around the capital and prints
the refined territory as GeoJSON.

Usage:
    python scripts/claim_territory.py --land ne_50m_land.geojson \
        --lakes ne_50m_lakes.geojson --rivers ne_50m_rivers.geojson \
        --lon 2.35 --lat 48.85

    python scripts/claim_territory.py --speed-raster speeds.tif \
        --land ne_50m_land.geojson --lon 2.35 --lat 48.85 --power 50
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from shapely.geometry import mapping

from domain.terrain.errors import TerrainError
from domain.terrain.services import (
    GeometryClassifier,
    RasterSpeedField,
    build_lattice_speed_field,
)
from domain.terrain.value_objects import GeoPoint
from domain.territory.errors import TerritoryError
from domain.territory.services import compute_territory
from domain.territory.value_objects import ClaimConfig, SweepProgress
from infrastructure.geography import GeoJsonGeometryAdapter
from infrastructure.terrain import GeoTiffSpeedAdapter

logger = logging.getLogger("claim_territory")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--lon", type=float, required=True, help="Capital longitude")
    parser.add_argument("--lat", type=float, required=True, help="Capital latitude")
    parser.add_argument("--land", type=Path, help="Land polygons (GeoJSON)")
    parser.add_argument("--lakes", type=Path, help="Lake polygons (GeoJSON)")
    parser.add_argument("--rivers", type=Path, help="River centerlines (GeoJSON)")
    parser.add_argument(
        "--speed-raster",
        type=Path,
        help="Single-band speed GeoTIFF; without it a 1-degree lattice is built from --land",
    )
    parser.add_argument("--seed", type=int, help="Seed for lattice land speeds")
    parser.add_argument("--power", type=float, default=200.0)
    parser.add_argument("--angle-step", type=float, default=1.0)
    parser.add_argument("--distance-step", type=float, default=0.1, help="km per step")
    parser.add_argument("--snap", type=float, default=0.1, help="Snap distance (degrees)")
    parser.add_argument("--river-buffer", type=float, default=0.1, help="degrees")
    parser.add_argument("--output", type=Path, help="Write GeoJSON here instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run one claim.

    Returns:
        0 on success (including "no land claimed"), 1 on failure
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.speed_raster is None and args.land is None:
        logger.error("Need --speed-raster or --land to build a speed field")
        return 1

    geojson = GeoJsonGeometryAdapter()
    try:
        origin = GeoPoint(latitude=args.lat, longitude=args.lon)
        config = ClaimConfig(
            initial_power=args.power,
            angle_step_deg=args.angle_step,
            distance_step_km=args.distance_step,
            refiner_snap_deg=args.snap,
            river_buffer_deg=args.river_buffer,
        )
        land = geojson.load_geometries(args.land) if args.land else None
        lakes = geojson.load_geometries(args.lakes) if args.lakes else None
        rivers = geojson.load_geometries(args.rivers) if args.rivers else None

        if args.speed_raster is not None:
            field = RasterSpeedField(GeoTiffSpeedAdapter().load_speed_grid(args.speed_raster))
        else:
            classifier = GeometryClassifier(
                land.geometries,
                lakes.geometries if lakes else None,
                rivers.geometries if rivers else None,
            )
            field = build_lattice_speed_field(classifier, seed=args.seed)

        def report(progress: SweepProgress) -> None:
            if (progress.index + 1) % 45 == 0:
                logger.info("Bearing %.0f of %d", progress.bearing, progress.total)

        territory = compute_territory(
            origin,
            field,
            config,
            land=land,
            lakes=lakes,
            rivers=rivers,
            on_progress=report,
        )
    except (FileNotFoundError, TerrainError, TerritoryError, ValueError) as e:
        logger.error("%s", e)
        return 1

    feature = {
        "type": "Feature",
        "properties": {"capital": [args.lon, args.lat], "claimed": territory is not None},
        "geometry": mapping(territory) if territory is not None else None,
    }
    text = json.dumps(feature)
    if args.output:
        args.output.write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
