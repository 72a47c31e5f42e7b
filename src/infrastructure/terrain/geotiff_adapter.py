"""GeoTIFF adapter for SpeedRasterRepository.

Implements loading of traversal speed rasters from GeoTIFF using rasterio,
normalizing to EPSG:4326 and returning a domain SpeedGrid Value Object.

Lifecycle (to avoid resource leaks):
1) Open dataset with context manager (rasterio.open) inside rasterio.Env
2) Read metadata and validate preconditions
3) Reproject if needed (nearest neighbour, so water stays exactly 0)
4) Convert NoData/NaN -> 0 (impassable); reject negative speeds
5) Build BoundingBox and positive resolution tuple
6) Exit contexts to release GDAL handles and return SpeedGrid
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from affine import Affine
from numpy.typing import NDArray
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.transform import array_bounds
from rasterio.warp import calculate_default_transform, reproject

from domain.terrain.errors import (
    InsufficientMemoryError,
    InvalidBoundsError,
    InvalidGeotransformError,
    InvalidRasterError,
    InvalidSpeedValueError,
    MissingCRSError,
)
from domain.terrain.value_objects import BoundingBox, SpeedGrid

logger = logging.getLogger(__name__)

_TARGET_CRS = CRS.from_epsg(4326)

# Warn when almost nothing in the raster can be traversed
IMPASSABLE_WARNING_PCT = 80.0


def _is_wgs84(crs: Any) -> bool:
    """Check if CRS is WGS84 (EPSG:4326 or equivalent).

    Uses rasterio CRS equality first, then falls back to string comparison
    for test doubles.
    """
    if crs is None:
        return False
    try:
        if crs == _TARGET_CRS:
            return True
    except (TypeError, AttributeError):
        pass
    return str(crs).upper() in ("EPSG:4326", "OGC:CRS84")


def _validate_transform(transform: Any) -> Affine:
    if not isinstance(transform, Affine):
        raise InvalidGeotransformError("Missing affine transform")
    coefficients = (transform.a, transform.b, transform.c, transform.d, transform.e, transform.f)
    if any(math.isnan(v) or math.isinf(v) for v in coefficients):
        raise InvalidGeotransformError("Invalid (NaN/Inf) transform values")
    if transform.a == 0 or transform.e == 0:
        raise InvalidGeotransformError("Invalid transform scale (zero)")
    return transform


def _to_speeds(data: Any, nodata: float | None) -> NDArray[np.float32]:
    """Map masked, NoData and NaN cells to 0 and reject negative speeds."""
    if hasattr(data, "mask"):
        speeds = np.where(np.ma.getmaskarray(data), np.float32(0.0), np.ma.getdata(data))
    else:
        speeds = np.asarray(data)
    speeds = speeds.astype(np.float32, copy=False)

    # GeoTIFF nodata is an exact value in file metadata: compare exactly
    if nodata is not None and not math.isnan(nodata):
        speeds = np.where(speeds == np.float32(nodata), np.float32(0.0), speeds)
    speeds = np.where(np.isnan(speeds), np.float32(0.0), speeds)

    bad = np.count_nonzero(~np.isfinite(speeds) | (speeds < 0))
    if bad:
        raise InvalidSpeedValueError(int(bad))
    return speeds


def _bounds(height: int, width: int, transform: Affine) -> BoundingBox:
    minx, miny, maxx, maxy = array_bounds(height, width, transform)
    try:
        return BoundingBox(min_x=minx, min_y=miny, max_x=maxx, max_y=maxy)
    except ValueError as e:
        raise InvalidBoundsError(str(e)) from e


class GeoTiffSpeedAdapter:
    """Infrastructure adapter for loading speed rasters from GeoTIFF files.

    Parameters
    ----------
    max_bytes: int | None
        Optional memory budget for the resulting float32 grid (height*width*4).
        Exceeding it raises InsufficientMemoryError before allocation.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self.max_bytes = max_bytes

    def _check_budget(self, width: int, height: int) -> None:
        if self.max_bytes is None:
            return
        est_bytes = int(width) * int(height) * 4  # float32 = 4 bytes
        if est_bytes > self.max_bytes:
            raise InsufficientMemoryError(
                f"Estimated grid size {est_bytes}B exceeds budget {self.max_bytes}B"
            )

    def _preflight(self, path: Path) -> None:
        if not path.exists():
            raise FileNotFoundError(str(path))
        if path.suffix.lower() not in (".tif", ".tiff"):
            raise InvalidRasterError(f"Unsupported file extension: {path.suffix}")
        try:
            if path.is_symlink():
                raise InvalidRasterError("Symlinks are not permitted")
            size = path.stat().st_size
        except OSError as e:
            # Log only the filename to avoid leaking absolute paths
            logger.error(
                "Failed to stat %s (errno=%s, strerror=%s)",
                path.name,
                getattr(e, "errno", "unknown"),
                getattr(e, "strerror", "unknown"),
            )
            raise
        if size == 0:
            raise InvalidRasterError("Empty file")
        if self.max_bytes is not None and size > self.max_bytes * 2:
            raise InsufficientMemoryError(
                f"File size {size}B exceeds 2x memory budget {self.max_bytes}B"
            )

    def load_speed_grid(self, file_path: Path | str) -> SpeedGrid:
        """Load a speed raster from GeoTIFF and return a normalized SpeedGrid.

        Raises:
            FileNotFoundError: If the file does not exist
            InvalidRasterError: Wrong extension, empty, multi-band or corrupted
            MissingCRSError: Raster has no CRS
            InvalidGeotransformError: Transform is missing or degenerate
            InvalidBoundsError: Bounds fall outside WGS84 after reprojection
            InvalidSpeedValueError: Raster holds negative speeds
            InsufficientMemoryError: Grid exceeds max_bytes
        """
        path = Path(file_path)
        self._preflight(path)

        try:
            with rasterio.Env():
                with rasterio.open(path) as src:
                    if src.count != 1:
                        raise InvalidRasterError(f"Expected 1 band, got {src.count}")
                    if src.crs is None:
                        raise MissingCRSError("Raster has no CRS defined")
                    src_crs_str = src.crs.to_string()
                    transform = _validate_transform(src.transform)

                    if _is_wgs84(src.crs):
                        self._check_budget(src.width, src.height)
                        raw = src.read(1, masked=True, out_dtype="float32")
                        speeds = _to_speeds(raw, src.nodata)
                        dst_transform = transform
                    else:
                        speeds, dst_transform = self._reproject(src, transform)
                        logger.info(
                            "Speed raster %s: Reprojected from %s to EPSG:4326",
                            path.name,
                            src_crs_str,
                        )
        except PermissionError as e:
            raise PermissionError(path.name) from e
        except rasterio.errors.RasterioError as e:
            raise InvalidRasterError(f"Corrupted or invalid raster: {e}") from e
        except MemoryError as e:
            raise InsufficientMemoryError("Insufficient memory to load raster") from e

        height, width = speeds.shape
        grid = SpeedGrid(
            data=speeds,
            bounds=_bounds(height, width, dst_transform),
            crs="EPSG:4326",
            resolution=(abs(dst_transform.a), abs(dst_transform.e)),
            source_crs=src_crs_str,
        )

        impassable_pct = (1.0 - grid.passable_ratio()) * 100.0
        if impassable_pct > IMPASSABLE_WARNING_PCT:
            logger.warning(
                "Speed raster %s: %.1f%% impassable cells", path.name, impassable_pct
            )
        logger.debug("Speed raster %s: Loaded %dx%d grid", path.name, width, height)
        return grid

    def _reproject(self, src: Any, transform: Affine) -> tuple[NDArray[np.float32], Affine]:
        sb = src.bounds
        try:
            bounds_tuple = (sb.left, sb.bottom, sb.right, sb.top)
        except (AttributeError, TypeError):
            bounds_tuple = tuple(sb)

        dst_transform, dst_width, dst_height = calculate_default_transform(
            src.crs, _TARGET_CRS, src.width, src.height, *bounds_tuple
        )
        self._check_budget(dst_width, dst_height)

        source = _to_speeds(src.read(1, masked=True, out_dtype="float32"), src.nodata)
        dst = np.zeros((int(dst_height), int(dst_width)), dtype=np.float32)
        reproject(
            source=source,
            destination=dst,
            src_transform=transform,
            src_crs=src.crs,
            dst_transform=dst_transform,
            dst_crs=_TARGET_CRS,
            resampling=Resampling.nearest,
            src_nodata=None,
            dst_nodata=0.0,
        )
        return _to_speeds(dst, None), dst_transform
