# src/rastercombine/raster/io.py

"""
This module handles all disk-based operations for raster data.

It inspects input rasters, verifies that a stack of inputs shares one grid,
streams scan-lines and creates the single-band raster of combination ids.
"""

import logging
import math
from pathlib import Path
from typing import Union, Optional, Dict, Any, Sequence, Generator, Tuple

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.windows import Window

from ..exceptions import InvalidArgumentError, RasterIOError, GridMismatchError
from .utils import resolve_envi_path

log = logging.getLogger(__name__)

__all__ = [
    "read_info",
    "check_alignment",
    "check_band",
    "read_rows",
    "create_id_raster"
]

def read_info(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Inspect a raster file and return the grid metadata needed for overlay.

    Args:
        path: Path to raster file. All supported GDAL formats are accepted.

    Returns:
        Dict with width, height, count, res, transform, crs, dtypes, nodata and driver.

    Raises:
        FileNotFoundError: If the file does not exist.
        RasterIOError: If GDAL cannot open it.
    """
    path = resolve_envi_path(path)
    if not path.exists():
        raise FileNotFoundError(f"Raster file not found: {path}")

    try:
        with rasterio.open(path) as src:
            return {
                'path': path,
                'width': src.width,
                'height': src.height,
                'count': src.count,
                'res': src.res,
                'transform': src.transform,
                'crs': src.crs,
                'dtypes': src.dtypes,
                'nodata': src.nodata,
                'driver': src.driver
            }
    except rasterio.RasterioIOError as e:
        raise RasterIOError(f"Failed to read metadata from {path}: {e}") from e

def check_alignment(infos: Sequence[Dict[str, Any]]):
    """
    Verify every raster has the dimensions and pixel size of the first one.

    Raises:
        GridMismatchError: On the first raster that differs from the reference.
    """
    if not infos:
        return

    ref = infos[0]
    for info in infos[1:]:
        same_shape = (info['width'], info['height']) == (ref['width'], ref['height'])
        same_res = all(
            math.isclose(a, b, rel_tol=1e-9) for a, b in zip(info['res'], ref['res'])
        )
        if not (same_shape and same_res):
            raise GridMismatchError(
                f"All input rasters must have the same extent and cell size.\n"
                f"Reference {ref['path'].name}: {ref['width']}x{ref['height']} @ {ref['res']}\n"
                f"Got {info['path'].name}: {info['width']}x{info['height']} @ {info['res']}"
            )

        if info['crs'] != ref['crs']:
            log.warning(f"CRS of {info['path'].name} differs from {ref['path'].name}")

def check_band(info: Dict[str, Any], band: int):
    """Raise InvalidArgumentError if band is not a valid 1-based band of the raster."""
    if not 1 <= band <= info['count']:
        raise InvalidArgumentError(
            f"Band {band} out of range for {info['path'].name} ({info['count']} bands)"
        )

def read_rows(
    src: rasterio.DatasetReader,
    band: int,
    rows_per_chunk: int = 1,
    masked: bool = False
) -> Generator[Tuple[Window, np.ndarray], None, None]:
    """
    Stream a band as full-width chunks of scan-lines.

    Args:
        masked: Return masked arrays where nodata pixels are masked.

    Yields:
        Tuple of (Window, array of shape (chunk_height, width)).
    """
    for row_off in range(0, src.height, rows_per_chunk):
        height = min(rows_per_chunk, src.height - row_off)
        window = Window(0, row_off, src.width, height)
        try:
            yield window, src.read(band, window=window, masked=masked)
        except rasterio.RasterioIOError as e:
            raise RasterIOError(f"Failed to read rows {row_off}-{row_off + height} of {src.name}: {e}") from e

def create_id_raster(
    path: Union[str, Path],
    reference: Dict[str, Any],
    driver: str,
    dtype: str,
    creation_options: Optional[Dict[str, str]] = None
) -> rasterio.io.DatasetWriter:
    """
    Create (or overwrite) the single-band output raster for combination ids.

    The grid is copied from the reference raster metadata. The caller owns
    the returned dataset and must close it.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    profile = {
        'driver': driver,
        'width': reference['width'],
        'height': reference['height'],
        'count': 1,
        'dtype': dtype,
        'transform': reference['transform'],
    }
    if reference['crs'] is not None:
        profile['crs'] = reference['crs']
    else:
        log.warning(f"Reference raster {reference['path'].name} has no CRS; output will have none")
    profile.update(creation_options or {})

    log.info(f"Creating {driver} id raster {reference['width']}x{reference['height']} ({dtype}) → {path}")

    try:
        return rasterio.open(path, 'w', **profile)
    except RasterioError as e:
        raise RasterIOError(f"Failed to create output raster {path}: {e}") from e
