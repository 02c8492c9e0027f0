# src/rastercombine/raster/combine.py

"""
This module overlays a stack of aligned rasters into unique combinations.

Each pixel of the inputs forms one combination (one integer per layer). The
CombinationTable assigns every distinct combination an id in first-seen
order while the rasters are scanned row by row; ids can be written to an
output raster and the table of combinations is returned.
"""

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Union, Optional, Dict, Sequence, Iterable, Mapping

import numpy as np
import polars as pl
import rasterio
from tqdm import tqdm

from ..cmb_table import CombinationTable, COUNT_COLUMN, NA_VALUE, INT64_MAX
from ..exceptions import InvalidArgumentError, RasterIOError
from .io import read_info, check_alignment, check_band, read_rows, create_id_raster
from .resources import plan_rows
from .utils import (
    resolve_envi_path,
    normalize_bands,
    default_var_names,
    driver_from_path,
    normalize_dtype,
    dtype_max,
    parse_creation_options
)

log = logging.getLogger(__name__)

__all__ = [
    "CombineConfig",
    "combine",
    "value_count"
]

class CombineConfig:
    """Configuration object for a combine run.

    Args:
        dst_path: Optional path of the output raster of combination ids.
                  The file is created (and overwritten if it exists).
        driver: GDAL format name of the output raster. Inferred from the
                dst_path extension when omitted.
        dtype: Output data type. Ids are sequential integers starting at 1, so
               the type must hold the number of combinations. Default='uint32'.
        creation_options: Format-specific creation options, as a dict
                          ({'compress': 'lzw'}) or 'NAME=VALUE' strings.
        rows_per_chunk: Forces the number of scan-lines read per call.
                        Default=None (sized from available memory).
        quiet: Disable the progress bar. Default=False.
    """
    def __init__(
        self,
        dst_path: Optional[Union[str, Path]] = None,
        driver: Optional[str] = None,
        dtype: str = "uint32",
        creation_options: Optional[Union[Mapping[str, str], Iterable[str]]] = None,
        rows_per_chunk: Optional[int] = None,
        quiet: bool = False
    ):
        self.dst_path = Path(dst_path) if dst_path else None
        self.driver = driver
        self.dtype = dtype
        self.creation_options = creation_options
        self.rows_per_chunk = rows_per_chunk
        self.quiet = quiet

def _open(path: Path) -> rasterio.DatasetReader:
    try:
        return rasterio.open(path)
    except rasterio.RasterioIOError as e:
        raise RasterIOError(f"Failed to open raster {path}: {e}") from e

def _fill_missing(data: np.ndarray) -> np.ndarray:
    """
    Convert a chunk read with masked=True to int64 keys.

    Masked (nodata) pixels, and NaN or infinite values of floating point bands,
    become NA_VALUE. Other floating point values are truncated toward zero.
    """
    values = np.ma.getdata(data)
    missing = np.ma.getmaskarray(data)

    if values.dtype.kind == "f":
        missing = missing | ~np.isfinite(values)
        values = np.trunc(np.where(missing, 0, values))
        if values.size and (values.max() >= 2.0 ** 63 or values.min() < -2.0 ** 63):
            raise InvalidArgumentError("Raster values are outside the 64-bit integer range")
    elif values.dtype == np.uint64:
        present = values[~missing]
        if present.size and present.max() > INT64_MAX:
            raise InvalidArgumentError("Raster values are outside the 64-bit integer range")

    keys = values.astype(np.int64)
    keys[missing] = NA_VALUE
    return keys

def _resolve_output(config: CombineConfig):
    """Return (driver, dtype, creation options) for the id raster."""
    driver = config.driver or driver_from_path(config.dst_path)
    if driver is None:
        raise InvalidArgumentError(
            f"Cannot infer a raster format from '{config.dst_path.name}'. "
            "Use 'driver' to specify a GDAL raster format name."
        )
    dtype = normalize_dtype(config.dtype)
    dtype_max(dtype)
    return driver, dtype, parse_creation_options(config.creation_options)

def combine(
    raster_files: Union[str, Path, Sequence[Union[str, Path]]],
    var_names: Optional[Sequence[str]] = None,
    bands: Optional[Union[int, Sequence[int]]] = None,
    config: Optional[CombineConfig] = None
) -> pl.DataFrame:
    """
    Raster overlay for unique combinations.

    Inputs typically have integer data types (floating point values are
    truncated to integer) and must share the same extent and cell size.
    Nodata pixels, and NaN in floating point bands, are combined as missing
    values and come out as null in the table. To
    combine bands of a multi-band file, repeat the filename and give the
    band numbers in `bands`.

    Args:
        raster_files: Raster filename(s) to combine.
        var_names: One name per input, used as column names. Defaults to the
                   file names without extension.
        bands: One 1-based band number per input. Band 1 of each input if omitted.
        config: Output raster and read settings. Defaults to CombineConfig().

    Returns:
        pl.DataFrame: One row per unique combination with one column per
                      variable, then 'id' and 'count' (pixel count).

    Raises:
        InvalidArgumentError: If the argument lengths differ, a band is out of
                              range, or the output settings are invalid.
        GridMismatchError: If the inputs are not on the same grid.
        FileNotFoundError: If an input does not exist.
        RasterIOError: If GDAL fails to read or write.
    """
    config = config or CombineConfig()

    if isinstance(raster_files, (str, Path)):
        raster_files = [raster_files]
    paths = [resolve_envi_path(p) for p in raster_files]
    if not paths:
        raise InvalidArgumentError("At least one input raster is required.")

    band_list = normalize_bands(bands, len(paths))
    if var_names is None:
        names = default_var_names(paths, band_list)
    else:
        names = list(var_names)
        if len(names) != len(paths):
            raise InvalidArgumentError("'raster_files', 'var_names' and 'bands' must have the same length")

    infos = [read_info(p) for p in paths]
    for info, band in zip(infos, band_list):
        check_band(info, band)
    check_alignment(infos)

    table = CombinationTable(len(paths), names)

    output = _resolve_output(config) if config.dst_path else None

    ref = infos[0]
    bytes_per_pixel = max(
        np.dtype(info['dtypes'][band - 1]).itemsize for info, band in zip(infos, band_list)
    )
    plan = plan_rows(
        ref['width'], ref['height'], len(paths),
        bytes_per_pixel=bytes_per_pixel,
        user_rows=config.rows_per_chunk
    )

    if len(paths) == 1:
        log.info(f"Scanning raster {paths[0].name}...")
    else:
        log.info(f"Combining {len(paths)} rasters...")
    log.debug(f"Read plan: {plan.rows_per_chunk} rows per chunk. {plan.reason}")

    with ExitStack() as stack:
        # a file repeated for several bands is opened once
        datasets: Dict[Path, rasterio.DatasetReader] = {}
        for path in paths:
            if path not in datasets:
                datasets[path] = stack.enter_context(_open(path))

        readers = [
            read_rows(datasets[path], band, plan.rows_per_chunk, masked=True)
            for path, band in zip(paths, band_list)
        ]

        dst = None
        if output is not None:
            driver, dtype, options = output
            dst = stack.enter_context(
                create_id_raster(config.dst_path, ref, driver, dtype, options)
            )

        progress = stack.enter_context(
            tqdm(total=ref['height'], desc="combine", unit="row", disable=config.quiet)
        )

        for chunks in zip(*readers):
            window = chunks[0][0]
            block = np.stack([_fill_missing(data) for _, data in chunks])
            n_rows, n_cols = block.shape[1], block.shape[2]

            ids = np.empty((n_rows, n_cols), dtype=np.int64)
            for i in range(n_rows):
                ids[i] = table.update_batch(block[:, i, :], 1)

            if dst is not None:
                dst.write(ids.astype(dst.dtypes[0]), 1, window=window)

            progress.update(n_rows)

    if output is not None and table.last_id > dtype_max(output[1]):
        log.warning(
            f"{table.last_id} combinations exceed the range of output type {output[1]}; "
            f"ids in {config.dst_path.name} wrap around"
        )

    log.info(f"Found {len(table)} unique combinations")
    return table.export_table()

def value_count(
    raster_file: Union[str, Path],
    band: int = 1,
    quiet: bool = True
) -> pl.DataFrame:
    """
    Compute the set of unique pixel values of a raster band and their counts.

    Integer bands are counted through a one-layer combine(). Floating point
    bands are counted by distinct value, without truncation. Nodata and NaN
    pixels are counted under a null VALUE.

    Returns:
        pl.DataFrame: Columns 'VALUE' (Int64, or Float64 for floating point
                      bands) and 'COUNT', sorted by VALUE with null last.
    """
    path = resolve_envi_path(raster_file)
    info = read_info(path)
    check_band(info, band)

    if np.dtype(info['dtypes'][band - 1]).kind != "f":
        df = combine(
            [path],
            var_names=["VALUE"],
            bands=[band],
            config=CombineConfig(quiet=quiet)
        )
        return df.select(
            pl.col("VALUE"),
            pl.col(COUNT_COLUMN).alias("COUNT")
        ).sort("VALUE", nulls_last=True)

    plan = plan_rows(info['width'], info['height'], 1, bytes_per_pixel=8)
    log.info(f"Counting floating point values of {path.name} band {band}...")

    partial = []
    with _open(path) as src, tqdm(total=info['height'], desc="value_count", unit="row", disable=quiet) as progress:
        for _, data in read_rows(src, band, plan.rows_per_chunk, masked=True):
            values = np.ma.filled(data.astype(np.float64), np.nan).ravel()
            chunk = pl.DataFrame({"VALUE": values}).with_columns(pl.col("VALUE").fill_nan(None))
            partial.append(
                chunk.group_by("VALUE").agg(pl.len().cast(pl.Float64).alias("COUNT"))
            )
            progress.update(data.shape[0])

    df = (
        pl.concat(partial)
        .group_by("VALUE")
        .agg(pl.col("COUNT").sum())
        .sort("VALUE", nulls_last=True)
    )
    log.info(f"Found {df.height} unique values")
    return df
