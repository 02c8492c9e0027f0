# src/rastercombine/raster/utils.py

"""
This module provides shared utility functions for raster operations.

Functions include path resolution for ENVI files, band and variable name
normalization, output driver inference and creation option parsing.
"""
import logging
from pathlib import Path
from typing import Union, List, Optional, Dict, Sequence, Iterable, Mapping

import numpy as np
from rasterio.dtypes import check_dtype

from ..exceptions import InvalidArgumentError

log = logging.getLogger(__name__)

__all__ = [
    "resolve_envi_path",
    "normalize_bands",
    "default_var_names",
    "driver_from_path",
    "normalize_dtype",
    "dtype_max",
    "parse_creation_options"
]

# Extension -> GDAL driver for the output id raster
_DRIVERS_BY_SUFFIX = {
    ".tif": "GTiff",
    ".tiff": "GTiff",
    ".img": "HFA",
    ".envi": "ENVI",
    ".bil": "EHdr",
    ".kea": "KEA",
    ".nc": "netCDF",
}

# GDAL data type names that do not lower-case to a numpy name
_GDAL_DTYPE_ALIASES = {
    "byte": "uint8",
}

def resolve_envi_path(path: Union[str, Path]) -> Path:
    """
    Resolve ENVI header/binary file confusion.
    If 'image.hdr' is passed, redirects to 'image' (binary).
    """
    path = Path(path)
    if path.suffix.lower() == '.hdr':
        binary_path = path.with_suffix('')
        if binary_path.exists():
            return binary_path
    return path

def normalize_bands(bands: Optional[Union[int, Sequence[int]]], n_inputs: int) -> List[int]:
    """
    Normalize band selection to one 1-based band number per input raster.

    None selects band 1 of every input; a single int is used for all inputs.
    """
    if bands is None:
        return [1] * n_inputs
    if isinstance(bands, (int, np.integer)):
        bands = [bands] * n_inputs

    bands = list(bands)
    if len(bands) != n_inputs:
        raise InvalidArgumentError(
            f"Got {len(bands)} band numbers for {n_inputs} input rasters"
        )
    for band in bands:
        if isinstance(band, bool) or not isinstance(band, (int, np.integer)) or band < 1:
            raise InvalidArgumentError(f"Band numbers must be integers >= 1, got {band!r}")
    return [int(b) for b in bands]

def default_var_names(paths: Sequence[Union[str, Path]], bands: Sequence[int]) -> List[str]:
    """
    Derive variable names from file names (basename without extension).

    When the same file is combined more than once, the band number is appended
    so names stay unique: 'lcp_b4', 'lcp_b5'.
    """
    stems = [Path(p).stem for p in paths]
    names = []
    for stem, band in zip(stems, bands):
        names.append(f"{stem}_b{band}" if stems.count(stem) > 1 else stem)
    return names

def driver_from_path(path: Union[str, Path]) -> Optional[str]:
    """Guess the GDAL driver name from a file extension, or None if unknown."""
    return _DRIVERS_BY_SUFFIX.get(Path(path).suffix.lower())

def normalize_dtype(dtype: str) -> str:
    """
    Accept numpy/rasterio ('uint32') or GDAL ('UInt32', 'Byte') type names.
    """
    name = str(dtype).lower()
    name = _GDAL_DTYPE_ALIASES.get(name, name)
    if not check_dtype(name):
        raise InvalidArgumentError(f"Unsupported raster data type: {dtype}")
    return name

def dtype_max(dtype: str) -> int:
    """Largest integer identifier that the data type stores exactly."""
    np_dtype = np.dtype(dtype)
    if np_dtype.kind in "iu":
        return int(np.iinfo(np_dtype).max)
    if np_dtype.kind == "f":
        return 2 ** (np.finfo(np_dtype).nmant + 1)
    raise InvalidArgumentError(f"Data type {dtype} cannot hold combination ids")

def parse_creation_options(
    options: Optional[Union[Mapping[str, str], Iterable[str]]]
) -> Dict[str, str]:
    """
    Normalize creation options to a dict of rasterio keyword arguments.

    Accepts a mapping ({'compress': 'lzw'}) or GDAL style strings ('COMPRESS=LZW').
    """
    if options is None:
        return {}
    if isinstance(options, Mapping):
        return {str(k).lower(): v for k, v in options.items()}
    if isinstance(options, str):
        options = [options]

    parsed = {}
    for opt in options:
        name, sep, value = str(opt).partition("=")
        if not sep or not name.strip():
            raise InvalidArgumentError(f"Creation options must be NAME=VALUE, got '{opt}'")
        parsed[name.strip().lower()] = value.strip()
    return parsed
