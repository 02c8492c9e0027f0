# src/rastercombine/__init__.py
#
# Copyright (c) The rastercombine project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
rastercombine counts unique combinations of integer values across a stack of
aligned rasters and assigns each combination a stable identifier.
"""

__version__ = "0.1.0"

from .exceptions import (
    RasterCombineError,
    InvalidArgumentError,
    RasterIOError,
    GridMismatchError
)

from .cmb_table import (
    hash_combine,
    CombinationKey,
    CombinationRecord,
    CombinationTable,
    NA_VALUE
)

from .raster import (
    CombineConfig,
    combine,
    value_count
)

__all__ = [
    # Errors
    "RasterCombineError",
    "InvalidArgumentError",
    "RasterIOError",
    "GridMismatchError",

    # Combination table
    "hash_combine",
    "CombinationKey",
    "CombinationRecord",
    "CombinationTable",
    "NA_VALUE",

    # Raster overlay
    "CombineConfig",
    "combine",
    "value_count"
]
