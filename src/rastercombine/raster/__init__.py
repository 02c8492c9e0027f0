# src/rastercombine/raster/__init__.py
#
# Copyright (c) The rastercombine project contributors
# This software is distributed under the Apache-2.0 license.
# See the NOTICE file for more information

"""
The raster subpackage drives the combination table over raster files,
including I/O operations, read planning and the combine / value count
operations.
"""
# Combine operations
from .combine import (
    CombineConfig,
    combine,
    value_count
)

# I/O operations
from .io import (
    read_info,
    check_alignment,
    check_band,
    read_rows,
    create_id_raster
)

# Resource management
from .resources import (
    ReadPlan,
    plan_rows
)

# Shared utilities
from .utils import (
    resolve_envi_path,
    normalize_bands,
    default_var_names,
    driver_from_path,
    normalize_dtype,
    dtype_max,
    parse_creation_options
)

__all__ = [
    # Combine
    "CombineConfig",
    "combine",
    "value_count",

    # I/O
    "read_info",
    "check_alignment",
    "check_band",
    "read_rows",
    "create_id_raster",

    # Resources
    "ReadPlan",
    "plan_rows",

    # Utils
    "resolve_envi_path",
    "normalize_bands",
    "default_var_names",
    "driver_from_path",
    "normalize_dtype",
    "dtype_max",
    "parse_creation_options"
]
