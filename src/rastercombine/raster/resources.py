# src/rastercombine/raster/resources.py

"""
This module sizes raster reads against available system memory.

Overlay is defined row by row, but fetching several scan-lines per read call
cuts I/O overhead. The plan decides how many rows are read at once.
"""

import logging
import psutil
from typing import Optional
from dataclasses import dataclass

from ..exceptions import InvalidArgumentError

log = logging.getLogger(__name__)

__all__ = [
    "ReadPlan",
    "plan_rows"
]

DEFAULT_MEMORY_FRACTION = 0.05
MAX_ROWS_PER_CHUNK = 256
ID_BYTES = 8

@dataclass(frozen=True)
class ReadPlan:
    """
    Number of scan-lines fetched per read and why.

    Args:
        rows_per_chunk: Rows read from every input in one call (>= 1).
        reason: Explanation for the choice (e.g. "Budget: 0.40GB, 2.1MB/row")
    """
    rows_per_chunk: int
    reason: str

def plan_rows(
    width: int,
    height: int,
    n_inputs: int,
    bytes_per_pixel: int = 8,
    user_rows: Optional[int] = None,
    memory_fraction: float = DEFAULT_MEMORY_FRACTION
) -> ReadPlan:
    """
    Determine how many rows to read per chunk.

    Args:
        width: Raster width in pixels.
        height: Raster height in pixels.
        n_inputs: Number of input layers read per row.
        bytes_per_pixel: Largest itemsize among the input dtypes.
        user_rows: Forces the chunk height (clamped to the raster height).
        memory_fraction: Share of currently available memory a chunk may use.

    Returns:
        ReadPlan: The chunk height and the context for that decision.
    """
    if user_rows is not None:
        if user_rows < 1:
            raise InvalidArgumentError(f"rows_per_chunk must be >= 1, got {user_rows}")
        rows = max(1, min(user_rows, height))
        return ReadPlan(rows, f"User forced {user_rows} rows per chunk")

    # input rows plus the id row and the int64 copy made for hashing
    bytes_per_row = max(1, width * (n_inputs * (bytes_per_pixel + 8) + ID_BYTES))
    available = psutil.virtual_memory().available
    budget = int(available * memory_fraction)

    rows = max(1, min(MAX_ROWS_PER_CHUNK, height, budget // bytes_per_row))
    reason = f"Budget: {budget/1e9:.2f}GB, {bytes_per_row/1e6:.2f}MB/row"

    log.debug(f"Read plan: {rows} rows per chunk ({reason})")
    return ReadPlan(rows, reason)
