# src/rastercombine/exceptions.py

"""
Exceptions raised by rastercombine.
"""

__all__ = [
    "RasterCombineError",
    "InvalidArgumentError",
    "RasterIOError",
    "GridMismatchError"
]

class RasterCombineError(Exception):
    """Base class for all rastercombine errors."""

class InvalidArgumentError(RasterCombineError, ValueError):
    """A caller passed arguments that break the contract of an operation."""

class RasterIOError(RasterCombineError, IOError):
    """A raster could not be opened, read or written."""

class GridMismatchError(RasterCombineError):
    """Input rasters do not share the same dimensions and pixel size."""
