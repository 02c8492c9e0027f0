# src/rastercombine/cmb_table.py

"""
This module implements the hash table used to count unique combinations of integers.

A CombinationTable maps a fixed-length integer key (one value per input layer)
to a dense identifier, assigned in first-seen order starting at 1, and to a
running count. It is fed one key, or one raster scan-line of keys, at a time.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from .exceptions import InvalidArgumentError

log = logging.getLogger(__name__)

__all__ = [
    "hash_combine",
    "CombinationKey",
    "CombinationRecord",
    "CombinationTable",
    "NA_VALUE"
]

ID_COLUMN = "id"
COUNT_COLUMN = "count"

# Key values are 64-bit signed integers. The smallest one is reserved for
# missing data (nodata / NaN pixels) and is exported as null.
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
NA_VALUE = INT64_MIN

_HASH_CONSTANT = 0x9e3779b9
_MASK_64 = (1 << 64) - 1

def hash_combine(values: Iterable[int]) -> int:
    """
    Boost-style hash_combine folded to 64 bits.

    Negative values wrap the same way a signed int converted to size_t does.
    """
    seed = 0
    for value in values:
        seed ^= (value + _HASH_CONSTANT + (seed << 6) + (seed >> 2)) & _MASK_64
    return seed

def _to_int(value: Any) -> int:
    # int() truncates toward zero; NaN/inf raise
    if isinstance(value, (str, bytes)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    return int(value)

class CombinationKey:
    """
    Immutable key wrapping a tuple of integers.

    The hash is computed once at construction. Equality compares every element.
    """
    __slots__ = ("values", "_hash")

    def __init__(self, values: Tuple[int, ...]):
        self.values = values
        self._hash = hash_combine(values)

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CombinationKey):
            return NotImplemented
        return self.values == other.values

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[int]:
        return iter(self.values)

    def __repr__(self) -> str:
        return f"CombinationKey{self.values}"

@dataclass
class CombinationRecord:
    """
    Value stored for each distinct key.

    Args:
        id: Identifier assigned when the key was first seen.
        count: Sum of all increments applied to the key.
    """
    id: int
    count: float

class CombinationTable:
    """
    Hash table counting unique combinations of integers.

    Identifiers are dense (1..N), assigned in first-seen order and never reused.
    The table only grows; there is no deletion.

    Args:
        key_length: Number of integers in each combination (number of input layers).
        variable_names: Optional names for the key positions, used as column
                        headers on export. Defaults to "V1".."Vk".

    Raises:
        InvalidArgumentError: If key_length is not a positive integer, or the
                              names do not match key_length, are not unique,
                              or collide with the 'id'/'count' columns.
    """

    def __init__(self, key_length: int, variable_names: Optional[Sequence[str]] = None):
        if isinstance(key_length, bool) or not isinstance(key_length, (int, np.integer)) or key_length < 1:
            raise InvalidArgumentError(f"key_length must be a positive integer, got {key_length!r}")

        self._key_length = int(key_length)

        if variable_names is None:
            names = [f"V{i}" for i in range(1, self._key_length + 1)]
        else:
            names = list(variable_names)
            if len(names) != self._key_length:
                raise InvalidArgumentError(
                    f"key_length ({self._key_length}) must equal the number of "
                    f"variable names ({len(names)})"
                )
            self._validate_names(names)

        self._variable_names = tuple(names)
        self._last_id = 0
        self._records: Dict[CombinationKey, CombinationRecord] = {}

    @staticmethod
    def _validate_names(names: Sequence[str]):
        for name in names:
            if not isinstance(name, str) or not name:
                raise InvalidArgumentError(f"Variable names must be non-empty strings, got {name!r}")
            if name in (ID_COLUMN, COUNT_COLUMN):
                raise InvalidArgumentError(f"Variable name '{name}' is reserved for the exported table")
        if len(set(names)) != len(names):
            raise InvalidArgumentError(f"Variable names must be unique: {list(names)}")

    @property
    def key_length(self) -> int:
        return self._key_length

    @property
    def variable_names(self) -> Tuple[str, ...]:
        return self._variable_names

    @property
    def last_id(self) -> int:
        """Most recently assigned identifier (0 while the table is empty)."""
        return self._last_id

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: Sequence[int]) -> bool:
        try:
            return self._make_key(key) in self._records
        except InvalidArgumentError:
            return False

    def __repr__(self) -> str:
        return (
            f"<CombinationTable key_length={self._key_length} "
            f"variables={list(self._variable_names)} combinations={len(self)}>"
        )

    def _make_key(self, key: Sequence[int]) -> CombinationKey:
        if isinstance(key, CombinationKey):
            values = key.values
        else:
            try:
                values = tuple(_to_int(v) for v in key)
            except (TypeError, ValueError, OverflowError) as e:
                raise InvalidArgumentError(f"Combination must be a sequence of integers: {e}") from e
            for v in values:
                if not INT64_MIN <= v <= INT64_MAX:
                    raise InvalidArgumentError(f"Combination value {v} is outside the 64-bit integer range")

        if len(values) != self._key_length:
            raise InvalidArgumentError(
                f"Combination has {len(values)} values, table key_length is {self._key_length}"
            )
        return CombinationKey(values)

    def _increment(self, key: CombinationKey, increment: float) -> int:
        record = self._records.get(key)
        if record is None:
            self._last_id += 1
            self._records[key] = CombinationRecord(self._last_id, increment)
            return self._last_id
        record.count += increment
        return record.id

    def _as_int_matrix(self, matrix: Any, axis: int) -> np.ndarray:
        """Validate a 2D array whose given axis has length key_length, truncating floats."""
        try:
            arr = np.asarray(matrix)
        except ValueError as e:
            raise InvalidArgumentError(f"Combinations must form a rectangular matrix: {e}") from e

        if arr.ndim != 2 or arr.shape[axis] != self._key_length:
            raise InvalidArgumentError(
                f"Expected a 2D matrix with {self._key_length} along axis {axis}, got shape {arr.shape}"
            )

        if arr.dtype.kind == "u" and arr.dtype.itemsize == 8:
            if arr.size and arr.max() > INT64_MAX:
                raise InvalidArgumentError("Combinations contain values outside the 64-bit integer range")
            return arr.astype(np.int64)
        if arr.dtype.kind in "iu":
            return arr
        if arr.dtype.kind == "b":
            return arr.astype(np.int64)
        if arr.dtype.kind == "f":
            if not np.all(np.isfinite(arr)):
                raise InvalidArgumentError("Combinations contain NaN or infinite values")
            arr = np.trunc(arr)
            # 2**63 is exact in float64; anything at or above it cannot be cast
            if arr.size and (arr.max() >= 2.0 ** 63 or arr.min() < -2.0 ** 63):
                raise InvalidArgumentError("Combinations contain values outside the 64-bit integer range")
            return arr.astype(np.int64)
        raise InvalidArgumentError(f"Combinations must be numeric, got dtype {arr.dtype}")

    def update(self, key: Sequence[int], increment: float = 1.0) -> int:
        """
        Add increment to the count of key, inserting it if it was never seen.

        Args:
            key: Sequence of exactly key_length integers. Floats are truncated.
            increment: Amount added to the running count. Any real number.

        Returns:
            int: The identifier of the combination.

        Raises:
            InvalidArgumentError: If key has the wrong length, is not numeric
                                  or does not fit a 64-bit signed integer.
        """
        return self._increment(self._make_key(key), float(increment))

    def update_batch(self, rows: Any, increment: float = 1.0) -> np.ndarray:
        """
        Update from a (key_length, M) matrix where each column is one combination.

        Typically each row is one scan-line read from one of the input rasters,
        so column j holds the values of all layers at pixel j.

        Args:
            rows: 2D array-like of shape (key_length, M).
            increment: Amount added to the count of every combination.

        Returns:
            np.ndarray: int64 array of M identifiers, in column order.
        """
        arr = self._as_int_matrix(rows, axis=0)
        return self._update_tuples(arr.T.tolist(), float(increment))

    def update_batch_by_row(self, matrix: Any, increment: float = 1.0) -> np.ndarray:
        """
        Same as update_batch() but combinations are the rows of an (M, key_length) matrix.
        """
        arr = self._as_int_matrix(matrix, axis=1)
        return self._update_tuples(arr.tolist(), float(increment))

    def _update_tuples(self, tuples: Sequence[Sequence[int]], increment: float) -> np.ndarray:
        ids = np.empty(len(tuples), dtype=np.int64)
        for j, values in enumerate(tuples):
            ids[j] = self._increment(CombinationKey(tuple(values)), increment)
        return ids

    def get(self, key: Sequence[int]) -> Optional[CombinationRecord]:
        """Return the record of key, or None if it was never seen."""
        return self._records.get(self._make_key(key))

    def export_table(self) -> pl.DataFrame:
        """
        Export the table as a Polars DataFrame.

        Columns are the variable names, then 'id', then 'count'. Row order is not
        guaranteed; sort by 'id' when a deterministic order is needed.
        Key values equal to NA_VALUE come out as null.
        """
        key_columns = list(zip(*(key.values for key in self._records))) or [()] * self._key_length

        schema = {name: pl.Int64 for name in self._variable_names}
        schema[ID_COLUMN] = pl.Int64
        schema[COUNT_COLUMN] = pl.Float64

        data = {
            name: [None if v == NA_VALUE else v for v in col]
            for name, col in zip(self._variable_names, key_columns)
        }
        data[ID_COLUMN] = [rec.id for rec in self._records.values()]
        data[COUNT_COLUMN] = [rec.count for rec in self._records.values()]

        log.debug(f"Exporting {len(self)} combinations of {self._key_length} variables")
        return pl.DataFrame(data, schema=schema)

    def as_matrix(self) -> np.ndarray:
        """Export the table as a float64 matrix with columns [variables..., id, count]. NA_VALUE becomes NaN."""
        out = np.empty((len(self), self._key_length + 2), dtype=np.float64)
        for i, (key, rec) in enumerate(self._records.items()):
            out[i, :self._key_length] = [np.nan if v == NA_VALUE else v for v in key.values]
            out[i, self._key_length] = rec.id
            out[i, self._key_length + 1] = rec.count
        return out
