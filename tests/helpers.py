# tests/helpers.py

import numpy as np
import polars as pl

def first_seen_combinations(*layers):
    """
    Reference overlay: scan pixels in row-major order and number each new
    combination. Returns (id array, {combination: (id, count)}).
    """
    stack = np.stack([np.trunc(np.asarray(layer)).astype(np.int64) for layer in layers])
    _, height, width = stack.shape

    ids = np.zeros((height, width), dtype=np.int64)
    table = {}
    for row in range(height):
        for col in range(width):
            key = tuple(int(v) for v in stack[:, row, col])
            if key not in table:
                table[key] = [len(table) + 1, 0]
            table[key][1] += 1
            ids[row, col] = table[key][0]

    return ids, {k: (v[0], float(v[1])) for k, v in table.items()}

def assert_table_matches(df: pl.DataFrame, expected: dict, names):
    """Compare an exported table with {combination: (id, count)}, ignoring row order."""
    assert df.columns == [*names, "id", "count"]
    assert df.height == len(expected)

    got = {
        tuple(row[name] for name in names): (row["id"], row["count"])
        for row in df.sort("id").to_dicts()
    }
    assert got == expected

def assert_dense_ids(df: pl.DataFrame):
    """Ids of an exported table are exactly 1..N."""
    assert sorted(df["id"].to_list()) == list(range(1, df.height + 1))
