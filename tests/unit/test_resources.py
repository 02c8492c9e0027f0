# tests/unit/test_resources.py

import pytest
from types import SimpleNamespace

from rastercombine import InvalidArgumentError
from rastercombine.raster import resources

def test_user_rows_win():
    plan = resources.plan_rows(100, 50, 3, user_rows=10)
    assert plan.rows_per_chunk == 10
    assert "User" in plan.reason

def test_user_rows_clamped_to_height():
    assert resources.plan_rows(100, 5, 3, user_rows=64).rows_per_chunk == 5

def test_user_rows_must_be_positive():
    with pytest.raises(InvalidArgumentError):
        resources.plan_rows(100, 50, 3, user_rows=0)

def test_auto_plan_is_bounded():
    plan = resources.plan_rows(1000, 10_000, 4)
    assert 1 <= plan.rows_per_chunk <= resources.MAX_ROWS_PER_CHUNK

def test_auto_plan_never_exceeds_height():
    assert resources.plan_rows(10, 3, 1).rows_per_chunk <= 3

def test_low_memory_falls_back_to_single_rows(monkeypatch):
    monkeypatch.setattr(resources.psutil, "virtual_memory", lambda: SimpleNamespace(available=1024))
    plan = resources.plan_rows(100_000, 500, 5)
    assert plan.rows_per_chunk == 1

def test_plenty_of_memory_uses_max_rows(monkeypatch):
    monkeypatch.setattr(resources.psutil, "virtual_memory", lambda: SimpleNamespace(available=64 * 1024 ** 3))
    plan = resources.plan_rows(100, 10_000, 2)
    assert plan.rows_per_chunk == resources.MAX_ROWS_PER_CHUNK
