"""Tests for the capacity sweep experiment script."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

import pytest

SWEEP_PATH = Path(__file__).resolve().parents[1] / "experiments" / "capacity_sweep.py"


@pytest.fixture(scope="module")
def sweep():
    spec = importlib.util.spec_from_file_location("_capacity_sweep", SWEEP_PATH)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    yield module
    sys.modules.pop(spec.name, None)


def test_run_once_leaves_config_untouched(sweep) -> None:
    config = sweep.Config(num_steps=[20], storage_sizes=[3, 25])

    rows = [sweep.run_once(config, 20, s) for s in config.storage_sizes]

    assert config.storage_size == 0
    assert [row["storage_size"] for row in rows] == [3, 25]


def test_run_once_reports_recomputation_only_when_budget_is_short(sweep) -> None:
    config = sweep.Config()

    short = sweep.run_once(config, 20, 3)
    ample = sweep.run_once(config, 20, 25)

    assert short["recomputations"] > 0
    assert short["evictions"] > 0
    assert short["recompute_ratio"] == pytest.approx(short["recomputations"] / 20)
    assert ample["recomputations"] == 0
    assert ample["evictions"] == 0
    assert set(short) == set(sweep.SWEEP_FIELDS)
