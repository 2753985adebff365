"""Tests for replay metrics logging and run tracking."""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from adjoint_checkpointing.logging import (
    ReplayMetricsLogger,
    create_run_dir,
    get_environment_info,
    get_git_info,
    save_run_info,
)
from adjoint_checkpointing.policies import OnlineR2CheckpointStrategy


def test_logger_writes_header(tmp_path) -> None:
    logger = ReplayMetricsLogger(tmp_path / "logs")

    with open(logger.metrics_file, newline="") as f:
        header = next(csv.reader(f))

    assert header == ReplayMetricsLogger.FIELDNAMES


def test_should_checkpoint_follows_control_steps(tmp_path) -> None:
    logger = ReplayMetricsLogger(tmp_path, checkpoint_interval=3)
    assert not logger.should_checkpoint()

    logger.log_forward_step()
    logger.log_forward_step()
    logger.log_recomputation()
    assert not logger.should_checkpoint()

    logger.log_reverse_step()
    assert logger.should_checkpoint()


def test_log_checkpoint_uses_strategy_stats(tmp_path) -> None:
    logger = ReplayMetricsLogger(tmp_path)
    strategy = OnlineR2CheckpointStrategy(max_states=3)
    strategy.admit(0, persistent=True)
    strategy.admit(1)
    logger.log_forward_step()

    logger.log_checkpoint(1, "forward", 1, strategy_stats=strategy.get_stats())

    with open(logger.metrics_file, newline="") as f:
        row = list(csv.DictReader(f))[0]

    assert row["phase"] == "forward"
    assert row["forward_steps"] == "1"
    assert row["strategy_size"] == "2"
    assert row["strategy_capacity"] == "4"
    assert row["strategy_utilization"] == "0.5000"
    assert row["stores"] == "2"
    assert row["store_size"] == "0"


def test_summary_reports_recompute_ratio(tmp_path, capsys) -> None:
    logger = ReplayMetricsLogger(tmp_path)
    for _ in range(4):
        logger.log_forward_step()
    logger.log_recomputation()

    summary = logger.get_summary()
    assert summary["recompute_ratio"] == pytest.approx(0.25)

    logger.print_summary()
    assert "Recomputed steps     : 1" in capsys.readouterr().out


def test_invalid_interval_is_rejected(tmp_path) -> None:
    with pytest.raises(ValueError):
        ReplayMetricsLogger(tmp_path, checkpoint_interval=0)


@dataclass
class _Config:
    storage_size: int = 4
    num_steps: int = 10


def test_save_run_info_writes_json(tmp_path) -> None:
    run_dir = create_run_dir(tmp_path)
    start = datetime(2026, 1, 1, 12, 0, 0)

    path = save_run_info(
        run_dir,
        _Config(),
        command="python experiments/linear_adjoint.py",
        start_time=start,
        end_time=start + timedelta(seconds=5),
        strategy_stats={"size": 1},
        extra_info={"max_abs_error": 0.0},
        repo_path=tmp_path,
    )

    with open(path) as f:
        info = json.load(f)

    assert run_dir.is_dir() and run_dir.parent == tmp_path
    assert info["config"] == {"storage_size": 4, "num_steps": 10}
    assert info["duration_seconds"] == 5.0
    assert info["strategy"] == {"size": 1}
    assert info["replay"] is None
    assert info["max_abs_error"] == 0.0
    assert "torch_version" in info["environment"]


def test_create_run_dir_never_reuses_a_directory(tmp_path) -> None:
    first = create_run_dir(tmp_path, name="online_r2")
    second = create_run_dir(tmp_path, name="online_r2")

    assert first != second
    assert first.is_dir() and second.is_dir()
    assert first.name.endswith("online_r2")


def test_environment_info_records_determinism_settings() -> None:
    env = get_environment_info()

    assert env["numpy_version"]
    assert isinstance(env["deterministic_algorithms"], bool)
    assert "cudnn_deterministic" in env


def test_git_info_outside_a_repository_is_empty(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path.parent))
    assert get_git_info(tmp_path) == {"commit": None, "dirty": None}
