"""Run tracking utilities for replay experiments."""

from __future__ import annotations

import json
import platform
import subprocess
from dataclasses import asdict, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import torch


def get_git_info(repo_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Describe the checked-out revision with ``git describe --always --dirty``.

    Args:
        repo_path: Path to the git repository. If None, uses current directory.

    Returns:
        Dict with 'commit' (abbreviated hash) and 'dirty'; both None when git
        is unavailable or ``repo_path`` is not a repository.
    """
    try:
        described = subprocess.run(
            ["git", "describe", "--always", "--dirty", "--abbrev=12"],
            capture_output=True,
            text=True,
            cwd=repo_path,
        )
    except OSError:
        return {"commit": None, "dirty": None}

    if described.returncode != 0:
        return {"commit": None, "dirty": None}

    revision = described.stdout.strip()
    dirty = revision.endswith("-dirty")
    return {"commit": revision.removesuffix("-dirty"), "dirty": dirty}


def get_environment_info() -> Dict[str, Any]:
    """
    Library versions and the determinism settings replayed steps rely on.

    Recomputed states must match the forward sweep exactly, so the flags that
    control kernel determinism are recorded alongside the versions.
    """
    env_info: Dict[str, Any] = {
        "platform": platform.platform(),
        "python_version": platform.python_version(),
        "numpy_version": np.__version__,
        "torch_version": torch.__version__,
        "deterministic_algorithms": torch.are_deterministic_algorithms_enabled(),
        "cudnn_deterministic": torch.backends.cudnn.deterministic,
        "cuda_device": None,
    }

    if torch.cuda.is_available():
        env_info["cuda_device"] = torch.cuda.get_device_name(0)

    return env_info


def create_run_dir(base_output_dir: Path, name: Optional[str] = None) -> Path:
    """
    Create a fresh run directory ``<timestamp>[_<name>]`` under ``base_output_dir``.

    Runs started within the same second get a numeric suffix instead of
    sharing a directory.
    """
    stem = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    if name:
        stem = f"{stem}_{name}"

    base = Path(base_output_dir)
    base.mkdir(parents=True, exist_ok=True)

    run_dir = base / stem
    suffix = 0
    while True:
        try:
            run_dir.mkdir()
            return run_dir
        except FileExistsError:
            suffix += 1
            run_dir = base / f"{stem}_{suffix}"


def _config_to_dict(config: Any) -> Any:
    if is_dataclass(config) and not isinstance(config, type):
        return asdict(config)
    if hasattr(config, "__dict__"):
        return dict(config.__dict__)
    return config


def save_run_info(
    run_dir: Path,
    config: Any,
    command: str,
    start_time: datetime,
    end_time: Optional[datetime] = None,
    strategy_stats: Optional[Dict[str, Any]] = None,
    replay_summary: Optional[Dict[str, Any]] = None,
    extra_info: Optional[Dict[str, Any]] = None,
    repo_path: Optional[Path] = None,
) -> Path:
    """
    Save run metadata to ``run_info.json``.

    Called once when a run starts and again when it ends; the second call
    overwrites the first with end time and final statistics.

    Args:
        run_dir: Directory to save run_info.json.
        config: Configuration dataclass (or any object with ``__dict__``).
        command: Command used to run the experiment.
        start_time: Experiment start time.
        end_time: Experiment end time (None if still running).
        strategy_stats: Final ``CheckpointStrategy.get_stats()``.
        replay_summary: Final ``ReplayMetricsLogger.get_summary()``.
        extra_info: Optional additional top-level keys.
        repo_path: Path to git repository for commit info.

    Returns:
        Path of the written file.
    """
    git_info = get_git_info(repo_path)

    run_info = {
        "git_commit": git_info["commit"],
        "git_dirty": git_info["dirty"],
        "start_time": start_time.isoformat(),
        "end_time": end_time.isoformat() if end_time else None,
        "duration_seconds": (end_time - start_time).total_seconds() if end_time else None,
        "command": command,
        "config": _config_to_dict(config),
        "environment": get_environment_info(),
        "strategy": strategy_stats,
        "replay": replay_summary,
    }

    if extra_info:
        run_info.update(extra_info)

    path = Path(run_dir) / "run_info.json"
    with open(path, "w") as f:
        json.dump(run_info, f, indent=2)
    return path
