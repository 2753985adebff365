"""
Logging and run tracking utilities.

- Run tracking: git info, environment info, run directories, run_info.json
- ReplayMetricsLogger: CSV snapshots of compute cost and strategy occupancy
"""

from .experiment import (
    create_run_dir,
    get_environment_info,
    get_git_info,
    save_run_info,
)
from .replay_logger import ReplayMetricsLogger

__all__ = [
    "create_run_dir",
    "get_environment_info",
    "get_git_info",
    "save_run_info",
    "ReplayMetricsLogger",
]
