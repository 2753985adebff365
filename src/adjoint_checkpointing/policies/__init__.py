"""
Checkpoint strategies for memory-bounded reverse sweeps.

Strategies decide which forward states stay resident (admit) and which are
dropped (evict) once the checkpoint budget is exhausted.

Available strategies:
    OnlineR2CheckpointStrategy   Spacing-based online strategy (Stumm & Walther)

Factory:
    create_checkpoint_strategy   Build a CheckpointStrategy from an experiment config
"""

from __future__ import annotations

from typing import Any

from .base import CheckpointStrategy
from .online_r2 import OnlineR2CheckpointStrategy


def create_checkpoint_strategy(config: Any) -> CheckpointStrategy:
    """
    Create a checkpoint strategy from an experiment config dataclass.

    Args:
        config: Any config object exposing ``checkpoint_strategy`` (strategy
            name) and ``storage_size`` (number of non-persistent slots).

    Returns:
        A fresh CheckpointStrategy instance.
    """
    if config.checkpoint_strategy == "online_r2":
        return OnlineR2CheckpointStrategy(max_states=config.storage_size)
    raise ValueError(f"Unknown checkpoint strategy: {config.checkpoint_strategy}")


__all__ = [
    "CheckpointStrategy",
    "OnlineR2CheckpointStrategy",
    "create_checkpoint_strategy",
]
