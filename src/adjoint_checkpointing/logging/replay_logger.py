"""
Metrics tracking for checkpointed replay runs.

Tracks compute costs (forward steps, recomputed steps, reverse steps),
checkpoint strategy occupancy over time, and wall-clock time.
"""

from __future__ import annotations

import csv
import time
from pathlib import Path
from typing import Any, Dict, Optional


class ReplayMetricsLogger:
    """
    Logger for replay run metrics.

    Tracks:
    - Compute: forward steps, recomputed steps, reverse steps, wall-clock time
    - Strategy stats: held checkpoints, capacity, stores, evictions

    Args:
        log_dir: Directory to save CSV logs.
        checkpoint_interval: How often to write a snapshot row (in control
            steps processed, forward and reverse combined).
    """

    FIELDNAMES = [
        "checkpoint_idx",
        "phase",
        "step",
        "forward_steps",
        "recomputed_steps",
        "reverse_steps",
        "strategy_size",
        "strategy_capacity",
        "strategy_utilization",
        "stores",
        "evictions",
        "recomputations",
        "store_size",
        "elapsed_seconds",
    ]

    def __init__(
        self,
        log_dir: str | Path,
        checkpoint_interval: int = 100,
    ):
        if checkpoint_interval < 1:
            raise ValueError(f"checkpoint_interval must be >= 1, got {checkpoint_interval}")

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.checkpoint_interval = checkpoint_interval
        self.metrics_file = self.log_dir / "replay_metrics.csv"

        # Counters
        self.num_forward_steps = 0
        self.num_recomputed_steps = 0
        self.num_reverse_steps = 0
        self.start_time = time.time()

        with open(self.metrics_file, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(self.FIELDNAMES)

    @property
    def num_control_steps(self) -> int:
        return self.num_forward_steps + self.num_reverse_steps

    def log_forward_step(self) -> None:
        self.num_forward_steps += 1

    def log_recomputation(self) -> None:
        self.num_recomputed_steps += 1

    def log_reverse_step(self) -> None:
        self.num_reverse_steps += 1

    def should_checkpoint(self) -> bool:
        """Check if it's time to write a snapshot row."""
        n = self.num_control_steps
        return n > 0 and n % self.checkpoint_interval == 0

    def log_checkpoint(
        self,
        checkpoint_idx: int,
        phase: str,
        step: int,
        strategy_stats: Optional[Dict[str, Any]] = None,
        store_stats: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Write a snapshot row.

        Args:
            checkpoint_idx: Snapshot index.
            phase: "forward" or "reverse".
            step: Control step the run is at.
            strategy_stats: Output of ``CheckpointStrategy.get_stats()``.
            store_stats: Output of ``ResidentStore.get_stats()``.
        """
        strategy_stats = strategy_stats or {}
        store_stats = store_stats or {}
        elapsed = time.time() - self.start_time

        with open(self.metrics_file, "a", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([
                checkpoint_idx,
                phase,
                step,
                self.num_forward_steps,
                self.num_recomputed_steps,
                self.num_reverse_steps,
                strategy_stats.get("size", 0),
                strategy_stats.get("capacity", 0),
                f"{strategy_stats.get('utilization', 0.0):.4f}",
                strategy_stats.get("stores", 0),
                strategy_stats.get("evictions", 0),
                strategy_stats.get("recomputations", 0),
                store_stats.get("size", 0),
                f"{elapsed:.2f}",
            ])

    def get_summary(self) -> Dict[str, Any]:
        """Get current summary statistics."""
        elapsed = time.time() - self.start_time
        return {
            "forward_steps": self.num_forward_steps,
            "recomputed_steps": self.num_recomputed_steps,
            "reverse_steps": self.num_reverse_steps,
            "recompute_ratio": self.num_recomputed_steps / max(self.num_forward_steps, 1),
            "elapsed_seconds": elapsed,
        }

    def print_summary(self) -> None:
        """Print a summary of current metrics."""
        stats = self.get_summary()

        print()
        print("=" * 60)
        print("Replay Metrics Summary")
        print("=" * 60)
        print(f"  Forward steps        : {stats['forward_steps']}")
        print(f"  Recomputed steps     : {stats['recomputed_steps']}")
        print(f"  Reverse steps        : {stats['reverse_steps']}")
        print(f"  Recompute ratio      : {stats['recompute_ratio']:.4f}")
        print(f"  Elapsed time         : {stats['elapsed_seconds']:.1f}s")
        print("=" * 60)
        print()
