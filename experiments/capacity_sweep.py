"""
Recomputation cost of online checkpointing across budgets.

Runs the replay driver over a grid of (num_steps, storage_size) with a
trivial scalar update and records stores, evictions and recomputations for
each run. The recompute ratio (recomputed steps per forward step) shows how
the online strategy trades memory for extra forward work.

Usage:
    python experiments/capacity_sweep.py --config configs/capacity_sweep.yaml
"""

from __future__ import annotations

import argparse
import csv
import shutil
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
from tqdm import tqdm
import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]

from adjoint_checkpointing.logging import create_run_dir, save_run_info
from adjoint_checkpointing.policies import create_checkpoint_strategy
from adjoint_checkpointing.replay import advance_and_reverse_steps


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Config:
    """Capacity sweep configuration."""

    output_dir: str = "outputs/capacity_sweep"

    checkpoint_strategy: str = "online_r2"
    num_steps: List[int] = field(default_factory=lambda: [100, 1000, 10000])
    storage_sizes: List[int] = field(default_factory=lambda: [2, 4, 8, 16, 32, 64])

    # Filled per run; read by create_checkpoint_strategy
    storage_size: int = 0

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load config from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


SWEEP_FIELDS = [
    "num_steps",
    "storage_size",
    "stores",
    "evictions",
    "recomputations",
    "recompute_ratio",
]


def run_once(config: Config, num_steps: int, storage_size: int) -> Dict[str, Any]:
    """Replay one chain and return its cost counters."""
    run_config = replace(config, storage_size=storage_size)
    strategy = create_checkpoint_strategy(run_config)

    advance_and_reverse_steps(
        num_steps,
        storage_size,
        0.0,
        lambda n, x: x + 1.0,
        lambda n, x: None,
        strategy,
    )

    metrics = strategy.metrics()
    return {
        "num_steps": num_steps,
        "storage_size": storage_size,
        "stores": metrics.stores,
        "evictions": metrics.evictions,
        "recomputations": metrics.recomputations,
        "recompute_ratio": metrics.recomputations / max(num_steps, 1),
    }


def main(config: Config, config_path: Path, command: str) -> None:
    """Run the capacity sweep."""

    start_time = datetime.now()

    print("=" * 60)
    print("Online Checkpointing Capacity Sweep")
    print("=" * 60)

    run_dir = create_run_dir(PROJECT_ROOT / config.output_dir, name=config.checkpoint_strategy)
    print(f"Run directory: {run_dir}")
    shutil.copy(config_path, run_dir / "config.yaml")

    grid = [(n, s) for n in config.num_steps for s in config.storage_sizes]
    rows = [run_once(config, n, s) for n, s in tqdm(grid, desc="Sweeping")]

    sweep_path = run_dir / "sweep.csv"
    with open(sweep_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=SWEEP_FIELDS)
        writer.writeheader()
        for row in rows:
            writer.writerow({**row, "recompute_ratio": f"{row['recompute_ratio']:.4f}"})

    ratios = np.array([row["recompute_ratio"] for row in rows]).reshape(
        len(config.num_steps), len(config.storage_sizes)
    )

    print("\nRecompute ratio (rows: num_steps, columns: storage_size)")
    print("  " + " ".join(f"{s:>8d}" for s in config.storage_sizes))
    for n, ratio_row in zip(config.num_steps, ratios):
        print(f"  {n:>8d} " + " ".join(f"{r:8.2f}" for r in ratio_row))

    end_time = datetime.now()
    save_run_info(
        run_dir,
        config,
        command,
        start_time,
        end_time=end_time,
        extra_info={
            "mean_recompute_ratio_per_storage_size": dict(
                zip(map(str, config.storage_sizes), ratios.mean(axis=0).round(4).tolist())
            ),
        },
        repo_path=PROJECT_ROOT,
    )

    print(f"\nResults: {sweep_path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Online checkpointing capacity sweep")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to config YAML file",
    )
    args = parser.parse_args()

    config_path = PROJECT_ROOT / args.config
    if not config_path.exists():
        print(f"Config file not found: {config_path}")
        sys.exit(1)

    command = " ".join(sys.argv)

    config = Config.from_yaml(config_path)
    main(config, config_path, command)
