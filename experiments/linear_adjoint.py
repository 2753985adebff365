"""
Checkpointed adjoint of a nonlinear recurrence.

Runs x_{n+1} = tanh(W x_n + b) forward for num_steps steps under a fixed
checkpoint budget, then back-propagates dL/dx_n with L = 0.5 * ||x_N||^2
through the replay driver, one vector-Jacobian product per step. The
resulting dL/dx_0 is compared against full-storage PyTorch autograd.

Usage:
    python experiments/linear_adjoint.py --config configs/linear_adjoint.yaml
"""

from __future__ import annotations

import argparse
import shutil
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import torch
import yaml

PROJECT_ROOT = Path(__file__).resolve().parents[1]

from adjoint_checkpointing.logging import ReplayMetricsLogger, create_run_dir, save_run_info
from adjoint_checkpointing.memory import ResidentStore
from adjoint_checkpointing.policies import create_checkpoint_strategy
from adjoint_checkpointing.replay import advance_and_reverse_steps
from adjoint_checkpointing.utils import set_seed


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class Config:
    """Adjoint experiment configuration."""

    output_dir: str = "outputs/linear_adjoint"

    # Recurrence
    num_steps: int = 200
    state_dim: int = 16
    weight_scale: float = 0.9

    # Checkpointing
    checkpoint_strategy: str = "online_r2"
    storage_size: int = 10
    offload_device: Optional[str] = None  # e.g. "cpu" to keep checkpoints off the GPU

    # Logging
    checkpoint_interval: int = 50
    progress_bar: bool = True

    # Reproducibility
    seed: int = 42

    # Device
    device: str = "cuda"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load config from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# =============================================================================
# Recurrence
# =============================================================================

class Recurrence:
    """The step function x_{n+1} = tanh(W x_n + b) and its VJP."""

    def __init__(self, state_dim: int, weight_scale: float, device: torch.device):
        self.weight = weight_scale * torch.randn(state_dim, state_dim, device=device) / state_dim ** 0.5
        self.bias = 0.1 * torch.randn(state_dim, device=device)

    def step(self, n: int, x: torch.Tensor) -> torch.Tensor:
        return torch.tanh(self.weight @ x + self.bias)

    def forward(self, n: int, x: torch.Tensor) -> torch.Tensor:
        with torch.no_grad():
            return self.step(n, x)

    def vjp(self, n: int, x: torch.Tensor, cotangent: torch.Tensor) -> torch.Tensor:
        with torch.enable_grad():
            x = x.detach().requires_grad_(True)
            (grad,) = torch.autograd.grad(self.step(n, x), x, grad_outputs=cotangent)
        return grad


def reference_gradient(recurrence: Recurrence, x0: torch.Tensor, num_steps: int) -> torch.Tensor:
    """dL/dx_0 with every intermediate state kept by autograd."""
    x0 = x0.detach().requires_grad_(True)
    x = x0
    for n in range(num_steps):
        x = recurrence.step(n, x)
    loss = 0.5 * (x * x).sum()
    loss.backward()
    return x0.grad.detach()


def checkpointed_gradient(
    recurrence: Recurrence,
    x0: torch.Tensor,
    config: Config,
    metrics_logger: Optional[ReplayMetricsLogger] = None,
) -> Dict[str, object]:
    """dL/dx_0 through the replay driver under the configured budget."""
    strategy = create_checkpoint_strategy(config)
    store = ResidentStore(device=config.offload_device)
    device = x0.device
    adjoint: Dict[str, Optional[torch.Tensor]] = {"value": None}

    def reverse_callback(n: int, x_n: torch.Tensor) -> None:
        x_n = x_n.to(device)
        if n == config.num_steps:
            # dL/dx_N for L = 0.5 * ||x_N||^2
            adjoint["value"] = x_n.clone()
        else:
            adjoint["value"] = recurrence.vjp(n, x_n, adjoint["value"])

    def update_func(n: int, x_n: torch.Tensor) -> torch.Tensor:
        return recurrence.forward(n, x_n.to(device))

    final_state = advance_and_reverse_steps(
        config.num_steps,
        config.storage_size,
        x0,
        update_func,
        reverse_callback,
        strategy,
        store=store,
        metrics_logger=metrics_logger,
        progress_bar=config.progress_bar,
    )

    return {
        "gradient": adjoint["value"],
        "final_state": final_state,
        "strategy_stats": strategy.get_stats(),
    }


# =============================================================================
# Main
# =============================================================================

def main(config: Config, config_path: Path, command: str) -> None:
    """Run the checkpointed adjoint experiment."""

    start_time = datetime.now()

    print("=" * 60)
    print("Checkpointed Adjoint: tanh recurrence")
    print("=" * 60)

    set_seed(config.seed)
    device = torch.device(config.device if torch.cuda.is_available() else "cpu")
    print(f"Device: {device}")

    run_dir = create_run_dir(PROJECT_ROOT / config.output_dir, name=config.checkpoint_strategy)
    print(f"Run directory: {run_dir}")
    shutil.copy(config_path, run_dir / "config.yaml")

    recurrence = Recurrence(config.state_dim, config.weight_scale, device)
    x0 = torch.randn(config.state_dim, device=device)

    print(f"\nSteps: {config.num_steps}, storage size: {config.storage_size} "
          f"({config.checkpoint_strategy})")

    save_run_info(run_dir, config, command, start_time, repo_path=PROJECT_ROOT)

    metrics_logger = ReplayMetricsLogger(run_dir, checkpoint_interval=config.checkpoint_interval)
    result = checkpointed_gradient(recurrence, x0, config, metrics_logger)

    print("\nComputing full-storage reference gradient...")
    reference = reference_gradient(recurrence, x0, config.num_steps)
    max_abs_error = (result["gradient"] - reference).abs().max().item()

    stats = result["strategy_stats"]
    print(f"  Max |grad - reference| : {max_abs_error:.3e}")
    print(f"  Stores                 : {stats['stores']}")
    print(f"  Evictions              : {stats['evictions']}")
    print(f"  Recomputations         : {stats['recomputations']}")

    metrics_logger.print_summary()

    end_time = datetime.now()
    save_run_info(
        run_dir,
        config,
        command,
        start_time,
        end_time=end_time,
        strategy_stats=stats,
        replay_summary=metrics_logger.get_summary(),
        extra_info={"max_abs_error": max_abs_error},
        repo_path=PROJECT_ROOT,
    )

    print(f"\nRun directory: {run_dir}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Checkpointed adjoint experiment")
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
