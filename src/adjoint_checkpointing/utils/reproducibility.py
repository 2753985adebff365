"""Reproducibility utilities."""

from __future__ import annotations

import random

import numpy as np
import torch


def set_seed(seed: int, deterministic: bool = True) -> None:
    """
    Seed Python, NumPy and PyTorch (CPU and CUDA).

    Replayed forward steps must reproduce the states of the original sweep
    bit for bit, so experiments with stochastic update functions should call
    this before running.

    Args:
        seed: Random seed value.
        deterministic: Also ask PyTorch to use deterministic kernels.
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)
    if deterministic:
        torch.backends.cudnn.deterministic = True
        torch.backends.cudnn.benchmark = False
