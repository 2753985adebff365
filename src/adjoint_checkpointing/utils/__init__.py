"""Utility modules for experiments."""

from adjoint_checkpointing.utils.reproducibility import set_seed

__all__ = ["set_seed"]
