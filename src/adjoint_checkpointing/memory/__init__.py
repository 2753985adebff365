"""
Memory management for checkpointed reverse sweeps.

- ResidentStore: step -> state mapping kept in lockstep with a checkpoint strategy
"""

from .resident_store import ResidentStore

__all__ = ["ResidentStore"]
