"""
Core data structures for checkpoint scheduling.

Defines the slot and metrics types shared by all checkpoint strategies,
the NONE sentinel returned when an admission evicts nothing, and the
contract-violation exception.
"""

from .errors import CheckpointContractError
from .slots import (
    INVALID_CHECKPOINT_INDEX,
    CheckpointMetrics,
    EraseResult,
    Slot,
    valid_checkpoint_index,
)

__all__ = [
    "INVALID_CHECKPOINT_INDEX",
    "CheckpointContractError",
    "CheckpointMetrics",
    "EraseResult",
    "Slot",
    "valid_checkpoint_index",
]
