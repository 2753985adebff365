"""
Core bookkeeping types for checkpoint strategies.

Strategies only track step indices; the heavy state payloads live in a
separate resident store owned by the replay driver. The types here are the
small pieces of data shared by every strategy:

- Slot: a held checkpoint (step index + persistent flag)
- CheckpointMetrics: lifetime store/eviction/recomputation counters
- EraseResult: outcome of removing a step from a strategy
"""

from __future__ import annotations

import enum
import sys
from dataclasses import asdict, dataclass
from typing import Dict


# Returned by ``admit`` when nothing was evicted. Never a real step index.
INVALID_CHECKPOINT_INDEX = sys.maxsize


def valid_checkpoint_index(step: int) -> bool:
    """Return True if ``step`` is a real step rather than the NONE sentinel."""
    return step != INVALID_CHECKPOINT_INDEX


class Slot:
    """
    A checkpoint slot held by a strategy.

    Attributes:
        step: Step index of the checkpointed state.
        persistent: Persistent slots are never evicted and never erased.
    """

    __slots__ = ("step", "persistent")

    def __init__(self, step: int, persistent: bool = False):
        self.step = step
        self.persistent = persistent

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Slot):
            return NotImplemented
        return self.step == other.step and self.persistent == other.persistent

    def __repr__(self) -> str:
        flag = ", persistent" if self.persistent else ""
        return f"Slot(step={self.step}{flag})"


@dataclass
class CheckpointMetrics:
    """Lifetime counters of a checkpoint strategy."""

    stores: int = 0
    evictions: int = 0
    recomputations: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class EraseResult(enum.Enum):
    """Outcome of removing a step from a strategy."""

    REMOVED = "removed"
    NOT_FOUND = "not_found"
    PROTECTED = "protected"
