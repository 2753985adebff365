"""
Checkpoint strategy interface.

A strategy decides which step indices stay resident during a forward sweep
and which are evicted once the memory budget is exhausted. Strategies own
only index bookkeeping; the caller keeps the actual states in a separate
store and mirrors every admission, eviction and retirement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..core.slots import CheckpointMetrics, EraseResult


class CheckpointStrategy(ABC):
    """
    Base class for checkpoint eviction strategies.

    Subclasses implement the admission/eviction algorithm. Metrics counters
    are kept here so every strategy reports them the same way; subclasses
    bump ``self._metrics`` from ``admit``.
    """

    def __init__(self):
        self._metrics = CheckpointMetrics()

    @abstractmethod
    def admit(self, step: int, persistent: bool = False) -> int:
        """
        Register a checkpoint at ``step``.

        Args:
            step: Step index of the new checkpoint.
            persistent: Persistent checkpoints are never evicted. Admitting
                one grows the capacity by one, so it never evicts either.

        Returns:
            The step evicted to make room, or ``INVALID_CHECKPOINT_INDEX``
            if nothing was evicted.
        """

    @abstractmethod
    def last_checkpoint_step(self) -> int:
        """Return the largest held step. The strategy must not be empty."""

    @abstractmethod
    def remove_step(self, step: int) -> EraseResult:
        """
        Remove the non-persistent checkpoint at ``step``.

        Returns:
            ``EraseResult.REMOVED`` on success, ``NOT_FOUND`` if the step is
            not held, ``PROTECTED`` if it is held but persistent.
        """

    @abstractmethod
    def contains_step(self, step: int) -> bool:
        """Check whether ``step`` is currently held."""

    @abstractmethod
    def steps(self) -> List[int]:
        """Return held steps in ascending order."""

    @abstractmethod
    def reset(self) -> None:
        """Drop every non-persistent checkpoint. Capacity is unchanged."""

    @abstractmethod
    def capacity(self) -> int:
        """Current maximum number of held checkpoints."""

    @abstractmethod
    def size(self) -> int:
        """Number of checkpoints currently held."""

    def erase_step(self, step: int) -> bool:
        """
        Remove the non-persistent checkpoint at ``step``.

        Returns False both when the step is absent and when it is persistent.
        Use :meth:`remove_step` to tell the two apart.
        """
        return self.remove_step(step) is EraseResult.REMOVED

    def metrics(self) -> CheckpointMetrics:
        """Return a snapshot of the lifetime counters."""
        return CheckpointMetrics(**self._metrics.to_dict())

    def reset_metrics(self) -> None:
        self._metrics = CheckpointMetrics()

    def record_recomputation(self) -> None:
        """Count one state recomputed by the caller during a backward sweep."""
        self._metrics.recomputations += 1

    def get_stats(self) -> Dict[str, Any]:
        """Return strategy statistics (for logging)."""
        capacity = self.capacity()
        size = self.size()
        return {
            "strategy": type(self).__name__,
            "size": size,
            "capacity": capacity,
            "utilization": size / capacity if capacity > 0 else 0.0,
            **self._metrics.to_dict(),
        }

    def __len__(self) -> int:
        return self.size()
