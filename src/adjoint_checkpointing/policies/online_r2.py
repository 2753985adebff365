"""
Online r=2 checkpointing strategy.

Reference: Philipp Stumm and Andrea Walther, "New Algorithms for Optimal
Online Checkpointing", SIAM J. Sci. Comput., 32(2), 836-854, 2010.

Unlike level-based (binomial) schedules, this strategy has no notion of
checkpoint levels. It keeps the held checkpoints approximately evenly spaced
over the steps seen so far, which is near-optimal when the total number of
steps is not known in advance.
"""

from __future__ import annotations

import bisect
import math
from typing import Any, Dict, List

from ..core.errors import CheckpointContractError
from ..core.slots import INVALID_CHECKPOINT_INDEX, EraseResult, Slot
from .base import CheckpointStrategy


class OnlineR2CheckpointStrategy(CheckpointStrategy):
    """
    Spacing-based online checkpoint strategy.

    Holds a list of slots sorted by step. While there is spare capacity every
    admission is inserted. At capacity, the non-persistent slot whose removal
    leaves the smallest gap between its neighbors is evicted, so dense
    clusters are thinned first.

    Args:
        max_states: Number of non-persistent checkpoint slots. Each admitted
            persistent checkpoint adds one slot on top of this budget.

    Usage:
        strategy = OnlineR2CheckpointStrategy(max_states=8)
        strategy.admit(0, persistent=True)
        evicted = strategy.admit(1)
        if valid_checkpoint_index(evicted):
            store.discard(evicted)
    """

    def __init__(self, max_states: int = 20):
        super().__init__()
        if max_states < 0:
            raise ValueError(f"max_states must be non-negative, got {max_states}")
        self._max_slots = max_states
        self._slots: List[Slot] = []  # sorted by step

    # -------------------------------------------------------------------------
    # Admission / eviction
    # -------------------------------------------------------------------------

    def _find_eviction_candidate(self, new_step: int) -> int:
        """
        Index of the slot to evict, or ``len(self._slots)`` if none can be.

        For each non-persistent slot, the merged gap is the distance between
        its neighbors once it is gone. The first slot has a virtual left
        neighbor at step 0; the last one has the incoming ``new_step`` as its
        right neighbor, which keeps the newest checkpoint from being the
        trivial choice. When ``new_step`` lies below that slot's left
        neighbor the merged gap is unbounded, so the last slot is only picked
        if nothing else can go. Ties go to the lowest index.
        """
        slots = self._slots
        best_idx = len(slots)
        best_gap = None

        for i, slot in enumerate(slots):
            if slot.persistent:
                continue

            left = slots[i - 1].step if i > 0 else 0
            right = slots[i + 1].step if i + 1 < len(slots) else new_step
            merged_gap = right - left if right >= left else math.inf

            if best_gap is None or merged_gap < best_gap:
                best_gap = merged_gap
                best_idx = i

        return best_idx

    def _insert(self, slot: Slot) -> None:
        idx = bisect.bisect_left(self._slots, slot.step, key=lambda s: s.step)
        self._slots.insert(idx, slot)

    def admit(self, step: int, persistent: bool = False) -> int:
        if step < 0 or step == INVALID_CHECKPOINT_INDEX:
            raise ValueError(f"Invalid checkpoint step: {step}")
        if self.contains_step(step):
            raise CheckpointContractError(f"Step {step} is already checkpointed")

        evicted = INVALID_CHECKPOINT_INDEX
        new_slot = Slot(step, persistent)

        if persistent:
            self._max_slots += 1
            if len(self._slots) >= self._max_slots:
                raise CheckpointContractError(
                    f"Held {len(self._slots)} checkpoints with capacity {self._max_slots}"
                )

        if len(self._slots) < self._max_slots:
            self._insert(new_slot)
        else:
            evict_idx = self._find_eviction_candidate(step)
            # All slots persistent: the admission is dropped.
            if evict_idx < len(self._slots):
                evicted = self._slots.pop(evict_idx).step
                self._insert(new_slot)

        self._metrics.stores += 1
        if evicted != INVALID_CHECKPOINT_INDEX:
            self._metrics.evictions += 1

        return evicted

    # -------------------------------------------------------------------------
    # Queries and removal
    # -------------------------------------------------------------------------

    def _index_of(self, step: int) -> int:
        idx = bisect.bisect_left(self._slots, step, key=lambda s: s.step)
        if idx < len(self._slots) and self._slots[idx].step == step:
            return idx
        return -1

    def last_checkpoint_step(self) -> int:
        if not self._slots:
            raise CheckpointContractError("last_checkpoint_step() called on an empty strategy")
        return self._slots[-1].step

    def remove_step(self, step: int) -> EraseResult:
        idx = self._index_of(step)
        if idx < 0:
            return EraseResult.NOT_FOUND
        if self._slots[idx].persistent:
            return EraseResult.PROTECTED
        del self._slots[idx]
        return EraseResult.REMOVED

    def contains_step(self, step: int) -> bool:
        return self._index_of(step) >= 0

    def steps(self) -> List[int]:
        return [slot.step for slot in self._slots]

    def slots(self) -> List[Slot]:
        """Return copies of the held slots in ascending step order."""
        return [Slot(slot.step, slot.persistent) for slot in self._slots]

    def reset(self) -> None:
        self._slots[:] = [slot for slot in self._slots if slot.persistent]

    def capacity(self) -> int:
        return self._max_slots

    def size(self) -> int:
        return len(self._slots)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats["persistent"] = sum(1 for slot in self._slots if slot.persistent)
        return stats

    def __repr__(self) -> str:
        held = ", ".join(
            f"{slot.step}*" if slot.persistent else str(slot.step) for slot in self._slots
        )
        return f"OnlineR2CheckpointStrategy(capacity={self._max_slots}, steps=[{held}])"
