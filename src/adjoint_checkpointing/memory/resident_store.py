"""
Resident-state store for checkpointed reverse sweeps.

Holds the heavy state payloads keyed by step index. The store never decides
what to keep; it mirrors the admissions and evictions reported by a
checkpoint strategy, and can verify that it is still in lockstep with it.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

import torch

from ..core.errors import CheckpointContractError
from ..policies.base import CheckpointStrategy


class ResidentStore:
    """
    Step-indexed store of checkpointed states.

    Args:
        device: If set, tensor payloads are moved to this device when stored
            (e.g. "cpu" to keep checkpoints out of GPU memory). Non-tensor
            payloads are stored as-is.

    Usage:
        store = ResidentStore()
        store.put(0, x0)
        evicted = strategy.admit(1)
        if valid_checkpoint_index(evicted):
            store.discard(evicted)
        store.put(1, x1)
        store.check_lockstep(strategy)
    """

    def __init__(self, device: Optional[str | torch.device] = None):
        self.device = device
        self._states: Dict[int, Any] = {}

        self.total_puts = 0
        self.total_discards = 0

    def put(self, step: int, state: Any) -> None:
        """Store ``state`` at ``step``, replacing any previous payload."""
        if self.device is not None and isinstance(state, torch.Tensor):
            state = state.to(self.device)
        self._states[step] = state
        self.total_puts += 1

    def get(self, step: int) -> Any:
        """
        Return the state at ``step``.

        Raises:
            CheckpointContractError: If the step is not resident.
        """
        try:
            return self._states[step]
        except KeyError:
            raise CheckpointContractError(f"No resident state for step {step}") from None

    def discard(self, step: int) -> bool:
        """Drop the state at ``step``. Returns False if it was not resident."""
        if step not in self._states:
            return False
        del self._states[step]
        self.total_discards += 1
        return True

    def steps(self) -> List[int]:
        """Return resident steps in ascending order."""
        return sorted(self._states)

    def clear(self) -> None:
        self._states.clear()

    def check_lockstep(self, strategy: CheckpointStrategy) -> None:
        """
        Verify the resident steps are exactly the steps held by ``strategy``.

        Raises:
            CheckpointContractError: On any mismatch.
        """
        # Equal sizes plus inclusion of every key means equal sets.
        missing = [step for step in self._states if not strategy.contains_step(step)]
        if missing or strategy.size() != len(self._states):
            raise CheckpointContractError(
                f"Resident store out of lockstep with strategy: "
                f"store={self.steps()} strategy={strategy.steps()}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            "size": len(self._states),
            "total_puts": self.total_puts,
            "total_discards": self.total_discards,
            "device": str(self.device) if self.device is not None else None,
        }

    def __contains__(self, step: object) -> bool:
        return step in self._states

    def __iter__(self) -> Iterator[int]:
        return iter(self.steps())

    def __len__(self) -> int:
        return len(self._states)
