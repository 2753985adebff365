"""
Checkpointed forward/reverse replay driver.

Runs a linear chain of steps forward, keeping only the states a checkpoint
strategy admits, then walks the chain backward, recomputing missing states
from the nearest resident checkpoint. This is the scheduling half of an
adjoint (reverse-mode) sweep: the caller supplies the forward update and the
backward callback, the driver decides which state is resident when.

Key functions:
    advance_and_reverse_steps   Forward sweep + checkpointed reverse sweep
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from tqdm import tqdm

from ..core.errors import CheckpointContractError
from ..core.slots import EraseResult, valid_checkpoint_index
from ..logging import ReplayMetricsLogger
from ..memory import ResidentStore
from ..policies import CheckpointStrategy, OnlineR2CheckpointStrategy

T = TypeVar("T")


# =============================================================================
# Lockstep helpers
# =============================================================================


def _admit_state(
    strategy: CheckpointStrategy,
    store: ResidentStore,
    step: int,
    state: T,
) -> bool:
    """
    Admit ``step`` to the strategy and mirror the outcome in the store.

    Returns:
        False if the strategy dropped the admission (nothing is stored).
    """
    evicted = strategy.admit(step, persistent=False)
    if valid_checkpoint_index(evicted) and not store.discard(evicted):
        raise CheckpointContractError(
            f"Strategy evicted step {evicted} which has no resident state"
        )

    if not strategy.contains_step(step):
        return False

    store.put(step, state)
    return True


def _retire_state(strategy: CheckpointStrategy, store: ResidentStore, step: int) -> None:
    """Release ``step`` after its reverse callback has run."""
    result = strategy.remove_step(step)
    if result is EraseResult.REMOVED:
        store.discard(step)
    elif result is EraseResult.NOT_FOUND:
        raise CheckpointContractError(f"Retired step {step} is not held by the strategy")
    # Persistent steps stay held, so their state stays resident too.


# =============================================================================
# Replay driver
# =============================================================================


def advance_and_reverse_steps(
    num_steps: int,
    storage_size: int,
    x: T,
    update_func: Callable[[int, T], T],
    reverse_callback: Callable[[int, T], None],
    strategy: Optional[CheckpointStrategy] = None,
    *,
    store: Optional[ResidentStore] = None,
    metrics_logger: Optional[ReplayMetricsLogger] = None,
    progress_bar: bool = False,
    verify_lockstep: bool = False,
) -> T:
    """
    Run ``num_steps`` forward, then call ``reverse_callback`` from the last
    step back to step 0 with each step's state, using at most
    ``storage_size`` non-persistent checkpoints.

    Forward sweep: step 0 is admitted as a persistent checkpoint (the replay
    origin of last resort). Each new state ``x_{n+1} = update_func(n, x_n)``
    is offered to the strategy; evicted states are dropped from the store.

    Reverse sweep: for ``i = num_steps .. 0``, states missing between the
    last resident checkpoint and ``i`` are recomputed with ``update_func``
    (and re-admitted, counting one recomputation each), then
    ``reverse_callback(i, x_i)`` runs and step ``i`` is retired.

    Exceptions raised by ``update_func`` or ``reverse_callback`` propagate
    unchanged.

    Args:
        num_steps: Number of forward updates.
        storage_size: Checkpoint budget for the default strategy.
        x: Initial state (step 0).
        update_func: Forward update ``(n, x_n) -> x_{n+1}``. Must be
            deterministic, since replayed steps have to reproduce the
            original states.
        reverse_callback: Backward action ``(n, x_n) -> None``.
        strategy: Checkpoint strategy to drive. Defaults to
            ``OnlineR2CheckpointStrategy(storage_size)``. Must be fresh
            (holding no checkpoints) and a ``CheckpointStrategy`` subclass:
            besides the admission interface the driver uses
            ``remove_step`` to retire steps, ``steps`` for lockstep checks
            and ``get_stats`` for metrics snapshots.
        store: Resident store to fill. Defaults to an empty ``ResidentStore``.
        metrics_logger: Optional logger for replay metrics snapshots.
        progress_bar: Show tqdm progress bars for both sweeps.
        verify_lockstep: Check store/strategy lockstep after every admission
            and retirement (raises ``CheckpointContractError`` on mismatch).

    Returns:
        The final forward state (step ``num_steps``).
    """
    if num_steps < 0:
        raise ValueError(f"num_steps must be non-negative, got {num_steps}")

    if strategy is None:
        if storage_size < 1:
            raise ValueError(f"storage_size must be at least 1, got {storage_size}")
        strategy = OnlineR2CheckpointStrategy(max_states=storage_size)
    elif not isinstance(strategy, CheckpointStrategy):
        raise TypeError(
            f"strategy must be a CheckpointStrategy, got {type(strategy).__name__}"
        )
    if store is None:
        store = ResidentStore()

    if strategy.size() != 0 or len(store) != 0:
        raise CheckpointContractError("A replay run needs a fresh strategy and an empty store")

    checkpoint_idx = 0

    def maybe_snapshot(phase: str, step: int) -> None:
        nonlocal checkpoint_idx
        if metrics_logger is not None and metrics_logger.should_checkpoint():
            checkpoint_idx += 1
            metrics_logger.log_checkpoint(
                checkpoint_idx,
                phase,
                step,
                strategy_stats=strategy.get_stats(),
                store_stats=store.get_stats(),
            )

    # Forward sweep
    strategy.admit(0, persistent=True)
    store.put(0, x)
    if verify_lockstep:
        store.check_lockstep(strategy)

    for n in tqdm(range(num_steps), desc="Forward", disable=not progress_bar):
        x = update_func(n, x)
        _admit_state(strategy, store, n + 1, x)
        if verify_lockstep:
            store.check_lockstep(strategy)

        if metrics_logger is not None:
            metrics_logger.log_forward_step()
        maybe_snapshot("forward", n + 1)

    final_state = x

    # Reverse sweep
    for i in tqdm(range(num_steps, -1, -1), desc="Reverse", disable=not progress_bar):
        while strategy.last_checkpoint_step() < i:
            last = strategy.last_checkpoint_step()
            state = update_func(last, store.get(last))
            if not _admit_state(strategy, store, last + 1, state):
                raise CheckpointContractError(
                    f"Strategy dropped recomputed step {last + 1}; the reverse sweep cannot advance"
                )
            strategy.record_recomputation()
            if verify_lockstep:
                store.check_lockstep(strategy)
            if metrics_logger is not None:
                metrics_logger.log_recomputation()

        reverse_callback(i, store.get(i))

        _retire_state(strategy, store, i)
        if verify_lockstep:
            store.check_lockstep(strategy)

        if metrics_logger is not None:
            metrics_logger.log_reverse_step()
        maybe_snapshot("reverse", i)

    return final_state
