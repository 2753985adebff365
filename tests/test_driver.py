"""Tests for the checkpointed replay driver."""

from __future__ import annotations

import csv
from typing import List

import pytest
import torch

from adjoint_checkpointing.core import CheckpointContractError
from adjoint_checkpointing.logging import ReplayMetricsLogger
from adjoint_checkpointing.memory import ResidentStore
from adjoint_checkpointing.policies import OnlineR2CheckpointStrategy
from adjoint_checkpointing.replay import advance_and_reverse_steps


class CallbackFailure(Exception):
    pass


def _increment(n: int, state: int) -> int:
    return state + 1


def test_small_budget_visits_every_step_in_reverse() -> None:
    visited: List[int] = []
    strategy = OnlineR2CheckpointStrategy(max_states=3)

    final = advance_and_reverse_steps(
        5, 3, 0, _increment, lambda n, state: visited.append(n), strategy
    )

    assert final == 5
    assert visited == [5, 4, 3, 2, 1, 0]
    assert strategy.metrics().recomputations > 0


@pytest.mark.parametrize("num_steps,storage_size", [(5, 3), (10, 2), (37, 4), (64, 1), (20, 19)])
def test_reverse_callback_sees_the_forward_states(num_steps: int, storage_size: int) -> None:
    seen = {}

    advance_and_reverse_steps(
        num_steps,
        storage_size,
        0,
        _increment,
        lambda n, state: seen.__setitem__(n, state),
    )

    assert seen == {n: n for n in range(num_steps + 1)}


@pytest.mark.parametrize("num_steps,storage_size", [(0, 1), (5, 5), (5, 8), (12, 12)])
def test_no_recomputation_when_everything_fits(num_steps: int, storage_size: int) -> None:
    strategy = OnlineR2CheckpointStrategy(max_states=storage_size)

    advance_and_reverse_steps(
        num_steps, storage_size, 0, _increment, lambda n, state: None, strategy
    )

    assert strategy.metrics().recomputations == 0
    assert strategy.metrics().evictions == 0


@pytest.mark.parametrize("num_steps,storage_size", [(2, 1), (5, 4), (30, 3), (100, 7)])
def test_recomputation_when_budget_is_short(num_steps: int, storage_size: int) -> None:
    strategy = OnlineR2CheckpointStrategy(max_states=storage_size)

    advance_and_reverse_steps(
        num_steps, storage_size, 0, _increment, lambda n, state: None, strategy
    )

    assert strategy.metrics().recomputations > 0


def test_update_calls_equal_steps_plus_recomputations() -> None:
    calls = []

    def update(n: int, state: int) -> int:
        calls.append(n)
        return state + 1

    strategy = OnlineR2CheckpointStrategy(max_states=3)
    advance_and_reverse_steps(25, 3, 0, update, lambda n, state: None, strategy)

    assert len(calls) == 25 + strategy.metrics().recomputations


@pytest.mark.parametrize("num_steps,storage_size", [(1, 1), (9, 2), (40, 5), (63, 6)])
def test_lockstep_holds_throughout_the_run(num_steps: int, storage_size: int) -> None:
    strategy = OnlineR2CheckpointStrategy(max_states=storage_size)
    store = ResidentStore()

    def update(n: int, state: int) -> int:
        store.check_lockstep(strategy)
        return state + 1

    def reverse(n: int, state: int) -> None:
        store.check_lockstep(strategy)
        assert store.steps() == strategy.steps()

    advance_and_reverse_steps(
        num_steps,
        storage_size,
        0,
        update,
        reverse,
        strategy,
        store=store,
        verify_lockstep=True,
    )

    store.check_lockstep(strategy)
    assert strategy.steps() == [0]


def test_zero_steps_calls_reverse_once() -> None:
    visited = []
    final = advance_and_reverse_steps(0, 2, 42, _increment, lambda n, s: visited.append((n, s)))

    assert final == 42
    assert visited == [(0, 42)]


def test_forward_failure_propagates() -> None:
    def update(n: int, state: int) -> int:
        if n == 3:
            raise CallbackFailure("forward")
        return state + 1

    with pytest.raises(CallbackFailure, match="forward"):
        advance_and_reverse_steps(6, 2, 0, update, lambda n, s: None)


def test_reverse_failure_propagates() -> None:
    def reverse(n: int, state: int) -> None:
        if n == 2:
            raise CallbackFailure("reverse")

    with pytest.raises(CallbackFailure, match="reverse"):
        advance_and_reverse_steps(6, 2, 0, _increment, reverse)


def test_failure_during_recomputation_propagates() -> None:
    calls = {"count": 0}

    def update(n: int, state: int) -> int:
        calls["count"] += 1
        if calls["count"] > 10:
            raise CallbackFailure("replay")
        return state + 1

    with pytest.raises(CallbackFailure, match="replay"):
        advance_and_reverse_steps(10, 2, 0, update, lambda n, s: None)


def test_invalid_arguments_are_rejected() -> None:
    with pytest.raises(ValueError):
        advance_and_reverse_steps(-1, 2, 0, _increment, lambda n, s: None)
    with pytest.raises(ValueError):
        advance_and_reverse_steps(3, 0, 0, _increment, lambda n, s: None)


def test_used_strategy_is_rejected() -> None:
    strategy = OnlineR2CheckpointStrategy(max_states=2)
    strategy.admit(0, persistent=True)

    with pytest.raises(CheckpointContractError):
        advance_and_reverse_steps(3, 2, 0, _increment, lambda n, s: None, strategy)


def test_strategy_must_subclass_checkpoint_strategy() -> None:
    class AdmissionOnly:
        def admit(self, step, persistent=False):
            return -1

        def last_checkpoint_step(self):
            return 0

        def erase_step(self, step):
            return True

        def contains_step(self, step):
            return False

        def size(self):
            return 0

    with pytest.raises(TypeError):
        advance_and_reverse_steps(3, 2, 0, _increment, lambda n, s: None, AdmissionOnly())


def test_strategy_that_cannot_hold_replayed_steps_fails_fast() -> None:
    strategy = OnlineR2CheckpointStrategy(max_states=0)
    store = ResidentStore()

    with pytest.raises(CheckpointContractError):
        advance_and_reverse_steps(
            3, 0, 0, _increment, lambda n, s: None, strategy, store=store
        )

    # Dropped forward admissions were never stored.
    assert store.steps() == strategy.steps() == [0]


def test_tensor_states_with_offloading_store() -> None:
    seen = {}

    def update(n: int, state: torch.Tensor) -> torch.Tensor:
        return state * 2.0

    final = advance_and_reverse_steps(
        6,
        2,
        torch.ones(2),
        update,
        lambda n, state: seen.__setitem__(n, state.clone()),
        store=ResidentStore(device="cpu"),
    )

    assert torch.equal(final, torch.full((2,), 64.0))
    for n, state in seen.items():
        assert torch.equal(state, torch.full((2,), 2.0 ** n))


def test_metrics_logger_records_run(tmp_path) -> None:
    logger = ReplayMetricsLogger(tmp_path, checkpoint_interval=4)
    strategy = OnlineR2CheckpointStrategy(max_states=3)

    advance_and_reverse_steps(
        15,
        3,
        0,
        _increment,
        lambda n, s: None,
        strategy,
        metrics_logger=logger,
        progress_bar=True,
    )

    summary = logger.get_summary()
    assert summary["forward_steps"] == 15
    assert summary["reverse_steps"] == 16
    assert summary["recomputed_steps"] == strategy.metrics().recomputations

    with open(logger.metrics_file, newline="") as f:
        rows = list(csv.DictReader(f))

    # 31 control steps, one snapshot every 4
    assert len(rows) == 7
    assert [row["checkpoint_idx"] for row in rows] == [str(i) for i in range(1, 8)]
    assert rows[0]["phase"] == "forward"
    assert rows[-1]["phase"] == "reverse"
