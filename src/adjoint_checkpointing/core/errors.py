"""Exceptions raised when the checkpointing contract is broken."""

from __future__ import annotations


class CheckpointContractError(RuntimeError):
    """
    A checkpoint strategy or its resident store was used out of contract.

    Raised for programming errors such as querying an empty strategy,
    admitting a step twice, or a resident store drifting out of lockstep
    with the strategy's held steps. These are never recovered from.
    """
