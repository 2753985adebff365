"""Online checkpointing for memory-bounded reverse (adjoint) sweeps."""

__version__ = "0.1.0"

from adjoint_checkpointing import (
    core,
    logging,
    memory,
    policies,
    replay,
    utils,
)
from adjoint_checkpointing.core import (
    INVALID_CHECKPOINT_INDEX,
    CheckpointContractError,
    CheckpointMetrics,
    EraseResult,
    valid_checkpoint_index,
)
from adjoint_checkpointing.memory import ResidentStore
from adjoint_checkpointing.policies import (
    CheckpointStrategy,
    OnlineR2CheckpointStrategy,
    create_checkpoint_strategy,
)
from adjoint_checkpointing.replay import advance_and_reverse_steps

__all__ = [
    "core",
    "logging",
    "memory",
    "policies",
    "replay",
    "utils",
    "INVALID_CHECKPOINT_INDEX",
    "CheckpointContractError",
    "CheckpointMetrics",
    "EraseResult",
    "valid_checkpoint_index",
    "ResidentStore",
    "CheckpointStrategy",
    "OnlineR2CheckpointStrategy",
    "create_checkpoint_strategy",
    "advance_and_reverse_steps",
]
