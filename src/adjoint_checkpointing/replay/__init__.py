"""
Checkpointed replay for reverse sweeps.

- advance_and_reverse_steps: forward sweep with checkpoint admission, then a
  reverse sweep that recomputes evicted states on demand
"""

from .driver import advance_and_reverse_steps

__all__ = ["advance_and_reverse_steps"]
