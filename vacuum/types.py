"""Branded types for Vacuum.

NewType wrappers keep record keys and identity segments from being mixed up
with ordinary ints and strings at type-check time.
"""

from typing import NewType

# Milliseconds since the epoch. Doubles as the on-disk key of every record.
Millis = NewType("Millis", int)

# Directory segment that partitions histories (commit SHA or "no-git").
Identity = NewType("Identity", str)

__all__ = ["Identity", "Millis"]
