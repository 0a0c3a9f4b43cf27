"""Vacuum: checkpoint and edit-log history for source trees."""

__version__ = "0.3.0"

# Branded types for record keys and identity segments
from vacuum.types import Identity, Millis

__all__ = [
    "__version__",
    "Identity",
    "Millis",
]
