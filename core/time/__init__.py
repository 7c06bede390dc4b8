"""
Salesdocs Core Time - Public API
================================
Explicit clock protocol. Doctrine: NO datetime.now() in lifecycle logic.
"""

from core.time.clock import (
    Clock,
    FixedClock,
    SystemClock,
    epoch_millis,
)

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "epoch_millis",
]
