"""Utilities for the draw resolution subsystem."""

from .engine import DrawResolution, DrawResolutionEngine
from .payout import (
    MIN_TICKETS_FOR_PRIZE,
    PRIZE_SHARE,
    meets_quorum,
    pool_amount,
    prize_amount,
    refund_breakdown,
)
from .randomness import (
    DEFAULT_RANDOMNESS,
    RandomnessSource,
    SecureRandomSource,
    secure_choice,
    secure_index,
)

__all__ = [
    "DrawResolution",
    "DrawResolutionEngine",
    "MIN_TICKETS_FOR_PRIZE",
    "PRIZE_SHARE",
    "meets_quorum",
    "pool_amount",
    "prize_amount",
    "refund_breakdown",
    "DEFAULT_RANDOMNESS",
    "RandomnessSource",
    "SecureRandomSource",
    "secure_choice",
    "secure_index",
]
