"""Named failure conditions raised by the purchase and resolution workflows.

Every condition subclasses :class:`ValueError` so callers that only care
about "the request was rejected" can keep catching ``ValueError``. The
``code`` attribute is a stable identifier for mapping onto client-visible
responses.
"""

from __future__ import annotations

from typing import Optional


class RaffleError(ValueError):
    """Base class for rejected raffle operations."""

    code = "raffle_error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)


class InvalidQuantity(RaffleError):
    """Ticket quantity must be an integer between 1 and 10."""

    code = "invalid_quantity"


class InvalidDraw(RaffleError):
    """Draw parameters are invalid."""

    code = "invalid_draw"


class DrawNotFound(RaffleError):
    """Draw not found."""

    code = "draw_not_found"


class DrawNotActive(RaffleError):
    """This draw is not open for ticket purchases."""

    code = "draw_not_active"


class DrawNotYetDue(RaffleError):
    """Draw time has not yet arrived."""

    code = "draw_not_yet_due"


class DrawAlreadyResolved(RaffleError):
    """Draw has already been completed or cancelled."""

    code = "draw_already_resolved"


class UserNotFound(RaffleError):
    """User not found."""

    code = "user_not_found"


class InsufficientBalance(RaffleError):
    """Insufficient balance."""

    code = "insufficient_balance"


__all__ = [
    "RaffleError",
    "InvalidQuantity",
    "InvalidDraw",
    "DrawNotFound",
    "DrawNotActive",
    "DrawNotYetDue",
    "DrawAlreadyResolved",
    "UserNotFound",
    "InsufficientBalance",
]
