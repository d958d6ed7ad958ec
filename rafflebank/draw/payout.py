"""Prize and refund arithmetic for draw resolution."""

from __future__ import annotations

from collections import Counter
from decimal import Decimal
from typing import Iterable

from ..models.utils import MoneyLike, to_money

MIN_TICKETS_FOR_PRIZE = 5
"""Quorum: draws with fewer tickets are cancelled and refunded."""

PRIZE_SHARE = Decimal("0.8")
"""Share of the pool paid to the winner; the remainder is never issued."""


def meets_quorum(ticket_count: int) -> bool:
    """Whether ``ticket_count`` tickets are enough to pay out a prize."""

    return ticket_count >= MIN_TICKETS_FOR_PRIZE


def pool_amount(ticket_count: int, ticket_price: MoneyLike) -> Decimal:
    """Total amount paid for ``ticket_count`` tickets."""

    if ticket_count < 0:
        raise ValueError("ticket_count must be non-negative")
    return to_money(to_money(ticket_price) * ticket_count)


def prize_amount(ticket_count: int, ticket_price: MoneyLike) -> Decimal:
    """Winner's prize: 80% of the pool, rounded down to the cent."""

    return to_money(pool_amount(ticket_count, ticket_price) * PRIZE_SHARE)


def refund_breakdown(
    ticket_owner_ids: Iterable[int], ticket_price: MoneyLike
) -> dict[int, Decimal]:
    """Map each ticket owner to the refund owed on a cancelled draw.

    Each owner receives ``ticket_price`` per ticket held, so the values sum
    to exactly the pool.
    """

    price = to_money(ticket_price)
    counts = Counter(ticket_owner_ids)
    return {user_id: to_money(price * count) for user_id, count in counts.items()}


__all__ = [
    "MIN_TICKETS_FOR_PRIZE",
    "PRIZE_SHARE",
    "meets_quorum",
    "pool_amount",
    "prize_amount",
    "refund_breakdown",
]
