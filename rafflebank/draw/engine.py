"""Engine that resolves due draws into a winner payout or a full refund."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from .payout import meets_quorum, prize_amount, refund_breakdown, MIN_TICKETS_FOR_PRIZE
from .randomness import DEFAULT_RANDOMNESS, RandomnessSource, secure_choice
from .. import ledger
from ..db.utils import as_utc, utcnow
from ..exceptions import DrawAlreadyResolved, DrawNotFound, DrawNotYetDue
from ..models import Draw, Notification, Ticket, Winner
from ..models.draw import DRAW_CANCELLED, DRAW_COMPLETED
from ..models.notification import DRAW_COMPLETED as DRAW_COMPLETED_NOTICE
from ..models.notification import REFUND, WINNER

logger = logging.getLogger(__name__)


@dataclass
class DrawResolution:
    """Value object describing how a draw was resolved.

    Attributes
    ----------
    draw : Draw
        The resolved draw, now ``completed`` or ``cancelled``.
    status : str
        Terminal status applied by the resolution.
    ticket_count : int
        Number of tickets the resolution was computed from.
    winner : Optional[Winner]
        Winner record; ``None`` for a cancelled draw.
    prize_amount : Optional[Decimal]
        Amount credited to the winner; ``None`` for a cancelled draw.
    refunds : dict[int, Decimal]
        Amount refunded per user; empty for a completed draw.
    """

    draw: Draw
    status: str
    ticket_count: int
    winner: Optional[Winner] = None
    prize_amount: Optional[Decimal] = None
    refunds: dict[int, Decimal] = field(default_factory=dict)

    @property
    def winner_id(self) -> Optional[int]:
        return self.winner.user_id if self.winner is not None else None

    def to_json(self) -> dict[str, Any]:
        """Return the boundary payload for the resolution."""

        if self.status == DRAW_COMPLETED:
            if self.winner is None or self.prize_amount is None:
                raise ValueError("completed resolution is missing its winner or prize")
            return {
                "status": DRAW_COMPLETED,
                "draw_id": self.draw.id,
                "winner_id": self.winner.user_id,
                "winning_ticket_id": self.winner.ticket_id,
                "prize_amount": str(self.prize_amount),
                "total_tickets": self.ticket_count,
            }
        return {
            "status": DRAW_CANCELLED,
            "draw_id": self.draw.id,
            "refunded_tickets": self.ticket_count,
            "refund_amount_per_ticket": str(self.draw.ticket_price),
        }


class DrawResolutionEngine:
    """Engine that settles a single draw inside the caller's transaction."""

    def __init__(
        self,
        session: Session,
        *,
        randomness: Optional[RandomnessSource] = None,
        currency: str = "ETB",
    ) -> None:
        """Create a resolution engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session. The engine flushes but never commits;
            the caller's transaction scope decides the outcome.
        randomness : Optional[RandomnessSource], default: None
            Source used to pick the winning ticket. Typically omitted, in
            which case the CSPRNG-backed default is used.
        currency : str, default: "ETB"
            Currency label used in notification messages.
        """

        self._session = session
        self._randomness = randomness or DEFAULT_RANDOMNESS
        self._currency = currency

    def resolve(self, draw_id: int, *, now: Optional[datetime] = None) -> DrawResolution:
        """Resolve ``draw_id`` to ``completed`` or ``cancelled``.

        Parameters
        ----------
        draw_id : int
            Primary key of the draw to resolve.
        now : Optional[datetime], default: None
            Reference time for the due check. Defaults to the current UTC time.

        Returns
        -------
        DrawResolution
            Description of the applied outcome.

        Notes
        -----
        The process performs the following steps in one transaction:

        1. Lock the draw row and check it exists, is ``pending`` and is due.
        2. Load every ticket of the draw under that lock, so the count used
           for the quorum check is the count that gets paid out.
        3. With fewer than five tickets, cancel the draw and refund every
           ticket's price to its owner.
        4. Otherwise pick one ticket uniformly at random, complete the draw,
           record the winner and credit 80% of the pool.

        The status change is a conditional UPDATE performed before any
        balance moves; a caller that loses a race gets
        :class:`~rafflebank.exceptions.DrawAlreadyResolved` and has credited
        nothing.

        Raises
        ------
        DrawNotFound
            If the draw does not exist.
        DrawAlreadyResolved
            If the draw is not ``pending`` (including a lost race).
        DrawNotYetDue
            If ``now`` is before the scheduled draw time.
        """

        now = as_utc(now or utcnow())

        draw = Draw.lock(self._session, draw_id)
        if draw is None:
            raise DrawNotFound()
        if not draw.is_pending:
            logger.warning(f"Draw {draw.reference} is already {draw.status}; not resolving again")
            raise DrawAlreadyResolved()
        if not draw.is_due(now):
            logger.warning(f"Draw {draw.reference} is not due until {draw.draw_time}")
            raise DrawNotYetDue()

        tickets = Ticket.for_draw(self._session, draw.id)
        if not meets_quorum(len(tickets)):
            return self._cancel(draw, tickets, now)
        return self._complete(draw, tickets, now)

    def _cancel(self, draw: Draw, tickets: list[Ticket], now: datetime) -> DrawResolution:
        """Refund every ticket and mark ``draw`` cancelled."""

        if not Draw.transition(self._session, draw.id, DRAW_CANCELLED, resolved_at=now):
            raise DrawAlreadyResolved()

        # One credit per ticket, in (user, ticket) order so concurrent
        # resolutions lock account rows in the same order.
        for ticket in sorted(tickets, key=lambda t: (t.user_id, t.id)):
            ledger.credit(self._session, ticket.user_id, draw.ticket_price)

        refunds = refund_breakdown((t.user_id for t in tickets), draw.ticket_price)
        for user_id, amount in refunds.items():
            count = sum(1 for t in tickets if t.user_id == user_id)
            Notification.enqueue(
                self._session,
                user_id,
                f"Draw #{draw.reference} was cancelled due to insufficient participants "
                f"(less than {MIN_TICKETS_FOR_PRIZE}). Your {count} ticket(s) totalling "
                f"{self._currency} {amount} have been fully refunded.",
                REFUND,
            )

        self._session.flush()
        logger.info(
            f"Draw {draw.reference} cancelled with {len(tickets)} ticket(s); "
            f"refunded {sum(refunds.values(), Decimal('0.00'))} to {len(refunds)} user(s)"
        )
        return DrawResolution(
            draw=draw,
            status=DRAW_CANCELLED,
            ticket_count=len(tickets),
            refunds=refunds,
        )

    def _complete(self, draw: Draw, tickets: list[Ticket], now: datetime) -> DrawResolution:
        """Select a winning ticket, pay the prize and mark ``draw`` completed."""

        winning_ticket = secure_choice(tickets, self._randomness)
        prize = prize_amount(len(tickets), draw.ticket_price)

        if not Draw.transition(
            self._session,
            draw.id,
            DRAW_COMPLETED,
            winning_ticket_id=winning_ticket.id,
            resolved_at=now,
        ):
            raise DrawAlreadyResolved()

        winner = Winner(
            user_id=winning_ticket.user_id,
            draw_id=draw.id,
            ticket_id=winning_ticket.id,
            prize_amount=prize,
            announced_at=now,
        )
        self._session.add(winner)
        ledger.credit(self._session, winning_ticket.user_id, prize)

        Notification.enqueue(
            self._session,
            winning_ticket.user_id,
            f"Congratulations! You won {self._currency} {prize} in draw #{draw.reference}!",
            WINNER,
        )
        notified = {winning_ticket.user_id}
        for ticket in tickets:
            if ticket.user_id in notified:
                continue
            notified.add(ticket.user_id)
            Notification.enqueue(
                self._session,
                ticket.user_id,
                f"Draw #{draw.reference} has been completed. The winner has been "
                "selected. Better luck next time!",
                DRAW_COMPLETED_NOTICE,
            )

        self._session.flush()
        logger.info(
            f"Draw {draw.reference} completed: ticket {winning_ticket.id} of "
            f"{len(tickets)} won {prize} for user {winning_ticket.user_id}"
        )
        return DrawResolution(
            draw=draw,
            status=DRAW_COMPLETED,
            ticket_count=len(tickets),
            winner=winner,
            prize_amount=prize,
        )


__all__ = ["DrawResolution", "DrawResolutionEngine"]
