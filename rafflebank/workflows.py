import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from . import ledger
from .db.utils import as_utc, dt_iso, utcnow
from .draw.engine import DrawResolution, DrawResolutionEngine
from .draw.randomness import RandomnessSource
from .exceptions import (
    DrawNotActive,
    DrawNotFound,
    InsufficientBalance,
    InvalidDraw,
    InvalidQuantity,
    UserNotFound,
)
from .models import DRAW_PENDING, Draw, Notification, Ticket, User, Winner
from .models.notification import TICKET_PURCHASE
from .models.utils import MoneyLike, generate_draw_reference, to_money
from .settings import get_settings

logger = logging.getLogger(__name__)

MIN_TICKETS_PER_PURCHASE = 1
MAX_TICKETS_PER_PURCHASE = 10


@dataclass
class TicketPurchase:
    """Outcome of :func:`purchase_tickets`."""

    draw: Draw
    tickets: list[Ticket]
    total_cost: Decimal

    @property
    def tickets_issued(self) -> int:
        return len(self.tickets)

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_id": self.draw.id,
            "tickets_issued": self.tickets_issued,
            "ticket_ids": [t.id for t in self.tickets],
            "total_cost": str(self.total_cost),
        }


@dataclass
class UserTicket:
    """A ticket together with the state of its draw."""

    ticket: Ticket
    draw: Draw

    @property
    def is_winning(self) -> bool:
        return self.draw.winning_ticket_id == self.ticket.id

    def to_json(self) -> dict[str, Any]:
        data = self.ticket.to_json()
        data.update(
            {
                "draw_reference": self.draw.reference,
                "draw_time": dt_iso(self.draw.draw_time),
                "draw_status": self.draw.status,
                "ticket_price": str(self.draw.ticket_price),
                "is_winning": self.is_winning,
            }
        )
        return data


@dataclass
class RaffleStats:
    total_users: int
    active_draws: int
    total_winners: int
    total_prizes: Decimal

    def to_json(self) -> dict[str, Any]:
        return {
            "total_users": self.total_users,
            "active_draws": self.active_draws,
            "total_winners": self.total_winners,
            "total_prizes": str(self.total_prizes),
        }


def _validate_quantity(quantity: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity()
    if not MIN_TICKETS_PER_PURCHASE <= quantity <= MAX_TICKETS_PER_PURCHASE:
        raise InvalidQuantity()
    return quantity


def create_draw(
    session: Session,
    draw_time: datetime,
    ticket_price: MoneyLike,
    *,
    now: Optional[datetime] = None,
) -> Draw:
    """Schedule a new ``pending`` draw.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    draw_time : datetime
        When the draw becomes due. Naive values are taken as UTC.
    ticket_price : Decimal | int | str
        Positive price of one ticket.
    now : Optional[datetime], default: None
        Reference time; ``draw_time`` must be later. Defaults to current UTC.

    Returns
    -------
    Draw
        The flushed draw with its ``id`` and public ``reference`` assigned.

    Raises
    ------
    InvalidDraw
        If the price is not a positive amount or ``draw_time`` is not in
        the future.
    """

    now = as_utc(now or utcnow())
    try:
        price = to_money(ticket_price)
    except (TypeError, ValueError) as exc:
        raise InvalidDraw(f"Invalid ticket price: {ticket_price!r}") from exc
    if price <= 0:
        raise InvalidDraw("Ticket price must be positive")
    if as_utc(draw_time) <= now:
        raise InvalidDraw("Draw time must be in the future")

    draw = Draw(
        draw_time=draw_time,
        ticket_price=price,
        reference=generate_draw_reference(session),
    )
    session.add(draw)
    session.flush()
    logger.info(f"Created draw {draw.reference} at {draw.draw_time} priced {price}")
    return draw


def purchase_tickets(
    session: Session,
    user_id: int,
    draw_id: int,
    quantity: int,
    *,
    now: Optional[datetime] = None,
    currency: Optional[str] = None,
) -> TicketPurchase:
    """Buy ``quantity`` tickets for ``draw_id`` on behalf of ``user_id``.

    The workflow performs three coordinated writes in the caller's
    transaction:

    1. Debit ``quantity`` x ``ticket_price`` from the user's balance.
    2. Insert one ticket row per unit purchased.
    3. Queue a single ``ticket_purchase`` notification.

    Either all three persist or none do: the function only flushes, and
    the caller's ``Session.begin()`` scope rolls everything back when any
    step raises.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    user_id : int
        Buyer's account.
    draw_id : int
        Draw to participate in.
    quantity : int
        Number of tickets, between 1 and 10.
    now : Optional[datetime], default: None
        Reference time for the "draw has started" check.
    currency : Optional[str], default: None
        Currency label for log output. Defaults to the configured one.

    Returns
    -------
    TicketPurchase
        The issued tickets and the total cost.

    Raises
    ------
    InvalidQuantity
        If ``quantity`` is not an integer in ``[1, 10]``. Raised before any
        database access.
    DrawNotFound
        If the draw does not exist.
    DrawNotActive
        If the draw is not ``pending`` or its time has arrived.
    UserNotFound
        If the account does not exist.
    InsufficientBalance
        If the balance does not cover the total cost.
    """

    quantity = _validate_quantity(quantity)
    now = as_utc(now or utcnow())
    currency = currency or get_settings().currency

    # Shared lock: concurrent purchases proceed, a resolution waits.
    draw = Draw.lock(session, draw_id, shared=True)
    if draw is None:
        raise DrawNotFound()
    if not draw.is_pending:
        raise DrawNotActive("This draw is not active")
    if not draw.is_purchasable(now):
        raise DrawNotActive("This draw has already started")

    user = User.lock(session, user_id)
    if user is None:
        raise UserNotFound()
    logger.debug(f"Locked draw {draw.reference} and user {user_id} for purchase")

    total_cost = to_money(draw.ticket_price * quantity)
    if user.balance < total_cost:
        logger.info(
            f"User {user_id} cannot afford {quantity} ticket(s) for draw "
            f"{draw.reference}: balance {user.balance}, cost {total_cost}"
        )
        raise InsufficientBalance()

    ledger.debit(session, user_id, total_cost)

    tickets = [Ticket(user_id=user_id, draw_id=draw.id, purchased_at=now) for _ in range(quantity)]
    session.add_all(tickets)

    Notification.enqueue(
        session,
        user_id,
        f"Purchased {quantity} ticket(s) for draw #{draw.reference}",
        TICKET_PURCHASE,
    )
    session.flush()

    logger.info(
        f"User {user_id} bought {quantity} ticket(s) for draw {draw.reference} "
        f"({currency} {total_cost})"
    )
    return TicketPurchase(draw=draw, tickets=tickets, total_cost=total_cost)


def resolve_draw(
    session: Session,
    draw_id: int,
    *,
    now: Optional[datetime] = None,
    randomness: Optional[RandomnessSource] = None,
    currency: Optional[str] = None,
) -> DrawResolution:
    """Resolve a due draw into a winner payout or a full refund.

    This function wraps :class:`~rafflebank.draw.engine.DrawResolutionEngine`.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session; the caller commits.
    draw_id : int
        Draw to resolve.
    now : Optional[datetime], default: None
        Reference time for the due check.
    randomness : Optional[RandomnessSource], default: None
        Winner selection source; the CSPRNG-backed default when omitted.
    currency : Optional[str], default: None
        Currency label for notification text. Defaults to the configured one.

    Returns
    -------
    DrawResolution
        ``completed`` with the winner and prize, or ``cancelled`` with the
        refunds.

    Raises
    ------
    DrawNotFound, DrawAlreadyResolved, DrawNotYetDue
        See :meth:`DrawResolutionEngine.resolve`.
    """

    engine = DrawResolutionEngine(
        session,
        randomness=randomness,
        currency=currency or get_settings().currency,
    )
    return engine.resolve(draw_id, now=now)


def list_upcoming_draws(
    session: Session, *, now: Optional[datetime] = None, limit: int = 5
) -> list[tuple[Draw, int]]:
    """Return the next pending draws with their current ticket counts.

    Draws are ordered by ``draw_time``; those whose time has already arrived
    are excluded since they can no longer sell tickets.
    """

    now = as_utc(now or utcnow())
    stmt = (
        select(Draw, func.count(Ticket.id))
        .outerjoin(Ticket, Ticket.draw_id == Draw.id)
        .where(Draw.status == DRAW_PENDING, Draw.draw_time > now)
        .group_by(Draw.id)
        .order_by(Draw.draw_time.asc(), Draw.id.asc())
        .limit(limit)
    )
    return [(draw, count) for draw, count in session.execute(stmt).all()]


def list_available_draws(
    session: Session, *, now: Optional[datetime] = None
) -> list[Draw]:
    """Return every draw currently open for ticket purchases."""

    now = as_utc(now or utcnow())
    stmt = (
        select(Draw)
        .where(Draw.status == DRAW_PENDING, Draw.draw_time > now)
        .order_by(Draw.draw_time.asc(), Draw.id.asc())
    )
    return list(session.scalars(stmt).all())


def list_due_draws(session: Session, *, now: Optional[datetime] = None) -> list[Draw]:
    """Return pending draws whose scheduled time has arrived."""

    now = as_utc(now or utcnow())
    stmt = (
        select(Draw)
        .where(Draw.status == DRAW_PENDING, Draw.draw_time <= now)
        .order_by(Draw.draw_time.asc(), Draw.id.asc())
    )
    return list(session.scalars(stmt).all())


def list_recent_winners(session: Session, *, limit: int = 10) -> list[Winner]:
    """Return the most recently announced winners, newest first."""

    stmt = (
        select(Winner)
        .options(joinedload(Winner.draw), joinedload(Winner.user))
        .order_by(Winner.announced_at.desc(), Winner.id.desc())
        .limit(limit)
    )
    return list(session.scalars(stmt).all())


def list_user_tickets(session: Session, user_id: int) -> list[UserTicket]:
    """Return ``user_id``'s tickets, newest first, with their draws."""

    stmt = (
        select(Ticket, Draw)
        .join(Draw, Ticket.draw_id == Draw.id)
        .where(Ticket.user_id == user_id)
        .order_by(Ticket.purchased_at.desc(), Ticket.id.desc())
    )
    return [UserTicket(ticket=t, draw=d) for t, d in session.execute(stmt).all()]


def get_stats(session: Session) -> RaffleStats:
    """Return dashboard totals across all users and draws."""

    total_users = session.scalar(select(func.count(User.id))) or 0
    active_draws = (
        session.scalar(select(func.count(Draw.id)).where(Draw.status == DRAW_PENDING)) or 0
    )
    total_winners = session.scalar(select(func.count(Winner.id))) or 0
    total_prizes = session.scalar(select(func.sum(Winner.prize_amount)))
    return RaffleStats(
        total_users=total_users,
        active_draws=active_draws,
        total_winners=total_winners,
        total_prizes=to_money(total_prizes) if total_prizes is not None else Decimal("0.00"),
    )


__all__ = [
    "MIN_TICKETS_PER_PURCHASE",
    "MAX_TICKETS_PER_PURCHASE",
    "TicketPurchase",
    "UserTicket",
    "RaffleStats",
    "create_draw",
    "purchase_tickets",
    "resolve_draw",
    "list_upcoming_draws",
    "list_available_draws",
    "list_due_draws",
    "list_recent_winners",
    "list_user_tickets",
    "get_stats",
]
