"""Database model for scheduled lottery draws."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    select,
    update,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from ..db.utils import as_utc, dt_iso
from .base import Base
from .types import ID_TYPE, MONEY_TYPE
from .utils import MoneyLike, expire_cached, generate_draw_reference, to_money

if TYPE_CHECKING:
    from .ticket import Ticket
    from .winner import Winner


DRAW_PENDING = "pending"
DRAW_COMPLETED = "completed"
DRAW_CANCELLED = "cancelled"

DRAW_STATUSES = (DRAW_PENDING, DRAW_COMPLETED, DRAW_CANCELLED)
TERMINAL_STATUSES = (DRAW_COMPLETED, DRAW_CANCELLED)


class Draw(Base):
    """One scheduled lottery round with its own ticket price and pool.

    A draw is created ``pending`` and leaves that state exactly once, to
    ``completed`` or ``cancelled``. :meth:`transition` is the only writer of
    ``status``; assigning the attribute directly raises ``ValueError``.
    """

    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    reference: Mapped[str] = mapped_column(String(12), nullable=False, unique=True)
    """Short public code shown to users, e.g. in ``draw #7KQ2ZD``."""

    draw_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Scheduled resolution instant (UTC)."""

    ticket_price: Mapped[Decimal] = mapped_column(MONEY_TYPE, nullable=False)
    """Price of one ticket; also the per-ticket refund on cancellation."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=DRAW_PENDING)
    """Lifecycle status: ``pending``, ``completed`` or ``cancelled``."""

    winning_ticket_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE,
        ForeignKey("tickets.id", use_alter=True, ondelete="RESTRICT"),
        nullable=True,
    )
    """Winning ticket, set only when the draw is ``completed``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """When the draw left ``pending``."""

    tickets: Mapped[list["Ticket"]] = relationship(
        "Ticket",
        back_populates="draw",
        foreign_keys="Ticket.draw_id",
        order_by="Ticket.id",
    )
    winning_ticket: Mapped[Optional["Ticket"]] = relationship(
        "Ticket", foreign_keys=[winning_ticket_id], post_update=True
    )
    winner: Mapped[Optional["Winner"]] = relationship(
        "Winner", back_populates="draw", uselist=False
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ({})".format(",".join(f"'{s}'" for s in DRAW_STATUSES)),
            name="status_enum",
        ),
        CheckConstraint("ticket_price > 0", name="ticket_price_positive"),
        CheckConstraint(
            "(status = 'completed' AND winning_ticket_id IS NOT NULL) OR "
            "(status <> 'completed' AND winning_ticket_id IS NULL)",
            name="winning_ticket_iff_completed",
        ),
        Index("ix_draws_status_draw_time", "status", "draw_time"),
    )

    def __init__(
        self,
        *,
        draw_time: datetime,
        ticket_price: MoneyLike,
        reference: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        """Create a ``pending`` draw.

        Parameters
        ----------
        draw_time : datetime
            Scheduled resolution instant. Naive values are taken as UTC.
        ticket_price : Decimal | int | str
            Positive ticket price, quantized to cents.
        reference : str, optional
            Public reference code. Generated when omitted.
        created_at : datetime, optional
            Explicit creation timestamp.
        """

        self.draw_time = as_utc(draw_time)
        self.ticket_price = to_money(ticket_price)
        self.status = DRAW_PENDING
        self.reference = reference or generate_draw_reference()
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Draw(id={id}, reference={ref}, status={status}, draw_time={when})>".format(
            id=self.id,
            ref=self.reference,
            status=self.status,
            when=self.draw_time,
        )

    @validates("status")
    def _guard_status(self, _key: str, value: str) -> str:
        if value != DRAW_PENDING:
            raise ValueError("draw status can only change through Draw.transition()")
        return value

    @validates("ticket_price")
    def _check_price(self, _key: str, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("ticket_price must be positive")
        return value

    @property
    def is_pending(self) -> bool:
        return self.status == DRAW_PENDING

    def is_purchasable(self, now: datetime) -> bool:
        """Whether tickets may still be bought at ``now``.

        A draw whose time has arrived is closed for purchases even while it
        is still ``pending``.
        """

        return self.is_pending and as_utc(self.draw_time) > as_utc(now)

    def is_due(self, now: datetime) -> bool:
        """Whether the scheduled time has arrived at ``now``."""

        return as_utc(now) >= as_utc(self.draw_time)

    @classmethod
    def get_by_reference(cls, session: Session, reference: str) -> Optional["Draw"]:
        """Return the draw matching ``reference`` if it exists."""

        return session.scalar(
            select(cls).where(cls.reference == reference.strip().upper())
        )

    @classmethod
    def lock(
        cls, session: Session, draw_id: int, *, shared: bool = False
    ) -> Optional["Draw"]:
        """Load ``draw_id`` with a row lock held until the transaction ends.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        draw_id : int
            Primary key of the draw.
        shared : bool, default: False
            Take a shared lock (``FOR SHARE``) instead of an exclusive one.
            Ticket purchases share the draw row with each other but exclude a
            concurrent resolution.

        Returns
        -------
        Optional[Draw]
            The freshly loaded draw, or ``None`` when it does not exist.
        """

        stmt = (
            select(cls)
            .where(cls.id == draw_id)
            .with_for_update(read=shared)
            .execution_options(populate_existing=True)
        )
        return session.scalar(stmt)

    @classmethod
    def transition(
        cls,
        session: Session,
        draw_id: int,
        status: str,
        *,
        winning_ticket_id: Optional[int] = None,
        resolved_at: Optional[datetime] = None,
    ) -> bool:
        """Move a ``pending`` draw to a terminal status.

        The UPDATE is conditional on ``status = 'pending'``, so of two
        concurrent callers exactly one sees an affected row.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session; the change commits with its transaction.
        draw_id : int
            Primary key of the draw.
        status : str
            ``"completed"`` or ``"cancelled"``.
        winning_ticket_id : Optional[int]
            Required for ``"completed"``, forbidden for ``"cancelled"``.
        resolved_at : Optional[datetime]
            Resolution timestamp. Defaults to the current UTC time.

        Returns
        -------
        bool
            ``True`` if this call performed the transition, ``False`` when the
            draw was no longer ``pending`` (or does not exist).

        Raises
        ------
        ValueError
            If ``status`` is not terminal or ``winning_ticket_id`` does not
            match it.
        """

        if status not in TERMINAL_STATUSES:
            raise ValueError(f"cannot transition a draw to {status!r}")
        if (status == DRAW_COMPLETED) != (winning_ticket_id is not None):
            raise ValueError("winning_ticket_id is required exactly when completing a draw")

        stmt = (
            update(cls)
            .where(cls.id == draw_id, cls.status == DRAW_PENDING)
            .values(
                status=status,
                winning_ticket_id=winning_ticket_id,
                resolved_at=as_utc(resolved_at or datetime.now(timezone.utc)),
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        if result.rowcount != 1:
            return False
        expire_cached(session, cls, draw_id, "status", "winning_ticket_id", "resolved_at")
        return True

    def to_json(self, *, ticket_count: Optional[int] = None) -> dict[str, Any]:
        """Return a JSON-serializable dict of the draw."""

        data: dict[str, Any] = {
            "id": self.id,
            "reference": self.reference,
            "draw_time": dt_iso(self.draw_time),
            "ticket_price": str(self.ticket_price),
            "status": self.status,
            "winning_ticket_id": self.winning_ticket_id,
            "created_at": dt_iso(self.created_at),
            "resolved_at": dt_iso(self.resolved_at),
        }
        if ticket_count is not None:
            data["ticket_count"] = ticket_count
        return data


__all__ = [
    "Draw",
    "DRAW_PENDING",
    "DRAW_COMPLETED",
    "DRAW_CANCELLED",
    "DRAW_STATUSES",
    "TERMINAL_STATUSES",
]
